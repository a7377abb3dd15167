"""Semantic enrichment — optional, additive attributes on entities.

The lookup tables themselves live outside the core.  A lookup may return
``{"gender": "female"}`` for a PERSON or ``{"scope": "city"}`` for a
LOCATION; anything else, any failure and any ambiguity mean "no attribute".
Spans, types and confidences are never touched.
"""

from __future__ import annotations
import logging
from dataclasses import replace
from typing import Mapping, Protocol, Sequence, runtime_checkable

from .types import Entity, PIIType

logger = logging.getLogger(__name__)

ALLOWED_ATTRIBUTES: dict[PIIType, dict[str, frozenset[str]]] = {
    PIIType.PERSON: {"gender": frozenset({"male", "female", "neutral"})},
    PIIType.LOCATION: {"scope": frozenset({"city", "country", "region"})},
}


@runtime_checkable
class SemanticLookup(Protocol):
    def enrich(self, entity_text: str, pii_type: PIIType) -> Mapping[str, str] | None: ...


class TableSemanticLookup:
    """Lookup backed by plain in-memory tables.

    ``genders`` maps first names to male/female/neutral; ``location_scopes``
    maps place names to city/country/region.  Keys compare case-insensitively.
    """

    def __init__(
        self,
        genders: Mapping[str, str] | None = None,
        location_scopes: Mapping[str, str] | None = None,
    ) -> None:
        self._genders = {k.casefold(): v for k, v in (genders or {}).items()}
        self._scopes = {k.casefold(): v for k, v in (location_scopes or {}).items()}

    def enrich(self, entity_text: str, pii_type: PIIType) -> Mapping[str, str] | None:
        words = entity_text.split()
        if not words:
            return None
        if pii_type is PIIType.PERSON:
            gender = self._genders.get(words[0].casefold())
            return {"gender": gender} if gender else None
        if pii_type is PIIType.LOCATION:
            scope = self._scopes.get(" ".join(words).casefold())
            return {"scope": scope} if scope else None
        return None


def _accepted(pii_type: PIIType, attrs: Mapping[str, str]) -> dict[str, str]:
    allowed = ALLOWED_ATTRIBUTES.get(pii_type, {})
    out: dict[str, str] = {}
    for name, values in allowed.items():
        value = attrs.get(name)
        if isinstance(value, str) and value.lower() in values:
            out[name] = value.lower()
    return out


def enrich_entities(entities: Sequence[Entity], text: str, lookup: SemanticLookup) -> list[Entity]:
    enriched: list[Entity] = []
    for e in entities:
        if e.type not in ALLOWED_ATTRIBUTES:
            enriched.append(e)
            continue
        try:
            attrs = lookup.enrich(text[e.start:e.end], e.type)
        except Exception as exc:
            logger.debug("Semantic lookup failed for %s: %s", e.key, exc)
            attrs = None
        if attrs is not None and not isinstance(attrs, Mapping):
            logger.debug("Semantic lookup returned %s for %s; ignored", type(attrs).__name__, e.key)
            attrs = None
        accepted = _accepted(e.type, attrs) if attrs else {}
        enriched.append(replace(e, attributes=accepted) if accepted else e)
    return enriched
