"""Identifier allocation and placeholder rendering.

Placeholder form — a self-closing tag, attributes in this order:

    <PII type="EMAIL" id="1"/>
    <PII type="PERSON" id="2" gender="female"/>

Ids count per type from 1 in left-to-right order.  With id reuse enabled,
repeated values share an id; a value that differs in case or spacing gets its own.
"""

from __future__ import annotations
from collections import defaultdict
from html import escape
from typing import Iterable, Mapping, Sequence

from .types import Detection, Entity, PIIType

TAG_NAME = "PII"


class IdAllocator:
    """Per-type counters plus, when reuse is on, a seen-value table.

    Only exact repeats share an id, since the mapping table holds a single
    original per id.  One allocator serves one document; it is not shared
    between calls.
    """

    __slots__ = ("_reuse", "_counters", "_seen")

    def __init__(self, *, reuse: bool = False) -> None:
        self._reuse = reuse
        self._counters: dict[PIIType, int] = defaultdict(int)
        self._seen: dict[tuple[PIIType, str], int] = {}

    def allocate(self, pii_type: PIIType, original: str) -> int:
        """Return the id for this occurrence."""
        key = (pii_type, original)
        if self._reuse and key in self._seen:
            return self._seen[key]

        self._counters[pii_type] += 1
        new_id = self._counters[pii_type]
        if self._reuse:
            self._seen[key] = new_id
        return new_id

    def counts(self) -> dict[str, int]:
        return {t.value: n for t, n in self._counters.items()}


def format_tag(pii_type: PIIType, entity_id: int, attributes: Mapping[str, str] | None = None) -> str:
    parts = [f'type="{pii_type.value}"', f'id="{entity_id}"']
    for name, value in (attributes or {}).items():
        parts.append(f'{name}="{escape(str(value), quote=True)}"')
    return f"<{TAG_NAME} {' '.join(parts)}/>"


def assign_ids(detections: Iterable[Detection], text: str, *, reuse: bool = False) -> list[Entity]:
    """Turn resolved detections into entities, allocating ids left to right."""
    allocator = IdAllocator(reuse=reuse)
    entities: list[Entity] = []
    for d in sorted(detections, key=lambda d: d.start):
        entities.append(Entity(
            type=d.type,
            id=allocator.allocate(d.type, text[d.start:d.end]),
            start=d.start,
            end=d.end,
            confidence=d.confidence,
            source=d.source,
        ))
    return entities


def render(text: str, entities: Sequence[Entity]) -> str:
    """Build the output by stitching original segments and tags in one pass.

    All spans refer to the untouched *text*, so offsets never drift.
    """
    parts: list[str] = []
    cursor = 0
    for e in entities:
        parts.append(text[cursor:e.start])
        parts.append(format_tag(e.type, e.id, e.attributes))
        cursor = e.end
    parts.append(text[cursor:])
    return "".join(parts)
