"""Soft-detection normalizer — adapts entity-recognition output to Detections.

The inference itself is an external collaborator.  It hands back token-level
predictions ``{label, start, end, score}``; this module maps labels to PII
types and stitches B-/I- token runs into spans:

    [B-PER "Anna" 0.98] [I-PER "Schmidt" 0.91]  →  PERSON "Anna Schmidt" 0.91
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Protocol, runtime_checkable

from .types import (
    Detection,
    DetectionSource,
    PIIType,
    get_pii_type_from_ner_label,
    split_ner_label,
)


@dataclass(frozen=True, slots=True)
class TokenPrediction:
    label: str
    start: int
    end: int
    score: float

    @classmethod
    def coerce(cls, raw: TokenPrediction | Mapping[str, Any]) -> TokenPrediction:
        if isinstance(raw, TokenPrediction):
            return raw
        return cls(
            label=str(raw["label"]),
            start=int(raw["start"]),
            end=int(raw["end"]),
            score=float(raw["score"]),
        )


@runtime_checkable
class InferenceProvider(Protocol):
    """Contract for the entity-recognition collaborator.

    ``initialize`` and ``dispose`` bracket the provider's lifetime (model
    loading and release); ``predict`` is the one awaited suspension point of
    an anonymize call.
    """

    async def predict(self, text: str) -> list[TokenPrediction | Mapping[str, Any]]: ...

    def initialize(self) -> None: ...

    def dispose(self) -> None: ...


@dataclass(slots=True)
class _OpenSpan:
    type: PIIType
    start: int
    end: int
    score: float


def normalize_predictions(
    predictions: Iterable[TokenPrediction | Mapping[str, Any]],
    text: str,
) -> list[Detection]:
    """Merge token predictions into NER detections.

    - ``B-`` (and unprefixed labels) open a new span.
    - ``I-`` extends the open span of the same type; otherwise it opens a
      new one rather than being dropped.
    - ``O`` and unknown labels close the open span.
    - A span's confidence is the minimum of its token scores.
    """
    tokens = sorted((TokenPrediction.coerce(p) for p in predictions), key=lambda t: (t.start, t.end))

    spans: list[_OpenSpan] = []
    current: _OpenSpan | None = None
    for tok in tokens:
        pii_type = get_pii_type_from_ner_label(tok.label)
        if pii_type is None:
            current = None
            continue
        prefix, _ = split_ner_label(tok.label)
        if prefix == "I" and current is not None and current.type is pii_type:
            current.end = max(current.end, tok.end)
            current.score = min(current.score, tok.score)
            continue
        current = _OpenSpan(pii_type, tok.start, tok.end, tok.score)
        spans.append(current)

    return [
        Detection(
            type=s.type,
            start=s.start,
            end=s.end,
            confidence=s.score,
            source=DetectionSource.NER,
            text=text[s.start:s.end],
        )
        for s in spans
        if 0 <= s.start < s.end <= len(text)
    ]
