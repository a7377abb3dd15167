"""Merge resolver — reconcile candidates from all detection sources.

Two passes:

1. Filter: allowlist terms are never masked; then type/source gating and
   confidence thresholds apply, with denylist matches bypassing the threshold.
2. Overlap sweep: a greedy interval scheduler over candidates sorted by
   start, then priority, then confidence.  The earliest, highest-ranked
   candidate wins even when a loser would cover more text.

Tie-break for equal start, priority and confidence: the longer span wins,
then REGEX before NER, then type name.
"""

from __future__ import annotations
import logging
from dataclasses import replace
from typing import Iterable

from .policy import Policy
from .types import Detection, DetectionSource

logger = logging.getLogger(__name__)

_SOURCE_ORDER = {DetectionSource.REGEX: 0, DetectionSource.NER: 1, DetectionSource.HYBRID: 2}


def _is_allowlisted(text: str, policy: Policy) -> bool:
    if not policy.allowlist_terms:
        return False
    needle = text.strip().casefold()
    return any(needle == term.strip().casefold() for term in policy.allowlist_terms)


def _is_denylisted(text: str, policy: Policy) -> bool:
    return any(p.search(text) for p in policy.denylist_patterns)


def _source_enabled(d: Detection, policy: Policy) -> bool:
    if d.source is DetectionSource.REGEX:
        return d.type in policy.regex_enabled_types
    if d.source is DetectionSource.NER:
        return d.type in policy.ner_enabled_types
    return d.type in policy.regex_enabled_types or d.type in policy.ner_enabled_types


def filter_detections(detections: Iterable[Detection], policy: Policy) -> list[Detection]:
    kept: list[Detection] = []
    for d in detections:
        if _is_allowlisted(d.text, policy):
            continue
        if d.type not in policy.enabled_types or not _source_enabled(d, policy):
            continue
        if d.confidence < policy.threshold_for(d.type) and not _is_denylisted(d.text, policy):
            continue
        kept.append(d)
    return kept


def _rank_key(d: Detection, policy: Policy) -> tuple:
    return (
        d.start,
        -policy.priority_of(d.type),
        -d.confidence,
        -d.length,
        _SOURCE_ORDER[d.source],
        d.type.value,
    )


def resolve_overlaps(detections: Iterable[Detection], policy: Policy) -> list[Detection]:
    """Greedy left-to-right sweep.  Returns non-overlapping detections by start."""
    ranked = sorted(detections, key=lambda d: _rank_key(d, policy))

    accepted: list[Detection] = []
    last_end = -1
    for d in ranked:
        if accepted and d.start < last_end:
            prev = accepted[-1]
            # Same span seen by a second source: confirm rather than drop
            if (d.start, d.end) == (prev.start, prev.end) and d.source is not prev.source:
                accepted[-1] = replace(
                    prev,
                    source=DetectionSource.HYBRID,
                    confidence=max(prev.confidence, d.confidence),
                )
            continue
        accepted.append(d)
        last_end = d.end
    return accepted


def resolve(detections: Iterable[Detection], policy: Policy) -> list[Detection]:
    """Filter by policy, then resolve overlaps."""
    candidates = list(detections)
    filtered = filter_detections(candidates, policy)
    resolved = resolve_overlaps(filtered, policy)
    logger.debug(
        "Resolved %d candidates → %d after filtering → %d non-overlapping",
        len(candidates), len(filtered), len(resolved),
    )
    return resolved
