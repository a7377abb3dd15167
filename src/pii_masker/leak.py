"""Leak scan — verify no original value survives verbatim in the output."""

from __future__ import annotations
import logging
from typing import Mapping

from .rehydrate import TAG_RE

logger = logging.getLogger(__name__)

# Values this short (e.g. "Jo", "42") collide with ordinary text
MIN_LEAK_LENGTH = 3


def scan_for_leaks(
    anonymized_text: str,
    pii_map: Mapping[str, str],
    *,
    min_length: int = MIN_LEAK_LENGTH,
) -> list[str]:
    """Return the map keys whose original value still appears in the text.

    Placeholder tags are stripped first so tag markup can't count as a leak.
    Advisory only: never raises.
    """
    visible = TAG_RE.sub("\x00", anonymized_text)
    leaked = [
        key for key, value in pii_map.items()
        if len(value) >= min_length and value in visible
    ]
    if leaked:
        logger.warning("Leak scan found %d original value(s) in output: %s", len(leaked), ", ".join(leaked))
    return leaked
