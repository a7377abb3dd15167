"""Checksum validators for structured identifiers."""

from __future__ import annotations
import re

_NON_DIGIT = re.compile(r"\D")
_IBAN_SHAPE = re.compile(r"[A-Z]{2}\d{2}[A-Z0-9]{11,30}")


def luhn_valid(number: str) -> bool:
    """Luhn check on the digits of *number* (separators are ignored)."""
    digits = [int(d) for d in _NON_DIGIT.sub("", number)]
    if not digits:
        return False
    total = 0
    for i, d in enumerate(reversed(digits)):
        if i % 2 == 1:
            d *= 2
            if d > 9:
                d -= 9
        total += d
    return total % 10 == 0


def iban_valid(iban: str) -> bool:
    """ISO 13616 mod-97 check. Spaces are ignored, letters must be upper case."""
    s = re.sub(r"\s+", "", iban)
    if not _IBAN_SHAPE.fullmatch(s):
        return False
    rearranged = s[4:] + s[:4]
    # A=10 ... Z=35
    numeric = "".join(ch if ch.isdigit() else str(ord(ch) - 55) for ch in rearranged)
    return int(numeric) % 97 == 1
