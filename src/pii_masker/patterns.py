"""Structured recognizers — regex patterns plus checksum validation.

These catch the deterministic stuff: emails, phones, IBANs, card numbers,
IPs, URLs and user-defined identifiers.  A structural match whose checksum
fails is discarded outright.

Each recognizer is independent and read-only over the input, so the
registry's members can run concurrently over the same text.
"""

from __future__ import annotations
import logging
import re
from typing import Callable, NamedTuple, Protocol, Sequence, runtime_checkable

from .checksums import iban_valid, luhn_valid
from .exceptions import ConfigurationError
from .policy import Policy, compile_pattern
from .types import Detection, DetectionSource, PIIType

logger = logging.getLogger(__name__)


class RecognizerMatch(NamedTuple):
    start: int
    end: int
    confidence: float
    type: PIIType


@runtime_checkable
class Recognizer(Protocol):
    """Capability interface shared by built-in and custom recognizers."""
    name: str

    def match(self, text: str) -> list[RecognizerMatch]: ...


class RegexRecognizer:
    """A compiled pattern with a base confidence and optional validator.

    When ``context_words`` are given, a match with one of them nearby (within
    ``context_window`` characters either side) scores ``confidence +
    context_boost``; without one it keeps the base confidence.
    """

    __slots__ = (
        "name", "pii_type", "pattern", "confidence", "validator",
        "context_re", "context_boost", "context_window",
    )

    def __init__(
        self,
        name: str,
        pii_type: PIIType,
        pattern: re.Pattern[str] | str,
        confidence: float,
        validator: Callable[[str], bool] | None = None,
        *,
        context_words: Sequence[str] = (),
        context_boost: float = 0.0,
        context_window: int = 40,
    ) -> None:
        if not name:
            raise ConfigurationError("Recognizer name must not be empty")
        if not 0.0 <= confidence <= 1.0:
            raise ConfigurationError(f"Recognizer {name!r}: confidence must be within [0, 1]")
        if not 0.0 <= context_boost <= 1.0:
            raise ConfigurationError(f"Recognizer {name!r}: context_boost must be within [0, 1]")
        self.name = name
        self.pii_type = pii_type
        self.pattern = compile_pattern(pattern, what=f"pattern for recognizer {name!r}")
        self.confidence = confidence
        self.validator = validator
        self.context_re = (
            re.compile(r"\b(?:" + "|".join(re.escape(w) for w in context_words) + r")\b", re.IGNORECASE)
            if context_words else None
        )
        self.context_boost = context_boost
        self.context_window = context_window

    def _score(self, text: str, start: int, end: int) -> float:
        if self.context_re is None:
            return self.confidence
        before = text[max(0, start - self.context_window):start]
        after = text[end:end + self.context_window]
        if self.context_re.search(before) or self.context_re.search(after):
            return min(self.confidence + self.context_boost, 1.0)
        return self.confidence

    def match(self, text: str) -> list[RecognizerMatch]:
        matches: list[RecognizerMatch] = []
        for m in self.pattern.finditer(text):
            if m.end() == m.start():
                continue
            if self.validator is not None and not self.validator(m.group()):
                continue
            matches.append(RecognizerMatch(m.start(), m.end(), self._score(text, m.start(), m.end()), self.pii_type))
        return matches

    def __repr__(self) -> str:
        return f"RegexRecognizer({self.name!r}, {self.pii_type.value})"


# ----------------------------------------------------------------------
# Validators
# ----------------------------------------------------------------------

# ISO 3166-1 alpha-2 country codes used by SWIFT/BIC
_COUNTRY_CODES = frozenset("""
AD AE AF AG AI AL AM AO AQ AR AS AT AU AW AX AZ BA BB BD BE BF BG BH BI BJ BL
BM BN BO BQ BR BS BT BV BW BY BZ CA CC CD CF CG CH CI CK CL CM CN CO CR CU CV
CW CX CY CZ DE DJ DK DM DO DZ EC EE EG EH ER ES ET FI FJ FK FM FO FR GA GB GD
GE GF GG GH GI GL GM GN GP GQ GR GS GT GU GW GY HK HM HN HR HT HU ID IE IL IM
IN IO IQ IR IS IT JE JM JO JP KE KG KH KI KM KN KP KR KW KY KZ LA LB LC LI LK
LR LS LT LU LV LY MA MC MD ME MF MG MH MK ML MM MN MO MP MQ MR MS MT MU MV MW
MX MY MZ NA NC NE NF NG NI NL NO NP NR NU NZ OM PA PE PF PG PH PK PL PM PN PR
PS PT PW PY QA RE RO RS RU RW SA SB SC SD SE SG SH SI SJ SK SL SM SN SO SR SS
ST SV SX SY SZ TC TD TF TG TH TJ TK TL TM TN TO TR TT TV TW TZ UA UG UM US UY
UZ VA VC VE VG VI VN VU WF WS XK YE YT ZA ZM ZW
""".split())


def _card_valid(candidate: str) -> bool:
    digits = re.sub(r"\D", "", candidate)
    return 13 <= len(digits) <= 19 and luhn_valid(digits)


def _bic_valid(candidate: str) -> bool:
    return candidate[4:6] in _COUNTRY_CODES


def _phone_valid(candidate: str) -> bool:
    digits = re.sub(r"\D", "", candidate)
    if not 7 <= len(digits) <= 15:
        return False
    # Bare digit groups (dates, amounts) need at least 9 digits
    return candidate.startswith(("+", "(")) or len(digits) >= 9


# ----------------------------------------------------------------------
# Built-in patterns
# ----------------------------------------------------------------------

_IBAN_RE = re.compile(
    r"\b[A-Z]{2}\d{2}"
    r"(?: ?[A-Z0-9]{4}){2,7}"
    r"(?: ?[A-Z0-9]{1,3})?\b"
)

_CARD_RE = re.compile(
    r"(?<![\d\-])\d(?:[ \-]?\d){12,18}(?![\d\-])"
)

_EMAIL_RE = re.compile(
    r"\b[a-zA-Z0-9._%+\-]+@[a-zA-Z0-9.\-]+\.[a-zA-Z]{2,}\b"
)

_BIC_RE = re.compile(
    r"\b[A-Z]{4}[A-Z]{2}[A-Z0-9]{2}(?:[A-Z0-9]{3})?\b"
)

_IP_RE = re.compile(
    r"\b(?:(?:25[0-5]|2[0-4]\d|[01]?\d\d?)\.){3}"
    r"(?:25[0-5]|2[0-4]\d|[01]?\d\d?)\b"
    r"|\b(?:[0-9a-fA-F]{1,4}:){7}[0-9a-fA-F]{1,4}\b"
)

# Trailing sentence punctuation is not part of the URL
_URL_RE = re.compile(
    r"\b(?:https?://|www\.)[^\s<>\"']*[^\s<>\"'.,;:!?)\]]"
)

_PHONE_RE = re.compile(
    r"(?<![\w+])"
    r"(?:\+\d{1,3}[\s.\-]?)?"
    r"(?:\(\d{1,5}\)[\s.\-]?)?"
    r"\d{2,5}"
    r"(?:[\s.\-]\d{2,8}){1,4}"
    r"(?![\w])"
)


# An all-caps word like CUSTOMER has the BIC shape, so a bare match stays
# below the default threshold until a banking keyword sits nearby.
BIC_BARE_CONFIDENCE = 0.4
BIC_CONTEXT_WORDS = ("bic", "swift", "iban", "bank")


def builtin_recognizers() -> list[RegexRecognizer]:
    """Fresh instances of the built-in recognizers, most specific first."""
    return [
        RegexRecognizer("iban", PIIType.IBAN, _IBAN_RE, 0.95, iban_valid),
        RegexRecognizer("credit_card", PIIType.CREDIT_CARD, _CARD_RE, 0.95, _card_valid),
        RegexRecognizer("email", PIIType.EMAIL, _EMAIL_RE, 0.9),
        RegexRecognizer(
            "bic", PIIType.BIC, _BIC_RE, BIC_BARE_CONFIDENCE, _bic_valid,
            context_words=BIC_CONTEXT_WORDS, context_boost=0.35,
        ),
        RegexRecognizer("ip_address", PIIType.IP_ADDRESS, _IP_RE, 0.85),
        RegexRecognizer("url", PIIType.URL, _URL_RE, 0.85),
        RegexRecognizer("phone", PIIType.PHONE, _PHONE_RE, 0.8, _phone_valid),
    ]


CUSTOM_ID_CONFIDENCE = 0.85


class RecognizerRegistry:
    """Ordered collection of recognizers.  Duplicate names are ignored."""

    __slots__ = ("_recognizers",)

    def __init__(self, recognizers: Sequence[Recognizer] = ()) -> None:
        self._recognizers: list[Recognizer] = []
        for r in recognizers:
            self.register(r)

    def register(self, recognizer: Recognizer) -> None:
        if not isinstance(recognizer, Recognizer):
            raise ConfigurationError(f"Not a recognizer: {recognizer!r}")
        if recognizer.name in self.names:
            logger.debug("Recognizer %r already registered; ignoring", recognizer.name)
            return
        self._recognizers.append(recognizer)

    @property
    def names(self) -> list[str]:
        return [r.name for r in self._recognizers]

    def __iter__(self):
        return iter(self._recognizers)

    def __len__(self) -> int:
        return len(self._recognizers)

    def scan(self, text: str) -> tuple[list[Detection], list[str]]:
        """Run every recognizer sequentially.

        Returns (detections, names of recognizers that raised).  A failing
        recognizer is logged and skipped; the others still contribute.
        """
        detections: list[Detection] = []
        failed: list[str] = []
        for r in self._recognizers:
            try:
                found = r.match(text)
            except Exception:
                logger.exception("Recognizer %r failed", r.name)
                failed.append(r.name)
                continue
            detections.extend(to_detections(found, text))
        return detections, failed


def to_detections(matches: Sequence[RecognizerMatch], text: str) -> list[Detection]:
    return [
        Detection(
            type=m.type,
            start=m.start,
            end=m.end,
            confidence=m.confidence,
            source=DetectionSource.REGEX,
            text=text[m.start:m.end],
        )
        for m in matches
    ]


def custom_recognizers(policy: Policy) -> list[RegexRecognizer]:
    return [
        RegexRecognizer(
            f"custom:{p.name}", p.type, p.pattern, CUSTOM_ID_CONFIDENCE,
        )
        for p in policy.custom_id_patterns
    ]


def default_registry(policy: Policy, extra: Sequence[Recognizer] = ()) -> RecognizerRegistry:
    """Built-ins, then the policy's custom id patterns, then *extra*."""
    return RecognizerRegistry([*builtin_recognizers(), *custom_recognizers(policy), *extra])


def scan_regex(text: str, registry: RecognizerRegistry | None = None) -> list[Detection]:
    """Run all recognizers against text. Overlaps are left to the resolver."""
    registry = registry or RecognizerRegistry(builtin_recognizers())
    detections, _ = registry.scan(text)
    return sorted(detections, key=lambda d: (d.start, d.end))
