"""Policy engine — which types to detect, how confidently, and how to break ties.

A ``Policy`` is an immutable value, built once and shared across calls:

    policy = merge_policy({
        "confidence_thresholds": {"PERSON": 0.6},
        "allowlist_terms": {"Support Team"},
        "reuse_ids_for_repeated_pii": True,
    })

``merge_policy`` overrides each field wholesale, except
``confidence_thresholds`` which is overlaid key by key on the default table.
"""

from __future__ import annotations
import re
from dataclasses import dataclass, replace
from types import MappingProxyType
from typing import Any, Callable, Iterable, Mapping

from .exceptions import ConfigurationError
from .types import ALL_PII_TYPES, NER_PII_TYPES, REGEX_PII_TYPES, PIIType

# Ascending priority: generic soft types first, checksummed identifiers last
DEFAULT_TYPE_PRIORITY: tuple[PIIType, ...] = (
    PIIType.ADDRESS,
    PIIType.DATE_OF_BIRTH,
    PIIType.LOCATION,
    PIIType.ORG,
    PIIType.PERSON,
    PIIType.URL,
    PIIType.PHONE,
    PIIType.IP_ADDRESS,
    PIIType.EMAIL,
    PIIType.CUSTOMER_ID,
    PIIType.CASE_ID,
    PIIType.BIC,
    PIIType.CREDIT_CARD,
    PIIType.IBAN,
)

REGEX_DEFAULT_THRESHOLD = 0.5
NER_DEFAULT_THRESHOLD = 0.7

DEFAULT_CONFIDENCE_THRESHOLDS: Mapping[PIIType, float] = MappingProxyType({
    t: (NER_DEFAULT_THRESHOLD if t in NER_PII_TYPES else REGEX_DEFAULT_THRESHOLD)
    for t in ALL_PII_TYPES
})


@dataclass(frozen=True, slots=True)
class CustomIdPattern:
    """A user-defined identifier pattern, e.g. order or ticket numbers."""
    name: str
    pattern: re.Pattern[str]
    type: PIIType


@dataclass(frozen=True, slots=True)
class Policy:
    enabled_types: frozenset[PIIType]
    regex_enabled_types: frozenset[PIIType]
    ner_enabled_types: frozenset[PIIType]
    confidence_thresholds: Mapping[PIIType, float]
    allowlist_terms: frozenset[str]
    denylist_patterns: tuple[re.Pattern[str], ...]
    custom_id_patterns: tuple[CustomIdPattern, ...]
    type_priority: tuple[PIIType, ...]          # low → high
    reuse_ids_for_repeated_pii: bool
    enable_semantic_masking: bool
    enable_leak_scan: bool

    def priority_of(self, pii_type: PIIType) -> int:
        """Index in type_priority; -1 for unlisted types."""
        try:
            return self.type_priority.index(pii_type)
        except ValueError:
            return -1

    def threshold_for(self, pii_type: PIIType) -> float:
        return self.confidence_thresholds.get(pii_type, REGEX_DEFAULT_THRESHOLD)


def create_default_policy() -> Policy:
    return Policy(
        enabled_types=frozenset(ALL_PII_TYPES),
        regex_enabled_types=REGEX_PII_TYPES,
        ner_enabled_types=NER_PII_TYPES,
        confidence_thresholds=DEFAULT_CONFIDENCE_THRESHOLDS,
        allowlist_terms=frozenset(),
        denylist_patterns=(),
        custom_id_patterns=(),
        type_priority=DEFAULT_TYPE_PRIORITY,
        reuse_ids_for_repeated_pii=False,
        enable_semantic_masking=False,
        enable_leak_scan=True,
    )


# ----------------------------------------------------------------------
# Coercion helpers (config dicts carry strings; Policy carries enums/patterns)
# ----------------------------------------------------------------------

def to_pii_type(value: PIIType | str) -> PIIType:
    if isinstance(value, PIIType):
        return value
    try:
        return PIIType(str(value).upper())
    except ValueError:
        raise ConfigurationError(f"Unknown PII type: {value!r}") from None


def compile_pattern(pattern: re.Pattern[str] | str, *, what: str = "pattern") -> re.Pattern[str]:
    """Compile *pattern*, raising ConfigurationError if it is malformed."""
    if isinstance(pattern, re.Pattern):
        return pattern
    if not isinstance(pattern, str) or not pattern:
        raise ConfigurationError(f"Empty or non-string {what}: {pattern!r}")
    try:
        return re.compile(pattern)
    except re.error as exc:
        raise ConfigurationError(f"Malformed {what} {pattern!r}: {exc}") from exc


def _type_set(values: Iterable[PIIType | str]) -> frozenset[PIIType]:
    return frozenset(to_pii_type(v) for v in values)


def _thresholds(values: Mapping[PIIType | str, float]) -> dict[PIIType, float]:
    out: dict[PIIType, float] = {}
    for key, value in values.items():
        score = float(value)
        if not 0.0 <= score <= 1.0:
            raise ConfigurationError(f"Threshold for {key} must be within [0, 1], got {value}")
        out[to_pii_type(key)] = score
    return out


def _custom_pattern(value: CustomIdPattern | Mapping[str, Any]) -> CustomIdPattern:
    if isinstance(value, CustomIdPattern):
        pattern = value
    elif isinstance(value, Mapping):
        name = str(value.get("name") or "").strip()
        if not name:
            raise ConfigurationError(f"Custom id pattern is missing a name: {value!r}")
        if not value.get("type"):
            raise ConfigurationError(f"Custom id pattern {name!r} is missing a type")
        pattern = CustomIdPattern(
            name=name,
            pattern=compile_pattern(value.get("pattern", ""), what=f"custom id pattern {name!r}"),
            type=to_pii_type(value["type"]),
        )
    else:
        raise ConfigurationError(f"Custom id pattern must be a mapping, got {value!r}")
    # Custom patterns emit pattern detections, which are routed by regex type
    if pattern.type not in REGEX_PII_TYPES:
        raise ConfigurationError(
            f"Custom id pattern {pattern.name!r}: {pattern.type.value} is a model-detected type"
        )
    return pattern


# Field → coercer.  Every Policy field is listed here explicitly.
_COERCERS: dict[str, Callable[[Any], Any]] = {
    "enabled_types": _type_set,
    "regex_enabled_types": _type_set,
    "ner_enabled_types": _type_set,
    "confidence_thresholds": _thresholds,
    "allowlist_terms": lambda v: frozenset(str(t) for t in v),
    "denylist_patterns": lambda v: tuple(compile_pattern(p, what="denylist pattern") for p in v),
    "custom_id_patterns": lambda v: tuple(_custom_pattern(p) for p in v),
    "type_priority": lambda v: tuple(to_pii_type(t) for t in v),
    "reuse_ids_for_repeated_pii": bool,
    "enable_semantic_masking": bool,
    "enable_leak_scan": bool,
}

# Fields that take a list or set; a bare string would iterate as characters
_COLLECTION_FIELDS = frozenset({
    "enabled_types",
    "regex_enabled_types",
    "ner_enabled_types",
    "allowlist_terms",
    "denylist_patterns",
    "custom_id_patterns",
    "type_priority",
})


def _check_shape(name: str, value: Any) -> None:
    if name in _COLLECTION_FIELDS and (
        isinstance(value, (str, bytes, Mapping)) or not isinstance(value, Iterable)
    ):
        raise ConfigurationError(f"{name} must be a list of values, got {value!r}")
    if name == "confidence_thresholds" and not isinstance(value, Mapping):
        raise ConfigurationError(f"{name} must be a mapping of type → threshold, got {value!r}")


def merge_policy(partial: Mapping[str, Any] | None = None, *, base: Policy | None = None) -> Policy:
    """Return *base* (default policy when omitted) with *partial* applied.

    Every key replaces the corresponding field, except
    ``confidence_thresholds`` whose entries overlay the default table.
    Unknown keys, unknown types, out-of-range thresholds and malformed
    patterns raise ConfigurationError before any text is scanned.
    """
    base = base or create_default_policy()
    partial = dict(partial or {})

    unknown = sorted(set(partial) - set(_COERCERS))
    if unknown:
        raise ConfigurationError(f"Unknown policy field(s): {', '.join(unknown)}")

    overrides: dict[str, Any] = {}
    for name, coerce in _COERCERS.items():
        if name in partial and partial[name] is not None:
            _check_shape(name, partial[name])
            overrides[name] = coerce(partial[name])

    if "confidence_thresholds" in overrides:
        overrides["confidence_thresholds"] = MappingProxyType({
            **DEFAULT_CONFIDENCE_THRESHOLDS,
            **overrides["confidence_thresholds"],
        })

    return replace(base, **overrides)
