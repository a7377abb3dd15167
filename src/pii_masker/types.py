"""Core types."""

from __future__ import annotations
import base64
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping


class PIIType(str, Enum):
    PERSON = "PERSON"
    ORG = "ORG"
    LOCATION = "LOCATION"
    ADDRESS = "ADDRESS"
    DATE_OF_BIRTH = "DATE_OF_BIRTH"
    EMAIL = "EMAIL"
    PHONE = "PHONE"
    URL = "URL"
    IP_ADDRESS = "IP_ADDRESS"
    IBAN = "IBAN"
    BIC = "BIC"
    CREDIT_CARD = "CREDIT_CARD"
    CASE_ID = "CASE_ID"
    CUSTOMER_ID = "CUSTOMER_ID"


class DetectionSource(str, Enum):
    REGEX = "REGEX"
    NER = "NER"
    HYBRID = "HYBRID"


ALL_PII_TYPES: tuple[PIIType, ...] = tuple(PIIType)

# Structured types found by pattern recognizers (custom id types included)
REGEX_PII_TYPES: frozenset[PIIType] = frozenset({
    PIIType.EMAIL,
    PIIType.PHONE,
    PIIType.URL,
    PIIType.IP_ADDRESS,
    PIIType.IBAN,
    PIIType.BIC,
    PIIType.CREDIT_CARD,
    PIIType.CASE_ID,
    PIIType.CUSTOMER_ID,
})

# Soft types supplied by the entity-recognition model
NER_PII_TYPES: frozenset[PIIType] = frozenset({
    PIIType.PERSON,
    PIIType.ORG,
    PIIType.LOCATION,
    PIIType.ADDRESS,
    PIIType.DATE_OF_BIRTH,
})

NER_LABEL_TO_PII_TYPE: dict[str, PIIType] = {
    "PER": PIIType.PERSON,
    "PERSON": PIIType.PERSON,
    "ORG": PIIType.ORG,
    "ORGANIZATION": PIIType.ORG,
    "LOC": PIIType.LOCATION,
    "LOCATION": PIIType.LOCATION,
    "GPE": PIIType.LOCATION,
    "DATE": PIIType.DATE_OF_BIRTH,
    "MISC": PIIType.ADDRESS,
}

# Only upper-case B-/I- prefixes count as IOB markers
_IOB_PREFIX = re.compile(r"^([BI])-(.+)$")


def split_ner_label(label: str) -> tuple[str | None, str]:
    """Split an IOB label into (prefix, base). Prefix is "B", "I" or None."""
    m = _IOB_PREFIX.match(label)
    if m:
        return m.group(1), m.group(2)
    return None, label


def get_pii_type_from_ner_label(label: str) -> PIIType | None:
    """Map a raw model label to a PII type, or None for O/unknown labels."""
    _, base = split_ner_label(label)
    return NER_LABEL_TO_PII_TYPE.get(base.upper())


@dataclass(frozen=True, slots=True)
class Detection:
    """A candidate PII span from one detection source.

    ``text`` is the matched substring; it lives only until the mapping
    table has been built.
    """
    type: PIIType
    start: int
    end: int
    confidence: float      # 0.0–1.0
    source: DetectionSource
    text: str = ""

    @property
    def length(self) -> int:
        return self.end - self.start


@dataclass(frozen=True, slots=True)
class Entity:
    """A rendered PII occurrence, as exposed in results."""
    type: PIIType
    id: int
    start: int
    end: int
    confidence: float
    source: DetectionSource
    attributes: Mapping[str, str] = field(default_factory=dict)

    @property
    def key(self) -> str:
        return f"{self.type.value}:{self.id}"

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "type": self.type.value,
            "id": self.id,
            "start": self.start,
            "end": self.end,
            "confidence": self.confidence,
            "source": self.source.value,
        }
        if self.attributes:
            out["attributes"] = dict(self.attributes)
        return out


@dataclass(frozen=True, slots=True)
class EncryptedMap:
    """AES-GCM sealed mapping table. All fields are raw bytes."""
    ciphertext: bytes
    iv: bytes
    auth_tag: bytes

    def to_dict(self) -> dict[str, str]:
        """Wire shape: base64 ``ciphertext``, ``iv`` and ``authTag``."""
        return {
            "ciphertext": base64.b64encode(self.ciphertext).decode("ascii"),
            "iv": base64.b64encode(self.iv).decode("ascii"),
            "authTag": base64.b64encode(self.auth_tag).decode("ascii"),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, str]) -> EncryptedMap:
        """Parse the wire shape. Raises ValueError/KeyError on malformed input."""
        return cls(
            ciphertext=base64.b64decode(data["ciphertext"], validate=True),
            iv=base64.b64decode(data["iv"], validate=True),
            auth_tag=base64.b64decode(data["authTag"], validate=True),
        )


@dataclass(slots=True)
class AnonymizationStats:
    counts_by_type: dict[str, int] = field(default_factory=dict)
    total_entities: int = 0
    processing_time_ms: float = 0.0
    model_version: str | None = None
    leak_scan_passed: bool | None = None   # None when the scan is disabled
    ner_degraded: bool = False
    failed_recognizers: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "countsByType": dict(self.counts_by_type),
            "totalEntities": self.total_entities,
            "processingTimeMs": self.processing_time_ms,
            "modelVersion": self.model_version,
            "nerDegraded": self.ner_degraded,
        }
        if self.leak_scan_passed is not None:
            out["leakScanPassed"] = self.leak_scan_passed
        if self.failed_recognizers:
            out["failedRecognizers"] = list(self.failed_recognizers)
        return out


@dataclass(slots=True)
class AnonymizationResult:
    """Result of anonymizing one document."""
    anonymized_text: str
    entities: list[Entity]
    pii_map: EncryptedMap
    stats: AnonymizationStats

    def to_dict(self) -> dict[str, Any]:
        return {
            "anonymizedText": self.anonymized_text,
            "entities": [e.to_dict() for e in self.entities],
            "piiMap": self.pii_map.to_dict(),
            "stats": self.stats.to_dict(),
        }
