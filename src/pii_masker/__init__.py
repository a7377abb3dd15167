"""PII Masker — reversible PII tagging with an encrypted mapping table."""

from .anonymizer import Anonymizer
from .config import load_config, load_from_yaml, load_settings
from .crypto import KeyProvider, StaticKeyProvider, decrypt_map, encrypt_map, generate_key
from .exceptions import (
    ConfigurationError,
    InvalidKeyOrCorruptedMapError,
    MappingCryptoError,
    PIIMaskerError,
)
from .ner import InferenceProvider, TokenPrediction, normalize_predictions
from .patterns import RecognizerRegistry, RegexRecognizer, scan_regex
from .policy import CustomIdPattern, Policy, create_default_policy, merge_policy
from .rehydrate import rehydrate
from .semantic import SemanticLookup, TableSemanticLookup
from .streaming import StreamingRehydrator
from .types import (
    AnonymizationResult,
    AnonymizationStats,
    Detection,
    DetectionSource,
    EncryptedMap,
    Entity,
    PIIType,
)

__all__ = [
    "Anonymizer",
    "load_config", "load_from_yaml", "load_settings",
    "KeyProvider", "StaticKeyProvider", "decrypt_map", "encrypt_map", "generate_key",
    "ConfigurationError", "InvalidKeyOrCorruptedMapError", "MappingCryptoError", "PIIMaskerError",
    "InferenceProvider", "TokenPrediction", "normalize_predictions",
    "RecognizerRegistry", "RegexRecognizer", "scan_regex",
    "CustomIdPattern", "Policy", "create_default_policy", "merge_policy",
    "rehydrate",
    "SemanticLookup", "TableSemanticLookup",
    "StreamingRehydrator",
    "AnonymizationResult", "AnonymizationStats", "Detection", "DetectionSource",
    "EncryptedMap", "Entity", "PIIType",
]
__version__ = "0.1.0"
