class PIIMaskerError(Exception):
    """Base exception for all pii-masker errors."""


class ConfigurationError(PIIMaskerError):
    """Raised at setup time for malformed patterns, unknown types or bad values."""


class MappingCryptoError(PIIMaskerError):
    """Raised when the mapping table cannot be encrypted or decrypted."""


class InvalidKeyOrCorruptedMapError(MappingCryptoError):
    """Raised when decryption fails: wrong key, tampered data or a bad tag."""

    def __init__(self, message: str = "invalid key or corrupted map") -> None:
        super().__init__(message)
