"""Mapping cryptography — seal the ``TYPE:id → original`` table with AES-256-GCM.

The plaintext table exists only for the duration of one anonymize call.
Keys come from a ``KeyProvider`` at call time and are never stored:

    keys = StaticKeyProvider(generate_key())
    sealed = encrypt_map({"EMAIL:1": "john@example.com"}, keys)
    assert decrypt_map(sealed, keys) == {"EMAIL:1": "john@example.com"}
"""

from __future__ import annotations
import json
import logging
import secrets
from typing import Iterable, Mapping, Protocol, runtime_checkable

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from .exceptions import InvalidKeyOrCorruptedMapError, MappingCryptoError
from .types import EncryptedMap, Entity

logger = logging.getLogger(__name__)

KEY_LENGTH = 32     # AES-256
IV_LENGTH = 12      # 96-bit GCM nonce
TAG_LENGTH = 16

PIIMap = dict[str, str]


@runtime_checkable
class KeyProvider(Protocol):
    def get_key(self) -> bytes: ...


class StaticKeyProvider:
    """Serves one fixed key.  Useful for tests and single-tenant setups."""

    __slots__ = ("_key",)

    def __init__(self, key: bytes) -> None:
        if len(key) != KEY_LENGTH:
            raise MappingCryptoError(f"Key must be {KEY_LENGTH} bytes, got {len(key)}")
        self._key = key

    def get_key(self) -> bytes:
        return self._key


def generate_key() -> bytes:
    return AESGCM.generate_key(bit_length=KEY_LENGTH * 8)


def _sort_key(key: str) -> tuple[str, int]:
    pii_type, _, entity_id = key.rpartition(":")
    return pii_type, int(entity_id) if entity_id.isdigit() else -1


def build_pii_map(entities: Iterable[Entity], text: str) -> PIIMap:
    """One entry per placeholder, holding the first occurrence's original text."""
    table: PIIMap = {}
    for e in entities:
        table.setdefault(e.key, text[e.start:e.end])
    return {k: table[k] for k in sorted(table, key=_sort_key)}


def serialize_map(pii_map: Mapping[str, str]) -> bytes:
    ordered = {k: pii_map[k] for k in sorted(pii_map, key=_sort_key)}
    return json.dumps(ordered, ensure_ascii=False, separators=(",", ":")).encode("utf-8")


def encrypt_map(pii_map: Mapping[str, str], key_provider: KeyProvider) -> EncryptedMap:
    """Encrypt with a fresh random IV.  The GCM tag is split off the ciphertext."""
    key = key_provider.get_key()
    if len(key) != KEY_LENGTH:
        raise MappingCryptoError(f"Key must be {KEY_LENGTH} bytes, got {len(key)}")

    iv = secrets.token_bytes(IV_LENGTH)
    sealed = AESGCM(key).encrypt(iv, serialize_map(pii_map), None)
    del key
    return EncryptedMap(
        ciphertext=sealed[:-TAG_LENGTH],
        iv=iv,
        auth_tag=sealed[-TAG_LENGTH:],
    )


def decrypt_map(encrypted: EncryptedMap | Mapping[str, str], key_provider: KeyProvider) -> PIIMap:
    """Exact inverse of ``encrypt_map``.

    Raises:
        InvalidKeyOrCorruptedMapError: wrong key, tampered ciphertext, IV or
            tag, or a payload that is not a string table.  Never returns
            partial plaintext.
    """
    try:
        if not isinstance(encrypted, EncryptedMap):
            encrypted = EncryptedMap.from_dict(encrypted)
        key = key_provider.get_key()
        if len(key) != KEY_LENGTH or len(encrypted.iv) != IV_LENGTH or len(encrypted.auth_tag) != TAG_LENGTH:
            raise InvalidKeyOrCorruptedMapError()
        plaintext = AESGCM(key).decrypt(encrypted.iv, encrypted.ciphertext + encrypted.auth_tag, None)
        del key
        table = json.loads(plaintext.decode("utf-8"))
    except InvalidKeyOrCorruptedMapError:
        raise
    except (InvalidTag, ValueError, KeyError, TypeError) as exc:
        # json.JSONDecodeError, UnicodeDecodeError and binascii.Error are ValueErrors
        logger.warning("Mapping decryption failed: %s", type(exc).__name__)
        raise InvalidKeyOrCorruptedMapError() from exc

    if not isinstance(table, dict) or not all(
        isinstance(k, str) and isinstance(v, str) for k, v in table.items()
    ):
        raise InvalidKeyOrCorruptedMapError()
    return table
