"""Tests for the mapping table and its AES-GCM sealing."""

import pytest

from pii_masker import (
    DetectionSource,
    EncryptedMap,
    Entity,
    InvalidKeyOrCorruptedMapError,
    MappingCryptoError,
    PIIType,
    StaticKeyProvider,
    decrypt_map,
    encrypt_map,
    generate_key,
)
from pii_masker.crypto import IV_LENGTH, TAG_LENGTH, build_pii_map

PII_MAP = {
    "EMAIL:1": "john@example.com",
    "PERSON:1": "Jürgen Müller",
    "PHONE:1": "+49 30 123456",
}


@pytest.fixture()
def keys():
    return StaticKeyProvider(generate_key())


def _flip(data: bytes, index: int = 0) -> bytes:
    return data[:index] + bytes([data[index] ^ 0x01]) + data[index + 1:]


# ── Mapping table ────────────────────────────────────────────────────

def test_build_pii_map_orders_keys_by_type_and_id():
    text = "abcdefghijklmnopqrstuvwxyz"
    entities = [
        Entity(PIIType.PERSON, 10, 0, 1, 0.9, DetectionSource.NER),
        Entity(PIIType.EMAIL, 1, 2, 3, 0.9, DetectionSource.REGEX),
        Entity(PIIType.PERSON, 2, 4, 5, 0.9, DetectionSource.NER),
    ]
    table = build_pii_map(entities, text)
    assert list(table) == ["EMAIL:1", "PERSON:2", "PERSON:10"]
    assert table == {"EMAIL:1": "c", "PERSON:2": "e", "PERSON:10": "a"}


def test_build_pii_map_keeps_first_occurrence_for_reused_ids():
    text = "Anna and Anna"
    entities = [
        Entity(PIIType.PERSON, 1, 0, 4, 0.9, DetectionSource.NER),
        Entity(PIIType.PERSON, 1, 9, 13, 0.9, DetectionSource.NER),
    ]
    assert build_pii_map(entities, text) == {"PERSON:1": "Anna"}


# ── Round trip ───────────────────────────────────────────────────────

def test_encrypt_decrypt_roundtrip(keys):
    sealed = encrypt_map(PII_MAP, keys)
    assert len(sealed.iv) == IV_LENGTH
    assert len(sealed.auth_tag) == TAG_LENGTH
    assert b"john@example.com" not in sealed.ciphertext
    assert decrypt_map(sealed, keys) == PII_MAP


def test_empty_map_roundtrip(keys):
    assert decrypt_map(encrypt_map({}, keys), keys) == {}


def test_fresh_iv_per_call(keys):
    a = encrypt_map(PII_MAP, keys)
    b = encrypt_map(PII_MAP, keys)
    assert a.iv != b.iv
    assert a.ciphertext != b.ciphertext


def test_wire_shape_roundtrip(keys):
    wire = encrypt_map(PII_MAP, keys).to_dict()
    assert set(wire) == {"ciphertext", "iv", "authTag"}
    assert all(isinstance(v, str) for v in wire.values())
    assert decrypt_map(wire, keys) == PII_MAP
    assert decrypt_map(EncryptedMap.from_dict(wire), keys) == PII_MAP


# ── Failing closed ───────────────────────────────────────────────────

def test_wrong_key_fails(keys):
    sealed = encrypt_map(PII_MAP, keys)
    with pytest.raises(InvalidKeyOrCorruptedMapError):
        decrypt_map(sealed, StaticKeyProvider(generate_key()))


def test_flipped_ciphertext_fails(keys):
    sealed = encrypt_map(PII_MAP, keys)
    tampered = EncryptedMap(_flip(sealed.ciphertext), sealed.iv, sealed.auth_tag)
    with pytest.raises(InvalidKeyOrCorruptedMapError):
        decrypt_map(tampered, keys)


def test_flipped_tag_fails(keys):
    sealed = encrypt_map(PII_MAP, keys)
    tampered = EncryptedMap(sealed.ciphertext, sealed.iv, _flip(sealed.auth_tag, 5))
    with pytest.raises(InvalidKeyOrCorruptedMapError):
        decrypt_map(tampered, keys)


def test_flipped_iv_fails(keys):
    sealed = encrypt_map(PII_MAP, keys)
    tampered = EncryptedMap(sealed.ciphertext, _flip(sealed.iv), sealed.auth_tag)
    with pytest.raises(InvalidKeyOrCorruptedMapError):
        decrypt_map(tampered, keys)


def test_truncated_ciphertext_fails(keys):
    sealed = encrypt_map(PII_MAP, keys)
    tampered = EncryptedMap(sealed.ciphertext[:-3], sealed.iv, sealed.auth_tag)
    with pytest.raises(InvalidKeyOrCorruptedMapError):
        decrypt_map(tampered, keys)


def test_malformed_wire_data_fails(keys):
    with pytest.raises(InvalidKeyOrCorruptedMapError):
        decrypt_map({"ciphertext": "!!!", "iv": "", "authTag": ""}, keys)
    with pytest.raises(InvalidKeyOrCorruptedMapError):
        decrypt_map({"iv": "AAAA"}, keys)


def test_decrypt_error_is_a_crypto_error(keys):
    sealed = encrypt_map(PII_MAP, keys)
    with pytest.raises(MappingCryptoError):
        decrypt_map(sealed, StaticKeyProvider(generate_key()))


# ── Key providers ────────────────────────────────────────────────────

def test_static_key_provider_rejects_short_key():
    with pytest.raises(MappingCryptoError):
        StaticKeyProvider(b"too short")


class _BadProvider:
    def get_key(self):
        return b"\x00" * 16


def test_encrypt_rejects_wrong_key_length():
    with pytest.raises(MappingCryptoError):
        encrypt_map(PII_MAP, _BadProvider())


def test_key_fetched_on_every_call():
    calls = []
    key = generate_key()

    class Counting:
        def get_key(self):
            calls.append(1)
            return key

    provider = Counting()
    sealed = encrypt_map(PII_MAP, provider)
    decrypt_map(sealed, provider)
    assert len(calls) == 2
