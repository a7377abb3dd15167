"""Tests for the structured recognizers and checksum validators."""

import pytest

from pii_masker import ConfigurationError, PIIType, merge_policy
from pii_masker.checksums import iban_valid, luhn_valid
from pii_masker.patterns import (
    RecognizerMatch,
    RecognizerRegistry,
    RegexRecognizer,
    builtin_recognizers,
    default_registry,
    scan_regex,
)


def _types(text):
    return [d.type for d in scan_regex(text)]


# ── Checksums ────────────────────────────────────────────────────────

def test_iban_checksum():
    assert iban_valid("DE89370400440532013000")
    assert iban_valid("DE89 3704 0044 0532 0130 00")
    assert not iban_valid("DE00370400440532013000")


def test_luhn_checksum():
    assert luhn_valid("4111111111111111")
    assert luhn_valid("4111-1111-1111-1111")
    assert not luhn_valid("4111111111111112")
    assert not luhn_valid("")


# ── Built-in recognizers ─────────────────────────────────────────────

def test_email_detection():
    matches = scan_regex("Contact me at alice@example.com please")
    assert len(matches) == 1
    assert matches[0].type is PIIType.EMAIL
    assert matches[0].text == "alice@example.com"
    assert matches[0].confidence == 0.9


def test_phone_detection():
    matches = scan_regex("Call me at +1 234-567-8910")
    phones = [m for m in matches if m.type is PIIType.PHONE]
    assert len(phones) == 1
    assert phones[0].text == "+1 234-567-8910"


def test_phone_ignores_dates():
    assert PIIType.PHONE not in _types("Born on 2024-01-15 in town")


def test_iban_detection_compact_and_spaced():
    compact = [m for m in scan_regex("IBAN DE89370400440532013000 ok") if m.type is PIIType.IBAN]
    spaced = [m for m in scan_regex("IBAN DE89 3704 0044 0532 0130 00 ok") if m.type is PIIType.IBAN]
    assert compact[0].text == "DE89370400440532013000"
    assert spaced[0].text == "DE89 3704 0044 0532 0130 00"
    assert compact[0].confidence >= 0.9


def test_iban_with_bad_checksum_is_discarded():
    assert PIIType.IBAN not in _types("IBAN DE00370400440532013000")


def test_credit_card_detection():
    matches = scan_regex("Card: 4111 1111 1111 1111")
    cards = [m for m in matches if m.type is PIIType.CREDIT_CARD]
    assert len(cards) == 1
    assert cards[0].text == "4111 1111 1111 1111"
    assert cards[0].confidence >= 0.9


def test_credit_card_failing_luhn_is_discarded():
    assert PIIType.CREDIT_CARD not in _types("Card: 4111111111111112")


def test_ip_detection():
    matches = scan_regex("Server at 192.168.1.100")
    ips = [m for m in matches if m.type is PIIType.IP_ADDRESS]
    assert len(ips) == 1
    assert ips[0].text == "192.168.1.100"


def test_url_detection_drops_trailing_punctuation():
    urls = [m for m in scan_regex("See https://example.com/path?q=1.") if m.type is PIIType.URL]
    assert urls[0].text == "https://example.com/path?q=1"


def test_bic_detection():
    bics = [m for m in scan_regex("BIC: DEUTDEFF500") if m.type is PIIType.BIC]
    assert bics[0].text == "DEUTDEFF500"
    assert bics[0].confidence == pytest.approx(0.75)


def test_bic_without_banking_context_scores_low():
    bics = [m for m in scan_regex("Please contact CUSTOMER SERVICE or the BUSINESS desk.")
            if m.type is PIIType.BIC]
    assert [m.text for m in bics] == ["CUSTOMER", "BUSINESS"]
    assert all(m.confidence < 0.5 for m in bics)


def test_bic_context_after_match():
    [bic] = [m for m in scan_regex("Use COBADEFFXXX as the swift code") if m.type is PIIType.BIC]
    assert bic.confidence == pytest.approx(0.75)


def test_context_words_need_whole_words():
    r = RegexRecognizer("ref", PIIType.CASE_ID, r"\bR-\d+\b", 0.3,
                        context_words=["ref"], context_boost=0.5)
    assert r.match("ref R-17")[0].confidence == pytest.approx(0.8)
    assert r.match("prefix R-17")[0].confidence == 0.3


def test_no_false_positive_on_clean_text():
    assert scan_regex("The weather is nice today in Melbourne") == []


# ── Registry ─────────────────────────────────────────────────────────

class _Exploding:
    name = "exploding"

    def match(self, text):
        raise RuntimeError("boom")


def test_registry_isolates_failing_recognizer():
    registry = RecognizerRegistry([_Exploding(), *builtin_recognizers()])
    detections, failed = registry.scan("mail bob@test.com")
    assert failed == ["exploding"]
    assert [d.text for d in detections] == ["bob@test.com"]


def test_registry_ignores_duplicate_names():
    registry = RecognizerRegistry(builtin_recognizers())
    size = len(registry)
    registry.register(RegexRecognizer("email", PIIType.EMAIL, r"x@y", 0.5))
    assert len(registry) == size


def test_registry_rejects_non_recognizer():
    with pytest.raises(ConfigurationError):
        RecognizerRegistry().register(object())


def test_malformed_pattern_fails_at_construction():
    with pytest.raises(ConfigurationError):
        RegexRecognizer("order", PIIType.CASE_ID, r"ORD-(\d+", 0.8)


def test_empty_recognizer_name_rejected():
    with pytest.raises(ConfigurationError):
        RegexRecognizer("", PIIType.CASE_ID, r"ORD-\d+", 0.8)


def test_custom_id_patterns_from_policy():
    policy = merge_policy({
        "custom_id_patterns": [{"name": "order", "pattern": r"ORD-\d{6}", "type": "CASE_ID"}],
    })
    registry = default_registry(policy)
    assert "custom:order" in registry.names
    detections, _ = registry.scan("Order ORD-123456 shipped")
    assert [(d.type, d.text) for d in detections] == [(PIIType.CASE_ID, "ORD-123456")]


def test_recognizer_match_shape():
    r = RegexRecognizer("ticket", PIIType.CASE_ID, r"T-\d+", 0.7)
    assert r.match("see T-42 now") == [RecognizerMatch(4, 8, 0.7, PIIType.CASE_ID)]
