"""Tests for rehydration, streaming rehydration and the leak scan."""

from pii_masker import StreamingRehydrator, rehydrate
from pii_masker.leak import scan_for_leaks

PII_MAP = {"PERSON:1": "Alice", "EMAIL:1": "alice@x.com", "PERSON:2": "Bob"}


# ── Rehydrator ───────────────────────────────────────────────────────

def test_rehydrate_basic():
    text = 'Dear <PII type="PERSON" id="1"/>, your email <PII type="EMAIL" id="1"/> is confirmed.'
    assert rehydrate(text, PII_MAP) == "Dear Alice, your email alice@x.com is confirmed."


def test_rehydrate_tolerates_attribute_order_and_quotes():
    text = "<PII id='2' type='PERSON' /> and <PII  id=\"1\"   type=\"PERSON\"/>"
    assert rehydrate(text, PII_MAP) == "Bob and Alice"


def test_rehydrate_ignores_extra_attributes():
    text = '<PII type="PERSON" id="1" gender="female" lang="de"/> ist da'
    assert rehydrate(text, PII_MAP) == "Alice ist da"


def test_rehydrate_leaves_unknown_tags():
    text = 'Hi <PII type="PERSON" id="9"/> and <PII type="PHONE" id="1"/>'
    assert rehydrate(text, PII_MAP) == text


def test_rehydrate_leaves_malformed_tags():
    text = '<PII type="PERSON"/> <PII type="PERSON" id="x"/> <PII type="PERSON" id="0"/> <b>bold</b>'
    assert rehydrate(text, PII_MAP) == text


def test_rehydrate_duplicated_tags():
    text = '<PII type="PERSON" id="1"/> <PII type="PERSON" id="1"/>'
    assert rehydrate(text, PII_MAP) == "Alice Alice"


def test_rehydrate_plain_text_unchanged():
    assert rehydrate("No tags here.", PII_MAP) == "No tags here."
    assert rehydrate("", PII_MAP) == ""


def test_rehydrate_value_with_backslashes():
    table = {"URL:1": r"C:\path\to\file"}
    assert rehydrate('see <PII type="URL" id="1"/>', table) == r"see C:\path\to\file"


# ── Streaming ────────────────────────────────────────────────────────

def _stream(chunks, table=PII_MAP):
    r = StreamingRehydrator(table)
    out = "".join(r.feed(c) for c in chunks)
    return out + r.flush()


def test_streaming_tag_split_across_chunks():
    chunks = ["Hello <P", 'II type="PER', 'SON" id="1"', "/>, welcome!"]
    assert _stream(chunks) == "Hello Alice, welcome!"


def test_streaming_emits_plain_text_immediately():
    r = StreamingRehydrator(PII_MAP)
    assert r.feed("plain text ") == "plain text "
    assert r.feed("a < b") == "a < b"


def test_streaming_holds_partial_tag():
    r = StreamingRehydrator(PII_MAP)
    assert r.feed('Hi <PII type="EMAIL"') == "Hi "
    assert r.feed(' id="1"/>!') == "alice@x.com!"


def test_streaming_non_tag_markup_passes_through():
    assert _stream(["<b>", "bold</b>"]) == "<b>bold</b>"


def test_streaming_unknown_tag_left_verbatim():
    tag = '<PII type="PHONE" id="3"/>'
    assert _stream([tag[:7], tag[7:]]) == tag


def test_streaming_flush_returns_incomplete_tail():
    r = StreamingRehydrator(PII_MAP)
    assert r.feed("end <PII ty") == "end "
    assert r.flush() == "<PII ty"


# ── Leak scan ────────────────────────────────────────────────────────

def test_leak_scan_clean_output():
    text = '<PII type="PERSON" id="1"/> wrote from <PII type="EMAIL" id="1"/>'
    assert scan_for_leaks(text, PII_MAP) == []


def test_leak_scan_detects_surviving_value():
    text = '<PII type="PERSON" id="1"/> said Alice would call.'
    assert scan_for_leaks(text, PII_MAP) == ["PERSON:1"]


def test_leak_scan_ignores_short_values():
    assert scan_for_leaks("Jo was here", {"PERSON:1": "Jo"}) == []


def test_leak_scan_ignores_tag_markup():
    table = {"ORG:1": "PII type"}
    assert scan_for_leaks('<PII type="ORG" id="1"/>', table) == []
