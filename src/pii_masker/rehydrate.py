"""Rehydrator — swap placeholder tags back to their original values.

Tags are matched loosely since an external step (translation, an LLM) may
reorder attributes, add new ones or change quoting:

    <PII type="EMAIL" id="1"/>
    <PII id='1' lang="de" type="EMAIL" />

Only ``type`` and ``id`` are read.  Tags whose key is missing from the map,
or that lack a usable type/id, are left exactly as they are.
"""

from __future__ import annotations
import re
from typing import Mapping

TAG_RE = re.compile(r"<PII\b([^<>]*?)\s*/>")
_ATTR_RE = re.compile(r"""([A-Za-z_][\w\-]*)\s*=\s*(?:"([^"]*)"|'([^']*)')""")
_DIGITS = re.compile(r"[0-9]+")


def parse_tag_attributes(raw: str) -> dict[str, str]:
    attrs: dict[str, str] = {}
    for m in _ATTR_RE.finditer(raw):
        value = m.group(2) if m.group(2) is not None else m.group(3)
        attrs.setdefault(m.group(1).lower(), value)
    return attrs


def tag_key(raw_attrs: str) -> str | None:
    """``"TYPE:id"`` for a tag's attribute string, or None if unusable."""
    attrs = parse_tag_attributes(raw_attrs)
    pii_type = attrs.get("type", "").strip().upper()
    entity_id = attrs.get("id", "").strip()
    if not pii_type or not _DIGITS.fullmatch(entity_id) or int(entity_id) < 1:
        return None
    return f"{pii_type}:{int(entity_id)}"


def rehydrate(text: str, pii_map: Mapping[str, str]) -> str:
    """Replace every recognized tag in *text* with its original value."""

    def _swap(m: re.Match[str]) -> str:
        key = tag_key(m.group(1))
        if key is None:
            return m.group(0)
        original = pii_map.get(key)
        return original if original is not None else m.group(0)

    return TAG_RE.sub(_swap, text)
