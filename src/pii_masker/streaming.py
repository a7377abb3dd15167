"""Streaming rehydrator — buffers chunks and rehydrates tags as they complete.

For streamed output where tags arrive as fragments:
    <PI  →  <PII ty  →  <PII type="PERSON" id=  →  <PII type="PERSON" id="1"/>

Text is flushed as soon as it is known not to be part of a tag.

Usage:
    rehydrator = StreamingRehydrator(decrypt_map(sealed, keys))
    for chunk in stream:
        ready_text = rehydrator.feed(chunk)
        if ready_text:
            yield ready_text
    # Flush any remaining buffer
    yield rehydrator.flush()
"""

from __future__ import annotations
from typing import Mapping

from .rehydrate import TAG_RE, rehydrate, tag_key

_TAG_OPEN = "<PII"


class StreamingRehydrator:
    """Buffers streaming chunks and rehydrates complete tags."""

    __slots__ = ("_pii_map", "_buffer", "_max_tag_len")

    def __init__(self, pii_map: Mapping[str, str], *, max_tag_len: int = 256) -> None:
        self._pii_map = pii_map
        self._buffer = ""
        self._max_tag_len = max_tag_len  # safety limit

    def feed(self, chunk: str) -> str:
        """Feed a chunk, return any text ready to emit."""
        self._buffer += chunk
        return self._drain()

    def flush(self) -> str:
        """Flush remaining buffer (call at end of stream)."""
        out = self._buffer
        self._buffer = ""
        return rehydrate(out, self._pii_map)

    def _could_be_tag(self) -> bool:
        buf = self._buffer
        if len(buf) <= len(_TAG_OPEN):
            return _TAG_OPEN.startswith(buf)
        return buf.startswith(_TAG_OPEN) and (buf[len(_TAG_OPEN)].isspace() or buf[len(_TAG_OPEN)] == "/")

    def _drain(self) -> str:
        out_parts: list[str] = []

        while self._buffer:
            idx = self._buffer.find("<")

            if idx == -1:
                out_parts.append(self._buffer)
                self._buffer = ""
                break

            if idx > 0:
                out_parts.append(self._buffer[:idx])
                self._buffer = self._buffer[idx:]

            # Buffer now starts with "<"
            m = TAG_RE.match(self._buffer)
            if m:
                key = tag_key(m.group(1))
                original = self._pii_map.get(key) if key else None
                out_parts.append(original if original is not None else m.group(0))
                self._buffer = self._buffer[m.end():]
                continue

            if not self._could_be_tag() or ">" in self._buffer or len(self._buffer) > self._max_tag_len:
                # Not a tag: emit the "<" and keep scanning
                out_parts.append("<")
                self._buffer = self._buffer[1:]
                continue

            # Possible partial tag: wait for more data
            break

        return "".join(out_parts)
