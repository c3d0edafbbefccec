"""Streaming deanonymizer — buffers chunks and restores placeholders as they complete.

For SSE/streaming responses where placeholders arrive as fragments:
    EMA  →  EMAIL_0c8  →  EMAIL_0c83f57c

Text is emitted as soon as it cannot be the start of a placeholder; a
trailing run of placeholder characters is held back until the next chunk
shows where it ends.

Usage:
    stream = StreamingDeanonymizer(anonymizer)
    for chunk in sse_stream:
        ready_text = stream.feed(chunk)
        if ready_text:
            yield ready_text
    # Flush any remaining buffer
    yield stream.flush()
"""

from __future__ import annotations
import re
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .anonymizer import Anonymizer


# Characters a placeholder can consist of, at the end of the buffer
_PARTIAL_TAIL = re.compile(r"[A-Z0-9_\-a-f]*$", re.ASCII)


class StreamingDeanonymizer:
    """Buffers streaming chunks and deanonymizes complete placeholders."""

    __slots__ = ("_anonymizer", "_buffer", "_max_token_len")

    def __init__(self, anonymizer: Anonymizer, *, max_token_len: int = 64) -> None:
        self._anonymizer = anonymizer
        self._buffer = ""
        self._max_token_len = max_token_len  # safety limit

    def feed(self, chunk: str) -> str:
        """Feed a chunk, return any text ready to emit."""
        self._buffer += chunk
        tail_start = _PARTIAL_TAIL.search(self._buffer).start()
        cut = max(tail_start, len(self._buffer) - self._max_token_len)
        if cut <= 0:
            return ""
        ready, self._buffer = self._buffer[:cut], self._buffer[cut:]
        return self._anonymizer.deanonymize(ready)

    def flush(self) -> str:
        """Flush remaining buffer (call at end of stream)."""
        out, self._buffer = self._buffer, ""
        return self._anonymizer.deanonymize(out)
