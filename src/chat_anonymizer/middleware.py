"""Chat-pipeline middleware — drop-in for any proxy that uses the chat
completions message format.

Usage:

    mw = AnonymizeMiddleware.create()

    with mw.turn():
        # Before sending to provider
        safe_messages = mw.pre_send(messages)

        # After receiving response
        real_response = mw.post_receive(response_text)

Usage with streaming:

    with mw.turn():
        for text in mw.stream(provider_chunks):
            print(text, end="")

The mapping is cleared when the turn block exits, after the last response
text has been restored.
"""

from __future__ import annotations
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterable, Iterator

from .anonymizer import Anonymizer, PrivacyConfig
from .streaming import StreamingDeanonymizer


@dataclass
class AnonymizeMiddleware:
    """Middleware that sits between the chat pipeline and the model provider."""

    anonymizer: Anonymizer

    @classmethod
    def create(cls, *, config: PrivacyConfig | None = None) -> "AnonymizeMiddleware":
        """Factory — creates a fresh middleware with its own mapping."""
        return cls(anonymizer=Anonymizer(config))

    def pre_send(self, messages: list[dict], *, content_key: str = "content") -> list[dict]:
        """Anonymize outbound messages.

        Returns new message dicts; the originals are not mutated.
        """
        out: list[dict] = []
        for msg in messages:
            content = msg.get(content_key)
            if isinstance(content, str) and content:
                out.append({**msg, content_key: self.anonymizer.anonymize(content)})
            else:
                out.append(msg)
        return out

    def post_receive(self, text: str) -> str:
        """Restore placeholders in the model's response."""
        return self.anonymizer.deanonymize(text)

    def stream(self, chunks: Iterable[str]) -> Iterator[str]:
        """Deanonymize a streamed response chunk by chunk."""
        deanonymizer = StreamingDeanonymizer(self.anonymizer)
        for chunk in chunks:
            ready = deanonymizer.feed(chunk)
            if ready:
                yield ready
        tail = deanonymizer.flush()
        if tail:
            yield tail

    @contextmanager
    def turn(self) -> Iterator["AnonymizeMiddleware"]:
        """Scope one request/response turn; the mapping is cleared on exit."""
        try:
            yield self
        finally:
            self.anonymizer.clear()

    @property
    def stats(self) -> dict:
        return {
            "enabled": self.anonymizer.is_enabled(),
            "mapping_count": self.anonymizer.get_mapping_count(),
            "mappings": self.anonymizer.dump(),
        }
