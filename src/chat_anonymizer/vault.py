"""Vault — bidirectional mapping between placeholders and original values.

Design goals:
  - Deterministic: same value always maps to the same placeholder until clear()
  - Content-derived: PREFIX_<8 hex> where the hex is a truncated MD5 of the value
  - Collision-free: a clashing tag is re-derived, never shared by two values
  - Rehydration-safe: nested placeholders are resolved to a fixed point
"""

from __future__ import annotations
import hashlib
import re


# Any placeholder-shaped token embedded in text
PLACEHOLDER_TOKEN = re.compile(r"\b[A-Z0-9][A-Z0-9_\-]*_[0-9a-f]{8}\b", re.ASCII)
_PLACEHOLDER_SHAPE = re.compile(r"[A-Z0-9][A-Z0-9_\-]*_[0-9a-f]{8}", re.ASCII)


def content_tag(value: str) -> str:
    """8-hex-char tag derived from the value."""
    return hashlib.md5(value.encode("utf-8")).hexdigest()[:8]


class Vault:
    """Placeholder ↔ original store, scoped to one conversation turn.

    Not thread-safe on its own; the owning Anonymizer serializes access.
    """

    __slots__ = ("_forward", "_backward")

    def __init__(self) -> None:
        self._forward: dict[str, str] = {}     # "EMAIL_0c83f57c" → "a@b.com"
        self._backward: dict[str, str] = {}    # "a@b.com" → "EMAIL_0c83f57c"

    # ------------------------------------------------------------------
    # Core API
    # ------------------------------------------------------------------

    def get_or_create(self, value: str, template: str) -> str:
        """Return the placeholder for value, creating one from template if needed."""
        existing = self._backward.get(value)
        if existing is not None:
            return existing

        # Never wrap something that already is a placeholder
        if self.is_placeholder(value):
            return value

        placeholder = template % content_tag(value)
        salt = 0
        while placeholder in self._forward:
            salt += 1
            placeholder = template % content_tag(f"{salt}\x00{value}")

        self._forward[placeholder] = value
        self._backward[value] = placeholder
        return placeholder

    def rehydrate(self, text: str) -> str:
        """Replace all known placeholders in text with their original values.

        Longest placeholders go first so a shorter one never matches inside a
        longer one.  Passes repeat until nothing changes because a restored
        value may itself contain another placeholder.
        """
        placeholders = sorted(self._forward, key=lambda p: (len(p), p), reverse=True)
        result = text
        for _ in range(len(placeholders) + 1):
            changed = False
            for placeholder in placeholders:
                if placeholder in result:
                    result = result.replace(placeholder, self._forward[placeholder])
                    changed = True
            if not changed:
                break
        return result

    def lookup_placeholder(self, placeholder: str) -> str | None:
        """Look up the original value for a placeholder."""
        return self._forward.get(placeholder)

    def lookup_value(self, value: str) -> str | None:
        """Look up the placeholder for an original value."""
        return self._backward.get(value)

    def is_placeholder(self, value: str) -> bool:
        if value in self._forward:
            return True
        return _PLACEHOLDER_SHAPE.fullmatch(value) is not None

    def contains_placeholder(self, text: str) -> bool:
        if text in self._forward:
            return True
        return PLACEHOLDER_TOKEN.search(text) is not None

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def size(self) -> int:
        return len(self._forward)

    def dump(self) -> dict[str, str]:
        """Return a copy of the placeholder→original mapping (for debugging)."""
        return dict(self._forward)

    def clear(self) -> None:
        self._forward.clear()
        self._backward.clear()
