"""Heuristic passes for secrets no named rule caught.

Layer 3 scans long opaque runs and flags the ones with enough character
variety or Shannon entropy to be a token.  Layer 4 catches raw hashes and
long digit runs.
"""

from __future__ import annotations
import math
import re
from collections import Counter
from typing import Callable

from .vault import Vault

ENTROPY_THRESHOLD = 3.5
MIN_SENSITIVE_LENGTH = 10

_SPECIAL = frozenset("_-./+=")

_OPAQUE_RUN = re.compile(r"[A-Za-z0-9_\-./+=:]{16,}")
_HEX_IDENTIFIER = re.compile(r"\b[a-fA-F0-9]{32,}\b", re.ASCII)
_LONG_NUMBER = re.compile(r"\b\d{6,}\b", re.ASCII)


def shannon_entropy(value: str) -> float:
    """Shannon entropy of value, in bits per character."""
    if not value:
        return 0.0
    length = len(value)
    return -sum(
        (count / length) * math.log2(count / length)
        for count in Counter(value).values()
    )


def looks_like_sensitive_value(value: str) -> bool:
    """Character-variety / entropy check for token-like strings."""
    if len(value) < MIN_SENSITIVE_LENGTH:
        return False

    has_upper = has_lower = has_digit = False
    special_count = 0
    for ch in value:
        if ch.isupper():
            has_upper = True
        elif ch.islower():
            has_lower = True
        elif ch.isdigit():
            has_digit = True
        elif ch in _SPECIAL:
            special_count += 1
    has_special = special_count > 0

    # Ordinary identifiers and prose
    if has_digit and not (has_upper or has_lower or has_special):
        return False
    if not has_digit and not has_special and has_upper != has_lower:
        return False
    if has_lower and has_special and not has_upper and not has_digit and special_count <= 2:
        return False

    mixed_case = has_upper and has_lower
    variety = sum((has_upper, has_lower, has_digit, has_special))

    if variety >= 3 or (mixed_case and has_digit) or (has_digit and special_count >= 3):
        return True

    signal = has_digit or mixed_case or special_count >= 3
    return signal and shannon_entropy(value) > ENTROPY_THRESHOLD


def looks_like_hex_identifier(value: str) -> bool:
    return len(value) >= 32 and all(ch in "0123456789abcdefABCDEF" for ch in value)


def looks_like_long_number(value: str) -> bool:
    return len(value) >= 6 and all("0" <= ch <= "9" for ch in value)


def _overlaps(span: tuple[int, int], spans: list[tuple[int, int]]) -> bool:
    start, end = span
    return any(start < e and end > s for s, e in spans)


def anonymize_high_entropy(
    text: str,
    vault: Vault,
    protected_spans: Callable[[str], list[tuple[int, int]]],
) -> str:
    """Replace opaque runs that look like secrets.

    protected_spans(text) returns the spans of values in a category the user
    turned off; a run touching any of them is left alone.
    """
    protected = protected_spans(text)

    def _replace(match: re.Match) -> str:
        run = match.group()
        if _overlaps(match.span(), protected):
            return run
        existing = vault.lookup_value(run)
        if existing is not None:
            return existing
        if vault.contains_placeholder(run):
            return run
        if not looks_like_sensitive_value(run):
            return run
        return vault.get_or_create(run, "HIGH_ENTROPY_TOKEN_%s")

    return _OPAQUE_RUN.sub(_replace, text)


def anonymize_generic_identifiers(
    text: str,
    vault: Vault,
    protected_spans: Callable[[str], list[tuple[int, int]]],
) -> str:
    """Replace long hex strings and long digit runs."""
    def _substitute(pattern: re.Pattern, template: str, current: str) -> str:
        protected = protected_spans(current)

        def _replace(match: re.Match) -> str:
            value = match.group()
            if vault.is_placeholder(value) or _overlaps(match.span(), protected):
                return value
            return vault.get_or_create(value, template)

        return pattern.sub(_replace, current)

    result = _substitute(_HEX_IDENTIFIER, "HEX_%s", text)
    return _substitute(_LONG_NUMBER, "NUMBER_%s", result)
