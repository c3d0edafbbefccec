"""Key/value extractor — anonymize values whose key names look sensitive.

Handles the structural idioms people paste into a chat: JSON members,
JS object literals, YAML/config lines, query strings.  Only the value is
replaced; key, quotes, separators and whitespace stay exactly as written.
Nothing here anonymizes by value shape alone, except inside parsed JSON.
"""

from __future__ import annotations
import json
import re
from dataclasses import dataclass
from typing import Callable, Iterator

from .entropy import looks_like_hex_identifier, looks_like_long_number, looks_like_sensitive_value
from .vault import Vault

_SENSITIVE_KEYWORDS = (
    "key", "token", "secret", "password", "passwd", "pwd",
    "auth", "authorization", "credential", "api_key", "apikey",
    "access_token", "refresh_token", "bearer", "session",
    "cookie", "x-api-key", "x-auth-token", "x-access-token",
    "private", "signature", "sign", "cert", "certificate",
    # device and machine identifiers
    "device", "deviceid", "device_id", "uuid", "guid",
    "client_id", "clientid",
    "machine_id", "machineid", "hardware_id", "hardwareid",
    "fingerprint", "identifier",
    "code", "nonce", "challenge", "hash",
)

_NAME_KEY_EXCLUDES = ("rule_name", "filename", "file_name")
_NAME_KEY_PARTS = (
    "fullname", "full_name", "realname", "real_name",
    "display_name", "nickname", "nick_name",
)

_HAN = re.compile(r"[\u3400-\u4dbf\u4e00-\u9fff\uf900-\ufaff\U00020000-\U0003134f]")
_WESTERN_NAME = re.compile(r"[A-Za-z][A-Za-z'\-]+(?:\s+[A-Za-z][A-Za-z'\-]+)+")
_UNSAFE_PREFIX_CHARS = re.compile(r"[^A-Z0-9_\-]")


def is_sensitive_key(key: str) -> bool:
    """True if a key name suggests its value is a secret or identifier."""
    key = key.lower()
    if key == "id":
        return True
    return any(keyword in key for keyword in _SENSITIVE_KEYWORDS)


def is_name_key(key: str) -> bool:
    """True if a key name suggests its value is a person's name."""
    key = key.lower()
    if not key:
        return False
    if any(excluded in key for excluded in _NAME_KEY_EXCLUDES):
        return False
    if key == "name" or key.endswith("_name"):
        return True
    return any(part in key for part in _NAME_KEY_PARTS)


def looks_like_personal_name(value: str) -> bool:
    """Best-effort check: 2–6 Han characters, or two or more Latin words."""
    trimmed = value.strip()
    if not trimmed:
        return False

    if 2 <= len(trimmed) <= 6:
        han = 0
        for ch in trimmed:
            if _HAN.match(ch):
                han += 1
            elif ch != "·":
                han = 0
                break
        if han >= 2:
            return True

    if len(trimmed) <= 60 and " " in trimmed:
        return _WESTERN_NAME.fullmatch(trimmed) is not None
    return False


def _prefix_for(key: str) -> str:
    return "KV_" + _UNSAFE_PREFIX_CHARS.sub("_", key.upper())


# ----------------------------------------------------------------------
# Textual shapes
# ----------------------------------------------------------------------

@dataclass(frozen=True)
class _Shape:
    pattern: re.Pattern
    value_groups: tuple[int, ...] = (2,)   # first group that participated wins
    sensitive: bool = True                  # accept sensitive keys
    names: bool = True                      # accept name keys (with name heuristic)


_SHAPES: tuple[_Shape, ...] = (
    # "key": "value"
    _Shape(re.compile(r'"([\w\-]+)"\s*:\s*"((?:[^"\\]|\\.)+)"', re.ASCII)),
    # 'key': 'value'
    _Shape(re.compile(r"'([\w\-]+)'\s*:\s*'((?:[^'\\]|\\.)+)'", re.ASCII)),
    # key: 'value'   (JS object literals)
    _Shape(re.compile(r"""\b([a-zA-Z][\w\-]*)\s*:\s*'([^'\n]+)'""", re.ASCII)),
    # key: value   (YAML / config lines)
    _Shape(re.compile(r"""(?m)^[ \t]*([a-zA-Z][\w\-]*)[ \t]*:[ \t]*([^\s,'"]{10,})""", re.ASCII)),
    # key=value
    _Shape(re.compile(r"""([a-zA-Z][\w\-]*)=([^\s&,;'"]{10,})""", re.ASCII)),
    # name: Some Person   (whole rest of the line)
    _Shape(
        re.compile(r"""(?m)^[ \t]*([a-zA-Z][\w\-]*)[ \t]*:[ \t]*([^\n'"]+?)[ \t]*$""", re.ASCII),
        sensitive=False,
    ),
)


def anonymize_key_value_pairs(text: str, vault: Vault) -> str:
    """Replace the values of sensitive or personal-name keys with placeholders."""
    result = text
    for shape in _SHAPES:
        result = shape.pattern.sub(lambda m, s=shape: _rewrite_pair(m, s, vault), result)
    return result


def _rewrite_pair(match: re.Match, shape: _Shape, vault: Vault) -> str:
    whole = match.group()
    key = match.group(1)
    group = next(g for g in shape.value_groups if match.group(g) is not None)
    value = match.group(group)

    qualifies = (
        (shape.sensitive and is_sensitive_key(key))
        or (shape.names and is_name_key(key) and looks_like_personal_name(value))
    )
    if not qualifies or vault.contains_placeholder(value):
        return whole

    placeholder = vault.get_or_create(value, _prefix_for(key) + "_%s")
    start, end = match.span(group)
    base = match.start()
    return whole[:start - base] + placeholder + whole[end - base:]


# ----------------------------------------------------------------------
# JSON-aware extraction
# ----------------------------------------------------------------------

# Objects with up to one level of nesting
_JSON_OBJECT = re.compile(r"\{[^{}]*(?:\{[^{}]*\}[^{}]*)*\}")


def anonymize_json_fragments(
    text: str,
    vault: Vault,
    is_claimed: Callable[[str], bool],
) -> str:
    """Walk embedded JSON objects and anonymize sensitive string values.

    is_claimed(value) tells whether a pattern rule recognizes the value, in
    which case shape-based detection leaves it for that rule.  Fragments that
    are not valid JSON are returned untouched.
    """
    def _rewrite(match: re.Match) -> str:
        fragment = match.group()
        try:
            data = json.loads(fragment)
        except ValueError:
            return fragment
        for value, prefix in _json_candidates(data, is_claimed):
            fragment = _replace_json_string(fragment, value, prefix, vault)
        return fragment

    return _JSON_OBJECT.sub(_rewrite, text)


def _json_candidates(node, is_claimed: Callable[[str], bool]) -> Iterator[tuple[str, str]]:
    if isinstance(node, dict):
        for key, value in node.items():
            if is_sensitive_key(key):
                prefix = _prefix_for(key)
                if isinstance(value, str):
                    if value:
                        yield value, prefix
                elif isinstance(value, list):
                    for item in value:
                        if isinstance(item, str):
                            if item:
                                yield item, prefix
                        else:
                            yield from _json_candidates(item, is_claimed)
                else:
                    yield from _json_candidates(value, is_claimed)
            elif is_name_key(key) and isinstance(value, str) and looks_like_personal_name(value):
                yield value, _prefix_for(key)
            else:
                yield from _json_candidates(value, is_claimed)

    elif isinstance(node, list):
        for item in node:
            yield from _json_candidates(item, is_claimed)

    elif isinstance(node, str):
        if not node or any(ch.isspace() for ch in node) or is_claimed(node):
            return
        if looks_like_sensitive_value(node):
            yield node, "VALUE"
        elif looks_like_hex_identifier(node):
            yield node, "HEX"
        elif looks_like_long_number(node):
            yield node, "NUMBER"


def _replace_json_string(fragment: str, value: str, prefix: str, vault: Vault) -> str:
    # Swap the string literal as written, so escapes survive the round trip.
    # A literal followed by ":" is a key, not a value.
    for literal in dict.fromkeys((json.dumps(value), json.dumps(value, ensure_ascii=False))):
        pattern = re.compile(re.escape(literal) + r"(?!\s*:)")
        if pattern.search(fragment) is None:
            continue
        raw = literal[1:-1]
        if vault.contains_placeholder(raw):
            return fragment
        placeholder = vault.get_or_create(raw, prefix + "_%s")
        return pattern.sub(lambda _m: f'"{placeholder}"', fragment)
    return fragment
