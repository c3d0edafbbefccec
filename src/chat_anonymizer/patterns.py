"""Pattern matcher — the priority-ordered table of well-known formats.

These catch the high-confidence stuff: bearer tokens, API keys, JWTs, URLs,
credentials, network addresses, emails, phones, connection strings, paths
and cloud keys.  Rules run from highest to lowest priority and each one is
gated by its category's enable flag.
"""

from __future__ import annotations
import re
from typing import Callable

from .types import CATEGORIES, AnonymizationRule
from .vault import PLACEHOLDER_TOKEN, Vault

_I = re.IGNORECASE | re.ASCII
_A = re.ASCII


class InvalidPatternError(ValueError):
    """A custom rule could not be compiled."""


def compile_rule(
    name: str,
    pattern: str | re.Pattern,
    template: str,
    priority: int,
    category: str = "generic",
    flags: int = 0,
) -> AnonymizationRule:
    """Build a rule, raising InvalidPatternError if any part is unusable."""
    if isinstance(pattern, re.Pattern):
        matcher = pattern
    else:
        try:
            matcher = re.compile(pattern, flags)
        except (re.error, TypeError) as e:
            raise InvalidPatternError(f"invalid pattern for rule {name!r}: {e}") from e

    if category not in CATEGORIES:
        raise InvalidPatternError(f"unknown category {category!r} for rule {name!r}")

    if not isinstance(template, str) or template.count("%s") != 1:
        raise InvalidPatternError(f"template for rule {name!r} needs exactly one %s")
    try:
        template % ("0" * 8)
    except (TypeError, ValueError) as e:
        raise InvalidPatternError(f"invalid template for rule {name!r}: {e}") from e

    return AnonymizationRule(
        name=name,
        matcher=matcher,
        template=template,
        priority=priority,
        category=category,
    )


# (name, regex, flags, template, priority, category)
_TABLE: list[tuple[str, str, int, str, int, str]] = [
    # API keys and tokens (highest priority)
    ("Bearer Token",
     r"bearer\s+([a-zA-Z0-9_\-.]{20,})",
     _I, "BEARER_TOKEN_%s", 100, "api_keys"),
    ("API Key",
     r"(api[_-]?key|apikey|access[_-]?key|secret[_-]?key)[\s:=]+([a-zA-Z0-9_\-]{20,})",
     _I, "API_KEY_%s", 95, "api_keys"),
    ("JWT Token",
     r"eyJ[a-zA-Z0-9_\-]+\.eyJ[a-zA-Z0-9_\-]+\.[a-zA-Z0-9_\-]+",
     _A, "JWT_TOKEN_%s", 90, "api_keys"),

    # URLs
    ("URL with Auth",
     r"https?://[^\s:/@]+:[^\s@]+@[^\s)\"'<>,]+",
     _A, "URL_WITH_AUTH_%s", 80, "urls"),
    ("URL",
     r"https?://[^\s)\"'<>,]+",
     _A, "URL_%s", 75, "urls"),

    # Credential assignments
    ("Password",
     r"(?<!/)\b(password|passwd|pwd)\s*[:=]\s*([^\s,)\"']+)",
     _I, "PASSWORD_%s", 70, "generic"),
    ("Username",
     r"(?<!/)\b(username|user)\s*[:=]\s*([^\s,)\"']+)",
     _I, "USERNAME_%s", 65, "generic"),

    # Network addresses
    ("IPv4 Address",
     r"\b(?:(?:25[0-5]|2[0-4][0-9]|[01]?[0-9][0-9]?)\.){3}"
     r"(?:25[0-5]|2[0-4][0-9]|[01]?[0-9][0-9]?)\b",
     _A, "IP_ADDRESS_%s", 60, "ip_addresses"),
    ("IPv6 Address",
     r"\b(?:[0-9a-f]{1,4}:){7}[0-9a-f]{1,4}\b",
     _I, "IPV6_ADDRESS_%s", 59, "ip_addresses"),
    ("MAC Address",
     r"\b(?:[0-9a-f]{2}[:-]){5}[0-9a-f]{2}\b",
     _I, "MAC_ADDRESS_%s", 58, "ip_addresses"),

    # Email and phone
    ("Email",
     r"\b[a-zA-Z0-9._%+\-]+@[a-zA-Z0-9.\-]+\.[a-zA-Z]{2,}\b",
     _A, "EMAIL_%s", 55, "emails"),
    ("Phone Number",
     r"(?<!\d)(?:\+?86[-\s]?)?1[3-9]\d{9}\b",
     _A, "PHONE_%s", 50, "generic"),

    # Connection strings
    ("Database Connection String",
     r"\b(mongodb|mysql|postgresql|postgres|redis)://[^\s)\"']+",
     _I, "DB_CONNECTION_%s", 45, "generic"),

    # File paths
    ("Windows Path",
     r"\b[a-zA-Z]:\\(?:[^\s)\"'<>|*?\\]+\\)*[^\s)\"'<>|*?\\]+",
     _A, "WIN_PATH_%s", 40, "file_paths"),
    ("Unix Path",
     r"/(?:home|root|usr|var|etc|opt)/[^\s)\"'<>]+",
     _A, "UNIX_PATH_%s", 39, "file_paths"),

    # Cloud credentials
    ("AWS Access Key",
     r"\bAKIA[0-9A-Z]{16}\b",
     _A, "AWS_ACCESS_KEY_%s", 35, "api_keys"),
    ("AWS Secret Key",
     r"aws[_-]?secret[_-]?access[_-]?key[\s:=]+([a-zA-Z0-9/+=]{40})",
     _I, "AWS_SECRET_KEY_%s", 34, "api_keys"),

    # Catch-all
    ("Generic Secret",
     r"(secret|token|key)[\s:=]+([a-zA-Z0-9_\-]{16,})",
     _I, "SECRET_%s", 30, "api_keys"),
]

DEFAULT_RULES: tuple[AnonymizationRule, ...] = tuple(
    compile_rule(name, regex, template, priority, category, flags)
    for name, regex, flags, template, priority, category in _TABLE
)


def order_rules(rules) -> list[AnonymizationRule]:
    """Highest priority first; equal priorities keep their relative order."""
    return sorted(rules, key=lambda r: -r.priority)


def apply_rules(
    text: str,
    rules: list[AnonymizationRule],
    vault: Vault,
    is_enabled: Callable[[str], bool],
) -> str:
    """Run every enabled rule over text, replacing each match with its placeholder."""
    result = text
    for rule in rules:
        if not is_enabled(rule.category):
            continue
        # Longest first, so a match that is a prefix of another never cuts it apart
        found = dict.fromkeys(m.group() for m in rule.matcher.finditer(result))
        for original in sorted(found, key=len, reverse=True):
            if not original or original not in result:
                continue
            if vault.is_placeholder(original):
                continue
            if _matches_only_through_placeholder(rule, original):
                continue
            placeholder = vault.get_or_create(original, rule.template)
            result = result.replace(original, placeholder)
    return result


def matched_spans(rules: list[AnonymizationRule], text: str) -> list[tuple[int, int]]:
    """(start, end) of every non-empty match of the given rules in text."""
    return [
        m.span()
        for rule in rules
        for m in rule.matcher.finditer(text)
        if m.end() > m.start()
    ]


def matches_any(rules: list[AnonymizationRule], value: str) -> bool:
    return any(rule.matcher.search(value) for rule in rules)


def _matches_only_through_placeholder(rule: AnonymizationRule, original: str) -> bool:
    # "key: SECRET_1a2b3c4d" is a match created by an earlier substitution,
    # whereas "https://host/?token=KV_TOKEN_1a2b3c4d" is still a URL on its own.
    stripped = PLACEHOLDER_TOKEN.sub("", original)
    if stripped == original:
        return False
    return rule.matcher.search(stripped) is None
