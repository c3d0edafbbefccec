"""YAML/dict config loader for chat-anonymizer.

Supports loading from a YAML file or a plain dict (for embedding in a
larger application config).  Keys may be snake_case or the camelCase names
the settings screen uses.

Example YAML:

    privacy:
      enabled: true
      anonymize_urls: true
      anonymizeAPIKeys: true
      anonymize_emails: true
      anonymize_ip_addresses: false
      anonymize_file_paths: true
      use_ner: false
      ner_language: en
      ner_score_threshold: 0.35
      custom_patterns:
        - name: Ticket
          pattern: "TICKET-\\d{6}"
          template: "TICKET_%s"
          priority: 85
          category: generic
"""

from __future__ import annotations
import logging
from pathlib import Path
from typing import Any

from .anonymizer import Anonymizer, PrivacyConfig
from .middleware import AnonymizeMiddleware

logger = logging.getLogger(__name__)

# field name → accepted keys, first one present wins
_FIELD_KEYS: dict[str, tuple[str, ...]] = {
    "enabled": ("enabled",),
    "anonymize_urls": ("anonymize_urls", "anonymizeURLs", "anonymizeUrls"),
    "anonymize_api_keys": ("anonymize_api_keys", "anonymizeAPIKeys", "anonymizeApiKeys"),
    "anonymize_emails": ("anonymize_emails", "anonymizeEmails"),
    "anonymize_ip_addresses": (
        "anonymize_ip_addresses", "anonymizeIPAddresses", "anonymizeIpAddresses",
    ),
    "anonymize_file_paths": ("anonymize_file_paths", "anonymizeFilePaths"),
    "use_ner": ("use_ner", "useNER", "useNer"),
    "ner_language": ("ner_language", "nerLanguage"),
    "ner_score_threshold": ("ner_score_threshold", "nerScoreThreshold"),
}

_PATTERN_KEYS = ("name", "pattern", "template")


def _section(data: dict[str, Any] | None) -> dict[str, Any]:
    data = data or {}
    # Support nested under "privacy" / "anonymizer" key or flat
    for key in ("privacy", "anonymizer"):
        if isinstance(data.get(key), dict):
            return data[key]
    return data


def load_config(data: dict[str, Any] | None) -> PrivacyConfig:
    """Build a PrivacyConfig from a config dict (from YAML or inline)."""
    section = _section(data)
    values: dict[str, Any] = {}
    for field, keys in _FIELD_KEYS.items():
        for key in keys:
            if key in section:
                values[field] = section[key]
                break
    return PrivacyConfig(**values)


def load_custom_patterns(data: dict[str, Any] | None) -> list[dict[str, Any]]:
    """Return the custom pattern entries of a config dict."""
    section = _section(data)
    entries = section.get("custom_patterns", section.get("customPatterns")) or []
    if not isinstance(entries, list):
        raise ValueError("custom_patterns must be a list")
    return entries


def load_from_yaml(path: str | Path) -> dict[str, Any]:
    """Load a raw config dict from a YAML file."""
    import yaml
    with open(path) as f:
        return yaml.safe_load(f) or {}


def create_anonymizer(config: dict[str, Any] | None) -> Anonymizer:
    """Create a fully configured anonymizer from a config dict.

    Raises ValueError (InvalidPatternError) for an unusable custom pattern.
    """
    privacy = load_config(config)
    anonymizer = Anonymizer(privacy)
    for index, entry in enumerate(load_custom_patterns(config)):
        if not isinstance(entry, dict):
            raise ValueError(f"custom_patterns[{index}] must be a mapping")
        missing = [key for key in _PATTERN_KEYS if key not in entry]
        if missing:
            raise ValueError(
                f"custom_patterns[{index}] ({entry.get('name', '?')!r}) "
                f"is missing {', '.join(missing)}"
            )
        anonymizer.add_custom_pattern(
            entry["name"],
            entry["pattern"],
            entry["template"],
            int(entry.get("priority", 0)),
            entry.get("category", "generic"),
        )
    logger.info(
        "anonymizer configured (enabled=%s, %d rules)",
        privacy.enabled, len(anonymizer.rules),
    )
    return anonymizer


def create_middleware(config: dict[str, Any] | None) -> AnonymizeMiddleware:
    """Create a middleware from a config dict.

    A disabled config still yields a working middleware; anonymization is a
    pass-through until the switch is turned on with set_enabled().
    """
    return AnonymizeMiddleware(anonymizer=create_anonymizer(config))
