"""Core types."""

from __future__ import annotations
import re
from dataclasses import dataclass

# Configurable classes of sensitive data.  "generic" follows the master switch.
CATEGORIES: tuple[str, ...] = (
    "urls",
    "api_keys",
    "emails",
    "ip_addresses",
    "file_paths",
    "generic",
)


@dataclass(frozen=True, slots=True)
class AnonymizationRule:
    """A single entry of the priority-ordered rule table."""
    name: str              # e.g. "Bearer Token", "Email"
    matcher: re.Pattern
    template: str          # e.g. "BEARER_TOKEN_%s"; %s receives the content tag
    priority: int          # higher runs first
    category: str          # one of CATEGORIES
