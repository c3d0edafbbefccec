"""Anonymizer — the main API.  Layered: key/value, patterns, entropy, identifiers.

Usage:
    from chat_anonymizer import Anonymizer, PrivacyConfig

    anonymizer = Anonymizer(PrivacyConfig())    # one per chat pipeline

    safe = anonymizer.anonymize("Email me at john@acme.com")
    print(safe)                                  # "Email me at EMAIL_5b1c2f3e"

    reply = f"Sure, I'll write to {safe.split()[-1]}."
    print(anonymizer.deanonymize(reply))         # "Sure, I'll write to john@acme.com."

    anonymizer.clear()                           # once the turn is over
"""

from __future__ import annotations
import dataclasses
import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator

from . import ner
from .entropy import anonymize_generic_identifiers, anonymize_high_entropy
from .keyvalue import anonymize_json_fragments, anonymize_key_value_pairs
from .patterns import (
    DEFAULT_RULES,
    apply_rules,
    compile_rule,
    matches_any,
    matched_spans,
    order_rules,
)
from .types import AnonymizationRule
from .vault import Vault

logger = logging.getLogger(__name__)


@dataclass
class PrivacyConfig:
    """Settings pushed by the user; read by the Anonymizer on every call."""
    enabled: bool = True                  # master switch
    anonymize_urls: bool = True
    anonymize_api_keys: bool = True
    anonymize_emails: bool = True
    anonymize_ip_addresses: bool = True
    anonymize_file_paths: bool = True
    # Optional Presidio person-name layer
    use_ner: bool = False
    ner_language: str = "en"
    ner_score_threshold: float = 0.35

    def category_enabled(self, category: str) -> bool:
        if not self.enabled:
            return False
        if category == "generic":
            return True
        return getattr(self, f"anonymize_{category}")


class _ReadWriteLock:
    """Many readers or one writer; a waiting writer holds off new readers."""

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writing = False
        self._writers_waiting = 0

    @contextmanager
    def read(self) -> Iterator[None]:
        with self._cond:
            while self._writing or self._writers_waiting:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @contextmanager
    def write(self) -> Iterator[None]:
        with self._cond:
            self._writers_waiting += 1
            try:
                while self._writing or self._readers:
                    self._cond.wait()
            except BaseException:
                self._writers_waiting -= 1
                self._cond.notify_all()
                raise
            self._writers_waiting -= 1
            self._writing = True
        try:
            yield
        finally:
            with self._cond:
                self._writing = False
                self._cond.notify_all()


class Anonymizer:
    """Reversible anonymizer for text leaving the machine.

    Layer 1: Key/value pairs and JSON members with sensitive key names
    Layer 2: Priority-ordered pattern table (tokens, URLs, emails, IPs, paths…)
    Layer 3: Entropy / character-variety heuristic for unnamed secrets
    Layer 4: Long hex strings and long digit runs

    Safe to share between threads: anonymize() and the other mutators are
    exclusive, deanonymize() and the getters run concurrently.
    """

    def __init__(
        self,
        config: PrivacyConfig | None = None,
        *,
        rules: list[AnonymizationRule] | None = None,
    ) -> None:
        self._config = config or PrivacyConfig()
        self._rules = order_rules(DEFAULT_RULES if rules is None else rules)
        self._vault = Vault()
        self._lock = _ReadWriteLock()

    # ------------------------------------------------------------------
    # Anonymize / deanonymize
    # ------------------------------------------------------------------

    def anonymize(self, text: str) -> str:
        """Replace sensitive substrings in text with placeholders.

        Never raises: fragments a pass cannot handle are left for the others.
        """
        with self._lock.write():
            config = self._config
            if not config.enabled or not text:
                return text

            before = self._vault.size
            disabled = [r for r in self._rules if not config.category_enabled(r.category)]

            def protected_spans(current: str) -> list[tuple[int, int]]:
                return matched_spans(disabled, current)

            def is_claimed(value: str) -> bool:
                return matches_any(self._rules, value)

            result = anonymize_key_value_pairs(text, self._vault)
            result = anonymize_json_fragments(result, self._vault, is_claimed)
            if config.use_ner:
                result = ner.anonymize_person_names(
                    result,
                    self._vault,
                    language=config.ner_language,
                    score_threshold=config.ner_score_threshold,
                )
            result = apply_rules(result, self._rules, self._vault, config.category_enabled)
            result = anonymize_high_entropy(result, self._vault, protected_spans)
            result = anonymize_generic_identifiers(result, self._vault, protected_spans)

            logger.debug(
                "anonymized %d chars: %d new mappings, %d total",
                len(text), self._vault.size - before, self._vault.size,
            )
            return result

    def deanonymize(self, text: str) -> str:
        """Restore original values for every known placeholder in text.

        Placeholders from before the last clear() are left as they are.
        """
        if not text:
            return text
        with self._lock.read():
            # Mappings created earlier in the turn stay restorable even if
            # the master switch was turned off meanwhile.
            if not self._config.enabled and self._vault.size == 0:
                return text
            return self._vault.rehydrate(text)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def clear(self) -> None:
        """Forget every mapping (call once the assistant's turn completes)."""
        with self._lock.write():
            count = self._vault.size
            self._vault.clear()
        logger.info("cleared %d anonymization mappings", count)

    def set_enabled(self, enabled: bool) -> None:
        with self._lock.write():
            self._config = dataclasses.replace(self._config, enabled=enabled)
        logger.info("anonymization %s", "enabled" if enabled else "disabled")

    def update_config(self, config: PrivacyConfig) -> None:
        """Swap in new settings; takes effect on the next call."""
        with self._lock.write():
            self._config = dataclasses.replace(config)
        logger.info("anonymization config updated: %s", config)

    def is_enabled(self) -> bool:
        with self._lock.read():
            return self._config.enabled

    def get_mapping_count(self) -> int:
        """Number of placeholders currently known."""
        with self._lock.read():
            return self._vault.size

    def add_custom_pattern(
        self,
        name: str,
        pattern: str,
        template: str,
        priority: int,
        category: str = "generic",
    ) -> None:
        """Compile and register an extra rule.

        Raises InvalidPatternError (the table is left unchanged) if the pattern
        does not compile, the template is unusable or the category is unknown.
        """
        try:
            rule = compile_rule(name, pattern, template, priority, category)
        except ValueError:
            logger.warning("rejected custom pattern %r", name)
            raise
        with self._lock.write():
            self._rules = order_rules([*self._rules, rule])
        logger.info("added custom pattern %r (priority %d, %s)", name, priority, category)

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def config(self) -> PrivacyConfig:
        with self._lock.read():
            return dataclasses.replace(self._config)

    @property
    def rules(self) -> tuple[AnonymizationRule, ...]:
        """Rules in evaluation order."""
        with self._lock.read():
            return tuple(self._rules)

    def dump(self) -> dict[str, str]:
        """Return a copy of the placeholder→original mapping (for debugging)."""
        with self._lock.read():
            return self._vault.dump()
