"""Tests for the entropy classifier and the heuristic passes."""

import re
import sys, os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

import pytest

from chat_anonymizer import Vault
from chat_anonymizer.entropy import (
    anonymize_generic_identifiers,
    anonymize_high_entropy,
    looks_like_hex_identifier,
    looks_like_long_number,
    looks_like_sensitive_value,
    shannon_entropy,
)


def _unprotected(text):
    return []


# ── Shannon entropy ──────────────────────────────────────────────────

def test_entropy_values():
    assert shannon_entropy("") == 0.0
    assert shannon_entropy("aaaa") == 0.0
    assert shannon_entropy("ab") == pytest.approx(1.0)
    assert shannon_entropy("abcd") == pytest.approx(2.0)


# ── Classifier ───────────────────────────────────────────────────────

@pytest.mark.parametrize("value", [
    "dp1_AbCdEf123456+/==",
    "aB3dE5gH7jK9",
    "1.2.3.4.5.6",
    "sk_live_aBcDeF1234567890",
])
def test_sensitive_values(value):
    assert looks_like_sensitive_value(value)


@pytest.mark.parametrize("value", [
    "short1A",
    "1234567890123",
    "abcdefghijklmnop",
    "ABCDEFGHIJKLMNOP",
    "some-file_name",
])
def test_ordinary_values(value):
    assert not looks_like_sensitive_value(value)


def test_hex_and_number_shapes():
    assert looks_like_hex_identifier("d41d8cd98f00b204e9800998ecf8427e")
    assert not looks_like_hex_identifier("d41d8cd98f00b204")
    assert not looks_like_hex_identifier("z41d8cd98f00b204e9800998ecf8427e")
    assert looks_like_long_number("123456")
    assert not looks_like_long_number("12345")
    assert not looks_like_long_number("12345a")


# ── High-entropy pass ────────────────────────────────────────────────

def test_high_entropy_run_replaced():
    vault = Vault()
    out = anonymize_high_entropy("the value is AbC123xyz789QWE456 ok", vault, _unprotected)
    assert re.fullmatch(r"the value is HIGH_ENTROPY_TOKEN_[0-9a-f]{8} ok", out)
    assert vault.rehydrate(out) == "the value is AbC123xyz789QWE456 ok"


def test_protected_run_left_alone():
    vault = Vault()
    text = "the value is AbC123xyz789QWE456 ok"
    assert anonymize_high_entropy(text, vault, lambda t: [(0, len(t))]) == text
    assert vault.size == 0


def test_high_entropy_reuses_existing_mapping():
    vault = Vault()
    placeholder = vault.get_or_create("AbC123xyz789QWE456", "SECRET_%s")
    out = anonymize_high_entropy("again AbC123xyz789QWE456", vault, _unprotected)
    assert out == f"again {placeholder}"


def test_plain_words_not_replaced():
    vault = Vault()
    text = "internationalization and some-file_name here"
    assert anonymize_high_entropy(text, vault, _unprotected) == text


def test_placeholder_run_not_rewrapped():
    vault = Vault()
    placeholder = vault.get_or_create("x", "KV_DEVICE_ID_%s")
    text = f"id {placeholder}"
    assert anonymize_high_entropy(text, vault, _unprotected) == text
    assert vault.size == 1


# ── Generic identifiers ──────────────────────────────────────────────

def test_hex_and_number_replaced():
    vault = Vault()
    out = anonymize_generic_identifiers(
        "commit d41d8cd98f00b204e9800998ecf8427e order 12345678", vault, _unprotected,
    )
    assert re.fullmatch(r"commit HEX_[0-9a-f]{8} order NUMBER_[0-9a-f]{8}", out)


def test_short_numbers_kept():
    vault = Vault()
    text = "version 2.1 build 4242 on port 8080"
    assert anonymize_generic_identifiers(text, vault, _unprotected) == text


def test_placeholder_tag_digits_not_numbered(monkeypatch):
    from chat_anonymizer import vault as vault_module
    monkeypatch.setattr(vault_module, "content_tag", lambda value: "12345678")
    vault = Vault()
    placeholder = vault.get_or_create("a@b.co", "EMAIL_%s")
    assert anonymize_generic_identifiers(placeholder, vault, _unprotected) == placeholder


# ── Protected spans ──────────────────────────────────────────────────

def test_run_touching_protected_span_left_alone():
    vault = Vault()
    text = "server=192.168.100.200 up"
    ip = (text.index("192"), text.index(" up"))
    assert anonymize_high_entropy(text, vault, lambda t: [ip]) == text
    assert vault.size == 0


def test_number_inside_protected_span_left_alone():
    vault = Vault()
    text = "see https://example.com/orders/1234567 now"

    def url_span(current):
        start = current.index("https")
        return [(start, current.index(" now"))]

    assert anonymize_generic_identifiers(text, vault, url_span) == text
    assert vault.size == 0


def test_protected_span_elsewhere_does_not_shield_run():
    vault = Vault()
    text = "10.0.0.5 and AbC123xyz789QWE456"
    out = anonymize_high_entropy(text, vault, lambda t: [(0, 8)])
    assert re.fullmatch(r"10\.0\.0\.5 and HIGH_ENTROPY_TOKEN_[0-9a-f]{8}", out)
