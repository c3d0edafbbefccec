"""Tests for the key/value extractor and JSON-aware extraction."""

import re
import sys, os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

import pytest

from chat_anonymizer import Vault
from chat_anonymizer.keyvalue import (
    anonymize_json_fragments,
    anonymize_key_value_pairs,
    is_name_key,
    is_sensitive_key,
    looks_like_personal_name,
)


def _never_claimed(value):
    return False


# ── Key classification ───────────────────────────────────────────────

@pytest.mark.parametrize("key", [
    "password", "api_key", "X-API-Key", "accessToken", "client_secret",
    "deviceId", "device_id", "machine_id", "uuid", "fingerprint",
    "session", "cookie", "code", "nonce", "id", "ID",
])
def test_sensitive_keys(key):
    assert is_sensitive_key(key)


@pytest.mark.parametrize("key", ["color", "title", "message", "width", "username", "ids"])
def test_plain_keys(key):
    assert not is_sensitive_key(key)


@pytest.mark.parametrize("key", ["name", "user_name", "fullName", "real_name", "nickname"])
def test_name_keys(key):
    assert is_name_key(key)


@pytest.mark.parametrize("key", ["filename", "file_name", "rule_name", "hostname", "names", ""])
def test_not_name_keys(key):
    assert not is_name_key(key)


# ── Name heuristic ───────────────────────────────────────────────────

@pytest.mark.parametrize("value", ["张三", "张三伟", "欧阳·娜娜", "Ada Lovelace", "Jean-Luc Picard"])
def test_personal_names(value):
    assert looks_like_personal_name(value)


@pytest.mark.parametrize("value", ["张", "张三abc", "hello", "", "   ", "build 42 failed"])
def test_not_personal_names(value):
    assert not looks_like_personal_name(value)


# ── Textual shapes ───────────────────────────────────────────────────

def test_json_style_pair():
    vault = Vault()
    out = anonymize_key_value_pairs('{"password": "hunter2"}', vault)
    assert re.fullmatch(r'\{"password": "KV_PASSWORD_[0-9a-f]{8}"\}', out)
    assert vault.rehydrate(out) == '{"password": "hunter2"}'


def test_single_quoted_pair():
    vault = Vault()
    out = anonymize_key_value_pairs("{'token': 'abc123'}", vault)
    assert re.fullmatch(r"\{'token': 'KV_TOKEN_[0-9a-f]{8}'\}", out)


def test_bare_key_quoted_value():
    vault = Vault()
    out = anonymize_key_value_pairs("const cfg = { api_key: 'abc' }", vault)
    assert re.fullmatch(r"const cfg = \{ api_key: 'KV_API_KEY_[0-9a-f]{8}' \}", out)


def test_yaml_line():
    vault = Vault()
    out = anonymize_key_value_pairs("db:\n  secret_token: abcdefghij12\n", vault)
    assert re.fullmatch(r"db:\n  secret_token: KV_SECRET_TOKEN_[0-9a-f]{8}\n", out)


def test_yaml_line_short_value_is_kept():
    vault = Vault()
    assert anonymize_key_value_pairs("token: abc", vault) == "token: abc"


def test_query_string():
    vault = Vault()
    out = anonymize_key_value_pairs("https://x.io/cb?code=AbCdEf123456&state=1", vault)
    assert re.fullmatch(r"https://x\.io/cb\?code=KV_CODE_[0-9a-f]{8}&state=1", out)


def test_whitespace_and_key_preserved():
    vault = Vault()
    out = anonymize_key_value_pairs('{"session_id" :  "s3ss10n"}', vault)
    assert re.fullmatch(r'\{"session_id" :  "KV_SESSION_ID_[0-9a-f]{8}"\}', out)


def test_plain_key_untouched():
    vault = Vault()
    text = "{'color': 'blue'}"
    assert anonymize_key_value_pairs(text, vault) == text
    assert vault.size == 0


def test_value_with_placeholder_skipped():
    vault = Vault()
    text = '{"token": "KV_TOKEN_1234abcd"}'
    assert anonymize_key_value_pairs(text, vault) == text
    assert vault.size == 0


def test_name_key_with_han_name():
    vault = Vault()
    out = anonymize_key_value_pairs("name: '张三伟'", vault)
    assert re.fullmatch(r"name: 'KV_NAME_[0-9a-f]{8}'", out)
    out = anonymize_key_value_pairs("name: 张三伟", vault)
    assert re.fullmatch(r"name: KV_NAME_[0-9a-f]{8}", out)


def test_name_key_with_non_name_value():
    vault = Vault()
    assert anonymize_key_value_pairs("name: build", vault) == "name: build"


def test_filename_is_not_a_name():
    vault = Vault()
    text = '{"filename": "Ada Lovelace"}'
    assert anonymize_key_value_pairs(text, vault) == text


# ── JSON fragments ───────────────────────────────────────────────────

def test_json_list_under_sensitive_key():
    vault = Vault()
    out = anonymize_json_fragments('{"tokens": ["aaa", "bbb"]}', vault, _never_claimed)
    assert re.fullmatch(r'\{"tokens": \["KV_TOKENS_[0-9a-f]{8}", "KV_TOKENS_[0-9a-f]{8}"\]\}', out)
    assert vault.size == 2


def test_json_nested_object():
    vault = Vault()
    out = anonymize_json_fragments('{"user": {"api_token": "abc123"}}', vault, _never_claimed)
    assert re.fullmatch(r'\{"user": \{"api_token": "KV_API_TOKEN_[0-9a-f]{8}"\}\}', out)


def test_json_unnamed_sensitive_value():
    vault = Vault()
    out = anonymize_json_fragments('{"note": "Zx9_Qw8-Er7.Ty6"}', vault, _never_claimed)
    assert re.fullmatch(r'\{"note": "VALUE_[0-9a-f]{8}"\}', out)


def test_json_claimed_value_left_for_rules():
    vault = Vault()
    text = '{"note": "Zx9_Qw8-Er7.Ty6"}'
    assert anonymize_json_fragments(text, vault, lambda v: True) == text


def test_json_escaped_value_round_trips():
    vault = Vault()
    text = '{"secret": "a\\"b"}'
    out = anonymize_json_fragments(text, vault, _never_claimed)
    assert re.fullmatch(r'\{"secret": "KV_SECRET_[0-9a-f]{8}"\}', out)
    assert vault.rehydrate(out) == text


def test_json_key_text_not_replaced():
    vault = Vault()
    out = anonymize_json_fragments('{"token": "abc", "abc": 1}', vault, _never_claimed)
    assert re.fullmatch(r'\{"token": "KV_TOKEN_[0-9a-f]{8}", "abc": 1\}', out)


def test_invalid_json_untouched():
    vault = Vault()
    text = '{not json: "x"}'
    assert anonymize_json_fragments(text, vault, _never_claimed) == text


def test_double_quoted_prose_is_not_a_pair():
    vault = Vault()
    text = 'error code: "E1234" returned'
    assert anonymize_key_value_pairs(text, vault) == text
    assert vault.size == 0
