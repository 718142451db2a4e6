"""
Unit tests for canonical request construction.
"""
import hashlib

import pytest

from webtracker.core.signing.canonical import (
    EMPTY_BODY_HASH,
    BadRequestPath,
    canonicalize,
    hash_body,
    validate_path,
)


class TestHashBody:
    def test_empty_body_is_hash_of_empty_string(self):
        assert hash_body(b"") == EMPTY_BODY_HASH
        assert hash_body(None) == EMPTY_BODY_HASH
        assert EMPTY_BODY_HASH == hashlib.sha256(b"").hexdigest()

    def test_lowercase_hex(self):
        digest = hash_body(b'{"lat":1}')
        assert digest == digest.lower()
        assert len(digest) == 64


class TestCanonicalize:
    def test_exact_layout(self):
        body = b'{"ts_ms":1,"lat":2,"lon":3}'
        message = canonicalize("POST", "/api/location", 1703001234, "abc123", body)

        expected = "POST\n/api/location\n1703001234\nabc123\n" + hashlib.sha256(body).hexdigest()
        assert message == expected.encode("utf-8")

    def test_empty_body_uses_empty_hash(self):
        message = canonicalize("GET", "/api/notifications", 1, "n")
        assert message.endswith(EMPTY_BODY_HASH.encode())

    def test_query_string_kept_verbatim(self):
        message = canonicalize("GET", "/api/export?to=2&from=1&format=json", 1, "n")
        assert b"/api/export?to=2&from=1&format=json\n" in message

    def test_method_not_case_folded(self):
        upper = canonicalize("POST", "/api/location", 1, "n")
        lower = canonicalize("post", "/api/location", 1, "n")
        assert upper != lower

    def test_any_field_change_changes_message(self):
        base = canonicalize("POST", "/api/location", 100, "n1", b"x")
        assert canonicalize("GET", "/api/location", 100, "n1", b"x") != base
        assert canonicalize("POST", "/api/locations", 100, "n1", b"x") != base
        assert canonicalize("POST", "/api/location", 101, "n1", b"x") != base
        assert canonicalize("POST", "/api/location", 100, "n2", b"x") != base
        assert canonicalize("POST", "/api/location", 100, "n1", b"y") != base

    def test_body_whitespace_matters(self):
        compact = canonicalize("POST", "/api/location", 1, "n", b'{"a":1}')
        spaced = canonicalize("POST", "/api/location", 1, "n", b'{"a": 1}')
        assert compact != spaced


class TestValidatePath:
    @pytest.mark.parametrize("path", ["", "api/location", "/api/loc ation", "/api/\nx", "/api/café"])
    def test_rejects_unusable_paths(self, path):
        with pytest.raises(BadRequestPath):
            validate_path(path)

    def test_canonicalize_rejects_newline_injection(self):
        with pytest.raises(BadRequestPath):
            canonicalize("GET", "/api/x\n999", 1, "n")

    def test_percent_encoded_path_is_fine(self):
        assert validate_path("/api/trusted?label=caf%C3%A9") == "/api/trusted?label=caf%C3%A9"
