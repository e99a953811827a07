"""Tests for webhook payload signing."""

import hashlib
import hmac

import pytest

from hookrelay.webhooks.signing import (
    DEFAULT_SECRET_LENGTH,
    canonical_payload,
    compute_signature,
    generate_secret,
    verify_signature,
)


class TestComputeSignature:
    """Tests for compute_signature."""

    def test_known_vector(self):
        """Should match the published HMAC-SHA256 test vector."""
        signature = compute_signature("key", "The quick brown fox jumps over the lazy dog")
        assert signature == "f7bc83f430538424b13298e6aa6fb143ef4d59a14946175997479dbc2d1a3cd8"

    def test_matches_stdlib_hmac(self):
        """Should equal a receiver-side recomputation over the raw body."""
        body = '{"event":"application.created","id":7}'
        expected = hmac.new(b"s3cret", body.encode(), hashlib.sha256).hexdigest()
        assert compute_signature("s3cret", body) == expected

    def test_deterministic(self):
        """Same secret and payload should always produce the same signature."""
        assert compute_signature("a", "payload") == compute_signature("a", "payload")

    def test_secret_changes_signature(self):
        """Different secrets should produce different signatures."""
        assert compute_signature("a", "payload") != compute_signature("b", "payload")

    def test_hex_digest_shape(self):
        """Should be a 64-character lowercase hex string."""
        signature = compute_signature("secret", "{}")
        assert len(signature) == 64
        assert all(c in "0123456789abcdef" for c in signature)

    def test_document_signed_in_compact_form(self):
        """A document should be signed exactly as its compact serialization."""
        document = {"a": 1, "b": [1, 2]}
        assert compute_signature("s", document) == compute_signature("s", '{"a":1,"b":[1,2]}')

    def test_whitespace_in_serialized_payload_matters(self):
        """Serialized payloads are signed verbatim, not re-serialized."""
        assert compute_signature("s", '{"a": 1}') != compute_signature("s", '{"a":1}')


class TestCanonicalPayload:
    """Tests for canonical_payload."""

    def test_string_passthrough(self):
        """Should not touch pre-serialized strings."""
        assert canonical_payload('{ "x" : 1 }') == '{ "x" : 1 }'

    def test_bytes_decoded(self):
        """Should decode bytes as UTF-8."""
        assert canonical_payload('{"name":"Zoë"}'.encode()) == '{"name":"Zoë"}'

    def test_unicode_not_escaped(self):
        """Should keep non-ASCII characters as-is."""
        assert canonical_payload({"name": "Zoë"}) == '{"name":"Zoë"}'

    def test_list_payload(self):
        """Should serialize arrays compactly."""
        assert canonical_payload([1, "two", None]) == '[1,"two",null]'

    @pytest.mark.parametrize("value", [float("nan"), float("inf"), float("-inf")])
    def test_rejects_non_finite_floats(self, value):
        """NaN and Infinity have no JSON form and must not be signed."""
        with pytest.raises(ValueError):
            canonical_payload({"score": value})


class TestVerifySignature:
    """Tests for verify_signature."""

    def test_valid_signature(self):
        """Should accept the signature computed for the payload."""
        signature = compute_signature("secret", "body")
        assert verify_signature("secret", "body", signature) is True

    def test_tampered_payload(self):
        """Should reject a signature for a different payload."""
        signature = compute_signature("secret", "body")
        assert verify_signature("secret", "body!", signature) is False

    def test_wrong_secret(self):
        """Should reject a signature made with another secret."""
        signature = compute_signature("other", "body")
        assert verify_signature("secret", "body", signature) is False

    def test_non_ascii_signature(self):
        """Should reject rather than raise on non-ASCII input."""
        assert verify_signature("secret", "body", "é" * 64) is False


class TestGenerateSecret:
    """Tests for generate_secret."""

    def test_default_length(self):
        """Should be 32 random bytes, hex encoded."""
        secret = generate_secret()
        assert len(secret) == DEFAULT_SECRET_LENGTH * 2
        int(secret, 16)

    def test_custom_length(self):
        """Should honor the requested byte length."""
        assert len(generate_secret(16)) == 32

    def test_unique(self):
        """Should not repeat."""
        assert len({generate_secret() for _ in range(50)}) == 50

    def test_rejects_non_positive_length(self):
        """Should reject zero length."""
        with pytest.raises(ValueError):
            generate_secret(0)
