"""HMAC-SHA256 payload signatures and secret provisioning.

Receivers authenticate a delivery by recomputing the HMAC of the raw
request body with their subscription secret and comparing it to the
signature header.
"""

from __future__ import annotations

import hashlib
import hmac
import json
import secrets
from collections.abc import Mapping, Sequence
from typing import Any

DEFAULT_SECRET_LENGTH = 32


def canonical_payload(payload: str | bytes | Mapping[str, Any] | Sequence[Any]) -> str:
    """Return the exact text that is signed and sent on the wire.

    Strings are treated as already serialized and pass through unchanged.
    Structured documents are serialized as compact JSON.

    Args:
        payload: Serialized payload or a JSON-compatible document.

    Returns:
        The wire form of the payload.

    Raises:
        ValueError: If the document holds NaN or infinite floats, which
            have no JSON representation.
    """
    if isinstance(payload, str):
        return payload
    if isinstance(payload, bytes):
        return payload.decode("utf-8")
    return json.dumps(payload, separators=(",", ":"), ensure_ascii=False, allow_nan=False)


def compute_signature(secret: str, payload: str | bytes | Mapping[str, Any]) -> str:
    """Compute the HMAC-SHA256 signature for a webhook payload.

    Deterministic for identical (secret, payload) pairs.

    Args:
        secret: Subscription secret.
        payload: Payload to sign (see canonical_payload).

    Returns:
        Hex-encoded digest.
    """
    return hmac.new(
        key=secret.encode("utf-8"),
        msg=canonical_payload(payload).encode("utf-8"),
        digestmod=hashlib.sha256,
    ).hexdigest()


def verify_signature(
    secret: str,
    payload: str | bytes | Mapping[str, Any],
    signature: str,
) -> bool:
    """Verify an HMAC-SHA256 signature in constant time.

    Args:
        secret: Subscription secret.
        payload: Payload that was signed.
        signature: Hex digest to check.

    Returns:
        True if the signature is valid, False otherwise (including for
        signatures that are not valid ASCII).
    """
    expected = compute_signature(secret, payload)
    try:
        return hmac.compare_digest(expected, signature)
    except TypeError:
        # compare_digest rejects non-ASCII str input
        return False


def generate_secret(length: int = DEFAULT_SECRET_LENGTH) -> str:
    """Generate a subscription secret.

    Args:
        length: Number of random bytes.

    Returns:
        Hex-encoded token of ``2 * length`` characters.
    """
    if length < 1:
        raise ValueError("length must be positive")
    return secrets.token_hex(length)
