"""HMAC-SHA256 signing of outgoing request bodies."""

from __future__ import annotations

import hashlib
import hmac


def sign(payload_body: bytes, secret_token: bytes) -> str:
    """Return ``sha256=<hex digest>`` of the HMAC-SHA256 of the body keyed by the secret."""
    digest = hmac.new(secret_token, payload_body, hashlib.sha256).hexdigest()
    return "sha256=" + digest