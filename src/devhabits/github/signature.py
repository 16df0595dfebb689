"""GitHub webhook HMAC verification (``X-Hub-Signature-256``)."""

from __future__ import annotations

import hashlib
import hmac

_PREFIX = "sha256="


def compute_signature(secret: str, body: bytes) -> str:
    digest = hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()
    return f"{_PREFIX}{digest}"


def verify_signature(secret: str, body: bytes, header: str | None) -> bool:
    """Constant-time check of the signature header against the raw body."""
    if not header or not header.startswith(_PREFIX):
        return False
    return hmac.compare_digest(compute_signature(secret, body), header)
