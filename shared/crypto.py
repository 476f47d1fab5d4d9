"""
Cryptographic helpers for the signed link protocol.

signature = hex(SHA-256(data || form_url || secret))

The signature binds the serialized submission to the destination form URL,
so a link minted for one form cannot be replayed against another.
"""

from __future__ import annotations

import hashlib
import hmac


def compute_signature(data: str, form_url: str, secret: str) -> str:
    """Return the hex-encoded SHA-256 digest of *data*, *form_url* and *secret*.

    Args:
        data: The serialized submission exactly as it will appear in the URL.
        form_url: Destination URL resolved from the form reference.
        secret: Server-wide signing secret.

    Returns:
        64-character lowercase hex string.
    """
    digest = hashlib.sha256((data + form_url + secret).encode("utf-8"))
    return digest.hexdigest()


def signatures_match(expected: str, provided: str) -> bool:
    """Constant-time comparison of two hex signatures."""
    return hmac.compare_digest(expected.encode("utf-8"), provided.encode("utf-8"))
