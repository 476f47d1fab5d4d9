"""
Random token generators: pure, side-effect-free functions.

All generators use the ``secrets`` module.
"""

from __future__ import annotations

import secrets

# 32 random bytes → 256 bits, well above the 128-bit floor for bearer ids
LINK_ID_BYTES = 32


def generate_secure_token(length: int = LINK_ID_BYTES) -> str:
    """Generate a cryptographically secure URL-safe random token.

    Args:
        length: Number of random bytes before base64 encoding (default 32).
            The resulting string will be longer than *length* characters.

    Returns:
        URL-safe base64-encoded token string.
    """
    return secrets.token_urlsafe(length)
