"""
Random token generators: pure, side-effect-free functions.

All generators use the ``secrets`` module.
"""

from __future__ import annotations

import secrets
import uuid


def generate_secure_token(num_bytes: int = 32) -> str:
    """Generate a cryptographically secure hex token.

    Args:
        num_bytes: Number of random bytes (default 32, i.e. 256 bits).

    Returns:
        Lowercase hex string of ``2 * num_bytes`` characters.
    """
    return secrets.token_hex(num_bytes)


def generate_token_id() -> str:
    """Unique identifier for a signed token (the ``jti`` claim)."""
    return uuid.uuid4().hex
