"""
Cryptographic helpers: password hashing and token hashing.

Uses argon2id for passwords (via argon2-cffi) with a configurable time cost,
and SHA-256 for hashing ephemeral tokens before they are stored.
"""

from __future__ import annotations

import hashlib

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError, VerifyMismatchError


class CredentialHasher:
    """Salted, deliberately slow one-way transform for passwords.

    *cost* is the argon2 time cost (number of iterations). It comes from
    configuration so it can be raised over the lifetime of the deployment;
    ``needs_rehash`` reports digests produced under an older cost.
    """

    def __init__(self, cost: int = 3) -> None:
        self.cost = cost
        self._hasher = PasswordHasher(time_cost=cost)

    def hash(self, plaintext: str) -> str:
        """Hash *plaintext* with argon2id.

        Returns:
            Argon2 hash string (includes algorithm parameters and salt).
        """
        return self._hasher.hash(plaintext)

    def verify(self, plaintext: str, digest: str | None) -> bool:
        """Verify *plaintext* against an argon2 *digest*.

        Returns:
            ``True`` if the password matches, ``False`` for any failure
            (wrong password, malformed or missing digest).
        """
        if not digest:
            return False
        try:
            return self._hasher.verify(digest, plaintext)
        except (VerifyMismatchError, VerificationError, InvalidHashError):
            return False

    def needs_rehash(self, digest: str) -> bool:
        try:
            return self._hasher.check_needs_rehash(digest)
        except InvalidHashError:
            return True


def hash_token(token: str) -> str:
    """Return the hex-encoded SHA-256 digest of *token*.

    Used to hash verification and reset tokens before storing them in the
    database so the plaintext is never persisted.

    Args:
        token: The plaintext token string to hash.

    Returns:
        64-character lowercase hex string.
    """
    return hashlib.sha256(token.encode("utf-8")).hexdigest()
