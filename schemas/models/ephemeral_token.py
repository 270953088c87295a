"""
Ephemeral token document model.

Maps to the `ephemeral-tokens` MongoDB collection.

Used for both email verification and password reset tokens.
token_hash stores SHA-256(token); the plain token is never stored.
Verification tokens are deleted when consumed; reset tokens are kept with
used=True so the history of resets survives.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional

from schemas.models.base import MongoBaseModel, PyObjectId


class TokenKind(str, Enum):
    EMAIL_VERIFICATION = "email_verification"
    PASSWORD_RESET = "password_reset"


class EphemeralTokenDoc(MongoBaseModel):
    """Document model for the `ephemeral-tokens` collection."""

    account_id: PyObjectId
    kind: TokenKind
    token_hash: str
    expires_at: datetime
    used: bool = False
    used_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
