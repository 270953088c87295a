"""
Account document model.

Maps to the `accounts` MongoDB collection.

email is stored normalized (lower-cased) and carries a unique index, which is
what makes registration an atomic insert-if-not-exists. `locked_until` is a
time window, not a flag: an account is locked only while it lies in the
future.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import Field

from schemas.models.base import MongoBaseModel


class Role(str, Enum):
    STUDENT = "student"
    INSTRUCTOR = "instructor"
    ADMIN = "admin"


class AccountDoc(MongoBaseModel):
    """Document model for the `accounts` collection."""

    name: str
    email: str
    password_hash: str
    role: Role = Role.STUDENT
    email_verified: bool = False
    is_active: bool = True
    failed_login_attempts: int = Field(default=0, ge=0)
    locked_until: Optional[datetime] = None
    last_login: Optional[datetime] = None
    privacy_consent: bool = False
    terms_accepted: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def account_id(self) -> str:
        return str(self.id)
