"""
Response DTOs for authentication endpoints.

AccountSummary        account shape returned by register/login/me
RegisterResponse      POST /api/auth/register  (201)
LoginResponse         POST /api/auth/login  (200)
RefreshResponse       POST /api/auth/refresh  (200)
CurrentAccountResponse   GET /api/auth/me  (200)
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict

from schemas.models.account import AccountDoc


class AccountSummary(BaseModel):
    """Public view of an account; never includes the hash or counters."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str
    email: str
    role: str
    email_verified: bool
    created_at: Optional[datetime] = None
    last_login: Optional[datetime] = None

    @classmethod
    def from_account(cls, account: AccountDoc) -> "AccountSummary":
        return cls(
            id=account.account_id,
            name=account.name,
            email=account.email,
            role=account.role.value,
            email_verified=account.email_verified,
            created_at=account.created_at,
            last_login=account.last_login,
        )


class RegisterResponse(BaseModel):
    """Response body for POST /api/auth/register (201)."""

    model_config = ConfigDict(populate_by_name=True)

    message: str
    account: AccountSummary
    requires_verification: bool


class LoginResponse(BaseModel):
    """Response body for POST /api/auth/login (200)."""

    model_config = ConfigDict(populate_by_name=True)

    message: str
    account: AccountSummary
    access_token: str
    refresh_token: str


class RefreshResponse(BaseModel):
    """Response body for POST /api/auth/refresh (200)."""

    model_config = ConfigDict(populate_by_name=True)

    access_token: str


class CurrentAccountResponse(BaseModel):
    """Response body for GET /api/auth/me (200)."""

    model_config = ConfigDict(populate_by_name=True)

    account: AccountSummary
