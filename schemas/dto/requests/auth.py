"""
Request DTOs for authentication endpoints.

RegisterRequest           POST /api/auth/register
VerifyEmailRequest        POST /api/auth/verify-email
LoginRequest              POST /api/auth/login
RefreshRequest            POST /api/auth/refresh
ForgotPasswordRequest     POST /api/auth/forgot-password
ResetPasswordRequest      POST /api/auth/reset-password

Only shape is checked here; content rules (password strength, name length,
role, consents) live in the service so every caller gets them.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, EmailStr, Field


class RegisterRequest(BaseModel):
    """Request body for POST /api/auth/register."""

    model_config = ConfigDict(populate_by_name=True)

    name: str
    email: EmailStr
    password: str
    role: str
    privacy_consent: bool = Field(False, alias="privacyConsent")
    terms_accepted: bool = Field(False, alias="termsAccepted")


class VerifyEmailRequest(BaseModel):
    """Request body for POST /api/auth/verify-email."""

    model_config = ConfigDict(populate_by_name=True)

    token: str = Field(min_length=1)


class LoginRequest(BaseModel):
    """Request body for POST /api/auth/login."""

    model_config = ConfigDict(populate_by_name=True)

    email: EmailStr
    password: str = Field(min_length=1)


class RefreshRequest(BaseModel):
    """Request body for POST /api/auth/refresh."""

    model_config = ConfigDict(populate_by_name=True)

    refresh_token: str = Field(min_length=1, alias="refreshToken")


class ForgotPasswordRequest(BaseModel):
    """Request body for POST /api/auth/forgot-password."""

    model_config = ConfigDict(populate_by_name=True)

    email: EmailStr


class ResetPasswordRequest(BaseModel):
    """Request body for POST /api/auth/reset-password."""

    model_config = ConfigDict(populate_by_name=True)

    token: str = Field(min_length=1)
    password: str
