"""
Authentication endpoints under /api/auth.

POST /register           create account (201)
POST /verify-email       redeem an email verification token
POST /login              email + password → access/refresh tokens
POST /refresh            refresh token → new access token
POST /forgot-password    start password reset (same answer for every email)
POST /reset-password     redeem reset token, set new password
POST /logout             bearer required; stateless, the client drops its tokens
GET  /me                 account behind the bearer access token

Only register, login, forgot-password and reset-password are rate limited.
Handlers only translate between HTTP and AuthService; rules live there.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from dependencies import get_auth_service, get_current_account, rate_limited
from schemas.dto.requests.auth import (
    ForgotPasswordRequest,
    LoginRequest,
    RefreshRequest,
    RegisterRequest,
    ResetPasswordRequest,
    VerifyEmailRequest,
)
from schemas.dto.responses.auth import (
    AccountSummary,
    CurrentAccountResponse,
    LoginResponse,
    RefreshResponse,
    RegisterResponse,
)
from schemas.dto.responses.common import ErrorResponse, MessageResponse
from schemas.models.account import AccountDoc
from services.auth_service import AuthService
from services.rate_limiter import RateLimitClass

_ERROR_RESPONSES = {
    status: {"model": ErrorResponse} for status in (400, 401, 403, 409, 423, 429)
}

router = APIRouter(prefix="/api/auth", tags=["auth"], responses=_ERROR_RESPONSES)

auth_limit = Depends(rate_limited(RateLimitClass.AUTH))
reset_limit = Depends(rate_limited(RateLimitClass.PASSWORD_RESET))

FORGOT_PASSWORD_MESSAGE = (
    "If the email exists in our system, you will receive password reset instructions."
)


@router.post(
    "/register",
    status_code=201,
    response_model=RegisterResponse,
    dependencies=[auth_limit],
)
async def register(
    body: RegisterRequest,
    auth_service: AuthService = Depends(get_auth_service),
) -> RegisterResponse:
    account = await auth_service.register(
        name=body.name,
        email=body.email,
        password=body.password,
        role=body.role,
        privacy_consent=body.privacy_consent,
        terms_accepted=body.terms_accepted,
    )
    if account.email_verified:
        message = "User registered successfully. You can now log in."
    else:
        message = "User registered successfully. Please check your email to verify your account."
    return RegisterResponse(
        message=message,
        account=AccountSummary.from_account(account),
        requires_verification=not account.email_verified,
    )


@router.post("/verify-email", response_model=MessageResponse)
async def verify_email(
    body: VerifyEmailRequest,
    auth_service: AuthService = Depends(get_auth_service),
) -> MessageResponse:
    await auth_service.verify_email(body.token)
    return MessageResponse(
        success=True, message="Email verified successfully. You can now log in."
    )


@router.post("/login", response_model=LoginResponse, dependencies=[auth_limit])
async def login(
    body: LoginRequest,
    auth_service: AuthService = Depends(get_auth_service),
) -> LoginResponse:
    result = await auth_service.login(body.email, body.password)
    return LoginResponse(
        message="Login successful",
        account=AccountSummary.from_account(result.account),
        access_token=result.access_token,
        refresh_token=result.refresh_token,
    )


@router.post("/refresh", response_model=RefreshResponse)
async def refresh(
    body: RefreshRequest,
    auth_service: AuthService = Depends(get_auth_service),
) -> RefreshResponse:
    access_token = await auth_service.refresh(body.refresh_token)
    return RefreshResponse(access_token=access_token)


@router.post(
    "/forgot-password", response_model=MessageResponse, dependencies=[reset_limit]
)
async def forgot_password(
    body: ForgotPasswordRequest,
    auth_service: AuthService = Depends(get_auth_service),
) -> MessageResponse:
    await auth_service.forgot_password(body.email)
    return MessageResponse(success=True, message=FORGOT_PASSWORD_MESSAGE)


@router.post("/reset-password", response_model=MessageResponse, dependencies=[auth_limit])
async def reset_password(
    body: ResetPasswordRequest,
    auth_service: AuthService = Depends(get_auth_service),
) -> MessageResponse:
    await auth_service.reset_password(body.token, body.password)
    return MessageResponse(
        success=True,
        message="Password reset successfully. You can now log in with your new password.",
    )


@router.post("/logout", response_model=MessageResponse)
async def logout(
    account: AccountDoc = Depends(get_current_account),
    auth_service: AuthService = Depends(get_auth_service),
) -> MessageResponse:
    await auth_service.logout(account.account_id)
    return MessageResponse(success=True, message="Logout successful")


@router.get("/me", response_model=CurrentAccountResponse)
async def me(account: AccountDoc = Depends(get_current_account)) -> CurrentAccountResponse:
    return CurrentAccountResponse(account=AccountSummary.from_account(account))
