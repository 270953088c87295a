"""
Application error hierarchy and FastAPI exception handlers.

AppError is the base for all typed errors. The global exception handler
converts AppError subclasses to consistent JSON responses.

Every AppError is an expected outcome (bad input, wrong password, expired
token...) and is returned to the caller as-is. Anything else is logged with
full detail and surfaces as a generic 500.
"""

from __future__ import annotations

from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from shared.logging import get_logger

log = get_logger(__name__)


class AppError(Exception):
    """Base application error. All typed errors inherit from this."""

    status_code: int = 500
    error_code: str = "internal_error"

    def __init__(
        self,
        message: str,
        *,
        field: Optional[str] = None,
        details: Optional[Any] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.field = field
        self.details = details

    def to_dict(self) -> dict:
        payload: dict = {"error": self.message, "code": self.error_code}
        if self.field is not None:
            payload["field"] = self.field
        if self.details is not None:
            payload["details"] = self.details
        return payload


class ValidationError(AppError):
    status_code = 400
    error_code = "validation_error"


class AuthenticationError(AppError):
    status_code = 401
    error_code = "authentication_error"


class ForbiddenError(AppError):
    status_code = 403
    error_code = "forbidden"


class NotFoundError(AppError):
    status_code = 404
    error_code = "not_found"


class ConflictError(AppError):
    status_code = 409
    error_code = "conflict"


class RateLimitError(AppError):
    status_code = 429
    error_code = "too_many_requests"

    def __init__(self, message: str = "Too many requests, please try again later.", **kwargs: Any) -> None:
        super().__init__(message, **kwargs)


class EmailExistsError(ConflictError):
    error_code = "email_exists"

    def __init__(self, message: str = "Email already registered", **kwargs: Any) -> None:
        super().__init__(message, field="email", **kwargs)


class InvalidCredentialsError(AuthenticationError):
    """Wrong password and unknown email are deliberately the same error."""

    error_code = "invalid_credentials"

    def __init__(self, message: str = "Invalid email or password", **kwargs: Any) -> None:
        super().__init__(message, **kwargs)


class AccountLockedError(AppError):
    status_code = 423
    error_code = "account_locked"

    def __init__(self, remaining_minutes: int) -> None:
        super().__init__(
            f"Account is locked. Try again in {remaining_minutes} minutes.",
            details={"remaining_minutes": remaining_minutes},
        )
        self.remaining_minutes = remaining_minutes


class AccountInactiveError(ForbiddenError):
    error_code = "account_inactive"

    def __init__(self, message: str = "Account is deactivated", **kwargs: Any) -> None:
        super().__init__(message, **kwargs)


class EmailNotVerifiedError(ForbiddenError):
    error_code = "email_not_verified"

    def __init__(
        self,
        message: str = "Please verify your email address before logging in",
        **kwargs: Any,
    ) -> None:
        super().__init__(message, **kwargs)


class InvalidTokenError(AuthenticationError):
    """Missing, malformed, expired, used and revoked tokens all raise this."""

    error_code = "invalid_token"

    def __init__(
        self,
        message: str = "Invalid or expired token",
        *,
        reason: Optional[str] = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, **kwargs)
        # Server-side only; never part of the response body
        self.reason = reason


def _first_field(exc: RequestValidationError) -> Optional[str]:
    errors = exc.errors()
    if not errors:
        return None
    loc = [str(part) for part in errors[0].get("loc", ()) if part != "body"]
    return ".".join(loc) or None


def register_error_handlers(app: FastAPI) -> None:
    """Register global exception handlers on the FastAPI app."""

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        error = ValidationError("Invalid request body", field=_first_field(exc))
        return JSONResponse(status_code=error.status_code, content=error.to_dict())

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        # Sentry integration: if sentry_sdk is initialized it will auto-capture
        # unhandled exceptions before this handler fires.
        log.exception(
            "unhandled_exception",
            path=request.url.path,
            method=request.method,
            error_type=type(exc).__name__,
        )
        return JSONResponse(
            status_code=500,
            content={"error": "An internal server error occurred.", "code": "internal_error"},
        )
