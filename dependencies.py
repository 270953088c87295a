"""
FastAPI dependency providers.

All injectable dependencies are defined here as plain functions used with
FastAPI's Depends() system. Everything they hand out is built once in the
app lifespan and stored on app.state.
"""

from __future__ import annotations

from typing import Awaitable, Callable

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from config import AppSettings
from errors import AuthenticationError
from schemas.models.account import AccountDoc
from services.auth_service import AuthService
from services.rate_limiter import RateLimitClass, RateLimiter
from shared.ip_utils import get_client_ip

_bearer = HTTPBearer(auto_error=False)


def get_settings(request: Request) -> AppSettings:
    """Return the AppSettings instance stored on app.state."""
    return request.app.state.settings


def get_auth_service(request: Request) -> AuthService:
    return request.app.state.auth_service


def get_rate_limiter(request: Request) -> RateLimiter:
    return request.app.state.rate_limiter


def rate_limited(limit_class: RateLimitClass) -> Callable[..., Awaitable[None]]:
    """Build a dependency that counts the request against *limit_class*."""

    async def _check(
        request: Request,
        limiter: RateLimiter = Depends(get_rate_limiter),
        settings: AppSettings = Depends(get_settings),
    ) -> None:
        client_ip = get_client_ip(
            request, trust_proxy_headers=settings.rate_limit.trust_proxy_headers
        )
        await limiter.hit(limit_class, client_ip)

    return _check


def get_bearer_token(
    credentials: HTTPAuthorizationCredentials | None = Depends(_bearer),
) -> str:
    if credentials is None or not credentials.credentials:
        raise AuthenticationError("Access token required")
    return credentials.credentials


async def get_current_account(
    token: str = Depends(get_bearer_token),
    auth_service: AuthService = Depends(get_auth_service),
) -> AccountDoc:
    """Resolve the bearer access token to a live, active account."""
    return await auth_service.get_current_account(token)
