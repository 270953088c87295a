"""
Access / refresh JWT issuance and verification.

Access tokens carry ``sub`` + ``role`` and live for minutes; refresh tokens
carry ``sub`` only and live for days. Both are stateless: verification is a
signature + claims check against the injected clock with no I/O. Refreshing
additionally re-reads the account so a deactivation takes effect at the next
exchange. The refresh token itself is not rotated.

HS256 with separate access/refresh secrets by default; RS256 for both when a
key pair is configured (the ``type`` claim then keeps the kinds apart).

A ``revocation_check(claims) -> bool`` callable may be injected; when it
returns True the token is rejected as if it were invalid.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional

import jwt

from config import JWTSettings
from errors import InvalidTokenError
from repositories.account_repository import AccountRepository
from schemas.models.account import Role
from shared.clock import Clock
from shared.generators import generate_token_id
from shared.logging import get_logger

log = get_logger(__name__)

ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"
INVALID_REFRESH_MESSAGE = "Invalid refresh token"

RevocationCheck = Callable[[dict[str, Any]], bool]


@dataclass(frozen=True)
class AccessClaims:
    account_id: str
    role: Role
    token_id: str
    expires_at: datetime


def _pem(value: str) -> bytes:
    # Support keys provided via env with literal \n sequences
    return value.replace("\\n", "\n").encode("utf-8")


class TokenIssuer:
    def __init__(
        self,
        settings: JWTSettings,
        accounts: AccountRepository,
        clock: Clock,
        revocation_check: Optional[RevocationCheck] = None,
    ) -> None:
        self._settings = settings
        self._accounts = accounts
        self._clock = clock
        self._revocation_check = revocation_check

        if settings.use_rs256:
            self._algorithm = "RS256"
            private_key = _pem(settings.jwt_private_key)
            public_key = _pem(settings.jwt_public_key)
            self._keys = {
                ACCESS_TOKEN_TYPE: (private_key, public_key),
                REFRESH_TOKEN_TYPE: (private_key, public_key),
            }
        else:
            if not settings.jwt_secret:
                raise RuntimeError(
                    "JWT_SECRET must be set when RS256 keys are not provided"
                )
            self._algorithm = "HS256"
            refresh_secret = settings.jwt_refresh_secret or settings.jwt_secret
            self._keys = {
                ACCESS_TOKEN_TYPE: (settings.jwt_secret, settings.jwt_secret),
                REFRESH_TOKEN_TYPE: (refresh_secret, refresh_secret),
            }

    def _encode(self, claims: dict[str, Any], token_type: str, ttl_seconds: int) -> str:
        now = self._clock.now()
        claims.update(
            {
                "iss": self._settings.jwt_issuer,
                "aud": self._settings.jwt_audience,
                "iat": int(now.timestamp()),
                "exp": int((now + timedelta(seconds=ttl_seconds)).timestamp()),
                "jti": generate_token_id(),
                "type": token_type,
            }
        )
        signing_key, _ = self._keys[token_type]
        return jwt.encode(claims, signing_key, algorithm=self._algorithm)

    def _decode(self, token: str, token_type: str) -> dict[str, Any]:
        """Verify signature, issuer, audience, type, expiry and revocation.

        Expiry is checked against the injected clock rather than PyJWT's
        wall-clock check.
        """
        if not token:
            raise InvalidTokenError(reason="missing")
        _, verifying_key = self._keys[token_type]
        try:
            claims = jwt.decode(
                token,
                verifying_key,
                algorithms=[self._algorithm],
                audience=self._settings.jwt_audience,
                issuer=self._settings.jwt_issuer,
                options={
                    "verify_exp": False,
                    "verify_iat": False,
                    "require": ["exp", "iat", "sub", "jti"],
                },
            )
        except jwt.PyJWTError as e:
            raise InvalidTokenError(reason=type(e).__name__)

        if claims.get("type") != token_type:
            raise InvalidTokenError(reason="wrong_type")
        if claims["exp"] <= self._clock.now().timestamp():
            raise InvalidTokenError(reason="expired")
        if self._revocation_check is not None and self._revocation_check(claims):
            raise InvalidTokenError(reason="revoked")
        return claims

    def issue_access_token(self, account_id: str, role: Role) -> str:
        return self._encode(
            {"sub": str(account_id), "role": Role(role).value},
            ACCESS_TOKEN_TYPE,
            self._settings.access_token_ttl_seconds,
        )

    def issue_refresh_token(self, account_id: str) -> str:
        return self._encode(
            {"sub": str(account_id)},
            REFRESH_TOKEN_TYPE,
            self._settings.refresh_token_ttl_seconds,
        )

    def verify_access_token(self, token: str) -> AccessClaims:
        claims = self._decode(token, ACCESS_TOKEN_TYPE)
        try:
            role = Role(claims.get("role"))
        except ValueError:
            raise InvalidTokenError(reason="bad_role")
        return AccessClaims(
            account_id=claims["sub"],
            role=role,
            token_id=claims["jti"],
            expires_at=datetime.fromtimestamp(claims["exp"], tz=timezone.utc),
        )

    async def refresh(self, refresh_token: str) -> str:
        """Exchange a refresh token for a new access token.

        Bad signature, expiry, unknown account and deactivated account all
        raise the same InvalidTokenError.
        """
        try:
            claims = self._decode(refresh_token, REFRESH_TOKEN_TYPE)
        except InvalidTokenError as e:
            log.info("token_refresh_rejected", reason=e.reason)
            raise InvalidTokenError(INVALID_REFRESH_MESSAGE)

        account = await self._accounts.find_by_id(claims["sub"])
        if account is None or not account.is_active:
            log.info(
                "token_refresh_rejected",
                reason="account_missing" if account is None else "account_inactive",
                account_id=claims["sub"],
            )
            raise InvalidTokenError(INVALID_REFRESH_MESSAGE)

        # Current role, not the one at refresh-token issue time
        return self.issue_access_token(account.account_id, account.role)
