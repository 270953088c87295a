"""
Single-use, expiring tokens for email verification and password reset.

The plaintext token (256 random bits, hex) goes to the user; only its
SHA-256 is stored. Consumption is an atomic claim in the repository, so a
token works at most once. Miss, expiry and reuse are indistinguishable to the
caller.

A claim is finished by the caller once its account write has landed:
release() returns the token to the unused state if that write failed, and
discard() removes a verification token after it succeeded. Used reset tokens
are kept.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta

from config import SecuritySettings
from errors import InvalidTokenError
from repositories.ephemeral_token_repository import EphemeralTokenRepository
from schemas.models.base import to_object_id
from schemas.models.ephemeral_token import EphemeralTokenDoc, TokenKind
from shared.clock import Clock
from shared.crypto import hash_token
from shared.generators import generate_secure_token
from shared.logging import get_logger

log = get_logger(__name__)


@dataclass(frozen=True)
class ConsumedToken:
    token_id: str
    account_id: str
    kind: TokenKind


class EphemeralTokenBroker:
    def __init__(
        self,
        tokens: EphemeralTokenRepository,
        settings: SecuritySettings,
        clock: Clock,
    ) -> None:
        self._tokens = tokens
        self._clock = clock
        self._ttls = {
            TokenKind.EMAIL_VERIFICATION: timedelta(
                seconds=settings.email_verification_ttl_seconds
            ),
            TokenKind.PASSWORD_RESET: timedelta(
                seconds=settings.password_reset_ttl_seconds
            ),
        }

    def ttl_for(self, kind: TokenKind) -> timedelta:
        return self._ttls[kind]

    async def issue(self, account_id: str, kind: TokenKind) -> str:
        """Create and persist a token of *kind* for *account_id*.

        Issuing a reset token first deletes the account's unused reset
        tokens, so only the newest one can be redeemed.

        Returns:
            The plaintext token; it is not recoverable afterwards.
        """
        if kind is TokenKind.PASSWORD_RESET:
            removed = await self._tokens.delete_unused_for_account(account_id, kind)
            if removed:
                log.info("reset_tokens_superseded", account_id=account_id, count=removed)

        token = generate_secure_token()
        now = self._clock.now()
        await self._tokens.insert(
            EphemeralTokenDoc(
                account_id=to_object_id(account_id),
                kind=kind,
                token_hash=hash_token(token),
                expires_at=now + self.ttl_for(kind),
                created_at=now,
            )
        )
        log.info("ephemeral_token_issued", account_id=account_id, kind=kind.value)
        return token

    async def consume(self, token: str, kind: TokenKind) -> ConsumedToken:
        """Redeem *token* once.

        The token is flagged used; see release() and discard().

        Raises:
            InvalidTokenError: unknown, expired or already used.
        """
        if not token:
            raise InvalidTokenError(reason="missing")

        doc = await self._tokens.claim(hash_token(token), kind, self._clock.now())
        if doc is None:
            log.info("ephemeral_token_rejected", kind=kind.value)
            raise InvalidTokenError(reason="not_found_expired_or_used")

        return ConsumedToken(
            token_id=str(doc.id), account_id=str(doc.account_id), kind=kind
        )

    async def release(self, consumed: ConsumedToken) -> None:
        """Return a claimed token to the unused state."""
        await self._tokens.release(consumed.token_id)
        log.info(
            "ephemeral_token_released",
            account_id=consumed.account_id,
            kind=consumed.kind.value,
        )

    async def discard(self, consumed: ConsumedToken) -> None:
        """Delete a claimed verification token; reset tokens stay as used."""
        if consumed.kind is TokenKind.EMAIL_VERIFICATION:
            await self._tokens.delete(consumed.token_id)
