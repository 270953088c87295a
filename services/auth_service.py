"""
Auth orchestrator: register, verify email, login, refresh, password reset.

Each public method is a short transaction script over the repositories and
the security components. Expected failures surface as AppError subclasses
from errors.py. Outbound email is best effort: a failed or skipped send is
logged and never fails the operation.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from config import AppSettings
from errors import AccountInactiveError, InvalidTokenError, ValidationError
from infrastructure.availability import AvailabilityProbe
from infrastructure.email.protocol import EmailProvider
from repositories.account_repository import AccountRepository
from schemas.models.account import AccountDoc, Role
from schemas.models.base import to_object_id
from schemas.models.ephemeral_token import TokenKind
from services.account_security import AccountGuard
from services.ephemeral_tokens import EphemeralTokenBroker
from services.token_issuer import TokenIssuer
from shared.clock import Clock
from shared.crypto import CredentialHasher
from shared.logging import get_logger
from shared.validators import (
    validate_consents,
    validate_email,
    validate_name,
    validate_password,
)

log = get_logger(__name__)


@dataclass(frozen=True)
class LoginResult:
    account: AccountDoc
    access_token: str
    refresh_token: str


def _coerce_role(role: str | Role) -> Role:
    try:
        return Role(role)
    except ValueError:
        allowed = ", ".join(r.value for r in Role)
        raise ValidationError(f"Role must be one of: {allowed}", field="role")


class AuthService:
    def __init__(
        self,
        *,
        accounts: AccountRepository,
        broker: EphemeralTokenBroker,
        guard: AccountGuard,
        issuer: TokenIssuer,
        email: EmailProvider,
        email_availability: AvailabilityProbe,
        hasher: CredentialHasher,
        settings: AppSettings,
        clock: Clock,
    ) -> None:
        self._accounts = accounts
        self._broker = broker
        self._guard = guard
        self._issuer = issuer
        self._email = email
        self._email_availability = email_availability
        self._hasher = hasher
        self._settings = settings
        self._clock = clock

    @property
    def auto_verify(self) -> bool:
        """Non-production deployments skip email verification."""
        return not self._settings.is_production

    async def _deliver(
        self,
        purpose: str,
        send: Callable[[str, str, str], Awaitable[bool]],
        account: AccountDoc,
        token: str,
    ) -> bool:
        if not await self._email_availability.is_available():
            log.warning(
                "email_skipped",
                purpose=purpose,
                account_id=account.account_id,
                reason="transport_unavailable",
            )
            return False
        try:
            sent = await send(account.email, account.name, token)
        except Exception as e:
            log.error(
                "email_send_error",
                purpose=purpose,
                account_id=account.account_id,
                error=str(e),
                error_type=type(e).__name__,
            )
            return False
        if not sent:
            log.warning("email_not_sent", purpose=purpose, account_id=account.account_id)
        return sent

    async def register(
        self,
        name: str,
        email: str,
        password: str,
        role: str | Role,
        privacy_consent: bool,
        terms_accepted: bool,
    ) -> AccountDoc:
        """Create an unverified account and send its verification link.

        Raises:
            ValidationError: bad name/email/password/role or a missing consent.
            EmailExistsError: the email is already registered.
        """
        name = validate_name(name)
        email = validate_email(email)
        validate_password(password)
        role = _coerce_role(role)
        validate_consents(privacy_consent, terms_accepted)

        now = self._clock.now()
        account = AccountDoc(
            name=name,
            email=email,
            password_hash=self._hasher.hash(password),
            role=role,
            email_verified=self.auto_verify,
            privacy_consent=privacy_consent,
            terms_accepted=terms_accepted,
            created_at=now,
            updated_at=now,
        )
        account_id = await self._accounts.insert(account)
        account = account.model_copy(update={"id": to_object_id(account_id)})
        log.info(
            "account_registered",
            account_id=account_id,
            role=role.value,
            auto_verified=self.auto_verify,
        )

        if not self.auto_verify:
            token = await self._broker.issue(account_id, TokenKind.EMAIL_VERIFICATION)
            await self._deliver("verification", self._email.send_verification, account, token)

        return account

    async def verify_email(self, token: str) -> None:
        """Mark the token's account verified and spend the token.

        The token is claimed first and only deleted once the account write
        went through; a failed write releases it so the link keeps working.
        """
        consumed = await self._broker.consume(token, TokenKind.EMAIL_VERIFICATION)
        try:
            verified = await self._accounts.mark_email_verified(
                consumed.account_id, self._clock.now()
            )
        except Exception:
            await self._broker.release(consumed)
            raise

        await self._broker.discard(consumed)
        if not verified:
            raise InvalidTokenError(reason="account_missing")
        log.info("email_verified", account_id=consumed.account_id)

    async def login(self, email: str, password: str) -> LoginResult:
        account = await self._accounts.find_by_email(email) if email else None
        if account is None:
            self._guard.reject_unknown(password)

        account = await self._guard.attempt_login(account, password)
        result = LoginResult(
            account=account,
            access_token=self._issuer.issue_access_token(account.account_id, account.role),
            refresh_token=self._issuer.issue_refresh_token(account.account_id),
        )
        log.info("login_succeeded", account_id=account.account_id, role=account.role.value)
        return result

    async def refresh(self, refresh_token: str) -> str:
        return await self._issuer.refresh(refresh_token)

    async def forgot_password(self, email: str) -> None:
        """Start a password reset.

        Returns the same way whether or not the email belongs to an active
        account, so callers cannot tell registered emails apart.
        """
        account = await self._accounts.find_by_email(validate_email(email))
        if account is None or not account.is_active:
            log.info("password_reset_requested", outcome="no_eligible_account")
            return

        token = await self._broker.issue(account.account_id, TokenKind.PASSWORD_RESET)
        await self._deliver("password_reset", self._email.send_reset, account, token)
        log.info("password_reset_requested", outcome="token_issued", account_id=account.account_id)

    async def reset_password(self, token: str, new_password: str) -> None:
        """Replace the password and clear counter/lock, consuming *token*.

        The token is claimed first and released again if anything after the
        claim fails, so either both the password and the token change or
        neither does.
        """
        validate_password(new_password)
        new_hash = self._hasher.hash(new_password)

        consumed = await self._broker.consume(token, TokenKind.PASSWORD_RESET)
        try:
            account = await self._accounts.find_by_id(consumed.account_id)
            if account is None or not account.is_active:
                raise InvalidTokenError(reason="account_not_eligible")
            await self._accounts.replace_password(
                account.account_id, new_hash, self._clock.now()
            )
        except Exception:
            await self._broker.release(consumed)
            raise

        log.info("password_reset_completed", account_id=consumed.account_id)

    async def logout(self, account_id: Optional[str] = None) -> None:
        # Tokens are stateless; the client discards them
        log.info("logout", account_id=account_id)

    async def get_current_account(self, access_token: str) -> AccountDoc:
        claims = self._issuer.verify_access_token(access_token)
        account = await self._accounts.find_by_id(claims.account_id)
        if account is None:
            raise InvalidTokenError(reason="account_missing")
        if not account.is_active:
            raise AccountInactiveError()
        return account
