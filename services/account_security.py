"""
Account security state machine.

States are derived from the stored account, never stored themselves:

    DEACTIVATED  is_active is false (administrative, outside this service)
    LOCKED       locked_until lies in the future
    UNVERIFIED   email_verified is false
    ACTIVE       none of the above

AccountSecurityPolicy answers questions about an account at "now".
AccountGuard runs a login attempt against it and persists the outcome
through the repository's atomic counter/lock updates.
"""

from __future__ import annotations

import math
from datetime import datetime, timedelta
from enum import Enum
from typing import Optional

from config import SecuritySettings
from errors import (
    AccountInactiveError,
    AccountLockedError,
    EmailNotVerifiedError,
    InvalidCredentialsError,
)
from repositories.account_repository import AccountRepository
from schemas.models.account import AccountDoc
from shared.clock import Clock, ensure_utc
from shared.crypto import CredentialHasher
from shared.logging import get_logger

log = get_logger(__name__)


class AccountState(str, Enum):
    UNVERIFIED = "unverified"
    ACTIVE = "active"
    LOCKED = "locked"
    DEACTIVATED = "deactivated"


class AccountSecurityPolicy:
    def __init__(self, settings: SecuritySettings, clock: Clock) -> None:
        self.max_login_attempts = settings.max_login_attempts
        self.lockout_duration = timedelta(minutes=settings.lockout_duration_minutes)
        self._clock = clock

    def is_locked(self, account: AccountDoc, now: Optional[datetime] = None) -> bool:
        locked_until = ensure_utc(account.locked_until)
        if locked_until is None:
            return False
        return locked_until > (now or self._clock.now())

    def state_of(self, account: AccountDoc) -> AccountState:
        if not account.is_active:
            return AccountState.DEACTIVATED
        if self.is_locked(account):
            return AccountState.LOCKED
        if not account.email_verified:
            return AccountState.UNVERIFIED
        return AccountState.ACTIVE

    def remaining_lock_minutes(self, account: AccountDoc) -> int:
        """Whole minutes (rounded up, at least 1) until the lock lifts; 0 if unlocked."""
        locked_until = ensure_utc(account.locked_until)
        if locked_until is None:
            return 0
        seconds = (locked_until - self._clock.now()).total_seconds()
        if seconds <= 0:
            return 0
        return max(1, math.ceil(seconds / 60))

    def lock_deadline(self, now: Optional[datetime] = None) -> datetime:
        return (now or self._clock.now()) + self.lockout_duration


class AccountGuard:
    """Runs the login transition of the state machine."""

    def __init__(
        self,
        accounts: AccountRepository,
        policy: AccountSecurityPolicy,
        hasher: CredentialHasher,
        clock: Clock,
    ) -> None:
        self._accounts = accounts
        self._policy = policy
        self._hasher = hasher
        self._clock = clock
        self._dummy_hash: Optional[str] = None

    def reject_unknown(self, password: str) -> None:
        """Burn a hash verification for an unknown email, then fail like a bad password."""
        if self._dummy_hash is None:
            self._dummy_hash = self._hasher.hash("not-a-real-password")
        self._hasher.verify(password, self._dummy_hash)
        log.info("login_failed", reason="unknown_email")
        raise InvalidCredentialsError()

    async def attempt_login(self, account: AccountDoc, password: str) -> AccountDoc:
        """Check lock, activity, password and verification, in that order.

        *account* must have been read from the store for this attempt; the
        lock decision is made on that read.

        Returns:
            The account as it stands after the successful login.

        Raises:
            AccountLockedError, AccountInactiveError, InvalidCredentialsError,
            EmailNotVerifiedError.
        """
        now = self._clock.now()
        account_id = account.account_id

        if self._policy.is_locked(account, now):
            remaining = self._policy.remaining_lock_minutes(account)
            log.info("login_rejected", reason="locked", account_id=account_id, remaining_minutes=remaining)
            raise AccountLockedError(remaining)

        if account.locked_until is not None:
            # Lock window elapsed: start a fresh set of attempts
            await self._accounts.clear_expired_lock(account_id, now)
            account = account.model_copy(update={"failed_login_attempts": 0, "locked_until": None})

        if not account.is_active:
            log.info("login_rejected", reason="inactive", account_id=account_id)
            raise AccountInactiveError()

        if not self._hasher.verify(password, account.password_hash):
            attempts = await self._accounts.record_failed_login(
                account_id,
                threshold=self._policy.max_login_attempts,
                lock_until=self._policy.lock_deadline(now),
                now=now,
            )
            locked = attempts >= self._policy.max_login_attempts
            log.warning(
                "login_failed",
                reason="bad_password",
                account_id=account_id,
                failed_attempts=attempts,
                locked=locked,
            )
            raise InvalidCredentialsError()

        if not account.email_verified:
            log.info("login_rejected", reason="email_not_verified", account_id=account_id)
            raise EmailNotVerifiedError()

        if not await self._accounts.record_successful_login(account_id, now):
            # Locked by a concurrent failure between our read and this write
            current = await self._accounts.find_by_id(account_id)
            if current is not None and self._policy.is_locked(current, now):
                raise AccountLockedError(self._policy.remaining_lock_minutes(current))
            raise InvalidCredentialsError()

        if self._hasher.needs_rehash(account.password_hash):
            await self._accounts.update_password_hash(
                account_id, self._hasher.hash(password), now
            )
            log.info("password_rehashed", account_id=account_id, cost=self._hasher.cost)

        return account.model_copy(
            update={"failed_login_attempts": 0, "locked_until": None, "last_login": now}
        )
