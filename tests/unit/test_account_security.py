"""Unit tests for the account security state machine."""

from datetime import timedelta

import pytest

from errors import (
    AccountInactiveError,
    AccountLockedError,
    EmailNotVerifiedError,
    InvalidCredentialsError,
)
from schemas.models.account import AccountDoc
from services.account_security import AccountGuard, AccountState
from shared.crypto import CredentialHasher

STRONG_PASSWORD = "P@ssw0rd1"
WRONG_PASSWORD = "Wr0ng!pass"


async def _fail(guard, accounts, account_id, times):
    for _ in range(times):
        account = await accounts.find_by_id(account_id)
        with pytest.raises((InvalidCredentialsError, AccountLockedError)):
            await guard.attempt_login(account, WRONG_PASSWORD)


# ── Policy ────────────────────────────────────────────────────────────────────


class TestAccountSecurityPolicy:
    def _account(self, **overrides) -> AccountDoc:
        fields = dict(name="Bob", email="bob@example.com", password_hash="x")
        fields.update(overrides)
        return AccountDoc(**fields)

    @pytest.mark.parametrize(
        "overrides, expected",
        [
            ({"email_verified": False}, AccountState.UNVERIFIED),
            ({"email_verified": True}, AccountState.ACTIVE),
            ({"email_verified": True, "is_active": False}, AccountState.DEACTIVATED),
        ],
        ids=["unverified", "active", "deactivated"],
    )
    def test_state_of(self, policy, overrides, expected):
        assert policy.state_of(self._account(**overrides)) is expected

    def test_future_lock_is_locked(self, policy, clock):
        account = self._account(email_verified=True, locked_until=clock.now() + timedelta(minutes=1))
        assert policy.state_of(account) is AccountState.LOCKED

    def test_past_lock_is_not_locked(self, policy, clock):
        account = self._account(email_verified=True, locked_until=clock.now() - timedelta(seconds=1))
        assert policy.state_of(account) is AccountState.ACTIVE

    def test_deactivated_wins_over_lock(self, policy, clock):
        account = self._account(is_active=False, locked_until=clock.now() + timedelta(minutes=5))
        assert policy.state_of(account) is AccountState.DEACTIVATED

    @pytest.mark.parametrize(
        "delta, expected",
        [
            (timedelta(minutes=15), 15),
            (timedelta(minutes=14, seconds=1), 15),
            (timedelta(seconds=5), 1),
            (timedelta(seconds=-5), 0),
        ],
        ids=["whole", "rounds_up", "at_least_one", "elapsed"],
    )
    def test_remaining_lock_minutes(self, policy, clock, delta, expected):
        account = self._account(locked_until=clock.now() + delta)
        assert policy.remaining_lock_minutes(account) == expected

    def test_lock_deadline_uses_configured_duration(self, policy, clock):
        assert policy.lock_deadline() == clock.now() + timedelta(minutes=15)


# ── Guard ─────────────────────────────────────────────────────────────────────


class TestAttemptLogin:
    async def test_success_resets_counters_and_stamps_last_login(
        self, guard, accounts, make_account, clock
    ):
        account_id = await make_account(failed_login_attempts=3)
        account = await guard.attempt_login(await accounts.find_by_id(account_id), STRONG_PASSWORD)

        stored = await accounts.find_by_id(account_id)
        assert stored.failed_login_attempts == 0
        assert stored.locked_until is None
        assert stored.last_login == clock.now()
        assert account.last_login == clock.now()

    async def test_wrong_password_increments_counter(self, guard, accounts, make_account):
        account_id = await make_account()
        with pytest.raises(InvalidCredentialsError):
            await guard.attempt_login(await accounts.find_by_id(account_id), WRONG_PASSWORD)
        assert (await accounts.find_by_id(account_id)).failed_login_attempts == 1

    async def test_threshold_locks_account(self, guard, accounts, make_account, clock):
        account_id = await make_account()
        await _fail(guard, accounts, account_id, 5)

        stored = await accounts.find_by_id(account_id)
        assert stored.failed_login_attempts == 5
        assert stored.locked_until == clock.now() + timedelta(minutes=15)

    async def test_locked_rejects_correct_password(self, guard, accounts, make_account):
        account_id = await make_account()
        await _fail(guard, accounts, account_id, 5)

        with pytest.raises(AccountLockedError) as exc:
            await guard.attempt_login(await accounts.find_by_id(account_id), STRONG_PASSWORD)
        assert exc.value.remaining_minutes == 15

    async def test_locked_attempt_does_not_extend_lock(self, guard, accounts, make_account):
        account_id = await make_account()
        await _fail(guard, accounts, account_id, 5)
        before = (await accounts.find_by_id(account_id)).locked_until

        with pytest.raises(AccountLockedError):
            await guard.attempt_login(await accounts.find_by_id(account_id), WRONG_PASSWORD)
        stored = await accounts.find_by_id(account_id)
        assert stored.locked_until == before
        assert stored.failed_login_attempts == 5

    async def test_login_succeeds_after_lock_elapses(self, guard, accounts, make_account, clock):
        account_id = await make_account()
        await _fail(guard, accounts, account_id, 5)
        clock.advance(minutes=15, seconds=1)

        await guard.attempt_login(await accounts.find_by_id(account_id), STRONG_PASSWORD)
        stored = await accounts.find_by_id(account_id)
        assert stored.failed_login_attempts == 0
        assert stored.locked_until is None

    async def test_elapsed_lock_gives_fresh_attempts(self, guard, accounts, make_account, clock):
        account_id = await make_account()
        await _fail(guard, accounts, account_id, 5)
        clock.advance(minutes=16)

        await _fail(guard, accounts, account_id, 1)
        stored = await accounts.find_by_id(account_id)
        assert stored.failed_login_attempts == 1
        assert stored.locked_until is None

    async def test_inactive_rejected_without_consuming_attempt(self, guard, accounts, make_account):
        account_id = await make_account(is_active=False)
        for password in (STRONG_PASSWORD, WRONG_PASSWORD):
            with pytest.raises(AccountInactiveError):
                await guard.attempt_login(await accounts.find_by_id(account_id), password)
        assert (await accounts.find_by_id(account_id)).failed_login_attempts == 0

    async def test_unverified_checked_after_password(self, guard, accounts, make_account):
        account_id = await make_account(email_verified=False)

        with pytest.raises(InvalidCredentialsError):
            await guard.attempt_login(await accounts.find_by_id(account_id), WRONG_PASSWORD)
        with pytest.raises(EmailNotVerifiedError):
            await guard.attempt_login(await accounts.find_by_id(account_id), STRONG_PASSWORD)

    async def test_unverified_does_not_reset_counter(self, guard, accounts, make_account):
        account_id = await make_account(email_verified=False, failed_login_attempts=2)
        with pytest.raises(EmailNotVerifiedError):
            await guard.attempt_login(await accounts.find_by_id(account_id), STRONG_PASSWORD)
        assert (await accounts.find_by_id(account_id)).failed_login_attempts == 2

    async def test_concurrent_lock_is_not_cleared_by_success(
        self, guard, accounts, make_account, clock
    ):
        account_id = await make_account()
        stale_read = await accounts.find_by_id(account_id)
        # Another request locks the account after our read
        accounts.set_fields(account_id, locked_until=clock.now() + timedelta(minutes=10))

        with pytest.raises(AccountLockedError):
            await guard.attempt_login(stale_read, STRONG_PASSWORD)
        assert (await accounts.find_by_id(account_id)).locked_until is not None

    async def test_reject_unknown_raises_invalid_credentials(self, guard):
        with pytest.raises(InvalidCredentialsError):
            guard.reject_unknown("whatever")

    async def test_rehash_on_cost_increase(self, accounts, make_account, policy, clock):
        account_id = await make_account()
        old_hash = (await accounts.find_by_id(account_id)).password_hash
        stronger = CredentialHasher(cost=2)
        guard = AccountGuard(accounts, policy, stronger, clock)

        await guard.attempt_login(await accounts.find_by_id(account_id), STRONG_PASSWORD)
        new_hash = (await accounts.find_by_id(account_id)).password_hash
        assert new_hash != old_hash
        assert stronger.needs_rehash(new_hash) is False
