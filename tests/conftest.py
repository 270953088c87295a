"""
Shared fixtures: in-memory repositories, a frozen clock, and fully wired
services built on top of them.

The fakes honour the same filters as the Mongo repositories (expiry, used
flag, conditional lock clearing) so service tests exercise real semantics
without a database.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

import pytest
from bson import ObjectId

from config import (
    AppSettings,
    DatabaseSettings,
    EmailSettings,
    JWTSettings,
    RateLimitSettings,
    SecuritySettings,
)
from errors import EmailExistsError
from infrastructure.availability import AvailabilityProbe
from schemas.models.account import AccountDoc
from schemas.models.ephemeral_token import EphemeralTokenDoc, TokenKind
from services.account_security import AccountGuard, AccountSecurityPolicy
from services.auth_service import AuthService
from services.ephemeral_tokens import EphemeralTokenBroker
from services.token_issuer import TokenIssuer
from shared.clock import FrozenClock
from shared.crypto import CredentialHasher
from shared.validators import normalize_email

STRONG_PASSWORD = "P@ssw0rd1"


class FakeAccountRepository:
    def __init__(self) -> None:
        self.docs: dict[str, AccountDoc] = {}

    async def ensure_indexes(self) -> None:
        return None

    def _update(self, account_id: str, **fields) -> None:
        self.docs[account_id] = self.docs[account_id].model_copy(update=fields)

    def set_fields(self, account_id: str, **fields) -> None:
        """Test helper for changes made outside the service (e.g. admin deactivation)."""
        self._update(account_id, **fields)

    async def insert(self, account: AccountDoc) -> str:
        if any(doc.email == account.email for doc in self.docs.values()):
            raise EmailExistsError()
        oid = ObjectId()
        self.docs[str(oid)] = account.model_copy(update={"id": oid})
        return str(oid)

    async def find_by_id(self, account_id: str) -> Optional[AccountDoc]:
        doc = self.docs.get(str(account_id))
        return doc.model_copy() if doc else None

    async def find_by_email(self, email: str) -> Optional[AccountDoc]:
        wanted = normalize_email(email)
        for doc in self.docs.values():
            if doc.email == wanted:
                return doc.model_copy()
        return None

    async def mark_email_verified(self, account_id: str, now: datetime) -> bool:
        if account_id not in self.docs:
            return False
        self._update(account_id, email_verified=True, updated_at=now)
        return True

    async def record_failed_login(self, account_id, *, threshold, lock_until, now) -> int:
        doc = self.docs.get(account_id)
        if doc is None:
            return 0
        attempts = doc.failed_login_attempts + 1
        fields = {"failed_login_attempts": attempts, "updated_at": now}
        if attempts >= threshold and (doc.locked_until is None or doc.locked_until < lock_until):
            fields["locked_until"] = lock_until
        self._update(account_id, **fields)
        return attempts

    async def clear_expired_lock(self, account_id: str, now: datetime) -> bool:
        doc = self.docs.get(account_id)
        if doc is None or doc.locked_until is None or doc.locked_until > now:
            return False
        self._update(account_id, failed_login_attempts=0, locked_until=None, updated_at=now)
        return True

    async def record_successful_login(self, account_id: str, now: datetime) -> bool:
        doc = self.docs.get(account_id)
        if doc is None or (doc.locked_until is not None and doc.locked_until > now):
            return False
        self._update(
            account_id,
            failed_login_attempts=0,
            locked_until=None,
            last_login=now,
            updated_at=now,
        )
        return True

    async def update_password_hash(self, account_id: str, password_hash: str, now: datetime) -> None:
        self._update(account_id, password_hash=password_hash, updated_at=now)

    async def replace_password(self, account_id: str, password_hash: str, now: datetime) -> bool:
        if account_id not in self.docs:
            return False
        self._update(
            account_id,
            password_hash=password_hash,
            failed_login_attempts=0,
            locked_until=None,
            updated_at=now,
        )
        return True


class FakeEphemeralTokenRepository:
    def __init__(self) -> None:
        self.docs: dict[str, EphemeralTokenDoc] = {}

    async def ensure_indexes(self) -> None:
        return None

    def _find(self, token_hash: str, kind: TokenKind) -> Optional[EphemeralTokenDoc]:
        for doc in self.docs.values():
            if doc.token_hash == token_hash and doc.kind is kind:
                return doc
        return None

    async def insert(self, token: EphemeralTokenDoc) -> str:
        if any(doc.token_hash == token.token_hash for doc in self.docs.values()):
            raise ValueError("duplicate token_hash")
        oid = ObjectId()
        self.docs[str(oid)] = token.model_copy(update={"id": oid})
        return str(oid)

    async def delete_unused_for_account(self, account_id: str, kind: TokenKind) -> int:
        doomed = [
            key
            for key, doc in self.docs.items()
            if str(doc.account_id) == str(account_id) and doc.kind is kind and not doc.used
        ]
        for key in doomed:
            del self.docs[key]
        return len(doomed)

    async def claim(self, token_hash: str, kind: TokenKind, now: datetime):
        doc = self._find(token_hash, kind)
        if doc is None or doc.used or doc.expires_at <= now:
            return None
        claimed = doc.model_copy(update={"used": True, "used_at": now})
        self.docs[str(doc.id)] = claimed
        return claimed

    async def release(self, token_id: str) -> None:
        doc = self.docs.get(token_id)
        if doc is not None:
            self.docs[token_id] = doc.model_copy(update={"used": False, "used_at": None})

    async def delete(self, token_id: str) -> None:
        self.docs.pop(token_id, None)

    def for_account(self, account_id: str, kind: TokenKind) -> list[EphemeralTokenDoc]:
        return [
            doc
            for doc in self.docs.values()
            if str(doc.account_id) == str(account_id) and doc.kind is kind
        ]


class FakeEmailProvider:
    def __init__(self, *, configured: bool = True, succeed: bool = True) -> None:
        self.configured = configured
        self.succeed = succeed
        self.sent: list[tuple[str, str, str, str]] = []

    async def send_verification(self, email: str, name: str, token: str) -> bool:
        self.sent.append(("verification", email, name, token))
        return self.succeed

    async def send_reset(self, email: str, name: str, token: str) -> bool:
        self.sent.append(("reset", email, name, token))
        return self.succeed

    async def check_configuration(self) -> bool:
        return self.configured

    def last_token(self, purpose: str) -> str:
        return [entry for entry in self.sent if entry[0] == purpose][-1][3]


# ── Fixtures ──────────────────────────────────────────────────────────────────


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock(datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def settings() -> AppSettings:
    """Production settings: strict rate limits, verification required."""
    return AppSettings(
        env="production",
        db=DatabaseSettings(mongodb_uri="mongodb://localhost:27017/"),
        jwt=JWTSettings(
            jwt_secret="test-access-secret",
            jwt_refresh_secret="test-refresh-secret",
            jwt_private_key="",
            jwt_public_key="",
        ),
        security=SecuritySettings(password_hash_cost=1),
        rate_limit=RateLimitSettings(storage_uri="async+memory://"),
        email=EmailSettings(zepto_api_token="test-token"),
    )


@pytest.fixture
def hasher() -> CredentialHasher:
    return CredentialHasher(cost=1)


@pytest.fixture
def accounts() -> FakeAccountRepository:
    return FakeAccountRepository()


@pytest.fixture
def tokens() -> FakeEphemeralTokenRepository:
    return FakeEphemeralTokenRepository()


@pytest.fixture
def email_provider() -> FakeEmailProvider:
    return FakeEmailProvider()


@pytest.fixture
def policy(settings, clock) -> AccountSecurityPolicy:
    return AccountSecurityPolicy(settings.security, clock)


@pytest.fixture
def guard(accounts, policy, hasher, clock) -> AccountGuard:
    return AccountGuard(accounts, policy, hasher, clock)


@pytest.fixture
def issuer(settings, accounts, clock) -> TokenIssuer:
    return TokenIssuer(settings.jwt, accounts, clock)


@pytest.fixture
def broker(tokens, settings, clock) -> EphemeralTokenBroker:
    return EphemeralTokenBroker(tokens, settings.security, clock)


@pytest.fixture
def email_probe(email_provider, clock) -> AvailabilityProbe:
    return AvailabilityProbe(
        "email", email_provider.check_configuration, ttl_seconds=300, clock=clock
    )


@pytest.fixture
def make_auth_service(accounts, broker, guard, issuer, email_provider, email_probe, hasher, clock):
    def _make(settings: AppSettings) -> AuthService:
        return AuthService(
            accounts=accounts,
            broker=broker,
            guard=guard,
            issuer=issuer,
            email=email_provider,
            email_availability=email_probe,
            hasher=hasher,
            settings=settings,
            clock=clock,
        )

    return _make


@pytest.fixture
def auth_service(make_auth_service, settings) -> AuthService:
    return make_auth_service(settings)


@pytest.fixture
def make_account(accounts, hasher, clock):
    """Insert an account directly and return its id."""

    async def _make(
        email: str = "bob@example.com",
        password: str = STRONG_PASSWORD,
        **overrides,
    ) -> str:
        fields = dict(
            name="Bob",
            email=normalize_email(email),
            password_hash=hasher.hash(password),
            email_verified=True,
            privacy_consent=True,
            terms_accepted=True,
            created_at=clock.now(),
        )
        fields.update(overrides)
        return await accounts.insert(AccountDoc(**fields))

    return _make
