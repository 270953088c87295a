"""
FastAPI application factory.
create_app() is the single entry point for building the app.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import timedelta
from typing import AsyncIterator, Optional

import sentry_sdk
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from pymongo.asynchronous.mongo_client import AsyncMongoClient

from config import AppSettings
from errors import register_error_handlers
from infrastructure.availability import AvailabilityProbe
from infrastructure.email.zeptomail import ZeptoMailProvider
from infrastructure.http_client import HttpClient
from infrastructure.redis_client import create_redis_client
from repositories.account_repository import COLLECTION_NAME as ACCOUNTS
from repositories.account_repository import AccountRepository
from repositories.ephemeral_token_repository import COLLECTION_NAME as EPHEMERAL_TOKENS
from repositories.ephemeral_token_repository import EphemeralTokenRepository
from routes.auth_routes import router as auth_router
from routes.health_routes import router as health_router
from services.account_security import AccountGuard, AccountSecurityPolicy
from services.auth_service import AuthService
from services.ephemeral_tokens import EphemeralTokenBroker
from services.rate_limiter import RateLimiter
from services.token_issuer import TokenIssuer
from shared.clock import Clock, SystemClock
from shared.crypto import CredentialHasher
from shared.logging import get_logger, setup_logging

log = get_logger(__name__)


def create_app(settings: Optional[AppSettings] = None, clock: Optional[Clock] = None) -> FastAPI:
    """Create and return a fully configured FastAPI application."""
    if settings is None:
        settings = AppSettings()
    if clock is None:
        clock = SystemClock()

    setup_logging(settings.logging, is_production=settings.is_production)

    # Initialise Sentry before anything else so it captures startup errors
    if settings.sentry.sentry_dsn:
        sentry_sdk.init(
            dsn=settings.sentry.sentry_dsn,
            send_default_pii=settings.sentry.sentry_send_pii,
            traces_sample_rate=settings.sentry.sentry_traces_sample_rate,
        )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        # ── Startup ──────────────────────────────────────────────────────────
        mongo_client: AsyncMongoClient = AsyncMongoClient(
            settings.db.mongodb_uri, tz_aware=True
        )
        db = mongo_client[settings.db.db_name]
        app.state.mongo_client = mongo_client
        app.state.db = db
        app.state.settings = settings

        # Redis is optional; only the health check talks to it directly
        redis_client = None
        if settings.redis.redis_uri:
            redis_client = await create_redis_client(settings.redis.redis_uri)
        app.state.redis = redis_client

        accounts = AccountRepository(db[ACCOUNTS])
        tokens = EphemeralTokenRepository(db[EPHEMERAL_TOKENS])
        await accounts.ensure_indexes()
        await tokens.ensure_indexes()

        security = settings.security
        hasher = CredentialHasher(cost=security.password_hash_cost)
        policy = AccountSecurityPolicy(security, clock)

        email_http = HttpClient("zeptomail", timeout=10.0)
        email_provider = ZeptoMailProvider(
            settings.email,
            email_http,
            settings.frontend_url,
            verification_ttl=timedelta(seconds=security.email_verification_ttl_seconds),
            reset_ttl=timedelta(seconds=security.password_reset_ttl_seconds),
        )
        email_availability = AvailabilityProbe(
            "email",
            email_provider.check_configuration,
            ttl_seconds=settings.email.availability_ttl_seconds,
            clock=clock,
        )
        app.state.email_availability = email_availability

        app.state.rate_limiter = RateLimiter(
            settings.rate_limit, is_production=settings.is_production
        )
        app.state.auth_service = AuthService(
            accounts=accounts,
            broker=EphemeralTokenBroker(tokens, security, clock),
            guard=AccountGuard(accounts, policy, hasher, clock),
            issuer=TokenIssuer(settings.jwt, accounts, clock),
            email=email_provider,
            email_availability=email_availability,
            hasher=hasher,
            settings=settings,
            clock=clock,
        )
        log.info("app_started", env=settings.env, db_name=settings.db.db_name)

        yield

        # ── Shutdown ─────────────────────────────────────────────────────────
        await email_http.aclose()
        await mongo_client.close()
        if redis_client is not None:
            await redis_client.aclose()

    app = FastAPI(
        title=settings.app_name,
        version="1.0.0",
        docs_url=settings.docs_url,
        redoc_url=None,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_error_handlers(app)
    app.include_router(health_router)
    app.include_router(auth_router)

    return app
