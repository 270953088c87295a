"""
Application configuration via pydantic-settings.

All settings are loaded from environment variables (and .env file).

The password hashing work factor is declared as PASSWORD_HASH_COST; BCRYPT_COST
is also accepted so deployments carrying the older variable keep their tuning.
"""

from __future__ import annotations

from typing import Optional

from pydantic import AliasChoices, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    mongodb_uri: str
    db_name: str = "licea"


class RedisSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Optional; without Redis the rate limiter keeps its counters in-process
    redis_uri: Optional[str] = None


class JWTSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    jwt_issuer: str = "licea"
    jwt_audience: str = "licea.api"
    access_token_ttl_seconds: int = 900
    refresh_token_ttl_seconds: int = 604800

    # RS256 keys (used for both token kinds when present)
    jwt_private_key: str = ""
    jwt_public_key: str = ""

    # HS256 secrets; refresh falls back to the access secret when unset
    jwt_secret: str = ""
    jwt_refresh_secret: str = ""

    @property
    def use_rs256(self) -> bool:
        return bool(self.jwt_private_key and self.jwt_public_key)


class SecuritySettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # argon2 time cost; raise over time as hardware gets faster
    password_hash_cost: int = Field(
        default=3,
        ge=1,
        validation_alias=AliasChoices("password_hash_cost", "bcrypt_cost"),
    )
    max_login_attempts: int = Field(default=5, ge=1)
    lockout_duration_minutes: int = Field(default=15, ge=1)
    email_verification_ttl_seconds: int = 86400
    password_reset_ttl_seconds: int = 3600


class RateLimitSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    auth_max_requests: int = 5
    auth_window_minutes: int = 15
    reset_max_requests: int = 3
    reset_window_minutes: int = 60

    # Applied to every max outside production
    non_production_multiplier: int = 10

    # limits storage URI: "async+memory://" or "async+redis://host:6379"
    storage_uri: str = Field(
        default="async+memory://",
        validation_alias=AliasChoices("rate_limit_storage_uri", "storage_uri"),
    )

    # Honour CF-Connecting-IP / X-Forwarded-For etc. when resolving the client.
    # Clients can set these headers themselves; enable only behind a proxy
    # that overwrites them.
    trust_proxy_headers: bool = False


class EmailSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    zepto_api_token: str = ""
    zepto_from_email: str = "noreply@licea.edu"
    zepto_from_name: str = "LICEA Educational Platform"

    # How long a transport availability probe result is trusted
    availability_ttl_seconds: int = 300


class LoggingSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    log_level: str = "INFO"
    log_format: str = "console"  # "json" in production


class SentrySettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    sentry_dsn: str = ""
    sentry_send_pii: bool = False
    sentry_traces_sample_rate: float = 0.1


class AppSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Core
    env: str = "development"
    app_name: str = "LICEA Auth"
    frontend_url: str = "http://localhost:3000"

    cors_origins: list[str] = ["*"]

    # OpenAPI docs URL (None disables the docs UI)
    docs_url: Optional[str] = "/docs"

    # Sub-configs (composed via model_validator below)
    db: Optional[DatabaseSettings] = None
    redis: Optional[RedisSettings] = None
    jwt: Optional[JWTSettings] = None
    security: Optional[SecuritySettings] = None
    rate_limit: Optional[RateLimitSettings] = None
    email: Optional[EmailSettings] = None
    logging: Optional[LoggingSettings] = None
    sentry: Optional[SentrySettings] = None

    @model_validator(mode="after")
    def _populate_sub_configs(self) -> "AppSettings":
        # Populate sub-configs from the same env/dotenv source
        if self.db is None:
            self.db = DatabaseSettings()
        if self.redis is None:
            self.redis = RedisSettings()
        if self.jwt is None:
            self.jwt = JWTSettings()
        if self.security is None:
            self.security = SecuritySettings()
        if self.rate_limit is None:
            self.rate_limit = RateLimitSettings()
        if self.email is None:
            self.email = EmailSettings()
        if self.logging is None:
            self.logging = LoggingSettings()
        if self.sentry is None:
            self.sentry = SentrySettings()

        return self

    @property
    def is_production(self) -> bool:
        return self.env == "production"
