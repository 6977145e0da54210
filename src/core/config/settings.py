# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Environment-driven configuration for CircusProgress.

Each concern has its own BaseSettings class with an environment prefix
(DB_, REDIS_, JWT_, RATE_LIMIT_, CORS_, SUGGESTION_). Settings nests them
and get_settings() returns one cached instance for the process.

Example:
    >>> from src.core.config.settings import get_settings
    >>> get_settings().suggestion.refresh_cron
    '0 3 * * *'
"""

from functools import lru_cache
from typing import Literal, Self

from pydantic import Field, SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_JWT_SECRET = "change-this-in-production"


def _prefixed(prefix: str) -> SettingsConfigDict:
    return SettingsConfigDict(env_prefix=prefix, extra="ignore")


class DatabaseSettings(BaseSettings):
    """PostgreSQL holding the catalogue, the graph, completions and the cache."""

    model_config = _prefixed("DB_")

    user: str = "circusprogress"
    password: SecretStr = SecretStr("circusprogress_password")
    host: str = "circusprogress-db"
    port: int = 5432
    database: str = "circusprogress"
    pool_size: int = Field(default=10, ge=1)
    max_overflow: int = Field(default=20, ge=0)

    def _dsn(self, scheme: str) -> str:
        pwd = self.password.get_secret_value()
        return f"{scheme}://{self.user}:{pwd}@{self.host}:{self.port}/{self.database}"

    @property
    def url(self) -> str:
        """asyncpg URL used by the application engine."""
        return self._dsn("postgresql+asyncpg")

    @property
    def sync_url(self) -> str:
        """Driver-less URL, for tools that connect synchronously."""
        return self._dsn("postgresql")


class RedisSettings(BaseSettings):
    """Redis backing the Dramatiq broker and the rate limiter storage."""

    model_config = _prefixed("REDIS_")

    host: str = "circusprogress-redis"
    port: int = 6379
    password: SecretStr = SecretStr("circusprogress_redis_password")
    database: int = 0

    @property
    def url(self) -> str:
        pwd = self.password.get_secret_value()
        return f"redis://:{pwd}@{self.host}:{self.port}/{self.database}"


class JWTSettings(BaseSettings):
    """Validation of access tokens issued by the authentication service.

    Attributes:
        secret_key: Shared signing secret.
        algorithm: Signing algorithm.
        issuer: Required ``iss`` claim. Unset disables the issuer check.
        leeway_seconds: Clock skew tolerated on ``exp``.
        access_token_expire_minutes: Lifetime of tokens minted locally.
    """

    model_config = _prefixed("JWT_")

    secret_key: SecretStr = SecretStr(DEFAULT_JWT_SECRET)
    algorithm: str = "HS256"
    issuer: str | None = None
    leeway_seconds: int = Field(default=0, ge=0)
    access_token_expire_minutes: int = 30


class RateLimitSettings(BaseSettings):
    """Per-client request budget enforced by slowapi."""

    model_config = _prefixed("RATE_LIMIT_")

    enabled: bool = True
    requests_per_minute: int = Field(default=60, ge=1)


class CORSSettings(BaseSettings):
    """Origins allowed to call the API from a browser."""

    model_config = _prefixed("CORS_")

    origins: str = "http://localhost:3000,http://localhost:5173"
    allow_credentials: bool = True
    allow_methods: list[str] = ["*"]
    allow_headers: list[str] = ["*"]

    @property
    def origins_list(self) -> list[str]:
        return [origin.strip() for origin in self.origins.split(",") if origin.strip()]


class SuggestionSettings(BaseSettings):
    """Suggestion engine tuning.

    Attributes:
        cache_ttl_hours: Lifetime of a pending suggestion entry.
        refresh_cron: When the nightly refresh is enqueued (UTC).
        refresh_concurrency: Subjects refreshed in parallel within one run.
        refresh_subject_timeout_seconds: Time budget for one subject.
        group_satisfaction_ratio: Share of a group's members that must have
            satisfied a figure for the group to count as satisfying it.
        list_limit: Default page size of list reads.
        min_score: Default score floor of list reads.
    """

    model_config = _prefixed("SUGGESTION_")

    cache_ttl_hours: int = Field(default=24, ge=1)
    refresh_cron: str = "0 3 * * *"
    refresh_concurrency: int = Field(default=4, ge=1)
    refresh_subject_timeout_seconds: float = Field(default=60.0, gt=0)
    group_satisfaction_ratio: float = Field(default=0.5, gt=0, le=1)
    list_limit: int = Field(default=10, ge=1)
    min_score: float = Field(default=0.0, ge=0, le=100)


class Settings(BaseSettings):
    """Top-level settings; subsettings read their own prefixes."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    environment: Literal["development", "staging", "production"] = "development"
    debug: bool = True
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "DEBUG"

    db: DatabaseSettings = Field(default_factory=DatabaseSettings)
    redis: RedisSettings = Field(default_factory=RedisSettings)
    jwt: JWTSettings = Field(default_factory=JWTSettings)
    rate_limit: RateLimitSettings = Field(default_factory=RateLimitSettings)
    cors: CORSSettings = Field(default_factory=CORSSettings)
    suggestion: SuggestionSettings = Field(default_factory=SuggestionSettings)

    @model_validator(mode="after")
    def reject_default_secret_in_production(self) -> Self:
        """Refuse to start production with the shipped JWT secret.

        Raises:
            ValueError: If JWT_SECRET_KEY was left at its default.
        """
        if self.is_production and self.jwt.secret_key.get_secret_value() == DEFAULT_JWT_SECRET:
            raise ValueError(
                "JWT secret key must be changed from default in production. "
                "Set JWT_SECRET_KEY."
            )
        return self

    @property
    def is_development(self) -> bool:
        return self.environment == "development"

    @property
    def is_production(self) -> bool:
        return self.environment == "production"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Process-wide settings, read from the environment on first call."""
    return Settings()


def clear_settings_cache() -> None:
    """Forget the cached settings so the next get_settings() rereads them."""
    get_settings.cache_clear()
