# backend/tutor_earnings/core/config.py
from __future__ import annotations

from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# libpq-only query params; asyncpg.connect() rejects them as kwargs
_LIBPQ_ONLY_PARAMS = frozenset({"sslmode", "channel_binding"})

_PLACEHOLDER_SECRET = "dev-secret-change-me"
_STRICT_ENVIRONMENTS = frozenset({"staging", "production"})


def _strip_asyncpg_unsupported_params(url: str) -> str:
    """Drop libpq-only query params from an async database URL."""
    parts = urlsplit(url)
    if not parts.query:
        return url
    kept = [(k, v) for k, v in parse_qsl(parts.query, keep_blank_values=True) if k not in _LIBPQ_ONLY_PARAMS]
    return urlunsplit(parts._replace(query=urlencode(kept, doseq=True)))


class Settings(BaseSettings):
    """
    Process configuration, read from the environment (and `.env`).

    The earnings API and the payout scheduler share one Settings object;
    only DATABASE_URL_ASYNC / DATABASE_URL_SYNC have no default.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # development | staging | production
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    # --- database -------------------------------------------------------
    DATABASE_URL_ASYNC: str
    DATABASE_URL_SYNC: str  # alembic

    # --- bearer tokens --------------------------------------------------
    # Tokens are minted by the identity service; we only verify them.
    JWT_SECRET: str = _PLACEHOLDER_SECRET
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60

    # --- scheduled jobs -------------------------------------------------
    # Off by default so API workers and tests don't all fire the monthly payout.
    SCHEDULER_ENABLED: bool = False
    SCHEDULER_TIMEZONE: str = "UTC"

    CORS_ORIGINS: list[str] = [
        "http://localhost:5173",
        "http://127.0.0.1:5173",
    ]

    @field_validator("LOG_LEVEL")
    @classmethod
    def _upper_log_level(cls, v: str) -> str:
        return (v or "INFO").strip().upper()

    @field_validator("SCHEDULER_TIMEZONE")
    @classmethod
    def _known_timezone(cls, v: str) -> str:
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"Unknown SCHEDULER_TIMEZONE={v!r}") from e
        return v

    @property
    def DATABASE_URL_ASYNC_CLEAN(self) -> str:
        return _strip_asyncpg_unsupported_params(self.DATABASE_URL_ASYNC)

    @property
    def is_strict_environment(self) -> bool:
        return (self.ENVIRONMENT or "").strip().lower() in _STRICT_ENVIRONMENTS

    def model_post_init(self, __context) -> None:
        if self.JWT_ALGORITHM != "HS256":
            raise ValueError(f"Unsupported JWT_ALGORITHM={self.JWT_ALGORITHM!r}. Allowed: HS256")

        if not self.is_strict_environment:
            return
        secret = (self.JWT_SECRET or "").strip()
        if not secret or secret == _PLACEHOLDER_SECRET:
            raise ValueError("JWT_SECRET must be set outside development.")
        if len(secret) < 32:
            raise ValueError("JWT_SECRET is too short; use at least 32 characters outside development.")


settings = Settings()
