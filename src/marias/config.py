"""Environment configuration loaded from .env, env vars, or programmatic input."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

DEFAULT_PORT = 5000
DEFAULT_TOKEN_TTL_DAYS = 30

_DEFAULT_DB_DIR = Path.home() / ".marias"
_DEFAULT_DB_NAME = "marias.db"


def default_database_url() -> str:
    """Build default SQLite URL."""
    return f"sqlite+aiosqlite:///{_DEFAULT_DB_DIR / _DEFAULT_DB_NAME}"


def is_memory_url(url: str) -> bool:
    """True for an in-memory SQLite URL (nothing survives a restart)."""
    return url == "sqlite+aiosqlite://" or ":memory:" in url


def _parse_bool(raw: str, default: bool) -> bool:
    if not raw:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _parse_origins(raw: str) -> list[str]:
    """Split a comma-separated origin list, dropping blanks."""
    return [o.strip() for o in raw.split(",") if o.strip()]


def _parse_int(raw: str, default: int) -> int:
    try:
        return int(raw)
    except (TypeError, ValueError):
        return default


@dataclass
class Config:
    """Server configuration. Can be built from env, CLI args, or programmatic input."""

    database_url: str = field(default_factory=default_database_url)
    host: str = "0.0.0.0"
    port: int = DEFAULT_PORT
    token_ttl_days: int = DEFAULT_TOKEN_TTL_DAYS
    cors_origins: list[str] = field(
        default_factory=lambda: ["http://localhost:5173"]
    )
    seed_defaults: bool = True

    @classmethod
    def from_env(cls) -> Config:
        """Load config from environment variables and .env file."""
        load_dotenv()
        origins = _parse_origins(os.getenv("CORS_ORIGINS", ""))
        return cls(
            database_url=os.getenv("DATABASE_URL", "") or default_database_url(),
            host=os.getenv("HOST", "") or "0.0.0.0",
            port=_parse_int(os.getenv("PORT", ""), DEFAULT_PORT),
            token_ttl_days=_parse_int(
                os.getenv("TOKEN_TTL_DAYS", ""), DEFAULT_TOKEN_TTL_DAYS
            ),
            cors_origins=origins or ["http://localhost:5173"],
            seed_defaults=_parse_bool(os.getenv("SEED_DEFAULTS", ""), True),
        )

    @classmethod
    def from_args(
        cls,
        host: str | None = None,
        port: int | None = None,
        database_url: str | None = None,
    ) -> Config:
        """Build config from explicit arguments, falling back to env."""
        env = cls.from_env()
        return cls(
            database_url=database_url or env.database_url,
            host=host or env.host,
            port=port if port is not None else env.port,
            token_ttl_days=env.token_ttl_days,
            cors_origins=env.cors_origins,
            seed_defaults=env.seed_defaults,
        )

    def validate(self) -> list[str]:
        """Return list of validation errors, empty if config is valid."""
        errors = []
        if not self.database_url:
            errors.append(
                "DATABASE_URL is empty. "
                "Pass --database-url or set DATABASE_URL in env/.env."
            )
        if not 0 < self.port < 65536:
            errors.append(f"PORT must be between 1 and 65535, got {self.port}.")
        if self.token_ttl_days <= 0:
            errors.append(
                f"TOKEN_TTL_DAYS must be positive, got {self.token_ttl_days}."
            )
        return errors

    @property
    def is_memory_db(self) -> bool:
        return is_memory_url(self.database_url)
