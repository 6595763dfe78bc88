"""Configuration module for Cosmic Watch.

Loads environment-backed configuration with defaults suitable for local runs.
Uses python-dotenv so a `.env` file in the working directory is honoured while
real environment variables still take precedence.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

import os

from dotenv import load_dotenv

# Load environment variables from a `.env` file if present.
load_dotenv(dotenv_path=Path.cwd() / ".env", override=False)


def _env(name: str, default: str) -> str:
    return os.getenv(name, default)


def _env_flag(name: str, default: str) -> bool:
    return bool(int(os.getenv(name, default)))


@dataclass(frozen=True)
class Settings:
    """Container for tunable runtime parameters."""

    debug: bool = field(default_factory=lambda: _env_flag("COSMICWATCH_DEBUG", "0"))
    host: str = field(default_factory=lambda: _env("COSMICWATCH_HOST", "127.0.0.1"))
    port: int = field(default_factory=lambda: int(_env("COSMICWATCH_PORT", "5000")))
    log_level: str = field(default_factory=lambda: _env("COSMICWATCH_LOG_LEVEL", "INFO").upper())

    nasa_api_key: str = field(default_factory=lambda: _env("NASA_API_KEY", "DEMO_KEY"))
    nasa_base_url: str = field(default_factory=lambda: _env("NASA_BASE_URL", "https://api.nasa.gov/neo/rest/v1"))
    upstream_timeout: float = field(default_factory=lambda: float(_env("COSMICWATCH_UPSTREAM_TIMEOUT", "15")))

    sentry_api_url: str = field(default_factory=lambda: _env("SENTRY_API_URL", "https://ssd-api.jpl.nasa.gov/sentry.api"))

    risk_engine_url: str = field(default_factory=lambda: _env("RISK_ENGINE_URL", "http://localhost:8000"))
    risk_engine_api_prefix: str = field(default_factory=lambda: _env("RISK_ENGINE_API_PREFIX", "/api/v1"))
    risk_engine_timeout: float = field(default_factory=lambda: float(_env("RISK_ENGINE_TIMEOUT", "30")))
    risk_engine_health_timeout: float = field(default_factory=lambda: float(_env("RISK_ENGINE_HEALTH_TIMEOUT", "5")))
    risk_engine_max_attempts: int = field(default_factory=lambda: int(_env("RISK_ENGINE_MAX_ATTEMPTS", "5")))
    risk_engine_base_delay: float = field(default_factory=lambda: float(_env("RISK_ENGINE_BASE_DELAY", "2.0")))

    database_url: str = field(default_factory=lambda: _env("DATABASE_URL", "sqlite+aiosqlite:///cosmicwatch.db"))
    db_pool_size: int = field(default_factory=lambda: int(_env("COSMICWATCH_DB_POOL_SIZE", "20")))
    db_pool_timeout: float = field(default_factory=lambda: float(_env("COSMICWATCH_DB_POOL_TIMEOUT", "5")))
    db_pool_recycle: int = field(default_factory=lambda: int(_env("COSMICWATCH_DB_POOL_RECYCLE", "30")))
    db_echo: bool = field(default_factory=lambda: _env_flag("COSMICWATCH_DB_ECHO", "0"))

    cache_ttl_minutes: float = field(default_factory=lambda: float(_env("COSMICWATCH_CACHE_TTL_MINUTES", "60")))
    close_approach_ld: float = field(default_factory=lambda: float(_env("COSMICWATCH_CLOSE_APPROACH_LD", "5")))
    shutdown_drain_timeout: float = field(default_factory=lambda: float(_env("COSMICWATCH_DRAIN_TIMEOUT", "10")))


def get_settings() -> Settings:
    """Factory returning immutable settings instance."""

    return Settings()
