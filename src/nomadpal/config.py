"""Centralised settings resolved from environment variables.

Requires a relational database — set DATABASE_URL or individual POSTGRES_*
vars.  The prediction service is reached at PREDICTION_SERVICE_URL.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field

# Upper bound for the liveness probe, whatever the environment asks for.
MAX_PROBE_TIMEOUT = 3.0


def _default_database_url() -> str:
    explicit = os.environ.get("DATABASE_URL")
    if explicit:
        return explicit
    # Allow composing from individual PG vars (Docker Compose pattern)
    user = os.environ.get("POSTGRES_USER", "nomadpal")
    pw = os.environ.get("POSTGRES_PASSWORD", "nomadpal")
    host = os.environ.get("POSTGRES_HOST", "localhost")
    port = os.environ.get("POSTGRES_PORT", "5432")
    db = os.environ.get("POSTGRES_DB", "nomadpal")
    return f"postgresql+psycopg2://{user}:{pw}@{host}:{port}/{db}"


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


@dataclass(frozen=True)
class Settings:
    database_url: str = field(default_factory=_default_database_url)
    db_timeout: float = field(default_factory=lambda: _env_float("DB_TIMEOUT", 10.0))
    prediction_service_url: str = field(
        default_factory=lambda: os.environ.get(
            "PREDICTION_SERVICE_URL", "http://localhost:5000"
        )
    )
    prediction_timeout: float = field(
        default_factory=lambda: _env_float("PREDICTION_SERVICE_TIMEOUT", 5.0)
    )
    probe_timeout: float = field(
        default_factory=lambda: _env_float("PREDICTION_PROBE_TIMEOUT", 2.0)
    )
    probe_ttl: float = field(
        default_factory=lambda: _env_float("PREDICTION_PROBE_TTL", 10.0)
    )
    prediction_fetch_limit: int = field(
        default_factory=lambda: _env_int("PREDICTION_FETCH_LIMIT", 500)
    )
    default_page_size: int = 20
    log_level: str = field(default_factory=lambda: os.environ.get("LOG_LEVEL", "INFO"))

    @property
    def effective_probe_timeout(self) -> float:
        return min(self.probe_timeout, MAX_PROBE_TIMEOUT)


settings = Settings()
