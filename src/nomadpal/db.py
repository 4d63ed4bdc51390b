"""Database layer — SQLAlchemy engine, sessions, and Alembic migrations.

Supports PostgreSQL (Docker / production) and SQLite (local dev / tests).
Backend is selected via the DATABASE_URL env var.

For tests, call ``init_db_tables(engine)`` which runs ``metadata.create_all``
directly (no Alembic needed, works with in-memory SQLite).

For production, call ``migrate_db()`` which runs Alembic migrations.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from pathlib import Path

from sqlalchemy import (
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    create_engine,
    func,
    text,
)
from sqlalchemy.engine import Engine
from sqlalchemy.engine.url import make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from nomadpal.config import settings
from nomadpal.errors import StorageError

logger = logging.getLogger(__name__)

metadata = MetaData()

# ------------------------------------------------------------------
# Schema declaration (used by both create_all and as documentation;
# Alembic migration is the source of truth for production).
# ------------------------------------------------------------------

cities = Table(
    "cities", metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("slug", String(191), nullable=False, unique=True),
    Column("name", String(191), nullable=False),
    Column("country", String(191), nullable=False, index=True),
    Column("description", Text),
    Column("monthly_cost_usd", Float),
    Column("avg_pay_rate_usd_hour", Float),
    Column("weather_avg_temp_c", Float),
    Column("safety_score", Float),
    Column("nightlife_rating", Float),
    Column("transport_rating", Float),
    Column("housing_studio_usd_month", Float),
    Column("housing_one_bed_usd_month", Float),
    Column("housing_coliving_usd_month", Float),
    Column("climate_avg_temp_c", Float),
    Column("climate_summary", Text),
    Column("internet_speed", Float),
    Column("cost_pct_rent", Float),
    Column("cost_pct_dining", Float),
    Column("cost_pct_transport", Float),
    Column("cost_pct_groceries", Float),
    Column("cost_pct_coworking", Float),
    Column("cost_pct_other", Float),
    Column("travel_flight_from_usd", Float),
    Column("travel_local_transport_usd_week", Float),
    Column("travel_hotel_usd_week", Float),
    Column("lifestyle_tags", Text),
    Column("currency", String(3), server_default="USD"),
    Column("last_updated", DateTime(timezone=True), server_default=func.current_timestamp()),
)

users = Table(
    "users", metadata,
    Column("id", String(24), primary_key=True),
    Column("email", String(191), nullable=False, unique=True),
    Column("display_name", String(128)),
    Column("timezone", String(64)),
    Column("monthly_budget_min_usd", Float),
    Column("monthly_budget_max_usd", Float),
    Column("preferred_climate", String(64)),
    Column("lifestyle_priorities", Text),
    Column("created_at", DateTime(timezone=True), server_default=func.current_timestamp()),
)

saved_cities = Table(
    "saved_cities", metadata,
    Column("user_id", String(24), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
    Column("city_id", Integer, ForeignKey("cities.id", ondelete="CASCADE"), primary_key=True),
    Column("created_at", DateTime(timezone=True), server_default=func.current_timestamp()),
)

# ------------------------------------------------------------------
# Engine / session helpers
# ------------------------------------------------------------------

_engine: Engine | None = None


def _connect_args(url: str, timeout: float) -> dict:
    """Driver-level timeouts: connection setup and, on PostgreSQL, each statement."""
    drivername = make_url(url).drivername
    if drivername.startswith("sqlite"):
        return {"timeout": timeout}
    if drivername.startswith("postgresql"):
        return {
            "connect_timeout": max(1, int(timeout)),
            "options": f"-c statement_timeout={int(timeout * 1000)}",
        }
    return {}


def build_engine(url: str, timeout: float) -> Engine:
    """Engine whose connects, pool checkouts and statements give up after ``timeout``."""
    connect_args = _connect_args(url, timeout)
    if make_url(url).drivername.startswith("sqlite"):
        return create_engine(url, echo=False, connect_args=connect_args)
    return create_engine(
        url, echo=False, pool_pre_ping=True, pool_timeout=timeout,
        connect_args=connect_args,
    )


def get_engine(url: str | None = None) -> Engine:
    """Return the process-wide engine built from the module-level settings.

    ``create_app`` builds its own engine from the settings it is given; this
    one backs the CLI and repository calls made without an engine.
    """
    global _engine
    if url:
        return build_engine(url, settings.db_timeout)
    if _engine is None:
        _engine = build_engine(settings.database_url, settings.db_timeout)
    return _engine


def get_session_factory(engine: Engine | None = None) -> sessionmaker:
    engine = engine or get_engine()
    return sessionmaker(bind=engine, autoflush=False, autocommit=False)


@contextmanager
def get_session(engine: Engine | None = None):
    """Yield a SQLAlchemy session with auto-commit / rollback.

    Driver and SQL failures surface as ``StorageError``; there is no other
    source for primary records, so callers let it fail the request.
    """
    factory = get_session_factory(engine)
    session = factory()
    try:
        yield session
        session.commit()
    except SQLAlchemyError as exc:
        session.rollback()
        logger.error("Record store failure: %s", exc)
        raise StorageError() from exc
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


# ------------------------------------------------------------------
# Schema management
# ------------------------------------------------------------------

def init_db_tables(engine: Engine) -> None:
    """Create all tables directly (for tests / SQLite local dev)."""
    metadata.create_all(engine)


def migrate_db(database_url: str | None = None) -> None:
    """Run Alembic migrations for PostgreSQL, or create_all for SQLite."""
    url = database_url or settings.database_url
    engine = create_engine(url, echo=False)

    # For SQLite, ensure parent directory exists, then create tables directly
    if make_url(url).drivername.startswith("sqlite"):
        db_path = make_url(url).database
        if db_path:
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        metadata.create_all(engine)
        engine.dispose()
        return

    _ensure_pg_database(url)

    # Look for alembic.ini: first relative to source tree, then in cwd
    # (cwd is needed when installed as a wheel, e.g. inside Docker)
    ini_path = Path(__file__).resolve().parents[2] / "alembic.ini"
    if not ini_path.exists():
        ini_path = Path.cwd() / "alembic.ini"
    if not ini_path.exists():
        logger.warning("alembic.ini not found, falling back to create_all")
        metadata.create_all(engine)
        engine.dispose()
        return

    from alembic import command
    from alembic.config import Config

    config = Config(str(ini_path))
    config.set_main_option("sqlalchemy.url", url)

    # Tables left behind by a create_all fallback have no alembic_version
    # yet; stamp head instead of re-creating them.
    with engine.connect() as conn:
        has_version_table = engine.dialect.has_table(conn, "alembic_version")
        has_data_tables = engine.dialect.has_table(conn, "cities")
    if has_data_tables and not has_version_table:
        logger.info("Tables exist without alembic_version — stamping head")
        command.stamp(config, "head")
    else:
        command.upgrade(config, "head")
    engine.dispose()


def _ensure_pg_database(database_url: str) -> None:
    """Create the target PostgreSQL database if it doesn't exist."""
    url = make_url(database_url)
    target_db = url.database
    if not target_db:
        return
    admin_url = url.set(database="postgres")
    admin_engine = create_engine(admin_url, isolation_level="AUTOCOMMIT")
    try:
        with admin_engine.connect() as conn:
            exists = conn.execute(
                text("SELECT 1 FROM pg_database WHERE datname = :name"),
                {"name": target_db},
            ).scalar()
            if not exists:
                conn.execute(text(f'CREATE DATABASE "{target_db}"'))
    finally:
        admin_engine.dispose()
