"""Repository for the saved_cities table."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from sqlalchemy import bindparam, text
from sqlalchemy.engine import Engine

from nomadpal.db import get_session
from nomadpal.repositories.cities import LISTING_COLUMNS


def saved_city_ids(
    user_id: str,
    city_ids: Iterable[int],
    engine: Engine | None = None,
) -> set[int]:
    """Return which of ``city_ids`` the user has saved, in one query."""
    ids = sorted(set(city_ids))
    if not ids:
        return set()
    stmt = text("""
        SELECT city_id FROM saved_cities
        WHERE user_id = :user_id AND city_id IN :city_ids
    """).bindparams(bindparam("city_ids", expanding=True))
    with get_session(engine) as session:
        rows = session.execute(stmt, {"user_id": user_id, "city_ids": ids}).all()
    return {int(r[0]) for r in rows}


def is_saved(user_id: str, city_id: int, engine: Engine | None = None) -> bool:
    return city_id in saved_city_ids(user_id, [city_id], engine)


def save(user_id: str, city_id: int, engine: Engine | None = None) -> None:
    with get_session(engine) as session:
        session.execute(
            text("INSERT INTO saved_cities (user_id, city_id) VALUES (:u, :c)"),
            {"u": user_id, "c": city_id},
        )


def unsave(user_id: str, city_id: int, engine: Engine | None = None) -> bool:
    """Remove a saved city; returns False when nothing was saved."""
    with get_session(engine) as session:
        removed = session.execute(
            text("DELETE FROM saved_cities WHERE user_id = :u AND city_id = :c"),
            {"u": user_id, "c": city_id},
        ).rowcount
    return removed > 0


def list_saved(
    user_id: str,
    limit: int,
    offset: int,
    engine: Engine | None = None,
) -> tuple[list[dict[str, Any]], int]:
    """One page of the user's saved cities, ordered by name."""
    columns = ", ".join(f"c.{col.strip()}" for col in LISTING_COLUMNS.split(","))
    with get_session(engine) as session:
        total = session.execute(
            text("SELECT COUNT(*) FROM saved_cities WHERE user_id = :u"),
            {"u": user_id},
        ).scalar()
        rows = session.execute(
            text(f"""
                SELECT {columns}
                FROM saved_cities sc
                JOIN cities c ON sc.city_id = c.id
                WHERE sc.user_id = :u
                ORDER BY c.name, c.id
                LIMIT :limit OFFSET :offset
            """),
            {"u": user_id, "limit": limit, "offset": offset},
        ).mappings().all()
    return [dict(r) for r in rows], int(total or 0)
