"""Repository for the cities table — the record store behind every listing."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any

from sqlalchemy import text
from sqlalchemy.engine import Engine

from nomadpal.db import get_session
from nomadpal.errors import InputValidationError

SORT_FIELDS = (
    "name",
    "country",
    "monthly_cost_usd",
    "safety_score",
    "nightlife_rating",
    "transport_rating",
)
SORT_ORDERS = ("ASC", "DESC")

# Backslash escapes user-supplied % and _ in LIKE patterns.
_ESCAPE = "ESCAPE '\\'"
DEFAULT_SORT = ("name", "ASC")

LISTING_COLUMNS = """
    id, slug, name, country, description,
    monthly_cost_usd, avg_pay_rate_usd_hour, weather_avg_temp_c, safety_score,
    nightlife_rating, transport_rating, housing_studio_usd_month,
    housing_one_bed_usd_month, housing_coliving_usd_month, climate_avg_temp_c,
    climate_summary, internet_speed, lifestyle_tags, currency, last_updated
"""

DETAIL_COLUMNS = LISTING_COLUMNS + """,
    cost_pct_rent, cost_pct_dining, cost_pct_transport, cost_pct_groceries,
    cost_pct_coworking, cost_pct_other, travel_flight_from_usd,
    travel_local_transport_usd_week, travel_hotel_usd_week
"""


# ------------------------------------------------------------------
# Filters / sorting
# ------------------------------------------------------------------

def _parse_number(name: str, raw: Any) -> float | None:
    if raw is None or (isinstance(raw, str) and not raw.strip()):
        return None
    try:
        value = float(raw)
    except (TypeError, ValueError):
        raise InputValidationError(f"{name} must be a number", {"field": name, "value": raw})
    if not math.isfinite(value):
        raise InputValidationError(f"{name} must be a finite number", {"field": name, "value": raw})
    return value


def _like(term: str, prefix_only: bool = False) -> str:
    """Lower-cased LIKE pattern with the user's own wildcards escaped."""
    escaped = term.lower().replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"{escaped}%" if prefix_only else f"%{escaped}%"


def _clean_text(raw: str | None) -> str | None:
    if raw is None:
        return None
    cleaned = raw.strip().replace("<", "").replace(">", "")
    return cleaned or None


@dataclass(frozen=True)
class CityFilter:
    country: str | None = None
    climate: str | None = None
    min_cost: float | None = None
    max_cost: float | None = None
    min_safety: float | None = None
    max_safety: float | None = None
    min_nightlife: float | None = None
    min_transport: float | None = None

    @classmethod
    def from_params(
        cls,
        country: str | None = None,
        climate: str | None = None,
        min_cost: Any = None,
        max_cost: Any = None,
        min_safety: Any = None,
        max_safety: Any = None,
        min_nightlife: Any = None,
        min_transport: Any = None,
    ) -> CityFilter:
        """Build a filter from raw query values, rejecting malformed numbers."""
        flt = cls(
            country=_clean_text(country),
            climate=_clean_text(climate),
            min_cost=_parse_number("min_cost", min_cost),
            max_cost=_parse_number("max_cost", max_cost),
            min_safety=_parse_number("min_safety", min_safety),
            max_safety=_parse_number("max_safety", max_safety),
            min_nightlife=_parse_number("min_nightlife", min_nightlife),
            min_transport=_parse_number("min_transport", min_transport),
        )
        if flt.min_cost is not None and flt.max_cost is not None and flt.min_cost > flt.max_cost:
            raise InputValidationError(
                "min_cost cannot be greater than max_cost",
                {"min_cost": flt.min_cost, "max_cost": flt.max_cost},
            )
        return flt

    def where_clause(self) -> tuple[str, dict[str, Any]]:
        clauses = ["1=1"]
        params: dict[str, Any] = {}
        if self.country:
            clauses.append(f"LOWER(country) LIKE :country {_ESCAPE}")
            params["country"] = _like(self.country)
        if self.climate:
            clauses.append(f"LOWER(climate_summary) LIKE :climate {_ESCAPE}")
            params["climate"] = _like(self.climate)
        bounds = (
            ("monthly_cost_usd >= :min_cost", "min_cost", self.min_cost),
            ("monthly_cost_usd <= :max_cost", "max_cost", self.max_cost),
            ("safety_score >= :min_safety", "min_safety", self.min_safety),
            ("safety_score <= :max_safety", "max_safety", self.max_safety),
            ("nightlife_rating >= :min_nightlife", "min_nightlife", self.min_nightlife),
            ("transport_rating >= :min_transport", "min_transport", self.min_transport),
        )
        for clause, key, value in bounds:
            if value is not None:
                clauses.append(clause)
                params[key] = value
        return " AND ".join(clauses), params


def resolve_sort(sort_by: str | None, sort_order: str | None) -> tuple[str, str]:
    """Map requested sort onto the allow-list; unknown fields sort by name ASC."""
    if sort_by not in SORT_FIELDS:
        return DEFAULT_SORT
    order = (sort_order or "ASC").strip().upper()
    return sort_by, order if order in SORT_ORDERS else "ASC"


def _rows(result) -> list[dict[str, Any]]:
    return [dict(row) for row in result.mappings().all()]


# ------------------------------------------------------------------
# Queries
# ------------------------------------------------------------------

def find(
    filters: CityFilter,
    sort: tuple[str, str],
    limit: int,
    offset: int,
    engine: Engine | None = None,
) -> tuple[list[dict[str, Any]], int]:
    """Return one page of filtered cities and the total match count."""
    field, order = resolve_sort(*sort)
    where, params = filters.where_clause()
    with get_session(engine) as session:
        total = session.execute(
            text(f"SELECT COUNT(*) FROM cities WHERE {where}"), params
        ).scalar()
        rows = _rows(session.execute(
            text(f"""
                SELECT {LISTING_COLUMNS}
                FROM cities
                WHERE {where}
                ORDER BY {field} {order}, id ASC
                LIMIT :limit OFFSET :offset
            """),
            {**params, "limit": limit, "offset": offset},
        ))
    return rows, int(total or 0)


def search(
    term: str,
    limit: int,
    offset: int,
    engine: Engine | None = None,
) -> tuple[list[dict[str, Any]], int]:
    """Name/country/description search; name-prefix matches rank first."""
    params = {"contains": _like(term), "prefix": _like(term, prefix_only=True)}
    where = (
        f"LOWER(name) LIKE :contains {_ESCAPE} OR LOWER(country) LIKE :contains {_ESCAPE} "
        f"OR LOWER(description) LIKE :contains {_ESCAPE}"
    )
    with get_session(engine) as session:
        total = session.execute(
            text(f"SELECT COUNT(*) FROM cities WHERE {where}"), params
        ).scalar()
        rows = _rows(session.execute(
            text(f"""
                SELECT {LISTING_COLUMNS}
                FROM cities
                WHERE {where}
                ORDER BY
                    CASE
                        WHEN LOWER(name) LIKE :prefix {_ESCAPE} THEN 1
                        WHEN LOWER(country) LIKE :prefix {_ESCAPE} THEN 2
                        ELSE 3
                    END,
                    name, id
                LIMIT :limit OFFSET :offset
            """),
            {**params, "limit": limit, "offset": offset},
        ))
    return rows, int(total or 0)


def popular(limit: int, offset: int = 0, engine: Engine | None = None) -> tuple[list[dict[str, Any]], int]:
    """Safe, affordable cities ranked by a weighted safety/cost score."""
    where = "safety_score >= 70 AND monthly_cost_usd <= 3000"
    with get_session(engine) as session:
        total = session.execute(
            text(f"SELECT COUNT(*) FROM cities WHERE {where}")
        ).scalar()
        rows = _rows(session.execute(
            text(f"""
                SELECT {LISTING_COLUMNS}
                FROM cities
                WHERE {where}
                ORDER BY (safety_score * 0.6) + ((3000 - monthly_cost_usd) / 30) DESC, id
                LIMIT :limit OFFSET :offset
            """),
            {"limit": limit, "offset": offset},
        ))
    return rows, int(total or 0)


def get_by_id(city_id: int, engine: Engine | None = None) -> dict[str, Any] | None:
    with get_session(engine) as session:
        row = session.execute(
            text(f"SELECT {DETAIL_COLUMNS} FROM cities WHERE id = :id"),
            {"id": city_id},
        ).mappings().first()
    return dict(row) if row else None


def get_by_slug(slug: str, engine: Engine | None = None) -> dict[str, Any] | None:
    with get_session(engine) as session:
        row = session.execute(
            text(f"SELECT {DETAIL_COLUMNS} FROM cities WHERE slug = :slug"),
            {"slug": slug},
        ).mappings().first()
    return dict(row) if row else None


def exists(city_id: int, engine: Engine | None = None) -> bool:
    with get_session(engine) as session:
        return session.execute(
            text("SELECT 1 FROM cities WHERE id = :id"), {"id": city_id}
        ).first() is not None
