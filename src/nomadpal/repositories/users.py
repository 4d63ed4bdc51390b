"""Repository for user profile and preference columns on the users table."""

from __future__ import annotations

import json
import logging
from typing import Any

from sqlalchemy import text
from sqlalchemy.engine import Engine

from nomadpal.db import get_session
from nomadpal.errors import ConflictError

logger = logging.getLogger(__name__)

PREFERENCE_FIELDS = (
    "timezone",
    "monthly_budget_min_usd",
    "monthly_budget_max_usd",
    "preferred_climate",
    "lifestyle_priorities",
)


def _decode_priorities(raw: Any) -> list:
    if raw is None or isinstance(raw, list):
        return raw or []
    try:
        decoded = json.loads(raw)
    except (TypeError, ValueError):
        logger.debug("Discarding malformed lifestyle_priorities: %r", raw)
        return []
    return decoded if isinstance(decoded, list) else []


def get_preferences(user_id: str, engine: Engine | None = None) -> dict[str, Any] | None:
    """Return the user's preference fields, or None for an unknown user."""
    with get_session(engine) as session:
        row = session.execute(
            text(f"SELECT {', '.join(PREFERENCE_FIELDS)} FROM users WHERE id = :id"),
            {"id": user_id},
        ).mappings().first()
    if row is None:
        return None
    prefs = dict(row)
    prefs["lifestyle_priorities"] = _decode_priorities(prefs.get("lifestyle_priorities"))
    return prefs


def update_preferences(
    user_id: str,
    values: dict[str, Any],
    engine: Engine | None = None,
) -> bool:
    """Update the given preference fields; returns False for an unknown user."""
    updates = {k: v for k, v in values.items() if k in PREFERENCE_FIELDS}
    if not updates:
        return True
    if "lifestyle_priorities" in updates:
        updates["lifestyle_priorities"] = json.dumps(updates["lifestyle_priorities"] or [])
    assignments = ", ".join(f"{field} = :{field}" for field in updates)
    with get_session(engine) as session:
        matched = session.execute(
            text(f"UPDATE users SET {assignments} WHERE id = :id"),
            {**updates, "id": user_id},
        ).rowcount
    return matched > 0


PROFILE_FIELDS = ("id", "email", "display_name", "created_at") + PREFERENCE_FIELDS
EDITABLE_PROFILE_FIELDS = ("email", "display_name", "timezone")


def get_profile(user_id: str, engine: Engine | None = None) -> dict[str, Any] | None:
    """Account fields plus preferences, or None for an unknown user."""
    with get_session(engine) as session:
        row = session.execute(
            text(f"SELECT {', '.join(PROFILE_FIELDS)} FROM users WHERE id = :id"),
            {"id": user_id},
        ).mappings().first()
    if row is None:
        return None
    profile = dict(row)
    profile["lifestyle_priorities"] = _decode_priorities(profile.get("lifestyle_priorities"))
    return profile


def update_profile(
    user_id: str,
    values: dict[str, Any],
    engine: Engine | None = None,
) -> bool:
    """Update email / display name / timezone; returns False for an unknown user.

    Raises ``ConflictError`` when the new email belongs to another account.
    """
    updates = {k: v for k, v in values.items() if k in EDITABLE_PROFILE_FIELDS}
    if not updates:
        return True
    assignments = ", ".join(f"{field} = :{field}" for field in updates)
    with get_session(engine) as session:
        if "email" in updates:
            taken = session.execute(
                text("SELECT 1 FROM users WHERE email = :email AND id != :id"),
                {"email": updates["email"], "id": user_id},
            ).first()
            if taken is not None:
                raise ConflictError("Email is already in use")
        matched = session.execute(
            text(f"UPDATE users SET {assignments} WHERE id = :id"),
            {**updates, "id": user_id},
        ).rowcount
    return matched > 0
