"""User endpoints — profile, preferences and the saved-cities list."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.engine import Engine

from nomadpal.config import Settings
from nomadpal.deps import get_engine, get_settings, require_user_id
from nomadpal.errors import ConflictError, InputValidationError, NotFoundError
from nomadpal.repositories import cities as cities_repo
from nomadpal.repositories import saved as saved_repo
from nomadpal.repositories import users as users_repo
from nomadpal.responses import success
from nomadpal.schemas import ApiResponse, PreferencesUpdate, ProfileUpdate, SaveCityRequest
from nomadpal.services.pagination import LIST_MAX_LIMIT, build_pagination, resolve

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/users", tags=["users"])


# ------------------------------------------------------------------
# Profile
# ------------------------------------------------------------------

@router.get("/profile", response_model=ApiResponse)
def get_profile(
    engine: Engine | None = Depends(get_engine),
    user_id: str = Depends(require_user_id),
):
    profile = users_repo.get_profile(user_id, engine)
    if profile is None:
        raise NotFoundError("User not found")
    return success(profile, "Profile retrieved successfully")


@router.put("/profile", response_model=ApiResponse)
def update_profile(
    body: ProfileUpdate,
    engine: Engine | None = Depends(get_engine),
    user_id: str = Depends(require_user_id),
):
    """Update email, display name or timezone; returns the updated profile."""
    values = body.model_dump(exclude_unset=True, exclude_none=True)
    if not values:
        raise InputValidationError("No valid fields to update")
    if not users_repo.update_profile(user_id, values, engine):
        raise NotFoundError("User not found")
    return success(users_repo.get_profile(user_id, engine), "Profile updated successfully")


# ------------------------------------------------------------------
# Preferences
# ------------------------------------------------------------------

@router.get("/preferences", response_model=ApiResponse)
def get_preferences(
    engine: Engine | None = Depends(get_engine),
    user_id: str = Depends(require_user_id),
):
    preferences = users_repo.get_preferences(user_id, engine)
    if preferences is None:
        raise NotFoundError("User not found")
    return success(preferences, "Preferences retrieved successfully")


@router.put("/preferences", response_model=ApiResponse)
def update_preferences(
    body: PreferencesUpdate,
    engine: Engine | None = Depends(get_engine),
    user_id: str = Depends(require_user_id),
):
    values = body.model_dump(exclude_unset=True)
    if not values:
        raise InputValidationError("No valid preferences to update")
    if not users_repo.update_preferences(user_id, values, engine):
        raise NotFoundError("User not found")
    return success(None, "Preferences updated successfully")


# ------------------------------------------------------------------
# Saved cities
# ------------------------------------------------------------------

@router.get("/saved-cities", response_model=ApiResponse)
def list_saved_cities(
    page: str | None = None,
    limit: str | None = None,
    settings: Settings = Depends(get_settings),
    engine: Engine | None = Depends(get_engine),
    user_id: str = Depends(require_user_id),
):
    """Plain record-store rows; ``/api/cities/saved`` is the enriched view."""
    window = resolve(page, limit, LIST_MAX_LIMIT, settings.default_page_size)
    rows, total = saved_repo.list_saved(user_id, window.limit, window.offset, engine)
    return success(
        {"cities": rows, "pagination": build_pagination(window, total).to_dict()},
        "Saved cities retrieved successfully",
    )


@router.post("/saved-cities", response_model=ApiResponse, status_code=201)
def add_saved_city(
    body: SaveCityRequest,
    engine: Engine | None = Depends(get_engine),
    user_id: str = Depends(require_user_id),
):
    if not cities_repo.exists(body.city_id, engine):
        raise NotFoundError("City not found")
    if users_repo.get_preferences(user_id, engine) is None:
        raise NotFoundError("User not found")
    if saved_repo.is_saved(user_id, body.city_id, engine):
        raise ConflictError("City already saved")
    saved_repo.save(user_id, body.city_id, engine)
    logger.info("User %s saved city %s", user_id, body.city_id)
    return success(None, "City saved successfully")


@router.delete("/saved-cities/{city_id}", response_model=ApiResponse)
def remove_saved_city(
    city_id: int,
    engine: Engine | None = Depends(get_engine),
    user_id: str = Depends(require_user_id),
):
    if not saved_repo.unsave(user_id, city_id, engine):
        raise NotFoundError("Saved city not found")
    return success(None, "City removed from saved list")
