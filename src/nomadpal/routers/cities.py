"""City endpoints — listings, lookups, saved cities and cost breakdowns.

Every listing goes through ``ResultAssembler``; routes only decide which
record-store query and which prediction ranking feed it.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends
from fastapi.encoders import jsonable_encoder
from sqlalchemy.engine import Engine

from nomadpal.clients.prediction import PredictionClient
from nomadpal.config import Settings
from nomadpal.deps import (
    get_assembler,
    get_engine,
    get_prediction_client,
    get_settings,
    optional_user_id,
    require_user_id,
)
from nomadpal.errors import InputValidationError, NotFoundError
from nomadpal.repositories import cities as cities_repo
from nomadpal.repositories import saved as saved_repo
from nomadpal.repositories import users as users_repo
from nomadpal.repositories.cities import CityFilter
from nomadpal.responses import success
from nomadpal.schemas import ApiResponse
from nomadpal.services import catalog
from nomadpal.services.assembler import FetchPredictions, ResultAssembler
from nomadpal.services.pagination import (
    LIST_MAX_LIMIT,
    PERSONALIZED_MAX_LIMIT,
    SEARCH_MAX_LIMIT,
    resolve,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/cities", tags=["cities"])


def _ranking(
    client: PredictionClient,
    settings: Settings,
    country: str | None = None,
) -> FetchPredictions:
    """Prediction pool to merge against: per-country when filtered, else top-N."""
    limit = settings.prediction_fetch_limit
    if country:
        return lambda: client.cities_by_country(country, limit)["data"]
    return lambda: client.top_cities(limit)["data"]


def _explicit_sort(sort_by: str | None, sort_order: str | None) -> bool:
    return bool((sort_by or "").strip() or (sort_order or "").strip())


def _require_city(city_id: int, engine: Engine | None) -> dict[str, Any]:
    city = cities_repo.get_by_id(city_id, engine)
    if city is None:
        raise NotFoundError("City not found")
    return city


def _filtered_listing(
    filters: CityFilter,
    page: str | None,
    limit: str | None,
    sort_by: str | None,
    sort_order: str | None,
    settings: Settings,
    engine: Engine | None,
    client: PredictionClient,
    assembler: ResultAssembler,
    user_id: str | None,
) -> dict[str, Any]:
    window = resolve(page, limit, LIST_MAX_LIMIT, settings.default_page_size)
    sort = cities_repo.resolve_sort(sort_by, sort_order)
    result = assembler.listing(
        lambda lim, off: cities_repo.find(filters, sort, lim, off, engine),
        _ranking(client, settings, filters.country),
        window,
        explicit_sort=_explicit_sort(sort_by, sort_order),
        user_id=user_id,
    )
    return result.to_dict()


# ------------------------------------------------------------------
# Listings
# ------------------------------------------------------------------

@router.get("", response_model=ApiResponse)
def list_cities(
    page: str | None = None,
    limit: str | None = None,
    country: str | None = None,
    climate: str | None = None,
    min_cost: str | None = None,
    max_cost: str | None = None,
    min_safety: str | None = None,
    sort_by: str | None = None,
    sort_order: str | None = None,
    settings: Settings = Depends(get_settings),
    engine: Engine | None = Depends(get_engine),
    client: PredictionClient = Depends(get_prediction_client),
    assembler: ResultAssembler = Depends(get_assembler),
    user_id: str | None = Depends(optional_user_id),
):
    """Filtered, sorted, paginated cities, enriched with predicted scores."""
    filters = CityFilter.from_params(
        country=country, climate=climate,
        min_cost=min_cost, max_cost=max_cost, min_safety=min_safety,
    )
    data = _filtered_listing(
        filters, page, limit, sort_by, sort_order,
        settings, engine, client, assembler, user_id,
    )
    return success(data, "Cities retrieved successfully")


@router.get("/filter", response_model=ApiResponse)
def filter_cities(
    page: str | None = None,
    limit: str | None = None,
    country: str | None = None,
    climate: str | None = None,
    min_cost: str | None = None,
    max_cost: str | None = None,
    min_safety: str | None = None,
    max_safety: str | None = None,
    min_nightlife: str | None = None,
    min_transport: str | None = None,
    sort_by: str | None = None,
    sort_order: str | None = None,
    settings: Settings = Depends(get_settings),
    engine: Engine | None = Depends(get_engine),
    client: PredictionClient = Depends(get_prediction_client),
    assembler: ResultAssembler = Depends(get_assembler),
    user_id: str | None = Depends(optional_user_id),
):
    """Same as the listing, with the extended safety/nightlife/transport filters."""
    filters = CityFilter.from_params(
        country=country, climate=climate,
        min_cost=min_cost, max_cost=max_cost,
        min_safety=min_safety, max_safety=max_safety,
        min_nightlife=min_nightlife, min_transport=min_transport,
    )
    data = _filtered_listing(
        filters, page, limit, sort_by, sort_order,
        settings, engine, client, assembler, user_id,
    )
    return success(data, "Filtered cities retrieved successfully")


@router.get("/popular", response_model=ApiResponse)
def popular_cities(
    limit: str | None = None,
    settings: Settings = Depends(get_settings),
    engine: Engine | None = Depends(get_engine),
    client: PredictionClient = Depends(get_prediction_client),
    assembler: ResultAssembler = Depends(get_assembler),
    user_id: str | None = Depends(optional_user_id),
):
    window = resolve(1, limit, SEARCH_MAX_LIMIT, default_limit=10)
    # The popularity ranking is itself an explicit order.
    result = assembler.listing(
        lambda lim, off: cities_repo.popular(lim, off, engine),
        _ranking(client, settings),
        window,
        explicit_sort=True,
        user_id=user_id,
    )
    return success(result.to_dict(), "Popular cities retrieved successfully")


@router.get("/search/{query}", response_model=ApiResponse)
def search_cities(
    query: str,
    page: str | None = None,
    limit: str | None = None,
    settings: Settings = Depends(get_settings),
    engine: Engine | None = Depends(get_engine),
    client: PredictionClient = Depends(get_prediction_client),
    assembler: ResultAssembler = Depends(get_assembler),
    user_id: str | None = Depends(optional_user_id),
):
    term = query.strip().replace("<", "").replace(">", "")
    if not term:
        raise InputValidationError("Search query is required")
    window = resolve(page, limit, SEARCH_MAX_LIMIT, settings.default_page_size)
    result = assembler.listing(
        lambda lim, off: cities_repo.search(term, lim, off, engine),
        lambda: client.search_cities(term, settings.prediction_fetch_limit)["data"],
        window,
        explicit_sort=True,
        user_id=user_id,
    )
    return success({**result.to_dict(), "search_query": term}, "Search completed successfully")


@router.get("/country/{country}", response_model=ApiResponse)
def cities_by_country(
    country: str,
    page: str | None = None,
    limit: str | None = None,
    settings: Settings = Depends(get_settings),
    engine: Engine | None = Depends(get_engine),
    client: PredictionClient = Depends(get_prediction_client),
    assembler: ResultAssembler = Depends(get_assembler),
    user_id: str | None = Depends(optional_user_id),
):
    filters = CityFilter.from_params(country=country)
    if not filters.country:
        raise InputValidationError("Country is required")
    window = resolve(page, limit, SEARCH_MAX_LIMIT, settings.default_page_size)
    result = assembler.listing(
        lambda lim, off: cities_repo.find(filters, cities_repo.DEFAULT_SORT, lim, off, engine),
        _ranking(client, settings, filters.country),
        window,
        user_id=user_id,
    )
    return success(
        {**result.to_dict(), "country": filters.country},
        "Cities by country retrieved successfully",
    )


@router.get("/personalized", response_model=ApiResponse)
def personalized_cities(
    page: str | None = None,
    limit: str | None = None,
    settings: Settings = Depends(get_settings),
    engine: Engine | None = Depends(get_engine),
    client: PredictionClient = Depends(get_prediction_client),
    assembler: ResultAssembler = Depends(get_assembler),
    user_id: str = Depends(require_user_id),
):
    """Recommendations ranked by the prediction service for the user's preferences."""
    preferences = users_repo.get_preferences(user_id, engine)
    if preferences is None:
        raise NotFoundError("User not found")

    window = resolve(page, limit, PERSONALIZED_MAX_LIMIT, settings.default_page_size)
    fallback = catalog.preference_filters(preferences)
    result = assembler.personalized(
        lambda: client.personalized(
            jsonable_encoder(preferences), limit=window.limit, page=window.page,
        ),
        lambda lim, off: cities_repo.find(fallback, cities_repo.DEFAULT_SORT, lim, off, engine),
        window,
        user_id=user_id,
    )
    return success(result.to_dict(), "Personalized city recommendations retrieved successfully")


@router.get("/saved", response_model=ApiResponse)
def saved_cities(
    page: str | None = None,
    limit: str | None = None,
    settings: Settings = Depends(get_settings),
    engine: Engine | None = Depends(get_engine),
    client: PredictionClient = Depends(get_prediction_client),
    assembler: ResultAssembler = Depends(get_assembler),
    user_id: str = Depends(require_user_id),
):
    window = resolve(page, limit, LIST_MAX_LIMIT, settings.default_page_size)
    result = assembler.listing(
        lambda lim, off: saved_repo.list_saved(user_id, lim, off, engine),
        _ranking(client, settings),
        window,
        explicit_sort=True,
        user_id=user_id,
    )
    return success(result.to_dict(), "Saved cities retrieved successfully")


# ------------------------------------------------------------------
# Single-city lookups
# ------------------------------------------------------------------

def _with_saved_flag(city: dict[str, Any], user_id: str | None, engine: Engine | None) -> dict[str, Any]:
    if user_id:
        city["is_saved"] = saved_repo.is_saved(user_id, city["id"], engine)
    return city


@router.get("/slug/{slug}", response_model=ApiResponse)
def city_by_slug(
    slug: str,
    engine: Engine | None = Depends(get_engine),
    user_id: str | None = Depends(optional_user_id),
):
    city = cities_repo.get_by_slug(slug, engine)
    if city is None:
        raise NotFoundError("City not found")
    return success(_with_saved_flag(city, user_id, engine), "City retrieved successfully")


@router.get("/{city_id}", response_model=ApiResponse)
def city_by_id(
    city_id: int,
    engine: Engine | None = Depends(get_engine),
    user_id: str | None = Depends(optional_user_id),
):
    city = _require_city(city_id, engine)
    return success(_with_saved_flag(city, user_id, engine), "City retrieved successfully")


@router.post("/{city_id}/save", response_model=ApiResponse)
def toggle_saved(
    city_id: int,
    engine: Engine | None = Depends(get_engine),
    user_id: str = Depends(require_user_id),
):
    """Save the city, or remove it if it was already saved."""
    if not cities_repo.exists(city_id, engine):
        raise NotFoundError("City not found")
    if users_repo.get_preferences(user_id, engine) is None:
        raise NotFoundError("User not found")
    if saved_repo.unsave(user_id, city_id, engine):
        return success({"is_saved": False}, "City removed from saved list")
    saved_repo.save(user_id, city_id, engine)
    logger.info("User %s saved city %s", user_id, city_id)
    return success({"is_saved": True}, "City saved successfully")


@router.get("/{city_id}/cost-breakdown", response_model=ApiResponse)
def city_cost_breakdown(
    city_id: int,
    engine: Engine | None = Depends(get_engine),
):
    city = _require_city(city_id, engine)
    return success(catalog.cost_breakdown(city), "Cost breakdown retrieved successfully")
