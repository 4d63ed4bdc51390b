"""Catalog helpers — derived views over single city records and user preferences."""

from __future__ import annotations

from typing import Any

from nomadpal.repositories.cities import CityFilter

_CATEGORIES = ("dining", "transport", "groceries", "coworking", "other")


def _estimate(monthly_cost: float | None, pct: float | None) -> float | None:
    if monthly_cost is None or pct is None:
        return None
    return round(monthly_cost * pct / 100, 2)


def cost_breakdown(city: dict[str, Any]) -> dict[str, Any]:
    """Split a city's monthly cost into per-category estimates."""
    monthly = city.get("monthly_cost_usd")
    breakdown: dict[str, Any] = {
        "housing": {
            "studio": city.get("housing_studio_usd_month"),
            "one_bedroom": city.get("housing_one_bed_usd_month"),
            "coliving": city.get("housing_coliving_usd_month"),
            "percentage": city.get("cost_pct_rent"),
        },
    }
    for category in _CATEGORIES:
        pct = city.get(f"cost_pct_{category}")
        breakdown[category] = {
            "percentage": pct,
            "estimated_monthly": _estimate(monthly, pct),
        }
    breakdown["transport"]["weekly_local"] = city.get("travel_local_transport_usd_week")

    return {
        "city_name": city.get("name"),
        "country": city.get("country"),
        "total_monthly_cost": monthly,
        "currency": city.get("currency"),
        "breakdown": breakdown,
        "travel_costs": {
            "flight_from": city.get("travel_flight_from_usd"),
            "local_transport_weekly": city.get("travel_local_transport_usd_week"),
            "hotel_weekly": city.get("travel_hotel_usd_week"),
        },
    }


def preference_filters(preferences: dict[str, Any]) -> CityFilter:
    """Record-store filter approximating a user's stated preferences."""
    min_cost = preferences.get("monthly_budget_min_usd")
    max_cost = preferences.get("monthly_budget_max_usd")
    if min_cost is not None and max_cost is not None and min_cost > max_cost:
        min_cost, max_cost = max_cost, min_cost
    return CityFilter(
        climate=preferences.get("preferred_climate") or None,
        min_cost=min_cost,
        max_cost=max_cost,
    )
