"""Shared test fixtures — seeded in-memory SQLite and a fake prediction service."""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, text
from sqlalchemy.pool import StaticPool

from nomadpal import db
from nomadpal.api import create_app
from nomadpal.config import Settings
from nomadpal.errors import UpstreamUnavailable
from nomadpal.services.availability import AvailabilityProbe
from nomadpal.services.merge import merge_key


MOCK_CITIES = [
    {"id": 1, "slug": "lisbon", "name": "Lisbon", "country": "Portugal", "description": "Hilly coastal capital", "monthly_cost_usd": 2100.0, "safety_score": 78.0, "nightlife_rating": 8.0, "transport_rating": 7.0, "climate_summary": "Mediterranean, mild winters", "cost_pct_rent": 45.0, "cost_pct_dining": 20.0, "cost_pct_transport": 5.0, "cost_pct_groceries": 15.0, "cost_pct_coworking": 10.0, "cost_pct_other": 5.0, "housing_studio_usd_month": 950.0, "travel_local_transport_usd_week": 12.0, "travel_hotel_usd_week": 600.0, "currency": "EUR"},
    {"id": 2, "slug": "porto", "name": "Porto", "country": "Portugal", "description": "Riverside wine city", "monthly_cost_usd": 1800.0, "safety_score": 80.0, "nightlife_rating": 7.0, "transport_rating": 6.0, "climate_summary": "Mediterranean", "cost_pct_rent": 40.0, "cost_pct_dining": 20.0, "cost_pct_transport": 10.0, "cost_pct_groceries": 15.0, "cost_pct_coworking": 10.0, "cost_pct_other": 5.0, "housing_studio_usd_month": 750.0, "travel_local_transport_usd_week": 10.0, "travel_hotel_usd_week": 450.0, "currency": "EUR"},
    {"id": 3, "slug": "berlin", "name": "Berlin", "country": "Germany", "description": "Creative capital", "monthly_cost_usd": 2600.0, "safety_score": 74.0, "nightlife_rating": 10.0, "transport_rating": 9.0, "climate_summary": "Temperate", "cost_pct_rent": 50.0, "cost_pct_dining": 15.0, "cost_pct_transport": 5.0, "cost_pct_groceries": 15.0, "cost_pct_coworking": 10.0, "cost_pct_other": 5.0, "housing_studio_usd_month": 1200.0, "travel_local_transport_usd_week": 25.0, "travel_hotel_usd_week": 700.0, "currency": "EUR"},
    {"id": 4, "slug": "mexico-city", "name": "Mexico City", "country": "Mexico", "description": "Sprawling highland metropolis", "monthly_cost_usd": 1500.0, "safety_score": 55.0, "nightlife_rating": 9.0, "transport_rating": 6.0, "climate_summary": "Subtropical highland", "cost_pct_rent": 40.0, "cost_pct_dining": 25.0, "cost_pct_transport": 5.0, "cost_pct_groceries": 15.0, "cost_pct_coworking": 10.0, "cost_pct_other": 5.0, "housing_studio_usd_month": 600.0, "travel_local_transport_usd_week": 8.0, "travel_hotel_usd_week": 400.0, "currency": "MXN"},
    {"id": 5, "slug": "bangkok", "name": "Bangkok", "country": "Thailand", "description": "Street food capital", "monthly_cost_usd": 1200.0, "safety_score": 65.0, "nightlife_rating": 9.0, "transport_rating": 7.0, "climate_summary": "Tropical", "cost_pct_rent": 35.0, "cost_pct_dining": 25.0, "cost_pct_transport": 10.0, "cost_pct_groceries": 15.0, "cost_pct_coworking": 10.0, "cost_pct_other": 5.0, "housing_studio_usd_month": 450.0, "travel_local_transport_usd_week": 6.0, "travel_hotel_usd_week": 300.0, "currency": "THB"},
]

# Deliberately inconsistent casing / whitespace against MOCK_CITIES.
MOCK_PREDICTIONS = [
    {"name": "LISBON", "country": "portugal", "predicted_score": 0.72},
    {"name": "porto", "country": "Portugal ", "predicted_score": 0.65},
    {"name": "Berlin", "country": "GERMANY", "predicted_score": 0.81},
    {"name": "mexico  city", "country": "Mexico", "predicted_score": 0.58},
    {"name": "Bangkok", "country": "thailand", "predicted_score": 0.77},
]

MOCK_USER = {
    "id": "user-1",
    "email": "nomad@example.com",
    "display_name": "Nomad",
    "timezone": "Europe/Lisbon",
    "monthly_budget_min_usd": 1000.0,
    "monthly_budget_max_usd": 2000.0,
    "preferred_climate": "Mediterranean",
    "lifestyle_priorities": '["beaches", "coworking"]',
}

PERSONALIZED_PAGINATION = {
    "offset": 2,
    "current_page": 2,
    "total_pages": 5,
    "has_next_page": True,
    "has_prev_page": True,
}

CITY_COLUMNS = sorted({key for city in MOCK_CITIES for key in city})


class FakePredictionClient:
    """In-process stand-in for ``PredictionClient``.

    ``fail_with`` makes every data call raise; ``healthy=False`` makes the
    health check raise.
    """

    def __init__(self, predictions=None, healthy=True, fail_with=None):
        self.predictions = [p.copy() for p in (predictions if predictions is not None else MOCK_PREDICTIONS)]
        self.healthy = healthy
        self.fail_with = fail_with
        self.calls: list[tuple] = []
        self.personalized_result = {
            "data": [
                {"id": 3, "name": "Berlin", "country": "Germany", "predicted_score": 0.93},
                {"id": 1, "name": "Lisbon", "country": "Portugal", "predicted_score": 0.88},
            ],
            "total": 10,
            "limit": 2,
            "pagination": dict(PERSONALIZED_PAGINATION),
            "user_preferences": {"preferred_climate": "Mediterranean"},
        }

    def _maybe_fail(self):
        if self.fail_with is not None:
            raise self.fail_with

    def health(self, timeout=None):
        self.calls.append(("health", timeout))
        if not self.healthy:
            raise UpstreamUnavailable("connection refused")
        return {"status": "healthy"}

    def top_cities(self, limit=10):
        self.calls.append(("top_cities", limit))
        self._maybe_fail()
        return {"data": self.predictions[:limit], "total": len(self.predictions)}

    def cities_by_country(self, country, limit=10):
        self.calls.append(("cities_by_country", country, limit))
        self._maybe_fail()
        wanted = merge_key("", country)
        data = [p for p in self.predictions if merge_key("", p["country"]) == wanted]
        return {"data": data[:limit], "total": len(data), "country": country}

    def search_cities(self, query, limit=10):
        self.calls.append(("search_cities", query, limit))
        self._maybe_fail()
        q = query.lower()
        data = [p for p in self.predictions if q in p["name"].lower() or q in p["country"].lower()]
        return {"data": data[:limit], "total": len(data), "query": query}

    def personalized(self, preferences, limit=20, page=1):
        self.calls.append(("personalized", preferences, limit, page))
        self._maybe_fail()
        return self.personalized_result


class FakeProbe:
    def __init__(self, available=True):
        self.available = available
        self.calls = 0

    def is_available(self):
        self.calls += 1
        return self.available


def _seed(engine) -> None:
    columns = ", ".join(CITY_COLUMNS)
    values = ", ".join(f":{c}" for c in CITY_COLUMNS)
    with db.get_session(engine) as session:
        for city in MOCK_CITIES:
            row = {c: city.get(c) for c in CITY_COLUMNS}
            session.execute(text(f"INSERT INTO cities ({columns}) VALUES ({values})"), row)
        session.execute(text("""
            INSERT INTO users
                (id, email, display_name, timezone, monthly_budget_min_usd,
                 monthly_budget_max_usd, preferred_climate, lifestyle_priorities)
            VALUES
                (:id, :email, :display_name, :timezone, :monthly_budget_min_usd,
                 :monthly_budget_max_usd, :preferred_climate, :lifestyle_priorities)
        """), MOCK_USER)


@pytest.fixture()
def engine():
    """In-memory SQLite shared across threads, seeded with MOCK_CITIES."""
    e = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    db.init_db_tables(e)
    _seed(e)
    yield e
    e.dispose()


@pytest.fixture()
def fake_client():
    return FakePredictionClient()


@pytest.fixture()
def test_settings():
    return Settings(
        database_url="sqlite://",
        prediction_service_url="http://predictions.test",
        probe_ttl=0.0,
        prediction_fetch_limit=100,
    )


@pytest.fixture()
def client(engine, fake_client, test_settings):
    """TestClient wired to the seeded engine and the fake prediction client."""
    probe = AvailabilityProbe(fake_client, ttl=test_settings.probe_ttl, timeout=1.0)
    app = create_app(
        settings=test_settings,
        engine=engine,
        prediction_client=fake_client,
        probe=probe,
    )
    with TestClient(app) as c:
        yield c


@pytest.fixture()
def user_headers():
    return {"X-User-Id": MOCK_USER["id"]}
