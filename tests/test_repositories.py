"""Record-store repositories and catalog helpers against in-memory SQLite."""

from __future__ import annotations

import pytest

from nomadpal import db
from nomadpal.errors import ConflictError, InputValidationError
from nomadpal.repositories import cities as cities_repo
from nomadpal.repositories import saved as saved_repo
from nomadpal.repositories import users as users_repo
from nomadpal.repositories.cities import CityFilter
from nomadpal.services import catalog


# ---- Sorting / filters ----

def test_resolve_sort_allow_list():
    assert cities_repo.resolve_sort("safety_score", "desc") == ("safety_score", "DESC")
    assert cities_repo.resolve_sort("safety_score", "sideways") == ("safety_score", "ASC")
    assert cities_repo.resolve_sort("id; DROP TABLE cities", "DESC") == cities_repo.DEFAULT_SORT
    assert cities_repo.resolve_sort(None, None) == cities_repo.DEFAULT_SORT


def test_filter_parses_numeric_strings():
    flt = CityFilter.from_params(min_cost="1000", max_cost=" 2000 ", min_safety="")
    assert (flt.min_cost, flt.max_cost, flt.min_safety) == (1000.0, 2000.0, None)


@pytest.mark.parametrize("raw", ["abc", "nan", "inf"])
def test_filter_rejects_malformed_numbers(raw):
    with pytest.raises(InputValidationError):
        CityFilter.from_params(min_safety=raw)


def test_filter_strips_angle_brackets():
    assert CityFilter.from_params(country=" <Portugal> ").country == "Portugal"


# ---- Queries ----

def test_find_pages_and_counts(engine):
    rows, total = cities_repo.find(CityFilter(), ("monthly_cost_usd", "ASC"), 2, 0, engine)
    assert total == 5
    assert [r["name"] for r in rows] == ["Bangkok", "Mexico City"]


def test_find_with_filters(engine):
    flt = CityFilter.from_params(country="portugal", max_cost="2000")
    rows, total = cities_repo.find(flt, cities_repo.DEFAULT_SORT, 20, 0, engine)
    assert total == 1
    assert rows[0]["slug"] == "porto"


def test_search_ranks_name_prefix_first(engine):
    rows, total = cities_repo.search("port", 20, 0, engine)
    assert total == 2
    assert [r["name"] for r in rows] == ["Porto", "Lisbon"]


@pytest.mark.parametrize("country", ["%", "_", "P%"])
def test_like_wildcards_match_literally(engine, country):
    rows, total = cities_repo.find(
        CityFilter.from_params(country=country), cities_repo.DEFAULT_SORT, 20, 0, engine,
    )
    assert (rows, total) == ([], 0)


def test_search_treats_wildcards_literally(engine):
    assert cities_repo.search("_", 20, 0, engine) == ([], 0)
    assert cities_repo.search("l%", 20, 0, engine) == ([], 0)


def test_lookup_helpers(engine):
    assert cities_repo.get_by_id(3, engine)["name"] == "Berlin"
    assert cities_repo.get_by_slug("mexico-city", engine)["id"] == 4
    assert cities_repo.get_by_id(999, engine) is None
    assert cities_repo.exists(5, engine) is True
    assert cities_repo.exists(999, engine) is False


# ---- Saved cities ----

def test_save_and_unsave(engine):
    saved_repo.save("user-1", 1, engine)
    assert saved_repo.is_saved("user-1", 1, engine) is True
    assert saved_repo.unsave("user-1", 1, engine) is True
    assert saved_repo.unsave("user-1", 1, engine) is False
    assert saved_repo.is_saved("user-1", 1, engine) is False


def test_saved_city_ids_with_no_ids_skips_query(engine):
    assert saved_repo.saved_city_ids("user-1", [], engine) == set()


# ---- Users ----

def test_preferences_roundtrip(engine):
    assert users_repo.update_preferences(
        "user-1", {"lifestyle_priorities": ["surf"], "timezone": "UTC"}, engine,
    ) is True
    prefs = users_repo.get_preferences("user-1", engine)
    assert prefs["lifestyle_priorities"] == ["surf"]
    assert prefs["timezone"] == "UTC"


def test_unknown_user(engine):
    assert users_repo.get_preferences("ghost", engine) is None
    assert users_repo.update_preferences("ghost", {"timezone": "UTC"}, engine) is False


def test_profile_roundtrip(engine):
    profile = users_repo.get_profile("user-1", engine)
    assert profile["email"] == "nomad@example.com"
    assert profile["lifestyle_priorities"] == ["beaches", "coworking"]

    assert users_repo.update_profile("user-1", {"display_name": "N", "monthly_budget_min_usd": 1}, engine)
    profile = users_repo.get_profile("user-1", engine)
    assert profile["display_name"] == "N"
    assert profile["monthly_budget_min_usd"] == 1000.0


def test_profile_email_must_be_unique(engine):
    with db.get_session(engine) as session:
        session.execute(db.users.insert().values(id="user-2", email="taken@example.com"))
    with pytest.raises(ConflictError):
        users_repo.update_profile("user-1", {"email": "taken@example.com"}, engine)
    assert users_repo.update_profile("user-1", {"email": "nomad@example.com"}, engine) is True


def test_unknown_user_profile(engine):
    assert users_repo.get_profile("ghost", engine) is None
    assert users_repo.update_profile("ghost", {"display_name": "x"}, engine) is False


# ---- Catalog ----

def test_preference_filters_swap_inverted_budget():
    flt = catalog.preference_filters(
        {"monthly_budget_min_usd": 3000, "monthly_budget_max_usd": 1000, "preferred_climate": ""}
    )
    assert (flt.min_cost, flt.max_cost, flt.climate) == (1000, 3000, None)


def test_cost_breakdown_without_percentages():
    data = catalog.cost_breakdown({"name": "Nowhere", "monthly_cost_usd": 1000})
    assert data["breakdown"]["dining"] == {"percentage": None, "estimated_monthly": None}


# ---- Engine ----

def test_postgres_engine_carries_connect_and_statement_timeouts():
    assert db._connect_args("postgresql+psycopg2://u:p@db/nomadpal", 2.5) == {
        "connect_timeout": 2,
        "options": "-c statement_timeout=2500",
    }


def test_sqlite_engine_carries_busy_timeout():
    assert db._connect_args("sqlite:///nomadpal.db", 4.0) == {"timeout": 4.0}


def test_build_engine_applies_pool_timeout():
    engine = db.build_engine("postgresql+psycopg2://u:p@db/nomadpal", 3.0)
    assert engine.pool.timeout() == 3.0
    engine.dispose()
