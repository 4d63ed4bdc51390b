"""Functional tests that call a real prediction service.

These need a running service at ``PREDICTION_SERVICE_URL``, so they are
marked with ``pytest.mark.functional`` and skipped by default.  Run them
explicitly::

    pytest -m functional
"""

from __future__ import annotations

import pytest

from nomadpal.clients.prediction import PredictionClient
from nomadpal.config import settings
from nomadpal.services.availability import AvailabilityProbe
from nomadpal.services.merge import prediction_score

functional = pytest.mark.functional


@pytest.fixture(scope="module")
def live_client():
    return PredictionClient.from_settings(settings)


# ---- health ----

@functional
def test_live_service_is_available(live_client):
    probe = AvailabilityProbe(live_client, timeout=settings.effective_probe_timeout)
    assert probe.is_available() is True


# ---- rankings ----

@functional
def test_top_cities_have_scores(live_client):
    result = live_client.top_cities(5)
    assert 0 < len(result["data"]) <= 5
    for row in result["data"]:
        assert row["name"] and row["country"]
        assert prediction_score(row) is not None


@functional
def test_personalized_returns_pagination_block(live_client):
    result = live_client.personalized(
        {"monthly_budget_min_usd": 1000, "monthly_budget_max_usd": 2500},
        limit=5,
        page=1,
    )
    assert isinstance(result["pagination"], dict)
    assert len(result["data"]) <= 5
