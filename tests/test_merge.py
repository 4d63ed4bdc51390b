"""Merge engine: record/prediction join on the normalised name_country key."""

from __future__ import annotations

import copy
import random

from conftest import MOCK_CITIES, MOCK_PREDICTIONS

from nomadpal.services.merge import DEFAULT_SCORE, degrade, index_predictions, merge, merge_key


def _records():
    return [{"id": c["id"], "name": c["name"], "country": c["country"]} for c in MOCK_CITIES]


# ---- merge_key ----

def test_merge_key_ignores_case_and_whitespace():
    assert merge_key("Lisbon", "Portugal") == "lisbon_portugal"
    assert merge_key("  mexico   CITY ", "Mexico\t") == merge_key("Mexico City", "mexico")


def test_merge_key_handles_missing_parts():
    assert merge_key(None, "Portugal") == "_portugal"


# ---- merge ----

def test_case_insensitive_match_carries_score():
    records = [{"id": 1, "name": "Lisbon", "country": "Portugal"}]
    predictions = [{"name": "lisbon", "country": "PORTUGAL", "predicted_score": 0.72}]

    assert merge(records, predictions) == [
        {"id": 1, "name": "Lisbon", "country": "Portugal", "predicted_score": 0.72, "ml_enhanced": True}
    ]


def test_unmatched_records_get_defaults():
    records = [{"id": 9, "name": "Atlantis", "country": "Nowhere"}]
    merged = merge(records, MOCK_PREDICTIONS)
    assert merged[0]["predicted_score"] == DEFAULT_SCORE
    assert merged[0]["ml_enhanced"] is False


def test_every_mock_city_matches_despite_inconsistent_casing():
    merged = merge(_records(), MOCK_PREDICTIONS)
    assert all(c["ml_enhanced"] for c in merged)
    by_name = {c["name"]: c["predicted_score"] for c in merged}
    assert by_name["Mexico City"] == 0.58
    assert by_name["Porto"] == 0.65


def test_result_order_follows_records():
    records = _records()
    merged = merge(records, MOCK_PREDICTIONS)
    assert [c["id"] for c in merged] == [r["id"] for r in records]


def test_prediction_order_does_not_matter():
    shuffled = list(MOCK_PREDICTIONS)
    random.Random(7).shuffle(shuffled)
    assert merge(_records(), shuffled) == merge(_records(), MOCK_PREDICTIONS)


def test_merge_is_idempotent():
    once = merge(_records(), MOCK_PREDICTIONS)
    assert merge(once, MOCK_PREDICTIONS) == once


def test_inputs_are_not_mutated():
    records = _records()
    predictions = copy.deepcopy(MOCK_PREDICTIONS)
    merge(records, predictions)
    assert records == _records()
    assert predictions == MOCK_PREDICTIONS


def test_duplicate_keys_keep_highest_score():
    predictions = [
        {"name": "Lisbon", "country": "Portugal", "predicted_score": 0.4},
        {"name": "LISBON", "country": "portugal", "predicted_score": 0.9},
        {"name": "lisbon ", "country": "Portugal", "predicted_score": 0.6},
    ]
    records = [{"id": 1, "name": "Lisbon", "country": "Portugal"}]
    assert merge(records, predictions)[0]["predicted_score"] == 0.9
    assert merge(records, list(reversed(predictions)))[0]["predicted_score"] == 0.9


def test_non_numeric_scores_are_skipped():
    predictions = [
        {"name": "Lisbon", "country": "Portugal", "predicted_score": "n/a"},
        {"name": "Porto", "country": "Portugal", "predicted_score": None},
        {"name": "Berlin", "country": "Germany", "predicted_score": float("nan")},
        "not a dict",
    ]
    assert index_predictions(predictions) == {}
    assert not any(c["ml_enhanced"] for c in merge(_records(), predictions))


def test_non_sequence_predictions_return_records_unchanged():
    records = _records()
    assert merge(records, None) == records
    assert merge(records, {"data": MOCK_PREDICTIONS}) == records


def test_non_sequence_records_yield_empty_list():
    assert merge(None, MOCK_PREDICTIONS) == []
    assert merge("Lisbon", MOCK_PREDICTIONS) == []


# ---- degrade ----

def test_degrade_marks_every_record():
    degraded = degrade(_records())
    assert len(degraded) == len(MOCK_CITIES)
    assert all(c["predicted_score"] == DEFAULT_SCORE and c["ml_enhanced"] is False for c in degraded)
