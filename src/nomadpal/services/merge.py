"""Merge engine — join record-store cities with remote predictions.

The two sources share no numeric identifier; the only join key is the
normalised ``name_country`` pair.  Both sides go through ``merge_key`` so
case and whitespace differences cannot make a match fail silently.
"""

from __future__ import annotations

import math
from collections.abc import Mapping
from typing import Any

DEFAULT_SCORE = 0


def _normalise(value: Any) -> str:
    if value is None:
        return ""
    return " ".join(str(value).split()).casefold()


def merge_key(name: Any, country: Any) -> str:
    """``lowercase(name) + "_" + lowercase(country)`` with collapsed whitespace."""
    return f"{_normalise(name)}_{_normalise(country)}"


def prediction_score(prediction: Mapping[str, Any]) -> float | None:
    raw = prediction.get("predicted_score")
    if raw is None or isinstance(raw, bool):
        return None
    try:
        score = float(raw)
    except (TypeError, ValueError):
        return None
    return score if math.isfinite(score) else None


def index_predictions(predictions) -> dict[str, float]:
    """Map merge key -> score.  Duplicate keys keep the highest score."""
    index: dict[str, float] = {}
    for prediction in predictions:
        if not isinstance(prediction, Mapping):
            continue
        score = prediction_score(prediction)
        if score is None:
            continue
        key = merge_key(prediction.get("name"), prediction.get("country"))
        if key not in index or score > index[key]:
            index[key] = score
    return index


def merge(records, predictions) -> list[dict[str, Any]]:
    """Attach ``predicted_score`` / ``ml_enhanced`` to every record.

    Matched records carry the prediction's score and ``ml_enhanced=True``;
    unmatched ones get ``DEFAULT_SCORE`` and ``False``.  Inputs are never
    mutated.  If ``predictions`` is not a list or tuple the records come
    back as they were; a non-sequence ``records`` yields an empty list.
    """
    if not isinstance(records, (list, tuple)):
        return []
    if not isinstance(predictions, (list, tuple)):
        return list(records)

    index = index_predictions(predictions)
    merged = []
    for record in records:
        score = index.get(merge_key(record.get("name"), record.get("country")))
        if score is None:
            merged.append({**record, "predicted_score": DEFAULT_SCORE, "ml_enhanced": False})
        else:
            merged.append({**record, "predicted_score": score, "ml_enhanced": True})
    return merged


def degrade(records) -> list[dict[str, Any]]:
    """Default score and ``ml_enhanced=False`` on every record."""
    return [
        {**record, "predicted_score": DEFAULT_SCORE, "ml_enhanced": False}
        for record in records
    ]
