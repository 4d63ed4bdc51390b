"""Result assembler — one consistent, paginated city page from two sources.

Each request walks a one-shot state machine::

    PROBE ──available──> ENHANCED ──fetch/merge failure──> DEGRADED
      └──────unavailable─────────────────────────────────> DEGRADED

The record store (or, for personalised queries, the prediction service) is
the pagination authority; enrichment never changes ``total``.  A page is
either fully enriched or fully degraded: a failed or partial merge throws
away every score on the page rather than serving a mix.
"""

from __future__ import annotations

import enum
import logging
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy.engine import Engine

from nomadpal.errors import UpstreamError, UpstreamUnavailable
from nomadpal.repositories import saved as saved_repo
from nomadpal.services.merge import degrade, merge, prediction_score
from nomadpal.services.pagination import PageWindow, build_pagination

logger = logging.getLogger(__name__)

FetchPage = Callable[[int, int], tuple[list[dict[str, Any]], int]]
FetchPredictions = Callable[[], list[dict[str, Any]]]
FetchPersonalized = Callable[[], dict[str, Any]]


class EnrichmentPath(str, enum.Enum):
    PROBE = "probe"
    ENHANCED = "enhanced"
    DEGRADED = "degraded"


@dataclass
class CityPage:
    cities: list[dict[str, Any]]
    pagination: dict[str, Any]
    path: EnrichmentPath
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"cities": self.cities, "pagination": self.pagination, **self.extra}


def _city_id(value: Any) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


class ResultAssembler:
    """Runs probe → fetch → merge → assemble for one request at a time."""

    def __init__(self, probe, engine: Engine | None = None):
        self._probe = probe
        self._engine = engine

    # ------------------------------------------------------------------
    # Record-store authoritative listings
    # ------------------------------------------------------------------

    def listing(
        self,
        fetch_page: FetchPage,
        fetch_predictions: FetchPredictions,
        window: PageWindow,
        *,
        explicit_sort: bool = False,
        user_id: str | None = None,
    ) -> CityPage:
        """Fetch one record-store page and enrich it if the service is up.

        The probe runs on a worker thread while the page is fetched here, so
        the request waits for the slower of the two rather than both.
        """
        with ThreadPoolExecutor(max_workers=1, thread_name_prefix="probe") as pool:
            probe = pool.submit(self._probe.is_available)
            records, total = fetch_page(window.limit, window.offset)
            available = probe.result()

        path, cities = self._enrich(records, fetch_predictions, available)
        if path is EnrichmentPath.ENHANCED and not explicit_sort:
            # sorted() keeps ties in record-store order, also with reverse=True
            cities = sorted(cities, key=lambda c: c["predicted_score"], reverse=True)

        self._annotate_saved(cities, user_id)
        return CityPage(
            cities=cities,
            pagination=build_pagination(window, total).to_dict(),
            path=path,
        )

    def _enrich(
        self,
        records: list[dict[str, Any]],
        fetch_predictions: FetchPredictions,
        available: bool,
    ) -> tuple[EnrichmentPath, list[dict[str, Any]]]:
        if not available:
            logger.info("Prediction service unavailable; serving %d cities un-enriched", len(records))
            return EnrichmentPath.DEGRADED, degrade(records)

        try:
            merged = merge(records, fetch_predictions())
        except UpstreamError as exc:
            logger.warning("Prediction fetch failed, degrading page: %s", exc)
            return EnrichmentPath.DEGRADED, degrade(records)
        except Exception:
            # Records are still servable; keep the traceback in the log.
            logger.exception("Unexpected enrichment failure, degrading page")
            return EnrichmentPath.DEGRADED, degrade(records)

        unmatched = sum(1 for city in merged if not city.get("ml_enhanced"))
        if unmatched:
            logger.warning(
                "Predictions cover %d of %d cities on this page; degrading page",
                len(merged) - unmatched, len(merged),
            )
            return EnrichmentPath.DEGRADED, degrade(records)
        return EnrichmentPath.ENHANCED, merged

    # ------------------------------------------------------------------
    # Prediction-service authoritative listings
    # ------------------------------------------------------------------

    def personalized(
        self,
        fetch_personalized: FetchPersonalized,
        fallback_page: FetchPage,
        window: PageWindow,
        *,
        user_id: str | None = None,
    ) -> CityPage:
        """Serve the service's own pre-paginated recommendations.

        The service's pagination block is passed through untouched.  When the
        service is down the record store answers instead, with its own
        pagination and every city degraded.
        """
        page = None
        if self._probe.is_available():
            try:
                page = self._personalized_page(fetch_personalized())
            except UpstreamError as exc:
                logger.warning("Personalised query failed, falling back to record store: %s", exc)
            except Exception:
                logger.exception("Unexpected personalised result, falling back to record store")
        else:
            logger.info("Prediction service unavailable; personalised query falls back to record store")

        if page is None:
            records, total = fallback_page(window.limit, window.offset)
            page = CityPage(
                cities=degrade(records),
                pagination=build_pagination(window, total).to_dict(),
                path=EnrichmentPath.DEGRADED,
            )

        self._annotate_saved(page.cities, user_id)
        return page

    @staticmethod
    def _personalized_page(result: dict[str, Any]) -> CityPage:
        cities = []
        for row in result["data"]:
            if not isinstance(row, dict) or prediction_score(row) is None:
                raise UpstreamUnavailable("Personalised result row has no predicted_score")
            cities.append({**row, "predicted_score": prediction_score(row), "ml_enhanced": True})

        extra = {"total": result.get("total"), "limit": result.get("limit")}
        if result.get("user_preferences") is not None:
            extra["user_preferences"] = result["user_preferences"]
        return CityPage(
            cities=cities,
            pagination=result["pagination"],
            path=EnrichmentPath.ENHANCED,
            extra=extra,
        )

    # ------------------------------------------------------------------
    # Saved-city annotation
    # ------------------------------------------------------------------

    def _annotate_saved(self, cities: list[dict[str, Any]], user_id: str | None) -> None:
        if not user_id:
            return
        ids = [cid for cid in (_city_id(c.get("id")) for c in cities) if cid is not None]
        saved = saved_repo.saved_city_ids(user_id, ids, self._engine)
        for city in cities:
            city["is_saved"] = _city_id(city.get("id")) in saved
