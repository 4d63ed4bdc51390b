"""HTTP client for the city prediction service.

The service scores cities and answers three query shapes: a bulk top-N
ranking, a per-country ranking, and a preference-driven personalised query
that returns its own pagination block.  Every call carries an explicit
timeout; transport failures are raised as ``UpstreamError`` subclasses so
callers can fall back without inspecting requests internals.
"""

from __future__ import annotations

import logging
from typing import Any
from urllib.parse import quote

import requests

from nomadpal.config import Settings
from nomadpal.errors import UpstreamTimeout, UpstreamUnavailable

logger = logging.getLogger(__name__)

# Client-side caps mirrored from the service's own limits.
MAX_RANKING_LIMIT = 500
MAX_PERSONALIZED_LIMIT = 200


class PredictionClient:
    """Thin wrapper around a ``requests.Session`` bound to one base URL."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 5.0,
        session: requests.Session | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update(
            {"Content-Type": "application/json", "Accept": "application/json"}
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> PredictionClient:
        return cls(settings.prediction_service_url, timeout=settings.prediction_timeout)

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: Any = None,
        timeout: float | None = None,
    ) -> dict[str, Any]:
        url = f"{self.base_url}{path}"
        logger.debug("Prediction service request: %s %s %s", method, url, params or "")
        try:
            resp = self.session.request(
                method, url, params=params, json=json,
                timeout=timeout if timeout is not None else self.timeout,
            )
            resp.raise_for_status()
            body = resp.json()
        except requests.Timeout as exc:
            raise UpstreamTimeout(f"{method} {path} timed out") from exc
        except requests.RequestException as exc:
            raise UpstreamUnavailable(f"{method} {path} failed: {exc}") from exc
        except ValueError as exc:
            raise UpstreamUnavailable(f"{method} {path} returned invalid JSON") from exc

        if not isinstance(body, dict):
            raise UpstreamUnavailable(f"{method} {path} returned a non-object body")
        logger.debug("Prediction service response: %s %s", resp.status_code, url)
        return body

    @staticmethod
    def _ranking(body: dict[str, Any], path: str) -> list[dict[str, Any]]:
        data = body.get("data")
        if not isinstance(data, list):
            raise UpstreamUnavailable(f"{path} response has no data list")
        return data

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def health(self, timeout: float | None = None) -> dict[str, Any]:
        """Liveness check; raises on any failure."""
        return self._request("GET", "/health", timeout=timeout)

    def top_cities(self, limit: int = 10) -> dict[str, Any]:
        """Highest-scored cities across the whole dataset."""
        path = "/cities/top"
        body = self._request("GET", path, params={"limit": min(limit, MAX_RANKING_LIMIT)})
        data = self._ranking(body, path)
        return {"data": data, "total": body.get("total", len(data))}

    def cities_by_country(self, country: str, limit: int = 10) -> dict[str, Any]:
        """Scored cities within one country."""
        if not country or not country.strip():
            raise ValueError("country is required")
        path = f"/cities/by-country/{quote(country.strip(), safe='')}"
        body = self._request("GET", path, params={"limit": min(limit, MAX_RANKING_LIMIT)})
        data = self._ranking(body, path)
        return {
            "data": data,
            "total": body.get("total", len(data)),
            "country": body.get("country", country.strip()),
        }

    def search_cities(self, query: str, limit: int = 10) -> dict[str, Any]:
        """Scored cities whose name or country matches ``query``."""
        if not query or not query.strip():
            raise ValueError("query is required")
        path = "/cities/search"
        body = self._request(
            "GET", path,
            params={"q": query.strip(), "limit": min(limit, MAX_RANKING_LIMIT)},
        )
        data = self._ranking(body, path)
        return {
            "data": data,
            "total": body.get("total", len(data)),
            "query": body.get("query", query.strip()),
        }

    def personalized(
        self,
        preferences: dict[str, Any],
        limit: int = 20,
        page: int = 1,
    ) -> dict[str, Any]:
        """Pre-paginated, pre-scored recommendations for ``preferences``.

        The service's pagination block is returned exactly as received.
        """
        if not isinstance(preferences, dict):
            raise ValueError("preferences must be a mapping")
        path = "/cities/personalized"
        body = self._request(
            "POST", path,
            params={"limit": min(limit, MAX_PERSONALIZED_LIMIT), "page": max(page, 1)},
            json=preferences,
        )
        data = self._ranking(body, path)
        pagination = body.get("pagination")
        if not isinstance(pagination, dict):
            raise UpstreamUnavailable(f"{path} response has no pagination block")
        return {
            "data": data,
            "total": body.get("total"),
            "limit": body.get("limit"),
            "pagination": pagination,
            "user_preferences": body.get("user_preferences"),
        }
