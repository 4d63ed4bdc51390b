"""Availability probe for the prediction service.

A cheap, time-bounded liveness check decides whether enrichment is worth
attempting.  The answer is cached for a few seconds so a slow or flapping
service costs at most one probe per TTL window instead of one per request.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable

from cachetools import TTLCache

from nomadpal.config import MAX_PROBE_TIMEOUT

logger = logging.getLogger(__name__)

_KEY = "available"
_HEALTHY_STATUSES = {"ok", "healthy", "up"}


class AvailabilityProbe:
    """Cached ``is_available()`` check against a prediction client.

    Concurrent refreshes may both hit the service; a stale answer lasts at
    most one extra TTL window.
    """

    def __init__(
        self,
        client,
        ttl: float = 10.0,
        timeout: float = 2.0,
        timer: Callable[[], float] = time.monotonic,
    ):
        self._client = client
        self._timeout = min(timeout, MAX_PROBE_TIMEOUT)
        self._cache: TTLCache[str, bool] = TTLCache(maxsize=1, ttl=ttl, timer=timer)
        self._lock = threading.Lock()

    @property
    def timeout(self) -> float:
        return self._timeout

    def is_available(self) -> bool:
        with self._lock:
            cached = self._cache.get(_KEY)
        if cached is not None:
            return cached

        available = self._check()
        with self._lock:
            self._cache[_KEY] = available
        return available

    def invalidate(self) -> None:
        with self._lock:
            self._cache.clear()

    def _check(self) -> bool:
        try:
            body = self._client.health(timeout=self._timeout)
        except Exception as exc:  # any failure means "not available"
            logger.warning("Prediction service is not available: %s", exc)
            return False
        status = str(body.get("status", "ok")).lower() if isinstance(body, dict) else "ok"
        if status not in _HEALTHY_STATUSES:
            logger.warning("Prediction service reported status %r", status)
            return False
        return True
