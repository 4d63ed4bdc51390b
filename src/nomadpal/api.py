"""FastAPI service exposing cities enriched with predicted scores.

Endpoints:
  GET  /api/health                        — liveness + prediction service status
  GET  /api/cities                        — filtered, paginated, enriched cities
  GET  /api/cities/filter                 — listing with extended filters
  GET  /api/cities/popular                — safe, affordable cities
  GET  /api/cities/search/{query}         — text search
  GET  /api/cities/country/{country}      — cities in one country
  GET  /api/cities/personalized           — prediction-service recommendations
  GET  /api/cities/saved                  — the current user's saved cities
  GET  /api/cities/slug/{slug}            — one city by slug
  GET  /api/cities/{id}                   — one city by id
  POST /api/cities/{id}/save              — toggle saved state
  GET  /api/cities/{id}/cost-breakdown    — monthly cost split
  GET  /api/users/preferences             — current user's preferences
  PUT  /api/users/preferences             — update them
  GET  /api/users/profile                 — current user's profile
  PUT  /api/users/profile                 — update email / display name / timezone
  GET  /api/users/saved-cities            — saved cities, record-store rows
  POST /api/users/saved-cities            — save a city (409 if already saved)
  DELETE /api/users/saved-cities/{id}     — remove a saved city
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from sqlalchemy.engine import Engine
from starlette.exceptions import HTTPException as StarletteHTTPException

from nomadpal.clients.prediction import PredictionClient
from nomadpal.config import Settings
from nomadpal.config import settings as default_settings
from nomadpal.db import build_engine
from nomadpal.deps import get_probe
from nomadpal.errors import NomadPalError
from nomadpal.responses import failure
from nomadpal.routers import cities, users
from nomadpal.schemas import HealthOut
from nomadpal.services.availability import AvailabilityProbe

logger = logging.getLogger(__name__)


def _register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(NomadPalError)
    async def nomadpal_error_handler(request: Request, exc: NomadPalError):
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        return failure(exc.status_code, exc.message, exc.details)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        details = [
            {"loc": list(err.get("loc", ())), "msg": err.get("msg"), "type": err.get("type")}
            for err in exc.errors()
        ]
        return failure(400, "Invalid request parameters", details)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        message = "Route not found" if exc.status_code == 404 else str(exc.detail)
        return failure(exc.status_code, message)

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.error("Unhandled exception on %s %s", request.method, request.url.path, exc_info=exc)
        return failure(500, "Internal server error")


def create_app(
    settings: Settings | None = None,
    engine: Engine | None = None,
    prediction_client: PredictionClient | None = None,
    probe: AvailabilityProbe | None = None,
) -> FastAPI:
    """Build the app with explicitly supplied collaborators.

    Anything not supplied is built from ``settings``; ``engine=None`` means a
    new engine for ``settings.database_url`` bounded by ``settings.db_timeout``.
    """
    settings = settings or default_settings
    if engine is None:
        engine = build_engine(settings.database_url, settings.db_timeout)
    prediction_client = prediction_client or PredictionClient.from_settings(settings)
    probe = probe or AvailabilityProbe(
        prediction_client,
        ttl=settings.probe_ttl,
        timeout=settings.effective_probe_timeout,
    )

    app = FastAPI(title="NomadPal City API", version="1.0.0")
    app.state.settings = settings
    app.state.engine = engine
    app.state.prediction_client = prediction_client
    app.state.probe = probe

    _register_exception_handlers(app)
    app.include_router(cities.router)
    app.include_router(users.router)

    @app.get("/api/health", response_model=HealthOut)
    def health(probe: AvailabilityProbe = Depends(get_probe)):
        return HealthOut(
            status="OK",
            message="NomadPal API is running",
            timestamp=datetime.now(tz=timezone.utc).isoformat(),
            prediction_service="available" if probe.is_available() else "unavailable",
        )

    return app


app = create_app()
