"""FastAPI dependencies — resolve per-app collaborators from ``app.state``."""

from __future__ import annotations

from fastapi import Header, Request
from sqlalchemy.engine import Engine

from nomadpal.clients.prediction import PredictionClient
from nomadpal.config import Settings
from nomadpal.errors import AuthenticationError
from nomadpal.services.assembler import ResultAssembler
from nomadpal.services.availability import AvailabilityProbe


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_engine(request: Request) -> Engine | None:
    return request.app.state.engine


def get_prediction_client(request: Request) -> PredictionClient:
    return request.app.state.prediction_client


def get_probe(request: Request) -> AvailabilityProbe:
    return request.app.state.probe


def get_assembler(request: Request) -> ResultAssembler:
    return ResultAssembler(request.app.state.probe, request.app.state.engine)


def optional_user_id(x_user_id: str | None = Header(default=None)) -> str | None:
    """Current user as asserted by the upstream auth layer, if any."""
    if x_user_id is None or not x_user_id.strip():
        return None
    return x_user_id.strip()


def require_user_id(x_user_id: str | None = Header(default=None)) -> str:
    user_id = optional_user_id(x_user_id)
    if user_id is None:
        raise AuthenticationError()
    return user_id
