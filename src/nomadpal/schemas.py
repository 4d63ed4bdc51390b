"""Pydantic models for API request/response validation."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field, model_validator


class ApiResponse(BaseModel):
    success: bool = True
    message: str
    data: Any = None


class ErrorBody(BaseModel):
    code: int
    message: str
    details: Any = None


class ErrorResponse(BaseModel):
    success: bool = False
    message: str
    error: ErrorBody


class PreferencesUpdate(BaseModel):
    timezone: str | None = Field(default=None, max_length=64)
    monthly_budget_min_usd: float | None = Field(default=None, ge=0)
    monthly_budget_max_usd: float | None = Field(default=None, ge=0)
    preferred_climate: str | None = Field(default=None, max_length=64)
    lifestyle_priorities: list[str] | None = None

    @model_validator(mode="after")
    def _budget_range(self) -> PreferencesUpdate:
        lo, hi = self.monthly_budget_min_usd, self.monthly_budget_max_usd
        if lo is not None and hi is not None and lo > hi:
            raise ValueError("monthly_budget_min_usd cannot exceed monthly_budget_max_usd")
        return self


class HealthOut(BaseModel):
    status: str
    message: str
    timestamp: str
    prediction_service: str


class ProfileUpdate(BaseModel):
    email: str | None = Field(default=None, max_length=191, pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
    display_name: str | None = Field(default=None, min_length=1, max_length=128)
    timezone: str | None = Field(default=None, max_length=64)


class SaveCityRequest(BaseModel):
    city_id: int = Field(gt=0)
