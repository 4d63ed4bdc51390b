"""Exception taxonomy shared by repositories, services and the HTTP layer.

Each error carries the HTTP status it maps to; the API's exception handlers
render them into the standard failure envelope.  Upstream (prediction
service) errors never reach a caller: the result assembler recovers from
them by serving un-enriched data.
"""

from __future__ import annotations

from typing import Any


class NomadPalError(Exception):
    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: str | None = None, details: Any = None):
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)


class InputValidationError(NomadPalError):
    status_code = 400
    default_message = "Invalid request parameters"


class AuthenticationError(NomadPalError):
    status_code = 401
    default_message = "Authentication required"


class NotFoundError(NomadPalError):
    status_code = 404
    default_message = "Resource not found"


class ConflictError(NomadPalError):
    status_code = 409
    default_message = "Resource already exists"


class StorageError(NomadPalError):
    status_code = 500
    default_message = "Record store failure"


class UpstreamError(NomadPalError):
    status_code = 502
    default_message = "Prediction service failure"


class UpstreamUnavailable(UpstreamError):
    default_message = "Prediction service unavailable"


class UpstreamTimeout(UpstreamError):
    status_code = 504
    default_message = "Prediction service timed out"
