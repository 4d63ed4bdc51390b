"""Response envelope helpers shared by routers and exception handlers."""

from __future__ import annotations

from typing import Any

from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse


def success(data: Any = None, message: str = "Success") -> dict[str, Any]:
    return {"success": True, "message": message, "data": data}


def failure(status_code: int, message: str, details: Any = None) -> JSONResponse:
    error: dict[str, Any] = {"code": status_code, "message": message}
    if details is not None:
        error["details"] = details
    return JSONResponse(
        status_code=status_code,
        content=jsonable_encoder({"success": False, "message": message, "error": error}),
    )
