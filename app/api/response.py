# FILE: app/api/response.py
from __future__ import annotations

from typing import Any

from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from app.schemas.common import ApiResponse


def ok(
    data: Any = None,
    *,
    message: str = "success",
    status_code: int = 200,
) -> JSONResponse:
    """
    Standard success wrapper:
    {
      "code": 200,
      "message": "success",
      "data": ...
    }
    """
    payload = ApiResponse(code=status_code, message=message, data=data)
    # jsonable_encoder converts datetime/date/Decimal/Enum etc. to JSON-safe types
    return JSONResponse(status_code=status_code, content=jsonable_encoder(payload))


def err(
    message: str = "Something went wrong",
    *,
    status_code: int = 400,
    data: Any = None,
) -> JSONResponse:
    """
    Standard error wrapper; ``code`` mirrors the HTTP status:
    {
      "code": 400,
      "message": "...",
      "data": null
    }
    """
    payload = ApiResponse(code=status_code, message=message, data=data)
    return JSONResponse(status_code=status_code, content=jsonable_encoder(payload))
