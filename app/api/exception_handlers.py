# FILE: app/api/exception_handlers.py
from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.orm.exc import StaleDataError
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.api.response import err
from app.core.exceptions import AppException

logger = logging.getLogger(__name__)


def register_exception_handlers(app: FastAPI) -> None:

    @app.exception_handler(AppException)
    async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
        if exc.http_status >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path,
                         exc.message)
            return err(message="Internal server error", status_code=exc.http_status)
        logger.info("%s %s rejected (%s): %s", request.method, request.url.path,
                    exc.code, exc.message)
        return err(message=exc.message, status_code=exc.http_status, data=exc.data)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request,
                                     exc: StarletteHTTPException) -> JSONResponse:
        # exc.detail can be str/dict/list
        msg = exc.detail if isinstance(exc.detail, str) else "Request failed"
        return err(message=msg, status_code=exc.status_code)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
            request: Request, exc: RequestValidationError) -> JSONResponse:
        errors = [{
            "field": ".".join(str(p) for p in e.get("loc", ())[1:]),
            "message": e.get("msg"),
        } for e in exc.errors()]
        first = errors[0]["message"] if errors else "Validation error"
        return err(message=f"Validation error: {first}", status_code=400, data=errors)

    @app.exception_handler(StaleDataError)
    async def stale_data_handler(request: Request, exc: StaleDataError) -> JSONResponse:
        logger.warning("Concurrent modification on %s %s: %s", request.method,
                       request.url.path, exc)
        return err(message="The record was modified concurrently, please retry",
                   status_code=400)

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return err(message="Internal server error", status_code=500)
