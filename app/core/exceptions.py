# FILE: app/core/exceptions.py
"""
Domain exceptions.

Services raise these where a rule is violated; the HTTP layer
(app/api/exception_handlers.py) turns them into the
``{code, message, data}`` envelope. Services never build responses.
"""
from __future__ import annotations

from typing import Any, Optional


class AppException(Exception):
    type: str = "app_error"
    code: str = "APP_ERROR"
    http_status: int = 500

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        data: Any = None,
        http_status: Optional[int] = None,
    ):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        if http_status is not None:
            self.http_status = http_status
        self.data = data

    def __str__(self) -> str:
        return self.message


class ValidationError(AppException):
    """Malformed or logically invalid input."""
    type = "validation"
    code = "VALIDATION_ERROR"
    http_status = 400


class StateError(AppException):
    """Operation attempted in the wrong lifecycle state."""
    type = "state"
    code = "STATE_ERROR"
    http_status = 400


class NotFoundError(AppException):
    type = "not_found"
    code = "NOT_FOUND"
    http_status = 404

    def __init__(self, resource: str, resource_id: Any = None, **kwargs):
        message = f"{resource} not found"
        if resource_id is not None:
            message = f"{resource} not found: {resource_id}"
        super().__init__(message, **kwargs)
        self.resource = resource
        self.resource_id = resource_id


class PermissionDeniedError(AppException):
    type = "permission"
    code = "PERMISSION_DENIED"
    http_status = 403


class SystemError(AppException):  # noqa: A001
    type = "system"
    code = "SYSTEM_ERROR"
    http_status = 500

    def __init__(self, message: str = "Internal server error", **kwargs):
        super().__init__(message, **kwargs)
