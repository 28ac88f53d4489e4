# FILE: app/schemas/common.py
from __future__ import annotations

from typing import Any, Generic, List, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field

T = TypeVar("T")


class ApiResponse(BaseModel):
    """Uniform envelope: {code, message, data}."""
    code: int = 200
    message: str = "success"
    data: Optional[Any] = None

    model_config = ConfigDict(arbitrary_types_allowed=True)


class Page(BaseModel, Generic[T]):
    items: List[T] = Field(default_factory=list)
    total: int = 0
    page: int = 1
    size: int = 20


class ReasonIn(BaseModel):
    reason: str = Field(..., min_length=1, max_length=255)
