# FILE: app/core/rbac.py
from __future__ import annotations

from enum import Enum
from typing import Any, Iterable, Set

from fastapi import HTTPException, status

from app.models.enums import UserRole


def _code(x: Any) -> str:
    """
    Normalize a role code:
      - Enum -> enum.value
      - str  -> upper-cased str
      - object with .role -> its role
    """
    if x is None:
        return ""
    if isinstance(x, Enum):
        return str(x.value)
    if isinstance(x, str):
        return x.strip().upper()
    if hasattr(x, "role"):
        return _code(getattr(x, "role"))
    return str(x)


def is_admin_user(user: Any) -> bool:
    return _code(user) == UserRole.ADMIN.value


def has_role(user: Any, roles: Iterable[Any]) -> bool:
    """ADMIN passes every role check."""
    if not user:
        return False
    if is_admin_user(user):
        return True
    wanted: Set[str] = {_code(r) for r in roles}
    return _code(user) in wanted


def need_any_role(user: Any, roles: Iterable[Any]) -> None:
    if has_role(user, roles):
        return
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN,
                        detail="Not permitted")
