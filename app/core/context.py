# FILE: app/core/context.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from app.models.enums import UserRole


@dataclass(frozen=True)
class CallerContext:
    """
    Who is calling. Built once per request by app.api.deps and passed
    explicitly into every service call.
    """
    user_id: Optional[int]
    username: str
    role: UserRole
    doctor_id: Optional[int] = None
    department_id: Optional[int] = None

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    @classmethod
    def system(cls) -> "CallerContext":
        return cls(user_id=None, username="SYSTEM", role=UserRole.ADMIN)
