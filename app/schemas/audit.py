# FILE: app/schemas/audit.py
from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict


class AuditLogOut(BaseModel):
    id: int
    user_id: Optional[int] = None
    username: Optional[str] = None
    action: str
    table_name: str
    record_id: str
    old_values: Optional[Any] = None
    new_values: Optional[Any] = None
    remark: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
