# FILE: app/services/audit_query.py
from __future__ import annotations

from datetime import date
from typing import List, Optional, Tuple

from sqlalchemy.orm import Session

from app.models.audit import AuditLog
from app.utils.timezone import day_bounds


def list_audit_logs(
    db: Session,
    *,
    table_name: Optional[str] = None,
    record_id: Optional[str] = None,
    action: Optional[str] = None,
    user_id: Optional[int] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    page: int = 1,
    size: int = 50,
) -> Tuple[List[AuditLog], int]:
    q = db.query(AuditLog)
    if table_name:
        q = q.filter(AuditLog.table_name == table_name)
    if record_id:
        q = q.filter(AuditLog.record_id == str(record_id))
    if action:
        q = q.filter(AuditLog.action == action.upper())
    if user_id is not None:
        q = q.filter(AuditLog.user_id == user_id)
    if date_from:
        q = q.filter(AuditLog.created_at >= day_bounds(date_from)[0])
    if date_to:
        q = q.filter(AuditLog.created_at < day_bounds(date_to)[1])

    page = max(page, 1)
    size = min(max(size, 1), 200)
    total = q.count()
    rows = (q.order_by(AuditLog.id.desc()).offset((page - 1) * size).limit(size).all())
    return rows, total
