# FILE: app/api/routes_audit_logs.py
from __future__ import annotations

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.api.deps import get_db, require_roles
from app.api.response import ok
from app.core.context import CallerContext
from app.models.enums import UserRole
from app.schemas.audit import AuditLogOut
from app.schemas.common import Page
from app.services.audit_query import list_audit_logs

router = APIRouter()


@router.get("")
def audit_logs(
        table_name: Optional[str] = Query(None),
        record_id: Optional[str] = Query(None),
        action: Optional[str] = Query(None),
        user_id: Optional[int] = Query(None),
        date_from: Optional[date] = Query(None),
        date_to: Optional[date] = Query(None),
        page: int = Query(1, ge=1),
        size: int = Query(50, ge=1, le=200),
        db: Session = Depends(get_db),
        ctx: CallerContext = Depends(require_roles(UserRole.ADMIN)),
):
    rows, total = list_audit_logs(
        db,
        table_name=table_name,
        record_id=record_id,
        action=action,
        user_id=user_id,
        date_from=date_from,
        date_to=date_to,
        page=page,
        size=size,
    )
    return ok(Page(items=[AuditLogOut.model_validate(r) for r in rows], total=total, page=page, size=size))
