# FILE: app/api/routes_nurse.py
from __future__ import annotations

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.api.deps import get_db, require_roles
from app.api.response import ok
from app.core.context import CallerContext
from app.models.enums import UserRole
from app.services import nurse_workstation_service
from app.services.converters import to_nurse_registration_out

router = APIRouter()


@router.get("/registrations/today")
def today_registrations(
        visit_date: Optional[date] = Query(None),
        department_id: Optional[int] = Query(None),
        status: Optional[int] = Query(None),
        visit_type: Optional[int] = Query(None),
        keyword: Optional[str] = Query(None, description="patient name / registration no"),
        db: Session = Depends(get_db),
        ctx: CallerContext = Depends(require_roles(UserRole.NURSE)),
):
    rows = nurse_workstation_service.get_today_registrations(
        db,
        visit_date=visit_date,
        department_id=department_id,
        status=status,
        visit_type=visit_type,
        keyword=keyword,
    )
    return ok([to_nurse_registration_out(r) for r in rows])
