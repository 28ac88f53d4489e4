# FILE: app/api/routes_basic_data.py
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.api.deps import get_current_context, get_db
from app.api.response import ok
from app.core.context import CallerContext
from app.schemas.basic_data import DepartmentOut, DoctorOut
from app.services import basic_data_service

router = APIRouter()


@router.get("/departments")
def departments(
        db: Session = Depends(get_db),
        ctx: CallerContext = Depends(get_current_context),
):
    return ok([DepartmentOut.model_validate(d) for d in basic_data_service.list_departments(db)])


@router.get("/doctors")
def doctors(
        department_id: Optional[int] = Query(None),
        db: Session = Depends(get_db),
        ctx: CallerContext = Depends(get_current_context),
):
    rows = basic_data_service.list_doctors(db, department_id)
    return ok([DoctorOut.model_validate(d) for d in rows])
