# FILE: app/api/routes_medicines.py
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.api.deps import get_current_context, get_db, require_roles
from app.api.response import ok
from app.core.context import CallerContext
from app.models.enums import UserRole
from app.schemas.common import Page
from app.services import medicine_service
from app.services.converters import to_medicine_view

router = APIRouter()


@router.get("/search")
def search_medicines(
        keyword: Optional[str] = Query(None, description="name / code / generic name"),
        category: Optional[str] = Query(None),
        is_prescription: Optional[bool] = Query(None),
        in_stock: Optional[bool] = Query(None),
        page: int = Query(1, ge=1),
        size: int = Query(20, ge=1, le=100),
        db: Session = Depends(get_db),
        ctx: CallerContext = Depends(require_roles(UserRole.DOCTOR, UserRole.PHARMACIST)),
):
    items, total = medicine_service.search_medicines_for_doctor(
        db,
        keyword=keyword,
        category=category,
        is_prescription=is_prescription,
        in_stock=in_stock,
        page=page,
        size=size,
    )
    return ok(
        Page(items=[to_medicine_view(m, ctx.role) for m in items],
             total=total,
             page=page,
             size=size))


@router.get("/active")
def list_active(
        db: Session = Depends(get_db),
        ctx: CallerContext = Depends(get_current_context),
):
    return ok([to_medicine_view(m, ctx.role) for m in medicine_service.get_all_active(db)])


@router.get("/{medicine_id}")
def get_medicine(
        medicine_id: int,
        db: Session = Depends(get_db),
        ctx: CallerContext = Depends(get_current_context),
):
    return ok(to_medicine_view(medicine_service.get_medicine(db, medicine_id), ctx.role))


@router.get("/{medicine_id}/check-stock")
def check_stock(
        medicine_id: int,
        quantity: int = Query(..., gt=0),
        db: Session = Depends(get_db),
        ctx: CallerContext = Depends(get_current_context),
):
    return ok(medicine_service.check_stock(db, medicine_id, quantity))
