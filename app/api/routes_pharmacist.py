# FILE: app/api/routes_pharmacist.py
from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.api.deps import get_db, require_roles
from app.api.response import ok
from app.core.context import CallerContext
from app.models.enums import StockFilter, UserRole
from app.schemas.common import Page, ReasonIn
from app.schemas.medicine import MedicineCreate, MedicineUpdate, StockAdjustIn
from app.schemas.prescription import ReviewIn
from app.services import medicine_service, prescription_service
from app.services.converters import to_medicine_pharmacist_view, to_prescription_out

router = APIRouter()

pharmacist_only = require_roles(UserRole.PHARMACIST)


# ---------- Prescriptions ----------


@router.get("/prescriptions/pending-review")
def pending_review(
        db: Session = Depends(get_db),
        ctx: CallerContext = Depends(pharmacist_only),
):
    rows = prescription_service.get_pending_review_list(db)
    return ok([to_prescription_out(p) for p in rows])


@router.get("/prescriptions/pending-dispense")
def pending_dispense(
        db: Session = Depends(get_db),
        ctx: CallerContext = Depends(pharmacist_only),
):
    rows = prescription_service.get_pending_dispense_list(db)
    return ok([to_prescription_out(p) for p in rows])


@router.post("/prescriptions/{prescription_id}/review")
def review_prescription(
        prescription_id: int,
        payload: Optional[ReviewIn] = None,
        db: Session = Depends(get_db),
        ctx: CallerContext = Depends(pharmacist_only),
):
    remark = payload.remark if payload else None
    rx = prescription_service.review(db, prescription_id, ctx, remark)
    return ok(to_prescription_out(rx), message="Reviewed")


@router.post("/prescriptions/{prescription_id}/dispense")
def dispense_prescription(
        prescription_id: int,
        db: Session = Depends(get_db),
        ctx: CallerContext = Depends(pharmacist_only),
):
    rx = prescription_service.dispense(db, prescription_id, ctx)
    return ok(to_prescription_out(rx), message="Dispensed")


@router.post("/prescriptions/{prescription_id}/return")
def return_prescription(
        prescription_id: int,
        payload: ReasonIn,
        db: Session = Depends(get_db),
        ctx: CallerContext = Depends(pharmacist_only),
):
    rx = prescription_service.return_medicine(db, prescription_id, payload.reason, ctx)
    return ok(to_prescription_out(rx), message="Returned")


@router.get("/statistics/today")
def my_statistics(
        day: Optional[date] = Query(None, description="defaults to today"),
        db: Session = Depends(get_db),
        ctx: CallerContext = Depends(pharmacist_only),
):
    return ok(prescription_service.get_pharmacist_statistics(db, ctx.user_id, day))


# ---------- Medicines ----------


@router.get("/medicines/search")
def search_medicines(
        keyword: Optional[str] = Query(None),
        category: Optional[str] = Query(None),
        is_prescription: Optional[bool] = Query(None),
        manufacturer: Optional[str] = Query(None),
        min_price: Optional[Decimal] = Query(None, ge=0),
        max_price: Optional[Decimal] = Query(None, ge=0),
        stock_status: Optional[StockFilter] = Query(None, description="LOW / OUT"),
        page: int = Query(1, ge=1),
        size: int = Query(20, ge=1, le=100),
        db: Session = Depends(get_db),
        ctx: CallerContext = Depends(pharmacist_only),
):
    items, total = medicine_service.search_medicines_for_pharmacist(
        db,
        keyword=keyword,
        category=category,
        is_prescription=is_prescription,
        manufacturer=manufacturer,
        min_price=min_price,
        max_price=max_price,
        stock_status=stock_status,
        page=page,
        size=size,
    )
    return ok(
        Page(items=[to_medicine_pharmacist_view(m) for m in items],
             total=total,
             page=page,
             size=size))


@router.get("/medicines/inventory-stats")
def inventory_stats(
        db: Session = Depends(get_db),
        ctx: CallerContext = Depends(pharmacist_only),
):
    return ok(medicine_service.get_inventory_stats(db))


@router.post("/medicines")
def create_medicine(
        payload: MedicineCreate,
        db: Session = Depends(get_db),
        ctx: CallerContext = Depends(pharmacist_only),
):
    m = medicine_service.create_medicine(db, payload, ctx)
    return ok(to_medicine_pharmacist_view(m), message="Created")


@router.put("/medicines/{medicine_id}")
def update_medicine(
        medicine_id: int,
        payload: MedicineUpdate,
        db: Session = Depends(get_db),
        ctx: CallerContext = Depends(pharmacist_only),
):
    m = medicine_service.update_medicine(db, medicine_id, payload, ctx)
    return ok(to_medicine_pharmacist_view(m), message="Updated")


@router.delete("/medicines/{medicine_id}")
def delete_medicine(
        medicine_id: int,
        db: Session = Depends(get_db),
        ctx: CallerContext = Depends(pharmacist_only),
):
    medicine_service.delete_medicine(db, medicine_id, ctx)
    return ok(None, message="Deleted")


@router.put("/medicines/{medicine_id}/stock")
def adjust_stock(
        medicine_id: int,
        payload: StockAdjustIn,
        db: Session = Depends(get_db),
        ctx: CallerContext = Depends(pharmacist_only),
):
    m = medicine_service.update_stock(db,
                                      medicine_id=medicine_id,
                                      quantity=payload.quantity,
                                      reason=payload.reason,
                                      ctx=ctx)
    return ok(to_medicine_pharmacist_view(m), message="Stock updated")
