# FILE: app/api/routes_charges.py
from __future__ import annotations

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.api.deps import get_db, require_roles
from app.api.response import ok
from app.core.context import CallerContext
from app.models.enums import ChargeStatus, UserRole
from app.schemas.charge import ChargeCreate, PaymentIn, PrescriptionChargeCreate
from app.schemas.common import Page, ReasonIn
from app.services import charge_service
from app.services.converters import to_charge_out

router = APIRouter()

cashier_only = require_roles(UserRole.CASHIER)


@router.post("")
def create_charge(
        payload: ChargeCreate,
        db: Session = Depends(get_db),
        ctx: CallerContext = Depends(cashier_only),
):
    charge = charge_service.create_charge(db, payload.registration_id, payload.prescription_ids, ctx)
    return ok(to_charge_out(charge), message="Charge created")


@router.post("/registration/{registration_id}")
def create_registration_charge(
        registration_id: int,
        db: Session = Depends(get_db),
        ctx: CallerContext = Depends(cashier_only),
):
    charge = charge_service.create_registration_charge(db, registration_id, ctx)
    return ok(to_charge_out(charge), message="Charge created")


@router.post("/prescription")
def create_prescription_charge(
        payload: PrescriptionChargeCreate,
        db: Session = Depends(get_db),
        ctx: CallerContext = Depends(cashier_only),
):
    charge = charge_service.create_prescription_charge(db, payload.registration_id,
                                                       payload.prescription_ids, ctx)
    return ok(to_charge_out(charge), message="Charge created")


@router.get("")
def list_charges(
        patient_id: Optional[int] = Query(None),
        registration_id: Optional[int] = Query(None),
        status: Optional[ChargeStatus] = Query(None, description="0 unpaid / 1 paid / 2 refunded"),
        start_date: Optional[date] = Query(None),
        end_date: Optional[date] = Query(None),
        page: int = Query(1, ge=1),
        size: int = Query(20, ge=1, le=100),
        db: Session = Depends(get_db),
        ctx: CallerContext = Depends(cashier_only),
):
    items, total = charge_service.list_charges(
        db,
        patient_id=patient_id,
        registration_id=registration_id,
        status=status,
        start_date=start_date,
        end_date=end_date,
        page=page,
        size=size,
    )
    return ok(Page(items=[to_charge_out(c) for c in items], total=total, page=page, size=size))


@router.get("/statistics/daily")
def daily_settlement(
        day: Optional[date] = Query(None, alias="date", description="defaults to today"),
        db: Session = Depends(get_db),
        ctx: CallerContext = Depends(cashier_only),
):
    return ok(charge_service.get_daily_settlement(db, day))


@router.get("/registration/{registration_id}/by-type")
def charges_by_type(
        registration_id: int,
        db: Session = Depends(get_db),
        ctx: CallerContext = Depends(cashier_only),
):
    return ok(charge_service.get_charges_by_type(db, registration_id))


@router.get("/registration/{registration_id}/fee-paid")
def registration_fee_paid(
        registration_id: int,
        db: Session = Depends(get_db),
        ctx: CallerContext = Depends(cashier_only),
):
    return ok({
        "registration_id": registration_id,
        "paid": charge_service.is_registration_fee_paid(db, registration_id),
    })


@router.get("/{charge_id}")
def get_charge(
        charge_id: int,
        db: Session = Depends(get_db),
        ctx: CallerContext = Depends(cashier_only),
):
    return ok(to_charge_out(charge_service.get_charge(db, charge_id)))


@router.get("/{charge_id}/payment-status")
def payment_status(
        charge_id: int,
        db: Session = Depends(get_db),
        ctx: CallerContext = Depends(cashier_only),
):
    return ok(charge_service.get_payment_status(db, charge_id))


@router.post("/{charge_id}/pay")
def pay_charge(
        charge_id: int,
        payload: PaymentIn,
        db: Session = Depends(get_db),
        ctx: CallerContext = Depends(cashier_only),
):
    charge = charge_service.process_payment(db, charge_id, payload, ctx)
    return ok(to_charge_out(charge), message="Paid")


@router.post("/{charge_id}/refund")
def refund_charge(
        charge_id: int,
        payload: ReasonIn,
        db: Session = Depends(get_db),
        ctx: CallerContext = Depends(cashier_only),
):
    charge = charge_service.process_refund(db, charge_id, payload.reason, ctx)
    return ok(to_charge_out(charge), message="Refunded")
