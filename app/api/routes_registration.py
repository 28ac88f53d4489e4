# FILE: app/api/routes_registration.py
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.api.deps import get_current_context, get_db, require_roles
from app.api.response import ok
from app.core.context import CallerContext
from app.models.enums import UserRole
from app.schemas.common import ReasonIn
from app.schemas.registration import PatientSearchOut, RegistrationCreate
from app.services import registration_service
from app.services.converters import to_registration_out
from app.utils.masking import mask_id_card, mask_phone

router = APIRouter()


@router.post("")
def register_patient(
        payload: RegistrationCreate,
        db: Session = Depends(get_db),
        ctx: CallerContext = Depends(require_roles(UserRole.NURSE)),
):
    reg = registration_service.register(db, payload, ctx)
    return ok(to_registration_out(reg), message="Registered")


@router.get("/patients/search")
def search_patients(
        keyword: Optional[str] = Query(None, description="name / patient no / phone / id card"),
        db: Session = Depends(get_db),
        ctx: CallerContext = Depends(require_roles(UserRole.NURSE, UserRole.DOCTOR)),
):
    rows = registration_service.search_patients(db, keyword)
    return ok([
        PatientSearchOut(
            id=p.id,
            patient_no=p.patient_no,
            name=p.name,
            gender=p.gender,
            age=p.age,
            id_card=mask_id_card(p.id_card),
            phone=mask_phone(p.phone),
        ) for p in rows
    ])


@router.get("/{registration_id}")
def get_registration(
        registration_id: int,
        db: Session = Depends(get_db),
        ctx: CallerContext = Depends(get_current_context),
):
    return ok(to_registration_out(registration_service.get_registration(db, registration_id)))


@router.post("/{registration_id}/cancel")
def cancel_registration(
        registration_id: int,
        payload: ReasonIn,
        db: Session = Depends(get_db),
        ctx: CallerContext = Depends(require_roles(UserRole.NURSE)),
):
    reg = registration_service.cancel(db, registration_id, payload.reason, ctx)
    return ok(to_registration_out(reg), message="Cancelled")


@router.post("/{registration_id}/refund")
def refund_registration(
        registration_id: int,
        db: Session = Depends(get_db),
        ctx: CallerContext = Depends(require_roles(UserRole.NURSE, UserRole.CASHIER)),
):
    reg = registration_service.refund(db, registration_id, ctx)
    return ok(to_registration_out(reg), message="Refunded")
