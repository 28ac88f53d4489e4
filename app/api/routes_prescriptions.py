# FILE: app/api/routes_prescriptions.py
from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.api.deps import get_current_context, get_db, require_roles
from app.api.response import ok
from app.core.context import CallerContext
from app.models.enums import UserRole
from app.schemas.common import ReasonIn
from app.schemas.prescription import PrescriptionCreate
from app.services import prescription_service
from app.services.converters import to_prescription_out

router = APIRouter()


@router.post("")
def create_prescription(
        payload: PrescriptionCreate,
        db: Session = Depends(get_db),
        ctx: CallerContext = Depends(require_roles(UserRole.DOCTOR)),
):
    rx = prescription_service.create_prescription(db, payload, ctx)
    return ok(to_prescription_out(rx), message="Prescription created")


@router.get("/record/{record_id}")
def list_by_record(
        record_id: int,
        db: Session = Depends(get_db),
        ctx: CallerContext = Depends(get_current_context),
):
    rows = prescription_service.get_by_record_id(db, record_id)
    return ok([to_prescription_out(p) for p in rows])


@router.get("/registration/{registration_id}")
def list_by_registration(
        registration_id: int,
        db: Session = Depends(get_db),
        ctx: CallerContext = Depends(get_current_context),
):
    rows = prescription_service.get_by_registration_id(db, registration_id)
    return ok([to_prescription_out(p) for p in rows])


@router.get("/{prescription_id}")
def get_prescription(
        prescription_id: int,
        db: Session = Depends(get_db),
        ctx: CallerContext = Depends(get_current_context),
):
    return ok(to_prescription_out(prescription_service.get_prescription(db, prescription_id)))


@router.post("/{prescription_id}/cancel")
def cancel_prescription(
        prescription_id: int,
        payload: ReasonIn,
        db: Session = Depends(get_db),
        ctx: CallerContext = Depends(require_roles(UserRole.DOCTOR)),
):
    rx = prescription_service.cancel(db, prescription_id, payload.reason, ctx)
    return ok(to_prescription_out(rx), message="Prescription cancelled")
