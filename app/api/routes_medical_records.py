# FILE: app/api/routes_medical_records.py
from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.api.deps import get_current_context, get_db, require_roles
from app.api.response import ok
from app.core.context import CallerContext
from app.models.enums import UserRole
from app.schemas.medical_record import MedicalRecordOut, MedicalRecordSave
from app.services import medical_record_service

router = APIRouter()


@router.post("/save")
def save_medical_record(
        payload: MedicalRecordSave,
        db: Session = Depends(get_db),
        ctx: CallerContext = Depends(require_roles(UserRole.DOCTOR)),
):
    record = medical_record_service.save_or_update(db, payload, ctx)
    return ok(MedicalRecordOut.model_validate(record), message="Saved")


@router.get("/registration/{registration_id}")
def get_by_registration(
        registration_id: int,
        db: Session = Depends(get_db),
        ctx: CallerContext = Depends(get_current_context),
):
    record = medical_record_service.get_by_registration_id(db, registration_id)
    return ok(MedicalRecordOut.model_validate(record) if record else None)


@router.get("/{record_id}")
def get_medical_record(
        record_id: int,
        db: Session = Depends(get_db),
        ctx: CallerContext = Depends(get_current_context),
):
    return ok(MedicalRecordOut.model_validate(medical_record_service.get_by_id(db, record_id)))


@router.post("/{record_id}/submit")
def submit_medical_record(
        record_id: int,
        db: Session = Depends(get_db),
        ctx: CallerContext = Depends(require_roles(UserRole.DOCTOR)),
):
    record = medical_record_service.submit(db, record_id, ctx)
    return ok(MedicalRecordOut.model_validate(record), message="Submitted")
