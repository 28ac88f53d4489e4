# FILE: app/api/routes_doctor.py
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.api.deps import get_db, require_roles
from app.api.response import ok
from app.core.context import CallerContext
from app.models.enums import UserRole
from app.schemas.registration import PatientDetailOut, RegistrationStatusIn
from app.services import doctor_service
from app.services.converters import to_registration_out
from app.utils.masking import mask_id_card, mask_phone

router = APIRouter()

doctor_only = require_roles(UserRole.DOCTOR)


@router.get("/waiting-list")
def waiting_list(
        show_all_dept: bool = Query(False, description="whole department instead of own queue"),
        dept_id: Optional[int] = Query(None, description="defaults to the doctor's department"),
        db: Session = Depends(get_db),
        ctx: CallerContext = Depends(doctor_only),
):
    rows = doctor_service.get_waiting_list(
        db,
        doctor_id=ctx.doctor_id,
        dept_id=dept_id or ctx.department_id,
        show_all_dept=show_all_dept,
    )
    return ok([to_registration_out(r) for r in rows])


@router.put("/registrations/{registration_id}/status")
def update_registration_status(
        registration_id: int,
        payload: RegistrationStatusIn,
        db: Session = Depends(get_db),
        ctx: CallerContext = Depends(doctor_only),
):
    reg = doctor_service.validate_and_update_status(db, registration_id, ctx, payload.status)
    return ok(to_registration_out(reg), message="Status updated")


@router.get("/patients/{patient_id}")
def patient_detail(
        patient_id: int,
        db: Session = Depends(get_db),
        ctx: CallerContext = Depends(doctor_only),
):
    p = doctor_service.get_patient_detail(db, patient_id)
    return ok(
        PatientDetailOut(
            id=p.id,
            patient_no=p.patient_no,
            name=p.name,
            gender=p.gender,
            age=p.age,
            id_card=mask_id_card(p.id_card),
            phone=mask_phone(p.phone),
            birth_date=p.birth_date,
            address=p.address,
            blood_type=p.blood_type,
            allergy_history=p.allergy_history,
            medical_history=p.medical_history,
        ))
