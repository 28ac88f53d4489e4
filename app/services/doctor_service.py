# FILE: app/services/doctor_service.py
from __future__ import annotations

import logging
from typing import List, Optional

from sqlalchemy.orm import Session, joinedload

from app.core.context import CallerContext
from app.core.exceptions import (
    NotFoundError,
    PermissionDeniedError,
    StateError,
    ValidationError,
)
from app.models.department import Department
from app.models.doctor import Doctor
from app.models.enums import RegistrationStatus
from app.models.patient import Patient
from app.models.registration import Registration
from app.services.audit_logger import log_audit
from app.services.registration_service import get_registration, lock_registration
from app.services.state_machine import transition_registration
from app.utils.timezone import today_local

logger = logging.getLogger(__name__)

ACTIVE_STATUSES = (
    RegistrationStatus.WAITING,
    RegistrationStatus.PAID_REGISTRATION,
    RegistrationStatus.IN_CONSULTATION,
)

# fee payment and cancellation belong to the cashier and the registration desk
DOCTOR_TARGET_STATUSES = (
    RegistrationStatus.IN_CONSULTATION,
    RegistrationStatus.COMPLETED,
)


def get_and_validate_doctor(db: Session, doctor_id: Optional[int]) -> Doctor:
    if not doctor_id or doctor_id <= 0:
        raise ValidationError("Doctor id is invalid")
    doctor = db.get(Doctor, doctor_id)
    if not doctor or doctor.is_deleted:
        raise NotFoundError("Doctor", doctor_id)
    dept = doctor.department
    if dept is None or dept.is_deleted:
        raise ValidationError("Doctor's department is missing")
    return doctor


def get_waiting_list(
    db: Session,
    *,
    doctor_id: Optional[int],
    dept_id: Optional[int] = None,
    show_all_dept: bool = False,
) -> List[Registration]:
    """
    Today's active queue (waiting, paid, in consultation), either for one
    doctor or, with show_all_dept, for the whole department.
    """
    q = (db.query(Registration).options(
        joinedload(Registration.patient),
        joinedload(Registration.doctor),
        joinedload(Registration.department),
    ).filter(
        Registration.visit_date == today_local(),
        Registration.is_deleted.is_(False),
        Registration.status.in_([int(s) for s in ACTIVE_STATUSES]),
    ))

    if show_all_dept:
        if not dept_id or dept_id <= 0:
            raise ValidationError("Department id is required for department view")
        dept = db.get(Department, dept_id)
        if not dept or dept.is_deleted:
            raise NotFoundError("Department", dept_id)
        if not dept.is_active:
            raise ValidationError(f"Department is disabled: {dept.name}")
        q = q.filter(Registration.department_id == dept_id)
    else:
        if not doctor_id or doctor_id <= 0:
            raise ValidationError("Doctor id is required for personal view")
        q = q.filter(Registration.doctor_id == doctor_id)

    rows = q.order_by(Registration.status.asc(), Registration.queue_no.asc()).all()
    logger.info("Waiting list doctor=%s dept=%s all=%s -> %s rows", doctor_id,
                dept_id, show_all_dept, len(rows))
    return rows


def update_status(
    db: Session,
    registration_id: int,
    new_status: RegistrationStatus,
    ctx: CallerContext,
) -> Registration:
    """Start / finish a consultation. Only today's registrations."""
    if not registration_id or registration_id <= 0:
        raise ValidationError("Registration id is invalid")
    if new_status not in DOCTOR_TARGET_STATUSES:
        raise StateError(
            "Doctors can only start or finish a consultation",
            data={"status": int(new_status)},
        )

    try:
        reg = lock_registration(db, registration_id)
        if reg.visit_date != today_local():
            raise StateError(
                f"Only today's registrations can be updated; visit date is "
                f"{reg.visit_date}")
        old = reg.status
        transition_registration(db, reg, new_status, ctx,
                                "doctor workstation")
        log_audit(db,
                  ctx=ctx,
                  action="STATUS",
                  table_name="registrations",
                  record_id=reg.id,
                  old_values={"status": old},
                  new_values={"status": int(new_status)})
        db.commit()
    except Exception:
        db.rollback()
        raise
    return get_registration(db, registration_id)


def validate_and_update_status(
    db: Session,
    registration_id: int,
    ctx: CallerContext,
    new_status: RegistrationStatus,
) -> Registration:
    """
    Like update_status, but the calling doctor must own the registration
    (admins excepted).
    """
    reg = get_registration(db, registration_id)
    if not ctx.is_admin:
        if not ctx.doctor_id:
            raise PermissionDeniedError("Caller is not linked to a doctor")
        if reg.doctor_id != ctx.doctor_id:
            logger.warning("Doctor %s tried to update registration %s of doctor %s",
                           ctx.doctor_id, reg.id, reg.doctor_id)
            raise PermissionDeniedError(
                "You can only update your own patients' registrations")
    return update_status(db, registration_id, new_status, ctx)


def get_patient_detail(db: Session, patient_id: int) -> Patient:
    if not patient_id or patient_id <= 0:
        raise ValidationError("Patient id is invalid")
    patient = db.get(Patient, patient_id)
    if not patient or patient.is_deleted:
        raise NotFoundError("Patient", patient_id)
    return patient
