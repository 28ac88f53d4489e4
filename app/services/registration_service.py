# FILE: app/services/registration_service.py
from __future__ import annotations

import logging
from typing import List, Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session, joinedload

from app.core.context import CallerContext
from app.core.exceptions import NotFoundError, StateError, ValidationError
from app.models.charge import Charge, ChargeDetail
from app.models.department import Department
from app.models.doctor import Doctor
from app.models.enums import ChargeItemType, ChargeStatus, RegistrationStatus
from app.models.patient import Patient
from app.models.registration import Registration
from app.schemas.registration import RegistrationCreate
from app.services.audit_logger import log_audit
from app.services.numbers import (
    next_patient_no,
    next_queue_number,
    next_registration_no,
)
from app.services.state_machine import transition_registration
from app.utils.money import money2
from app.utils.timezone import today_local

logger = logging.getLogger(__name__)

MIN_KEYWORD_LENGTH = 2
MAX_KEYWORD_LENGTH = 20
MAX_SEARCH_RESULTS = 50


def _load_options():
    return (
        joinedload(Registration.patient),
        joinedload(Registration.doctor),
        joinedload(Registration.department),
    )


def get_registration(db: Session, registration_id: int) -> Registration:
    reg = (db.query(Registration).options(*_load_options()).filter(
        Registration.id == registration_id).first())
    if not reg or reg.is_deleted:
        raise NotFoundError("Registration", registration_id)
    return reg


def lock_registration(db: Session, registration_id: int) -> Registration:
    reg = (db.query(Registration).filter(
        Registration.id == registration_id).with_for_update().first())
    if not reg or reg.is_deleted:
        raise NotFoundError("Registration", registration_id)
    return reg


def _find_or_create_patient(db: Session, data: RegistrationCreate) -> Patient:
    patient = (db.query(Patient).filter(
        Patient.id_card == data.id_card.strip(),
        Patient.is_deleted.is_(False),
    ).first())
    if patient:
        logger.info("Registration reuses patient %s (%s)", patient.id,
                    patient.patient_no)
        return patient

    patient = Patient(
        patient_no=next_patient_no(db),
        name=data.patient_name.strip(),
        id_card=data.id_card.strip(),
        gender=int(data.gender),
        age=data.age,
        phone=data.phone,
        is_deleted=False,
    )
    db.add(patient)
    db.flush()
    logger.info("Created patient %s (%s)", patient.id, patient.patient_no)
    return patient


def register(db: Session, data: RegistrationCreate,
             ctx: CallerContext) -> Registration:
    """
    Check a patient in: find-or-create the patient by id card and open a
    WAITING registration for today with a queue number.
    """
    if not data.patient_name.strip():
        raise ValidationError("Patient name is required")
    if not data.id_card.strip():
        raise ValidationError("ID card number is required")
    if data.registration_fee is None or data.registration_fee < 0:
        raise ValidationError("Registration fee is required")

    dept = db.get(Department, data.department_id)
    if not dept or dept.is_deleted:
        raise NotFoundError("Department", data.department_id)
    if not dept.is_active:
        raise ValidationError(f"Department is disabled: {dept.name}")

    doctor = db.get(Doctor, data.doctor_id)
    if not doctor or doctor.is_deleted:
        raise NotFoundError("Doctor", data.doctor_id)
    if not doctor.is_active:
        raise ValidationError(f"Doctor is disabled: {doctor.name}")
    if doctor.department_id != dept.id:
        raise ValidationError("Doctor does not belong to the department")

    try:
        patient = _find_or_create_patient(db, data)
        reg = Registration(
            reg_no=next_registration_no(db),
            patient_id=patient.id,
            doctor_id=doctor.id,
            department_id=dept.id,
            visit_date=today_local(),
            visit_type=int(data.visit_type),
            appointment_time=data.appointment_time,
            registration_fee=money2(data.registration_fee),
            status=int(RegistrationStatus.WAITING),
            queue_no=next_queue_number(db, dept.id),
            is_deleted=False,
            created_by=ctx.user_id,
        )
        db.add(reg)
        db.flush()
        log_audit(
            db,
            ctx=ctx,
            action="CREATE",
            table_name="registrations",
            record_id=reg.id,
            new_values={
                "reg_no": reg.reg_no,
                "patient_id": patient.id,
                "doctor_id": doctor.id,
                "registration_fee": reg.registration_fee,
            },
        )
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info("Registration %s (%s) created for patient %s", reg.id,
                reg.reg_no, patient.id)
    return get_registration(db, reg.id)


def _has_unpaid_charge(db: Session, registration_id: int) -> bool:
    return (db.query(Charge.id).filter(
        Charge.registration_id == registration_id,
        Charge.status == ChargeStatus.UNPAID,
    ).first() is not None)


def cancel(db: Session, registration_id: int, reason: Optional[str],
           ctx: CallerContext) -> Registration:
    try:
        reg = lock_registration(db, registration_id)
        if reg.status not in (RegistrationStatus.WAITING,
                              RegistrationStatus.PAID_REGISTRATION):
            raise StateError(
                "Only waiting registrations can be cancelled",
                data={"status": reg.status},
            )
        if _has_unpaid_charge(db, reg.id):
            raise ValidationError(
                "Registration has an unpaid charge; settle it first")
        if registration_fee_paid(db, reg):
            # the cashier refund cancels and refunds the registration itself
            raise ValidationError(
                "Registration fee has been paid; refund the charge at the cashier")

        transition_registration(db, reg, RegistrationStatus.CANCELLED, ctx,
                                reason)
        reg.cancel_reason = reason
        log_audit(db,
                  ctx=ctx,
                  action="CANCEL",
                  table_name="registrations",
                  record_id=reg.id,
                  remark=reason)
        db.commit()
    except Exception:
        db.rollback()
        raise
    return get_registration(db, registration_id)


def refund(db: Session, registration_id: int,
           ctx: CallerContext) -> Registration:
    try:
        reg = lock_registration(db, registration_id)
        if reg.status != RegistrationStatus.CANCELLED:
            raise StateError(
                "Only cancelled registrations can be refunded",
                data={"status": reg.status},
            )
        if registration_fee_paid(db, reg):
            raise ValidationError(
                "Registration fee has been paid; refund the charge at the cashier")
        transition_registration(db, reg, RegistrationStatus.REFUNDED, ctx,
                                "registration refund")
        log_audit(db,
                  ctx=ctx,
                  action="REFUND",
                  table_name="registrations",
                  record_id=reg.id,
                  new_values={"registration_fee": reg.registration_fee})
        db.commit()
    except Exception:
        db.rollback()
        raise
    return get_registration(db, registration_id)


def registration_fee_paid(db: Session, reg: Registration) -> bool:
    """
    Fee counts as paid when the registration sits in PAID_REGISTRATION or a
    PAID charge covers its REGISTRATION item.
    """
    if reg.status == RegistrationStatus.PAID_REGISTRATION:
        return True
    paid = (db.query(Charge.id).join(
        ChargeDetail, ChargeDetail.charge_id == Charge.id).filter(
            Charge.registration_id == reg.id,
            Charge.status == ChargeStatus.PAID,
            ChargeDetail.item_type == ChargeItemType.REGISTRATION.value,
        ).first())
    return paid is not None


def search_patients(db: Session, keyword: Optional[str]) -> List[Patient]:
    kw = (keyword or "").strip()
    if not kw:
        raise ValidationError("Search keyword is required")
    if len(kw) < MIN_KEYWORD_LENGTH:
        raise ValidationError(
            f"Search keyword needs at least {MIN_KEYWORD_LENGTH} characters")
    if len(kw) > MAX_KEYWORD_LENGTH:
        raise ValidationError(
            f"Search keyword must not exceed {MAX_KEYWORD_LENGTH} characters")

    like = f"%{kw}%"
    return (db.query(Patient).filter(
        Patient.is_deleted.is_(False),
        or_(
            Patient.name.like(like),
            Patient.patient_no.like(like),
            Patient.phone.like(like),
            Patient.id_card.like(like),
        ),
    ).order_by(Patient.id.desc()).limit(MAX_SEARCH_RESULTS).all())
