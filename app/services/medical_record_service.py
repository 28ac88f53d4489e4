# FILE: app/services/medical_record_service.py
from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy.orm import Session

from app.core.context import CallerContext
from app.core.exceptions import NotFoundError, StateError
from app.models.enums import MedicalRecordStatus
from app.models.medical_record import MedicalRecord
from app.schemas.medical_record import MedicalRecordSave
from app.services.audit_logger import log_audit
from app.services.numbers import next_record_no
from app.services.registration_service import get_registration
from app.utils.timezone import now_local

logger = logging.getLogger(__name__)

_CONTENT_FIELDS = (
    "chief_complaint",
    "present_illness",
    "past_history",
    "personal_history",
    "family_history",
    "physical_exam",
    "auxiliary_exam",
    "diagnosis",
    "diagnosis_code",
    "treatment_plan",
    "doctor_advice",
)


def get_by_registration_id(db: Session,
                           registration_id: int) -> Optional[MedicalRecord]:
    return (db.query(MedicalRecord).filter(
        MedicalRecord.registration_id == registration_id,
        MedicalRecord.is_deleted.is_(False),
    ).first())


def get_by_id(db: Session, record_id: int) -> MedicalRecord:
    record = db.get(MedicalRecord, record_id)
    if not record or record.is_deleted:
        raise NotFoundError("Medical record", record_id)
    return record


def save_or_update(db: Session, data: MedicalRecordSave,
                   ctx: CallerContext) -> MedicalRecord:
    """One record per registration: create on first save, update afterwards."""
    reg = get_registration(db, data.registration_id)

    try:
        record = get_by_registration_id(db, reg.id)
        if record is None:
            record = MedicalRecord(
                record_no=next_record_no(db),
                registration_id=reg.id,
                patient_id=reg.patient_id,
                doctor_id=reg.doctor_id,
                status=int(MedicalRecordStatus.DRAFT),
                visit_time=now_local(),
                is_deleted=False,
                created_by=ctx.user_id,
            )
            db.add(record)
            logger.info("Creating medical record for registration %s", reg.id)
        elif record.status != MedicalRecordStatus.DRAFT:
            raise StateError("Submitted medical records cannot be edited",
                             data={"status": record.status})

        for field in _CONTENT_FIELDS:
            value = getattr(data, field)
            if value is not None:
                setattr(record, field, value)
        record.updated_by = ctx.user_id
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(record)
    return record


def submit(db: Session, record_id: int, ctx: CallerContext) -> MedicalRecord:
    try:
        record = get_by_id(db, record_id)
        if record.status != MedicalRecordStatus.DRAFT:
            raise StateError("Only draft medical records can be submitted",
                             data={"status": record.status})
        record.status = int(MedicalRecordStatus.SUBMITTED)
        record.updated_by = ctx.user_id
        log_audit(db,
                  ctx=ctx,
                  action="SUBMIT",
                  table_name="medical_records",
                  record_id=record.id)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(record)
    logger.info("Medical record %s submitted by %s", record.id, ctx.username)
    return record
