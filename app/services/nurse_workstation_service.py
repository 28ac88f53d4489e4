# FILE: app/services/nurse_workstation_service.py
from __future__ import annotations

import logging
from datetime import date
from typing import List, Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session, joinedload

from app.models.patient import Patient
from app.models.registration import Registration
from app.utils.timezone import today_local

logger = logging.getLogger(__name__)


def get_today_registrations(
    db: Session,
    *,
    visit_date: Optional[date] = None,
    department_id: Optional[int] = None,
    status: Optional[int] = None,
    visit_type: Optional[int] = None,
    keyword: Optional[str] = None,
) -> List[Registration]:
    visit_date = visit_date or today_local()
    q = (db.query(Registration).join(
        Patient, Patient.id == Registration.patient_id).options(
            joinedload(Registration.patient),
            joinedload(Registration.doctor),
            joinedload(Registration.department),
            joinedload(Registration.medical_record),
        ).filter(
            Registration.is_deleted.is_(False),
            Registration.visit_date == visit_date,
        ))
    if department_id is not None:
        q = q.filter(Registration.department_id == department_id)
    if status is not None:
        q = q.filter(Registration.status == status)
    if visit_type is not None:
        q = q.filter(Registration.visit_type == visit_type)
    if keyword and keyword.strip():
        like = f"%{keyword.strip()}%"
        q = q.filter(or_(Patient.name.like(like), Registration.reg_no.like(like)))

    rows = q.order_by(Registration.created_at.asc(), Registration.id.asc()).all()
    logger.info("Nurse list %s -> %s registrations", visit_date, len(rows))
    return rows
