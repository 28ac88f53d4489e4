# FILE: app/services/numbers.py
from __future__ import annotations

import logging
from enum import Enum
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.models.number_series import NumberSeries
from app.utils.timezone import now_local

logger = logging.getLogger(__name__)


class NumberDocType(str, Enum):
    CHARGE = "CHARGE"
    PRESCRIPTION = "PRESCRIPTION"
    REGISTRATION = "REGISTRATION"
    PATIENT = "PATIENT"
    MEDICAL_RECORD = "MEDICAL_RECORD"
    QUEUE = "QUEUE"  # per department, see next_queue_number


def _locked_row(db: Session, doc_type: str, period_key: str) -> Optional[NumberSeries]:
    return (db.query(NumberSeries).filter(
        NumberSeries.doc_type == doc_type,
        NumberSeries.period_key == period_key,
    ).with_for_update().first())


def _take(db: Session, doc_type: str, period_key: str) -> int:
    row = _locked_row(db, doc_type, period_key)

    if not row:
        # nothing to lock yet; a concurrent first insert loses on uq_number_series
        try:
            with db.begin_nested():
                row = NumberSeries(doc_type=doc_type,
                                   period_key=period_key,
                                   next_number=1)
                db.add(row)
        except IntegrityError:
            logger.info("Number series %s/%s created concurrently, re-reading",
                        doc_type, period_key)
            row = _locked_row(db, doc_type, period_key)
            if row is None:
                raise

    n = int(row.next_number or 1)
    row.next_number = n + 1
    db.flush()
    return n


def next_number(
    db: Session,
    *,
    doc_type: NumberDocType,
    prefix: str,
    padding: int = 4,
) -> str:
    """
    <prefix><yyyyMMdd><zero-padded daily sequence>, e.g. CHG20240315000001.
    The sequence restarts every day.
    """
    day = now_local().strftime("%Y%m%d")
    n = _take(db, doc_type.value, day)
    return f"{prefix}{day}{str(n).zfill(padding)}"


def next_charge_no(db: Session) -> str:
    return next_number(db, doc_type=NumberDocType.CHARGE, prefix="CHG", padding=6)


def next_prescription_no(db: Session) -> str:
    return next_number(db, doc_type=NumberDocType.PRESCRIPTION, prefix="RX")


def next_registration_no(db: Session) -> str:
    return next_number(db, doc_type=NumberDocType.REGISTRATION, prefix="R")


def next_patient_no(db: Session) -> str:
    return next_number(db, doc_type=NumberDocType.PATIENT, prefix="P")


def next_record_no(db: Session) -> str:
    return next_number(db, doc_type=NumberDocType.MEDICAL_RECORD, prefix="MR")


def next_queue_number(db: Session, department_id: int) -> str:
    """Three-digit queue number, per department per day."""
    day = now_local().strftime("%Y%m%d")
    n = _take(db, f"{NumberDocType.QUEUE.value}:{department_id}", day)
    return f"{n:03d}"
