# FILE: app/services/prescription_service.py
"""
Prescription lifecycle: create -> review -> (paid via charge) -> dispense
-> optional return.

Stock is only touched by dispense (decrement) and return (restore); both
lock the medicine rows and apply all lines or none.
"""
from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal
from typing import Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session, selectinload

from app.core.config import settings
from app.core.context import CallerContext
from app.core.exceptions import NotFoundError, StateError, ValidationError
from app.models.charge import Charge, ChargeDetail
from app.models.enums import (
    ChargeItemType,
    ChargeStatus,
    PrescriptionStatus,
    RegistrationStatus,
)
from app.models.medicine import Medicine
from app.models.prescription import Prescription, PrescriptionDetail
from app.schemas.prescription import PharmacistStatsOut, PrescriptionCreate
from app.services.audit_logger import log_audit
from app.services.medical_record_service import get_by_registration_id as get_record_for_registration
from app.services.medicine_service import apply_stock_delta
from app.services.numbers import next_prescription_no
from app.services.registration_service import get_registration
from app.services.state_machine import ensure_transition
from app.utils.money import ZERO, money2
from app.utils.timezone import day_bounds, now_local, today_local

logger = logging.getLogger(__name__)

ACTIVE_MEDICINE = 1

_CLOSED_REGISTRATION = (RegistrationStatus.CANCELLED,
                        RegistrationStatus.REFUNDED)


def _load_options():
    return (
        selectinload(Prescription.details),
        selectinload(Prescription.patient),
        selectinload(Prescription.doctor),
    )


def get_prescription(db: Session, prescription_id: int) -> Prescription:
    rx = (db.query(Prescription).options(*_load_options()).filter(
        Prescription.id == prescription_id).first())
    if not rx or rx.is_deleted:
        raise NotFoundError("Prescription", prescription_id)
    return rx


def lock_prescription(db: Session, prescription_id: int) -> Prescription:
    rx = (db.query(Prescription).options(selectinload(
        Prescription.details)).filter(
            Prescription.id == prescription_id).with_for_update().first())
    if not rx or rx.is_deleted:
        raise NotFoundError("Prescription", prescription_id)
    return rx


def _lock_medicines(db: Session, ids) -> Dict[int, Medicine]:
    # ascending id order keeps concurrent lockers from deadlocking
    rows = (db.query(Medicine).filter(Medicine.id.in_(sorted(set(ids)))).order_by(
        Medicine.id.asc()).with_for_update().all())
    return {m.id: m for m in rows}


def _quantities_by_medicine(rx: Prescription) -> Dict[int, int]:
    totals: Dict[int, int] = {}
    for d in rx.details:
        totals[d.medicine_id] = totals.get(d.medicine_id, 0) + int(d.quantity)
    return totals


# ---------- Create ----------


def create_prescription(db: Session, data: PrescriptionCreate,
                        ctx: CallerContext) -> Prescription:
    """
    Unit prices are read from the medicine catalog; nothing price-like in
    the request is used. Stock is checked but not reserved.
    """
    if not data.items:
        raise ValidationError("Prescription must contain at least one item")

    reg = get_registration(db, data.registration_id)
    if reg.status in _CLOSED_REGISTRATION:
        raise StateError("Registration is cancelled or refunded",
                         data={"status": reg.status})

    record = get_record_for_registration(db, reg.id)
    if record is None:
        raise ValidationError(
            "Create the medical record first before prescribing")

    requested: Dict[int, int] = {}
    for item in data.items:
        if item.medicine_id is None:
            raise ValidationError("Medicine id is required")
        if item.quantity is None or item.quantity <= 0:
            raise ValidationError("Quantity must be greater than 0")
        requested[item.medicine_id] = (requested.get(item.medicine_id, 0) +
                                       item.quantity)

    medicines = {
        m.id: m
        for m in db.query(Medicine).filter(Medicine.id.in_(list(requested)))
    }
    for medicine_id, qty in requested.items():
        m = medicines.get(medicine_id)
        if not m or m.is_deleted:
            raise ValidationError(f"Medicine not found: {medicine_id}")
        if m.status != ACTIVE_MEDICINE:
            raise ValidationError(f"Medicine is disabled: {m.name}")
        if qty > int(m.stock_quantity or 0):
            raise ValidationError(
                f"Insufficient stock for {m.name}: available "
                f"{m.stock_quantity}, requested {qty}",
                data={
                    "medicine_id": m.id,
                    "available": m.stock_quantity,
                    "requested": qty,
                },
            )

    try:
        rx = Prescription(
            prescription_no=next_prescription_no(db),
            record_id=record.id,
            registration_id=reg.id,
            patient_id=reg.patient_id,
            doctor_id=reg.doctor_id,
            prescription_type=int(data.prescription_type),
            validity_days=data.validity_days
            or settings.PRESCRIPTION_VALIDITY_DAYS,
            status=int(PrescriptionStatus.ISSUED),
            is_deleted=False,
            created_by=ctx.user_id,
        )

        total = ZERO
        item_count = 0
        for item in data.items:
            m = medicines[item.medicine_id]
            unit_price = Decimal(m.retail_price)
            subtotal = money2(unit_price * item.quantity)
            rx.details.append(
                PrescriptionDetail(
                    medicine_id=m.id,
                    medicine_name=m.name,
                    specification=m.specification,
                    unit=m.unit,
                    unit_price=unit_price,
                    quantity=item.quantity,
                    subtotal=subtotal,
                    frequency=item.frequency,
                    dosage=item.dosage,
                    route=item.route,
                    days=item.days,
                    instructions=item.instructions,
                ))
            total += subtotal
            item_count += item.quantity

        rx.total_amount = money2(total)
        rx.item_count = item_count
        db.add(rx)
        db.flush()

        log_audit(
            db,
            ctx=ctx,
            action="CREATE",
            table_name="prescriptions",
            record_id=rx.id,
            new_values={
                "prescription_no": rx.prescription_no,
                "registration_id": reg.id,
                "total_amount": rx.total_amount,
                "item_count": item_count,
            },
        )
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info("Prescription %s (%s) created: %s items, total %s", rx.id,
                rx.prescription_no, item_count, rx.total_amount)
    return get_prescription(db, rx.id)


# ---------- Review ----------


def review(
    db: Session,
    prescription_id: int,
    ctx: CallerContext,
    remark: Optional[str] = None,
) -> Prescription:
    try:
        rx = lock_prescription(db, prescription_id)
        if rx.status != PrescriptionStatus.ISSUED:
            raise StateError(
                "Only issued prescriptions awaiting review can be reviewed",
                data={"status": rx.status},
            )
        ensure_transition(PrescriptionStatus,
                          rx.status,
                          PrescriptionStatus.REVIEWED,
                          entity="Prescription",
                          entity_id=rx.id)

        rx.status = int(PrescriptionStatus.REVIEWED)
        rx.review_doctor_id = ctx.user_id
        rx.review_time = now_local()
        rx.review_remark = remark
        log_audit(db,
                  ctx=ctx,
                  action="REVIEW",
                  table_name="prescriptions",
                  record_id=rx.id,
                  remark=remark)
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info("Prescription %s reviewed by %s", prescription_id,
                ctx.username)
    return get_prescription(db, prescription_id)


# ---------- Dispense / Return ----------


def dispense(db: Session, prescription_id: int,
             ctx: CallerContext) -> Prescription:
    """
    PAID -> DISPENSED, decrementing stock for every line. All lines are
    checked before any stock is written; one short line fails the lot.
    """
    try:
        rx = lock_prescription(db, prescription_id)
        if rx.status != PrescriptionStatus.PAID:
            raise StateError("Only paid prescriptions can be dispensed",
                             data={"status": rx.status})
        if not rx.details:
            raise ValidationError("Prescription has no items to dispense")

        needed = _quantities_by_medicine(rx)
        medicines = _lock_medicines(db, needed.keys())

        for medicine_id, qty in needed.items():
            m = medicines.get(medicine_id)
            if m is None:
                raise ValidationError(f"Medicine not found: {medicine_id}")
            available = int(m.stock_quantity or 0)
            if available < qty:
                raise ValidationError(
                    f"Insufficient stock for {m.name}: available "
                    f"{available}, required {qty}",
                    data={
                        "medicine_id": m.id,
                        "available": available,
                        "required": qty,
                    },
                )

        movements = []
        for medicine_id, qty in needed.items():
            m = medicines[medicine_id]
            before = int(m.stock_quantity or 0)
            after = apply_stock_delta(m, -qty)
            movements.append({
                "medicine_id": medicine_id,
                "before": before,
                "after": after
            })

        rx.status = int(PrescriptionStatus.DISPENSED)
        rx.dispense_time = now_local()
        rx.dispense_by = ctx.user_id
        log_audit(db,
                  ctx=ctx,
                  action="DISPENSE",
                  table_name="prescriptions",
                  record_id=rx.id,
                  new_values={"stock": movements})
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info("Prescription %s dispensed by %s", prescription_id,
                ctx.username)
    return get_prescription(db, prescription_id)


def return_medicine(db: Session, prescription_id: int, reason: str,
                    ctx: CallerContext) -> Prescription:
    """DISPENSED -> RETURNED, restoring exactly what dispense removed."""
    if not (reason or "").strip():
        raise ValidationError("Return reason is required")

    try:
        rx = lock_prescription(db, prescription_id)
        if rx.status != PrescriptionStatus.DISPENSED:
            raise StateError("Only dispensed prescriptions can be returned",
                             data={"status": rx.status})
        ensure_transition(PrescriptionStatus,
                          rx.status,
                          PrescriptionStatus.RETURNED,
                          entity="Prescription",
                          entity_id=rx.id)

        returned = _quantities_by_medicine(rx)
        medicines = _lock_medicines(db, returned.keys())
        movements = []
        for medicine_id, qty in returned.items():
            m = medicines.get(medicine_id)
            if m is None:
                raise ValidationError(f"Medicine not found: {medicine_id}")
            before = int(m.stock_quantity or 0)
            after = apply_stock_delta(m, qty)
            movements.append({
                "medicine_id": medicine_id,
                "before": before,
                "after": after
            })

        rx.status = int(PrescriptionStatus.RETURNED)
        rx.return_reason = reason
        rx.return_time = now_local()
        rx.return_by = ctx.user_id
        log_audit(db,
                  ctx=ctx,
                  action="RETURN",
                  table_name="prescriptions",
                  record_id=rx.id,
                  new_values={"stock": movements},
                  remark=reason)
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info("Prescription %s returned by %s: %s", prescription_id,
                ctx.username, reason)
    return get_prescription(db, prescription_id)


# ---------- Cancel ----------


def _on_unpaid_charge(db: Session, prescription_id: int) -> bool:
    return (db.query(ChargeDetail.id).join(
        Charge, Charge.id == ChargeDetail.charge_id).filter(
            ChargeDetail.item_type == ChargeItemType.PRESCRIPTION.value,
            ChargeDetail.item_id == prescription_id,
            Charge.status == ChargeStatus.UNPAID,
        ).first() is not None)


def cancel(db: Session, prescription_id: int, reason: Optional[str],
           ctx: CallerContext) -> Prescription:
    try:
        rx = lock_prescription(db, prescription_id)
        ensure_transition(
            PrescriptionStatus,
            rx.status,
            PrescriptionStatus.CANCELLED,
            entity="Prescription",
            entity_id=rx.id,
            message="Only prescriptions that are not yet paid can be cancelled",
        )
        if _on_unpaid_charge(db, rx.id):
            raise ValidationError(
                "Prescription is on an unpaid charge and cannot be cancelled")

        rx.status = int(PrescriptionStatus.CANCELLED)
        rx.cancel_reason = reason
        rx.cancelled_at = now_local()
        log_audit(db,
                  ctx=ctx,
                  action="CANCEL",
                  table_name="prescriptions",
                  record_id=rx.id,
                  remark=reason)
        db.commit()
    except Exception:
        db.rollback()
        raise
    return get_prescription(db, prescription_id)


# ---------- Reads ----------


def get_by_record_id(db: Session, record_id: int) -> List[Prescription]:
    return (db.query(Prescription).options(*_load_options()).filter(
        Prescription.record_id == record_id,
        Prescription.is_deleted.is_(False),
    ).order_by(Prescription.id.asc()).all())


def get_by_registration_id(db: Session,
                           registration_id: int) -> List[Prescription]:
    return (db.query(Prescription).options(*_load_options()).filter(
        Prescription.registration_id == registration_id,
        Prescription.is_deleted.is_(False),
    ).order_by(Prescription.id.asc()).all())


def get_pending_review_list(db: Session) -> List[Prescription]:
    return (db.query(Prescription).options(*_load_options()).filter(
        Prescription.status == PrescriptionStatus.ISSUED,
        Prescription.is_deleted.is_(False),
    ).order_by(Prescription.created_at.asc(), Prescription.id.asc()).all())


def get_pending_dispense_list(db: Session) -> List[Prescription]:
    return (db.query(Prescription).options(*_load_options()).filter(
        Prescription.status == PrescriptionStatus.PAID,
        Prescription.is_deleted.is_(False),
    ).order_by(Prescription.created_at.asc(), Prescription.id.asc()).all())


def get_pharmacist_statistics(
    db: Session,
    pharmacist_id: int,
    day: Optional[date] = None,
) -> PharmacistStatsOut:
    start, end = day_bounds(day or today_local())
    count, amount, items = (db.query(
        func.count(Prescription.id),
        func.coalesce(func.sum(Prescription.total_amount), 0),
        func.coalesce(func.sum(Prescription.item_count), 0),
    ).filter(
        Prescription.status == PrescriptionStatus.DISPENSED,
        Prescription.dispense_by == pharmacist_id,
        Prescription.dispense_time >= start,
        Prescription.dispense_time < end,
    ).one())
    return PharmacistStatsOut(
        pharmacist_id=pharmacist_id,
        dispensed_count=int(count or 0),
        total_amount=money2(amount),
        total_items=int(items or 0),
    )
