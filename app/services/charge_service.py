# FILE: app/services/charge_service.py
"""
Cashier workflow: build a charge from a registration fee and/or reviewed
prescriptions, take payment, refund.

Rules enforced here:
  * a registration fee or a prescription is billed at most once
    (an UNPAID or PAID charge already covering it blocks a new one)
  * payment must match the charge total exactly (2 dp)
  * transaction_no is an idempotency key: replaying a payment that was
    already applied to the same charge returns that charge unchanged
  * refunds never un-dispense: a dispensed prescription must be returned
    through the pharmacy before its charge can be refunded
"""
from __future__ import annotations

import logging
from datetime import date
from typing import Dict, List, Optional, Sequence, Tuple

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from app.core.context import CallerContext
from app.core.exceptions import NotFoundError, StateError, ValidationError
from app.models.charge import Charge, ChargeDetail
from app.models.enums import (
    ChargeItemType,
    ChargeStatus,
    ChargeType,
    PaymentMethod,
    PrescriptionStatus,
    RegistrationStatus,
    enum_name,
)
from app.models.prescription import Prescription
from app.models.registration import Registration
from app.schemas.charge import (
    ChargesByTypeOut,
    DailySettlementOut,
    PaymentBreakdown,
    PaymentIn,
    PaymentStatusOut,
)
from app.services.audit_logger import log_audit
from app.services.converters import to_charge_out
from app.services.numbers import next_charge_no
from app.services.registration_service import (
    get_registration,
    lock_registration,
    registration_fee_paid,
)
from app.services.state_machine import ensure_transition, transition_registration
from app.utils.money import ZERO, money2
from app.utils.timezone import day_bounds, now_local, today_local

logger = logging.getLogger(__name__)

REGISTRATION_ITEM = ChargeItemType.REGISTRATION.value
PRESCRIPTION_ITEM = ChargeItemType.PRESCRIPTION.value

_OPEN_CHARGE_STATUSES = (ChargeStatus.UNPAID, ChargeStatus.PAID)
_REGISTRATION_CHARGEABLE = (RegistrationStatus.WAITING,
                            RegistrationStatus.PAID_REGISTRATION)


def _load_options():
    return (
        selectinload(Charge.details),
        selectinload(Charge.patient),
    )


def get_charge(db: Session, charge_id: int) -> Charge:
    charge = (db.query(Charge).options(*_load_options()).filter(
        Charge.id == charge_id).first())
    if not charge:
        raise NotFoundError("Charge", charge_id)
    return charge


def _lock_charge(db: Session, charge_id: int) -> Charge:
    charge = (db.query(Charge).options(selectinload(Charge.details)).filter(
        Charge.id == charge_id).with_for_update().first())
    if not charge:
        raise NotFoundError("Charge", charge_id)
    return charge


def _lock_prescriptions(db: Session, ids: Sequence[int]) -> List[Prescription]:
    if not ids:
        return []
    return (db.query(Prescription).filter(Prescription.id.in_(
        sorted(set(ids)))).order_by(Prescription.id.asc()).with_for_update().all())


def _item_billed(db: Session, registration_id: int, item_type: str,
                 item_id: int) -> bool:
    """True if an UNPAID or PAID charge already covers this item."""
    return (db.query(ChargeDetail.id).join(
        Charge, Charge.id == ChargeDetail.charge_id).filter(
            Charge.registration_id == registration_id,
            Charge.status.in_([int(s) for s in _OPEN_CHARGE_STATUSES]),
            ChargeDetail.item_type == item_type,
            ChargeDetail.item_id == item_id,
        ).first() is not None)


def _registration_fee_billable(db: Session, reg: Registration) -> bool:
    if money2(reg.registration_fee) <= ZERO:
        return False
    if registration_fee_paid(db, reg):
        return False
    return not _item_billed(db, reg.id, REGISTRATION_ITEM, reg.id)


# ---------- Create ----------


def create_charge(
    db: Session,
    registration_id: int,
    prescription_ids: Optional[Sequence[int]],
    ctx: CallerContext,
) -> Charge:
    """
    No prescription ids: bill the registration fee only.
    With prescription ids: bill those (REVIEWED) prescriptions, plus the
    registration fee when it is still outstanding.
    """
    ids = list(dict.fromkeys(prescription_ids or []))

    try:
        reg = lock_registration(db, registration_id)
        if not ids:
            charge = _build_registration_charge(db, reg)
        else:
            charge = _build_prescription_charge(db, reg, ids)

        charge.charge_no = next_charge_no(db)
        charge.created_by = ctx.user_id
        db.add(charge)
        db.flush()
        log_audit(
            db,
            ctx=ctx,
            action="CREATE",
            table_name="charges",
            record_id=charge.id,
            new_values={
                "charge_no": charge.charge_no,
                "charge_type": charge.charge_type,
                "total_amount": charge.total_amount,
                "prescription_ids": ids,
            },
        )
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info("Charge %s (%s) created for registration %s: %s, total %s",
                charge.id, charge.charge_no, registration_id,
                enum_name(ChargeType, charge.charge_type),
                charge.total_amount)
    return get_charge(db, charge.id)


def create_registration_charge(db: Session, registration_id: int,
                               ctx: CallerContext) -> Charge:
    return create_charge(db, registration_id, [], ctx)


def create_prescription_charge(
    db: Session,
    registration_id: int,
    prescription_ids: Sequence[int],
    ctx: CallerContext,
) -> Charge:
    if not prescription_ids:
        raise ValidationError("At least one prescription is required")
    return create_charge(db, registration_id, prescription_ids, ctx)


def _build_registration_charge(db: Session, reg: Registration) -> Charge:
    if reg.status not in _REGISTRATION_CHARGEABLE:
        raise StateError(
            "Registration fee can only be charged for waiting registrations",
            data={"status": reg.status},
        )
    if registration_fee_paid(db, reg):
        raise ValidationError("Registration fee has already been paid")
    if _item_billed(db, reg.id, REGISTRATION_ITEM, reg.id):
        raise ValidationError(
            "Registration fee is already on an unpaid charge")
    fee = money2(reg.registration_fee)
    if fee <= ZERO:
        raise ValidationError("Registration has no fee to charge")

    charge = Charge(
        patient_id=reg.patient_id,
        registration_id=reg.id,
        charge_type=int(ChargeType.REGISTRATION_ONLY),
        total_amount=fee,
        status=int(ChargeStatus.UNPAID),
    )
    charge.details.append(
        ChargeDetail(item_type=REGISTRATION_ITEM,
                     item_id=reg.id,
                     item_name="Registration fee",
                     item_amount=fee))
    return charge


def _build_prescription_charge(db: Session, reg: Registration,
                               ids: List[int]) -> Charge:
    if reg.status != RegistrationStatus.COMPLETED:
        raise StateError(
            "Prescriptions can only be charged after the visit is completed",
            data={"status": reg.status},
        )

    found = {p.id: p for p in _lock_prescriptions(db, ids)}
    details: List[ChargeDetail] = []
    total = ZERO
    for pid in ids:
        p = found.get(pid)
        if p is None or p.is_deleted:
            raise NotFoundError("Prescription", pid)
        if p.registration_id != reg.id:
            raise ValidationError(
                f"Prescription {p.prescription_no} does not belong to "
                f"this registration")
        if p.status != PrescriptionStatus.REVIEWED:
            raise StateError(
                f"Prescription {p.prescription_no} is not reviewed",
                data={
                    "prescription_id": p.id,
                    "status": p.status
                },
            )
        if _item_billed(db, reg.id, PRESCRIPTION_ITEM, p.id):
            raise ValidationError(
                f"Prescription {p.prescription_no} has already been charged",
                data={"prescription_id": p.id},
            )
        amount = money2(p.total_amount)
        details.append(
            ChargeDetail(item_type=PRESCRIPTION_ITEM,
                         item_id=p.id,
                         item_name=f"Prescription {p.prescription_no}",
                         item_amount=amount))
        total += amount

    charge_type = ChargeType.PRESCRIPTION_ONLY
    if _registration_fee_billable(db, reg):
        fee = money2(reg.registration_fee)
        details.insert(
            0,
            ChargeDetail(item_type=REGISTRATION_ITEM,
                         item_id=reg.id,
                         item_name="Registration fee",
                         item_amount=fee))
        total += fee
        charge_type = ChargeType.MIXED

    charge = Charge(
        patient_id=reg.patient_id,
        registration_id=reg.id,
        charge_type=int(charge_type),
        total_amount=money2(total),
        status=int(ChargeStatus.UNPAID),
    )
    charge.details.extend(details)
    return charge


# ---------- Pay ----------


def process_payment(db: Session, charge_id: int, payment: PaymentIn,
                    ctx: CallerContext) -> Charge:
    txn = (payment.transaction_no or "").strip() or None

    try:
        charge = _lock_charge(db, charge_id)

        if txn:
            owner = (db.query(Charge.id, Charge.status).filter(
                Charge.transaction_no == txn).first())
            if owner is not None:
                if owner.id == charge.id and owner.status == ChargeStatus.PAID:
                    # replay of a payment already applied: no side effects
                    db.rollback()
                    logger.info(
                        "Duplicate payment %s for charge %s ignored", txn,
                        charge_id)
                    return get_charge(db, charge_id)
                raise ValidationError(
                    "Transaction number has already been used",
                    data={"transaction_no": txn},
                )

        if charge.status != ChargeStatus.UNPAID:
            raise StateError(
                "Charge is already paid or refunded",
                data={"status": charge.status},
            )

        due = money2(charge.total_amount)
        paid = money2(payment.paid_amount)
        if paid != due:
            raise ValidationError(
                f"Paid amount {paid} does not match charge total {due}",
                data={
                    "total_amount": due,
                    "paid_amount": paid
                },
            )

        ensure_transition(ChargeStatus,
                          charge.status,
                          ChargeStatus.PAID,
                          entity="Charge",
                          entity_id=charge.id)
        charge.status = int(ChargeStatus.PAID)
        charge.paid_amount = paid
        charge.paid_at = now_local()
        charge.payment_method = int(payment.payment_method)
        charge.transaction_no = txn
        charge.cashier_id = ctx.user_id
        if payment.remark:
            charge.remark = payment.remark

        _apply_payment_side_effects(db, charge, ctx)

        log_audit(
            db,
            ctx=ctx,
            action="PAYMENT",
            table_name="charges",
            record_id=charge.id,
            old_values={"status": int(ChargeStatus.UNPAID)},
            new_values={
                "status": int(ChargeStatus.PAID),
                "paid_amount": paid,
                "payment_method": enum_name(PaymentMethod,
                                            payment.payment_method),
                "transaction_no": txn,
            },
        )
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ValidationError("Transaction number has already been used",
                              data={"transaction_no": txn})
    except Exception:
        db.rollback()
        raise

    logger.info("Charge %s paid: %s via %s", charge_id, paid,
                enum_name(PaymentMethod, payment.payment_method))
    return get_charge(db, charge_id)


def _apply_payment_side_effects(db: Session, charge: Charge,
                                ctx: CallerContext) -> None:
    prescription_ids = []
    for d in charge.details:
        if d.item_type == REGISTRATION_ITEM:
            reg = lock_registration(db, d.item_id)
            if reg.status == RegistrationStatus.WAITING:
                transition_registration(db, reg,
                                        RegistrationStatus.PAID_REGISTRATION,
                                        ctx, "registration fee paid")
        elif d.item_type == PRESCRIPTION_ITEM:
            prescription_ids.append(d.item_id)

    for p in _lock_prescriptions(db, prescription_ids):
        ensure_transition(PrescriptionStatus,
                          p.status,
                          PrescriptionStatus.PAID,
                          entity="Prescription",
                          entity_id=p.id)
        p.status = int(PrescriptionStatus.PAID)


# ---------- Refund ----------


def process_refund(db: Session, charge_id: int, reason: str,
                   ctx: CallerContext) -> Charge:
    if not (reason or "").strip():
        raise ValidationError("Refund reason is required")

    try:
        charge = _lock_charge(db, charge_id)
        if charge.status != ChargeStatus.PAID:
            raise StateError("Only paid charges can be refunded",
                             data={"status": charge.status})

        prescription_ids = [
            d.item_id for d in charge.details
            if d.item_type == PRESCRIPTION_ITEM
        ]
        prescriptions = _lock_prescriptions(db, prescription_ids)
        dispensed = [
            p.prescription_no for p in prescriptions
            if p.status == PrescriptionStatus.DISPENSED
        ]
        if dispensed:
            raise StateError(
                "Dispensed medicine must be returned before refunding: " +
                ", ".join(dispensed),
                data={"prescriptions": dispensed},
            )

        now = now_local()
        for p in prescriptions:
            if p.status == PrescriptionStatus.PAID:
                ensure_transition(PrescriptionStatus,
                                  p.status,
                                  PrescriptionStatus.REFUNDED,
                                  entity="Prescription",
                                  entity_id=p.id)
                p.status = int(PrescriptionStatus.REFUNDED)
                p.refunded_at = now
            # RETURNED: stock already restored, status stays

        for d in charge.details:
            if d.item_type != REGISTRATION_ITEM:
                continue
            reg = lock_registration(db, d.item_id)
            if reg.status == RegistrationStatus.PAID_REGISTRATION:
                transition_registration(db, reg, RegistrationStatus.CANCELLED,
                                        ctx, reason)
                reg.cancel_reason = reason
                transition_registration(db, reg, RegistrationStatus.REFUNDED,
                                        ctx, "registration fee refunded")

        ensure_transition(ChargeStatus,
                          charge.status,
                          ChargeStatus.REFUNDED,
                          entity="Charge",
                          entity_id=charge.id)
        charge.status = int(ChargeStatus.REFUNDED)
        charge.refund_amount = money2(charge.paid_amount
                                      if charge.paid_amount is not None else
                                      charge.total_amount)
        charge.refund_reason = reason
        charge.refunded_at = now
        charge.refund_by = ctx.user_id

        log_audit(
            db,
            ctx=ctx,
            action="REFUND",
            table_name="charges",
            record_id=charge.id,
            old_values={"status": int(ChargeStatus.PAID)},
            new_values={
                "status": int(ChargeStatus.REFUNDED),
                "refund_amount": charge.refund_amount,
            },
            remark=reason,
        )
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info("Charge %s refunded by %s: %s", charge_id, ctx.username,
                reason)
    return get_charge(db, charge_id)


# ---------- Reads ----------


def is_registration_fee_paid(db: Session, registration_id: int) -> bool:
    return registration_fee_paid(db, get_registration(db, registration_id))


def get_payment_status(db: Session, charge_id: int) -> PaymentStatusOut:
    charge = get_charge(db, charge_id)
    return PaymentStatusOut(
        charge_id=charge.id,
        status=charge.status,
        status_desc=enum_name(ChargeStatus, charge.status),
        registration_fee_paid=is_registration_fee_paid(
            db, charge.registration_id),
    )


def get_charges_by_type(db: Session, registration_id: int) -> ChargesByTypeOut:
    get_registration(db, registration_id)
    charges = (db.query(Charge).options(*_load_options()).filter(
        Charge.registration_id == registration_id).order_by(
            Charge.id.asc()).all())

    out = ChargesByTypeOut()
    for c in charges:
        view = to_charge_out(c)
        if c.charge_type == ChargeType.REGISTRATION_ONLY:
            out.registration.append(view)
        elif c.charge_type == ChargeType.PRESCRIPTION_ONLY:
            out.prescription.append(view)
        else:
            out.combined.append(view)
    return out


def list_charges(
    db: Session,
    *,
    patient_id: Optional[int] = None,
    registration_id: Optional[int] = None,
    status: Optional[ChargeStatus] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    page: int = 1,
    size: int = 20,
) -> Tuple[List[Charge], int]:
    q = db.query(Charge).options(*_load_options())
    if patient_id is not None:
        q = q.filter(Charge.patient_id == patient_id)
    if registration_id is not None:
        q = q.filter(Charge.registration_id == registration_id)
    if status is not None:
        q = q.filter(Charge.status == int(status))
    if start_date is not None:
        q = q.filter(Charge.created_at >= day_bounds(start_date)[0])
    if end_date is not None:
        q = q.filter(Charge.created_at < day_bounds(end_date)[1])

    page = max(page, 1)
    size = min(max(size, 1), 100)
    total = q.count()
    items = (q.order_by(Charge.id.desc()).offset(
        (page - 1) * size).limit(size).all())
    return items, total


def get_daily_settlement(db: Session,
                         day: Optional[date] = None) -> DailySettlementOut:
    """
    Collections for charges paid on ``day``. Refunded charges still count
    toward the gross total; their refunds are reported separately so that
    net = total - refunds.
    """
    day = day or today_local()
    start, end = day_bounds(day)
    rows = (db.query(
        Charge.payment_method,
        Charge.status,
        func.count(Charge.id),
        func.coalesce(func.sum(Charge.paid_amount), 0),
        func.coalesce(func.sum(Charge.refund_amount), 0),
    ).filter(
        Charge.paid_at >= start,
        Charge.paid_at < end,
        Charge.status.in_([int(ChargeStatus.PAID),
                           int(ChargeStatus.REFUNDED)]),
    ).group_by(Charge.payment_method, Charge.status).all())

    breakdown: Dict[str, PaymentBreakdown] = {
        m.name: PaymentBreakdown()
        for m in PaymentMethod
    }
    total_count = 0
    total_amount = ZERO
    refund_count = 0
    refund_amount = ZERO
    for method, status, count, paid_sum, refund_sum in rows:
        key = enum_name(PaymentMethod, method) or "UNKNOWN"
        bucket = breakdown.setdefault(key, PaymentBreakdown())
        bucket.count += int(count)
        bucket.amount = money2(bucket.amount + money2(paid_sum))
        total_count += int(count)
        total_amount += money2(paid_sum)
        if status == ChargeStatus.REFUNDED:
            refund_count += int(count)
            refund_amount += money2(refund_sum)

    return DailySettlementOut(
        date=day,
        total_charges=total_count,
        total_amount=money2(total_amount),
        payment_breakdown=breakdown,
        refund_count=refund_count,
        refund_amount=money2(refund_amount),
        net_collection=money2(total_amount - refund_amount),
    )
