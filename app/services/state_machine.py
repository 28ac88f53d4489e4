# FILE: app/services/state_machine.py
"""
Legal status transitions for registrations, prescriptions and charges.

Every status change in the service layer is checked here first; a
rejected change raises StateError and leaves the entity untouched.
"""
from __future__ import annotations

import logging
from typing import Dict, FrozenSet, Optional, Type
from enum import IntEnum

from sqlalchemy.orm import Session

from app.core.context import CallerContext
from app.core.exceptions import StateError
from app.models.enums import (
    ChargeStatus,
    PrescriptionStatus,
    RegistrationStatus,
    enum_name,
)
from app.models.registration import Registration, RegistrationStatusHistory
from app.utils.timezone import now_local

logger = logging.getLogger(__name__)

R = RegistrationStatus
P = PrescriptionStatus
C = ChargeStatus

REGISTRATION_TRANSITIONS: Dict[RegistrationStatus, FrozenSet[RegistrationStatus]] = {
    R.WAITING: frozenset({
        R.IN_CONSULTATION, R.CANCELLED, R.PAID_REGISTRATION, R.COMPLETED
    }),
    R.PAID_REGISTRATION: frozenset({R.IN_CONSULTATION, R.CANCELLED}),
    R.IN_CONSULTATION: frozenset({R.COMPLETED}),
    R.CANCELLED: frozenset({R.REFUNDED}),
    R.COMPLETED: frozenset(),
    R.REFUNDED: frozenset(),
}

PRESCRIPTION_TRANSITIONS: Dict[PrescriptionStatus, FrozenSet[PrescriptionStatus]] = {
    P.DRAFT: frozenset({P.ISSUED, P.CANCELLED}),
    P.ISSUED: frozenset({P.REVIEWED, P.CANCELLED}),
    P.REVIEWED: frozenset({P.PAID, P.CANCELLED}),
    P.PAID: frozenset({P.DISPENSED, P.REFUNDED}),
    P.DISPENSED: frozenset({P.RETURNED}),
    P.RETURNED: frozenset(),
    P.CANCELLED: frozenset(),
    P.REFUNDED: frozenset(),
}

CHARGE_TRANSITIONS: Dict[ChargeStatus, FrozenSet[ChargeStatus]] = {
    C.UNPAID: frozenset({C.PAID}),
    C.PAID: frozenset({C.REFUNDED}),
    C.REFUNDED: frozenset(),
}

_TABLES = {
    RegistrationStatus: REGISTRATION_TRANSITIONS,
    PrescriptionStatus: PRESCRIPTION_TRANSITIONS,
    ChargeStatus: CHARGE_TRANSITIONS,
}


def _coerce(enum_cls: Type[IntEnum], value) -> Optional[IntEnum]:
    try:
        return enum_cls(value)
    except ValueError:
        return None


def can_transition(enum_cls: Type[IntEnum], current, target) -> bool:
    table = _TABLES[enum_cls]
    cur = _coerce(enum_cls, current)
    tgt = _coerce(enum_cls, target)
    if cur is None or tgt is None:
        return False
    return tgt in table.get(cur, frozenset())


def is_terminal(enum_cls: Type[IntEnum], value) -> bool:
    cur = _coerce(enum_cls, value)
    return cur is not None and not _TABLES[enum_cls].get(cur)


def ensure_transition(
    enum_cls: Type[IntEnum],
    current,
    target,
    *,
    entity: str,
    entity_id=None,
    message: Optional[str] = None,
) -> None:
    if can_transition(enum_cls, current, target):
        return
    logger.warning("Rejected %s transition id=%s %s -> %s", entity, entity_id,
                   enum_name(enum_cls, current), enum_name(enum_cls, target))
    raise StateError(
        message or (f"{entity} cannot move from "
                    f"{enum_name(enum_cls, current)} to "
                    f"{enum_name(enum_cls, target)}"),
        data={
            "id": entity_id,
            "current_status": current,
            "target_status": int(target),
        },
    )


def transition_registration(
    db: Session,
    reg: Registration,
    target: RegistrationStatus,
    ctx: CallerContext,
    reason: Optional[str] = None,
) -> RegistrationStatusHistory:
    """
    Validate + apply a registration status change and record it in
    registration_status_history. Caller owns the transaction.
    """
    ensure_transition(RegistrationStatus,
                      reg.status,
                      target,
                      entity="Registration",
                      entity_id=reg.id)
    old = reg.status
    reg.status = int(target)
    history = RegistrationStatusHistory(
        registration_id=reg.id,
        from_status=old,
        to_status=int(target),
        operator_id=ctx.user_id,
        operator_name=ctx.username,
        reason=reason,
        created_at=now_local(),
    )
    db.add(history)
    logger.info("Registration %s status %s -> %s by %s", reg.id,
                enum_name(RegistrationStatus, old), target.name,
                ctx.username)
    return history
