# FILE: app/models/enums.py
"""
Status / type codes shared by models, services and schemas.

Integer codes are persisted as-is (SmallInteger columns) so that
existing clients reading ``status == 1`` keep working.
"""
from __future__ import annotations

from enum import Enum, IntEnum


class UserRole(str, Enum):
    ADMIN = "ADMIN"
    DOCTOR = "DOCTOR"
    NURSE = "NURSE"
    PHARMACIST = "PHARMACIST"
    CASHIER = "CASHIER"


class RegistrationStatus(IntEnum):
    WAITING = 0
    COMPLETED = 1
    CANCELLED = 2
    REFUNDED = 3
    PAID_REGISTRATION = 4
    IN_CONSULTATION = 5


class PrescriptionStatus(IntEnum):
    DRAFT = 0
    ISSUED = 1
    REVIEWED = 2
    DISPENSED = 3
    RETURNED = 4
    PAID = 5
    CANCELLED = 6
    REFUNDED = 7


class PrescriptionType(IntEnum):
    WESTERN = 1
    CHINESE = 2


class ChargeStatus(IntEnum):
    UNPAID = 0
    PAID = 1
    REFUNDED = 2


class ChargeType(IntEnum):
    REGISTRATION_ONLY = 1
    PRESCRIPTION_ONLY = 2
    MIXED = 3


class ChargeItemType(str, Enum):
    REGISTRATION = "REGISTRATION"
    PRESCRIPTION = "PRESCRIPTION"


class PaymentMethod(IntEnum):
    CASH = 1
    CARD = 2
    WECHAT = 3
    ALIPAY = 4
    INSURANCE = 5


class MedicalRecordStatus(IntEnum):
    DRAFT = 0
    SUBMITTED = 1
    AUDITED = 2


class VisitType(IntEnum):
    FIRST = 1
    FOLLOWUP = 2
    EMERGENCY = 3


class Gender(IntEnum):
    FEMALE = 0
    MALE = 1
    UNKNOWN = 2


class StockStatus(str, Enum):
    IN_STOCK = "IN_STOCK"
    LOW_STOCK = "LOW_STOCK"
    OUT_OF_STOCK = "OUT_OF_STOCK"


class StockFilter(str, Enum):
    """Pharmacist search filter on stock level."""
    LOW = "LOW"
    OUT = "OUT"


def enum_name(enum_cls, value) -> str | None:
    """Human label for a stored code, tolerant of unknown values."""
    if value is None:
        return None
    try:
        return enum_cls(value).name
    except ValueError:
        return "UNKNOWN"
