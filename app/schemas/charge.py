# FILE: app/schemas/charge.py
from __future__ import annotations

import datetime as dt
from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, ConfigDict

from app.models.enums import PaymentMethod


class ChargeCreate(BaseModel):
    registration_id: int
    # empty -> registration fee only
    prescription_ids: List[int] = Field(default_factory=list)


class PrescriptionChargeCreate(BaseModel):
    registration_id: int
    prescription_ids: List[int] = Field(..., min_length=1)


class PaymentIn(BaseModel):
    payment_method: PaymentMethod
    paid_amount: Decimal = Field(..., ge=0)
    # idempotency key; repeated submissions with the same value are safe
    transaction_no: Optional[str] = Field(None, min_length=1, max_length=64)
    remark: Optional[str] = Field(None, max_length=255)


class ChargeDetailOut(BaseModel):
    id: int
    item_type: str
    item_id: int
    item_name: str
    item_amount: Decimal

    model_config = ConfigDict(from_attributes=True)


class ChargeOut(BaseModel):
    id: int
    charge_no: str
    patient_id: int
    patient_name: Optional[str] = None
    registration_id: int
    charge_type: int
    charge_type_desc: Optional[str] = None
    total_amount: Decimal
    status: int
    status_desc: Optional[str] = None
    payment_method: Optional[int] = None
    transaction_no: Optional[str] = None
    paid_amount: Optional[Decimal] = None
    paid_at: Optional[datetime] = None
    refund_amount: Optional[Decimal] = None
    refund_reason: Optional[str] = None
    refunded_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    prescription_ids: List[int] = Field(default_factory=list)
    details: List[ChargeDetailOut] = Field(default_factory=list)


class ChargesByTypeOut(BaseModel):
    registration: List[ChargeOut] = Field(default_factory=list)
    prescription: List[ChargeOut] = Field(default_factory=list)
    combined: List[ChargeOut] = Field(default_factory=list)


class PaymentBreakdown(BaseModel):
    count: int = 0
    amount: Decimal = Decimal("0.00")


class DailySettlementOut(BaseModel):
    date: dt.date
    total_charges: int
    total_amount: Decimal
    payment_breakdown: Dict[str, PaymentBreakdown]
    refund_count: int
    refund_amount: Decimal
    net_collection: Decimal


class PaymentStatusOut(BaseModel):
    charge_id: int
    status: int
    status_desc: str
    registration_fee_paid: bool
