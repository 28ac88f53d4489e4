# FILE: app/schemas/prescription.py
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field, ConfigDict

from app.models.enums import PrescriptionType


class PrescriptionItemIn(BaseModel):
    """
    One requested line. Price fields sent by clients are dropped:
    unit price always comes from the medicine catalog.
    """
    medicine_id: int
    quantity: int = Field(..., gt=0)
    frequency: Optional[str] = Field(None, max_length=50)
    dosage: Optional[str] = Field(None, max_length=50)
    route: Optional[str] = Field(None, max_length=50)
    days: Optional[int] = Field(None, gt=0)
    instructions: Optional[str] = Field(None, max_length=255)

    model_config = ConfigDict(extra="ignore")


class PrescriptionCreate(BaseModel):
    registration_id: int
    prescription_type: PrescriptionType = PrescriptionType.WESTERN
    validity_days: Optional[int] = Field(None, gt=0)
    items: List[PrescriptionItemIn] = Field(..., min_length=1)

    model_config = ConfigDict(extra="ignore")


class ReviewIn(BaseModel):
    remark: Optional[str] = Field(None, max_length=500)


class PrescriptionDetailOut(BaseModel):
    id: int
    medicine_id: int
    medicine_name: str
    specification: Optional[str] = None
    unit: Optional[str] = None
    unit_price: Decimal
    quantity: int
    subtotal: Decimal
    frequency: Optional[str] = None
    dosage: Optional[str] = None
    route: Optional[str] = None
    days: Optional[int] = None
    instructions: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class PrescriptionOut(BaseModel):
    id: int
    prescription_no: str
    record_id: int
    registration_id: int
    patient_id: int
    patient_name: Optional[str] = None
    doctor_id: int
    doctor_name: Optional[str] = None
    prescription_type: int
    total_amount: Decimal
    item_count: int
    status: int
    status_desc: Optional[str] = None
    validity_days: int
    review_doctor_id: Optional[int] = None
    review_time: Optional[datetime] = None
    review_remark: Optional[str] = None
    dispense_by: Optional[int] = None
    dispense_time: Optional[datetime] = None
    return_reason: Optional[str] = None
    return_time: Optional[datetime] = None
    cancel_reason: Optional[str] = None
    created_at: Optional[datetime] = None
    details: List[PrescriptionDetailOut] = Field(default_factory=list)


class PharmacistStatsOut(BaseModel):
    pharmacist_id: int
    dispensed_count: int
    total_amount: Decimal
    total_items: int
