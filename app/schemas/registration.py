# FILE: app/schemas/registration.py
from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field

from app.models.enums import Gender, RegistrationStatus, VisitType


class RegistrationCreate(BaseModel):
    patient_name: str = Field(..., min_length=1, max_length=120)
    id_card: str = Field(..., min_length=1, max_length=32)
    gender: Gender
    age: Optional[int] = Field(None, ge=0, le=150)
    phone: Optional[str] = Field(None, max_length=20)

    department_id: int
    doctor_id: int
    registration_fee: Decimal = Field(..., ge=0)
    visit_type: VisitType = VisitType.FIRST
    appointment_time: Optional[datetime] = None


class RegistrationStatusIn(BaseModel):
    status: RegistrationStatus


class RegistrationOut(BaseModel):
    id: int
    reg_no: str
    patient_id: int
    patient_name: Optional[str] = None
    patient_no: Optional[str] = None
    gender: Optional[int] = None
    age: Optional[int] = None
    department_id: int
    department_name: Optional[str] = None
    doctor_id: int
    doctor_name: Optional[str] = None
    visit_date: date
    visit_type: int
    registration_fee: Decimal
    status: int
    status_desc: Optional[str] = None
    queue_no: Optional[str] = None
    cancel_reason: Optional[str] = None
    created_at: Optional[datetime] = None


class NurseRegistrationOut(RegistrationOut):
    id_card: Optional[str] = None  # masked
    phone: Optional[str] = None  # masked
    doctor_title: Optional[str] = None
    has_medical_record: bool = False


class PatientSearchOut(BaseModel):
    id: int
    patient_no: str
    name: str
    gender: Optional[int] = None
    age: Optional[int] = None
    id_card: Optional[str] = None  # masked
    phone: Optional[str] = None  # masked


class PatientDetailOut(PatientSearchOut):
    birth_date: Optional[date] = None
    address: Optional[str] = None
    blood_type: Optional[str] = None
    allergy_history: Optional[str] = None
    medical_history: Optional[str] = None
