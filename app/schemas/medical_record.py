# FILE: app/schemas/medical_record.py
from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict


class MedicalRecordSave(BaseModel):
    registration_id: int
    chief_complaint: Optional[str] = None
    present_illness: Optional[str] = None
    past_history: Optional[str] = None
    personal_history: Optional[str] = None
    family_history: Optional[str] = None
    physical_exam: Optional[str] = None
    auxiliary_exam: Optional[str] = None
    diagnosis: Optional[str] = None
    diagnosis_code: Optional[str] = None
    treatment_plan: Optional[str] = None
    doctor_advice: Optional[str] = None


class MedicalRecordOut(BaseModel):
    id: int
    record_no: str
    registration_id: int
    patient_id: int
    doctor_id: int
    status: int
    visit_time: Optional[datetime] = None
    chief_complaint: Optional[str] = None
    present_illness: Optional[str] = None
    past_history: Optional[str] = None
    personal_history: Optional[str] = None
    family_history: Optional[str] = None
    physical_exam: Optional[str] = None
    auxiliary_exam: Optional[str] = None
    diagnosis: Optional[str] = None
    diagnosis_code: Optional[str] = None
    treatment_plan: Optional[str] = None
    doctor_advice: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)
