# FILE: app/models/__init__.py
from .department import Department
from .doctor import Doctor
from .patient import Patient
from .user import User
from .registration import Registration, RegistrationStatusHistory
from .medical_record import MedicalRecord
from .medicine import Medicine
from .prescription import Prescription, PrescriptionDetail
from .charge import Charge, ChargeDetail
from .audit import AuditLog
from .number_series import NumberSeries

__all__ = [
    "Department",
    "Doctor",
    "Patient",
    "User",
    "Registration",
    "RegistrationStatusHistory",
    "MedicalRecord",
    "Medicine",
    "Prescription",
    "PrescriptionDetail",
    "Charge",
    "ChargeDetail",
    "AuditLog",
    "NumberSeries",
]
