# FILE: app/models/medical_record.py
from sqlalchemy import (
    Column,
    Integer,
    SmallInteger,
    String,
    Text,
    Boolean,
    DateTime,
    ForeignKey,
    func,
)
from sqlalchemy.orm import relationship

from app.db.base import Base
from app.models.enums import MedicalRecordStatus


class MedicalRecord(Base):
    __tablename__ = "medical_records"
    __table_args__ = {
        "mysql_engine": "InnoDB",
        "mysql_charset": "utf8mb4",
        "mysql_collate": "utf8mb4_unicode_ci",
    }

    id = Column(Integer, primary_key=True, index=True)
    record_no = Column(String(32), unique=True, nullable=False)

    registration_id = Column(Integer,
                             ForeignKey("registrations.id"),
                             nullable=False,
                             index=True)
    patient_id = Column(Integer, ForeignKey("patients.id"), nullable=False)
    doctor_id = Column(Integer, ForeignKey("doctors.id"), nullable=False)

    status = Column(SmallInteger,
                    nullable=False,
                    default=MedicalRecordStatus.DRAFT)
    visit_time = Column(DateTime, nullable=True)

    chief_complaint = Column(Text, nullable=True)
    present_illness = Column(Text, nullable=True)
    past_history = Column(Text, nullable=True)
    personal_history = Column(Text, nullable=True)
    family_history = Column(Text, nullable=True)
    physical_exam = Column(Text, nullable=True)
    auxiliary_exam = Column(Text, nullable=True)
    diagnosis = Column(Text, nullable=True)
    diagnosis_code = Column(String(64), nullable=True)
    treatment_plan = Column(Text, nullable=True)
    doctor_advice = Column(Text, nullable=True)

    is_deleted = Column(Boolean, nullable=False, default=False)
    created_by = Column(Integer, nullable=True)
    updated_by = Column(Integer, nullable=True)

    created_at = Column(DateTime, nullable=False, server_default=func.now())
    updated_at = Column(DateTime,
                        nullable=False,
                        server_default=func.now(),
                        onupdate=func.now())

    registration = relationship("Registration",
                                back_populates="medical_record")
    patient = relationship("Patient")
    doctor = relationship("Doctor")
    prescriptions = relationship("Prescription",
                                 back_populates="medical_record")
