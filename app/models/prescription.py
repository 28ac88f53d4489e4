# FILE: app/models/prescription.py
from __future__ import annotations

from sqlalchemy import (
    Column,
    Integer,
    SmallInteger,
    String,
    Text,
    Boolean,
    DateTime,
    Numeric,
    ForeignKey,
    func,
)
from sqlalchemy.orm import relationship

from app.db.base import Base
from app.models.enums import PrescriptionStatus, PrescriptionType


class Prescription(Base):
    """
    Doctor-issued medicine order for one visit.

    total_amount / item_count are derived from the detail lines, which
    snapshot Medicine.retail_price at creation time.
    """

    __tablename__ = "prescriptions"
    __table_args__ = {
        "mysql_engine": "InnoDB",
        "mysql_charset": "utf8mb4",
        "mysql_collate": "utf8mb4_unicode_ci",
    }

    id = Column(Integer, primary_key=True, index=True)
    prescription_no = Column(String(32),
                             unique=True,
                             index=True,
                             nullable=False)

    record_id = Column(Integer,
                       ForeignKey("medical_records.id"),
                       nullable=False,
                       index=True)
    registration_id = Column(Integer,
                             ForeignKey("registrations.id"),
                             nullable=False,
                             index=True)
    patient_id = Column(Integer, ForeignKey("patients.id"), nullable=False)
    doctor_id = Column(Integer, ForeignKey("doctors.id"), nullable=False)

    prescription_type = Column(SmallInteger,
                               nullable=False,
                               default=PrescriptionType.WESTERN)
    total_amount = Column(Numeric(10, 2), nullable=False, default=0)
    item_count = Column(Integer, nullable=False, default=0)
    status = Column(SmallInteger,
                    nullable=False,
                    default=PrescriptionStatus.ISSUED,
                    index=True)
    validity_days = Column(Integer, nullable=False, default=3)

    review_doctor_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    review_time = Column(DateTime, nullable=True)
    review_remark = Column(String(500), nullable=True)

    dispense_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    dispense_time = Column(DateTime, nullable=True, index=True)

    return_reason = Column(String(500), nullable=True)
    return_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    return_time = Column(DateTime, nullable=True)

    cancel_reason = Column(Text, nullable=True)
    cancelled_at = Column(DateTime, nullable=True)
    refunded_at = Column(DateTime, nullable=True)

    is_deleted = Column(Boolean, nullable=False, default=False)
    created_by = Column(Integer, nullable=True)

    created_at = Column(DateTime,
                        nullable=False,
                        server_default=func.now(),
                        index=True)
    updated_at = Column(DateTime,
                        nullable=False,
                        server_default=func.now(),
                        onupdate=func.now())

    medical_record = relationship("MedicalRecord",
                                  back_populates="prescriptions")
    registration = relationship("Registration")
    patient = relationship("Patient")
    doctor = relationship("Doctor")
    details = relationship(
        "PrescriptionDetail",
        back_populates="prescription",
        cascade="all, delete-orphan",
        order_by="PrescriptionDetail.id",
    )


class PrescriptionDetail(Base):
    __tablename__ = "prescription_details"
    __table_args__ = {
        "mysql_engine": "InnoDB",
        "mysql_charset": "utf8mb4",
        "mysql_collate": "utf8mb4_unicode_ci",
    }

    id = Column(Integer, primary_key=True, index=True)
    prescription_id = Column(Integer,
                             ForeignKey("prescriptions.id",
                                        ondelete="CASCADE"),
                             nullable=False,
                             index=True)
    medicine_id = Column(Integer,
                         ForeignKey("medicines.id"),
                         nullable=False,
                         index=True)

    # snapshot at creation
    medicine_name = Column(String(200), nullable=False)
    specification = Column(String(100), nullable=True)
    unit = Column(String(20), nullable=True)
    unit_price = Column(Numeric(10, 4), nullable=False)

    quantity = Column(Integer, nullable=False)
    subtotal = Column(Numeric(10, 2), nullable=False)

    frequency = Column(String(50), nullable=True)  # e.g. TID
    dosage = Column(String(50), nullable=True)
    route = Column(String(50), nullable=True)
    days = Column(Integer, nullable=True)
    instructions = Column(String(255), nullable=True)

    prescription = relationship("Prescription", back_populates="details")
    medicine = relationship("Medicine")
