# FILE: app/models/registration.py
from __future__ import annotations

from sqlalchemy import (
    Column,
    Integer,
    SmallInteger,
    String,
    Boolean,
    Date,
    DateTime,
    Numeric,
    ForeignKey,
    func,
)
from sqlalchemy.orm import relationship

from app.db.base import Base
from app.models.enums import RegistrationStatus, VisitType


class Registration(Base):
    """
    One patient visit (check-in) to a doctor.

    status follows RegistrationStatus; changes go through
    app.services.state_machine.transition_registration so that each
    step is recorded in registration_status_history.
    """

    __tablename__ = "registrations"
    __table_args__ = {
        "mysql_engine": "InnoDB",
        "mysql_charset": "utf8mb4",
        "mysql_collate": "utf8mb4_unicode_ci",
    }

    id = Column(Integer, primary_key=True, index=True)
    reg_no = Column(String(32), unique=True, index=True, nullable=False)

    patient_id = Column(Integer,
                        ForeignKey("patients.id"),
                        nullable=False,
                        index=True)
    doctor_id = Column(Integer,
                       ForeignKey("doctors.id"),
                       nullable=False,
                       index=True)
    department_id = Column(Integer,
                           ForeignKey("departments.id"),
                           nullable=False,
                           index=True)

    visit_date = Column(Date, nullable=False, index=True)
    visit_type = Column(SmallInteger,
                        nullable=False,
                        default=VisitType.FIRST)
    appointment_time = Column(DateTime, nullable=True)
    registration_fee = Column(Numeric(10, 2), nullable=False, default=0)

    status = Column(SmallInteger,
                    nullable=False,
                    default=RegistrationStatus.WAITING,
                    index=True)
    queue_no = Column(String(10), nullable=True)
    cancel_reason = Column(String(255), nullable=True)

    is_deleted = Column(Boolean, nullable=False, default=False)
    created_by = Column(Integer, nullable=True)

    created_at = Column(DateTime, nullable=False, server_default=func.now())
    updated_at = Column(DateTime,
                        nullable=False,
                        server_default=func.now(),
                        onupdate=func.now())

    patient = relationship("Patient", back_populates="registrations")
    doctor = relationship("Doctor")
    department = relationship("Department")
    medical_record = relationship("MedicalRecord",
                                  back_populates="registration",
                                  uselist=False)
    status_history = relationship(
        "RegistrationStatusHistory",
        back_populates="registration",
        cascade="all, delete-orphan",
        order_by="RegistrationStatusHistory.id",
    )


class RegistrationStatusHistory(Base):
    __tablename__ = "registration_status_history"
    __table_args__ = {
        "mysql_engine": "InnoDB",
        "mysql_charset": "utf8mb4",
        "mysql_collate": "utf8mb4_unicode_ci",
    }

    id = Column(Integer, primary_key=True, index=True)
    registration_id = Column(Integer,
                             ForeignKey("registrations.id",
                                        ondelete="CASCADE"),
                             nullable=False,
                             index=True)
    from_status = Column(SmallInteger, nullable=True)
    to_status = Column(SmallInteger, nullable=False)
    operator_id = Column(Integer, nullable=True)
    operator_name = Column(String(120), nullable=True)
    reason = Column(String(255), nullable=True)
    created_at = Column(DateTime, nullable=False)

    registration = relationship("Registration",
                                back_populates="status_history")
