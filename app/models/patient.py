# FILE: app/models/patient.py
from sqlalchemy import (
    Column,
    Integer,
    SmallInteger,
    String,
    Text,
    Boolean,
    Date,
    DateTime,
    func,
)
from sqlalchemy.orm import relationship

from app.db.base import Base


class Patient(Base):
    __tablename__ = "patients"
    __table_args__ = {
        "mysql_engine": "InnoDB",
        "mysql_charset": "utf8mb4",
        "mysql_collate": "utf8mb4_unicode_ci",
    }

    id = Column(Integer, primary_key=True, index=True)
    patient_no = Column(String(32), unique=True, index=True, nullable=False)

    # core demographics
    name = Column(String(120), nullable=False, index=True)
    gender = Column(SmallInteger, nullable=False)
    birth_date = Column(Date, nullable=True)
    age = Column(SmallInteger, nullable=True)

    # identifiers (masked in every list view)
    id_card = Column(String(32), index=True, nullable=True)
    phone = Column(String(20), index=True, nullable=True)
    medical_card_no = Column(String(32), nullable=True)

    address = Column(String(255), nullable=True)
    emergency_contact = Column(String(120), nullable=True)
    emergency_phone = Column(String(20), nullable=True)
    blood_type = Column(String(8), nullable=True)
    allergy_history = Column(Text, nullable=True)
    medical_history = Column(Text, nullable=True)

    is_deleted = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime, nullable=False, server_default=func.now())
    updated_at = Column(DateTime,
                        nullable=False,
                        server_default=func.now(),
                        onupdate=func.now())

    registrations = relationship("Registration", back_populates="patient")
