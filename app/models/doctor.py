# FILE: app/models/doctor.py
from sqlalchemy import (
    Column,
    Integer,
    SmallInteger,
    String,
    Boolean,
    DateTime,
    ForeignKey,
    func,
)
from sqlalchemy.orm import relationship

from app.db.base import Base


class Doctor(Base):
    __tablename__ = "doctors"
    __table_args__ = {
        "mysql_engine": "InnoDB",
        "mysql_charset": "utf8mb4",
        "mysql_collate": "utf8mb4_unicode_ci",
    }

    id = Column(Integer, primary_key=True, index=True)
    doctor_no = Column(String(32), unique=True, nullable=False)
    name = Column(String(120), nullable=False)
    gender = Column(SmallInteger, nullable=True)
    title = Column(String(64), nullable=True)  # e.g. Chief Physician
    specialty = Column(String(255), nullable=True)
    phone = Column(String(20), nullable=True)
    license_no = Column(String(64), nullable=True)

    department_id = Column(Integer,
                           ForeignKey("departments.id"),
                           nullable=False,
                           index=True)

    is_active = Column(Boolean, nullable=False, default=True)
    is_deleted = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime, nullable=False, server_default=func.now())
    updated_at = Column(DateTime,
                        nullable=False,
                        server_default=func.now(),
                        onupdate=func.now())

    department = relationship("Department", back_populates="doctors")
