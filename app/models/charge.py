# FILE: app/models/charge.py
from __future__ import annotations

from sqlalchemy import (
    Column,
    Integer,
    SmallInteger,
    String,
    DateTime,
    Numeric,
    ForeignKey,
    func,
)
from sqlalchemy.orm import relationship

from app.db.base import Base
from app.models.enums import ChargeStatus


class Charge(Base):
    """
    Cashier bill for a registration fee and/or prescriptions.

    Covered items live in charge_details (item_type REGISTRATION or
    PRESCRIPTION). transaction_no is the payment idempotency key and is
    unique across all charges.
    """

    __tablename__ = "charges"
    __table_args__ = {
        "mysql_engine": "InnoDB",
        "mysql_charset": "utf8mb4",
        "mysql_collate": "utf8mb4_unicode_ci",
    }

    id = Column(Integer, primary_key=True, index=True)
    charge_no = Column(String(32), unique=True, index=True, nullable=False)

    patient_id = Column(Integer,
                        ForeignKey("patients.id"),
                        nullable=False,
                        index=True)
    registration_id = Column(Integer,
                             ForeignKey("registrations.id"),
                             nullable=False,
                             index=True)

    charge_type = Column(SmallInteger, nullable=False)
    total_amount = Column(Numeric(10, 2), nullable=False)
    status = Column(SmallInteger,
                    nullable=False,
                    default=ChargeStatus.UNPAID,
                    index=True)

    payment_method = Column(SmallInteger, nullable=True)
    transaction_no = Column(String(64), unique=True, nullable=True)
    paid_amount = Column(Numeric(10, 2), nullable=True)
    paid_at = Column(DateTime, nullable=True, index=True)
    cashier_id = Column(Integer, ForeignKey("users.id"), nullable=True)

    refund_amount = Column(Numeric(10, 2), nullable=True)
    refund_reason = Column(String(255), nullable=True)
    refunded_at = Column(DateTime, nullable=True)
    refund_by = Column(Integer, ForeignKey("users.id"), nullable=True)

    remark = Column(String(255), nullable=True)
    created_by = Column(Integer, nullable=True)

    created_at = Column(DateTime, nullable=False, server_default=func.now())
    updated_at = Column(DateTime,
                        nullable=False,
                        server_default=func.now(),
                        onupdate=func.now())

    patient = relationship("Patient")
    registration = relationship("Registration")
    details = relationship(
        "ChargeDetail",
        back_populates="charge",
        cascade="all, delete-orphan",
        order_by="ChargeDetail.id",
    )


class ChargeDetail(Base):
    __tablename__ = "charge_details"
    __table_args__ = {
        "mysql_engine": "InnoDB",
        "mysql_charset": "utf8mb4",
        "mysql_collate": "utf8mb4_unicode_ci",
    }

    id = Column(Integer, primary_key=True, index=True)
    charge_id = Column(Integer,
                       ForeignKey("charges.id", ondelete="CASCADE"),
                       nullable=False,
                       index=True)
    item_type = Column(String(20), nullable=False)  # ChargeItemType
    item_id = Column(Integer, nullable=False, index=True)
    item_name = Column(String(200), nullable=False)
    item_amount = Column(Numeric(10, 2), nullable=False)

    charge = relationship("Charge", back_populates="details")
