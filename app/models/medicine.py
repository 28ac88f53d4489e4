# FILE: app/models/medicine.py
from sqlalchemy import (
    Column,
    Integer,
    SmallInteger,
    String,
    Boolean,
    DateTime,
    Numeric,
    func,
)

from app.db.base import Base


class Medicine(Base):
    """
    Catalog item + on-hand stock.

    stock_quantity never goes below zero; every change goes through
    MedicineService.update_stock or prescription dispense/return, which
    lock the row. ``version`` is an optimistic-lock counter as well.
    purchase_price is only exposed in the pharmacist projection.
    """

    __tablename__ = "medicines"
    __table_args__ = {
        "mysql_engine": "InnoDB",
        "mysql_charset": "utf8mb4",
        "mysql_collate": "utf8mb4_unicode_ci",
    }

    id = Column(Integer, primary_key=True, index=True)
    medicine_code = Column(String(32), unique=True, index=True, nullable=False)
    name = Column(String(200), nullable=False, index=True)
    generic_name = Column(String(200), nullable=True)

    specification = Column(String(100), nullable=True)  # e.g. 0.25g*24
    dosage_form = Column(String(50), nullable=True)
    unit = Column(String(20), nullable=True)
    category = Column(String(50), nullable=True, index=True)
    manufacturer = Column(String(200), nullable=True)
    approval_no = Column(String(100), nullable=True)
    storage_condition = Column(String(100), nullable=True)

    retail_price = Column(Numeric(10, 4), nullable=False)
    purchase_price = Column(Numeric(10, 4), nullable=True)

    stock_quantity = Column(Integer, nullable=False, default=0)
    min_stock = Column(Integer, nullable=True)
    max_stock = Column(Integer, nullable=True)
    expiry_warning_days = Column(Integer, nullable=False, default=90)

    is_prescription = Column(Boolean, nullable=False, default=False)
    status = Column(SmallInteger, nullable=False, default=1)  # 1 active
    is_deleted = Column(Boolean, nullable=False, default=False)

    version = Column(Integer, nullable=False)

    created_at = Column(DateTime, nullable=False, server_default=func.now())
    updated_at = Column(DateTime,
                        nullable=False,
                        server_default=func.now(),
                        onupdate=func.now())

    __mapper_args__ = {"version_id_col": version}
