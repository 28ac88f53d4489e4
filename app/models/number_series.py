# FILE: app/models/number_series.py
from sqlalchemy import Column, Integer, String, UniqueConstraint

from app.db.base import Base


class NumberSeries(Base):
    """
    Running counter per document type and period (e.g. CHARGE / 20240315).
    Rows are locked FOR UPDATE while a number is taken.
    """
    __tablename__ = "number_series"
    __table_args__ = (
        UniqueConstraint("doc_type", "period_key", name="uq_number_series"),
        {
            "mysql_engine": "InnoDB",
            "mysql_charset": "utf8mb4",
            "mysql_collate": "utf8mb4_unicode_ci",
        },
    )

    id = Column(Integer, primary_key=True, index=True)
    doc_type = Column(String(32), nullable=False)
    period_key = Column(String(32), nullable=False)
    next_number = Column(Integer, nullable=False, default=1)
