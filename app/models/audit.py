# FILE: app/models/audit.py
from sqlalchemy import (
    Column,
    Integer,
    String,
    DateTime,
    JSON,
)

from app.db.base import Base


class AuditLog(Base):
    """
    Audit trail for sensitive operations (payment, refund, dispense,
    return, stock adjustment, ...). Written in the same transaction as
    the change it describes.
    """
    __tablename__ = "audit_logs"
    __table_args__ = {
        "mysql_engine": "InnoDB",
        "mysql_charset": "utf8mb4",
        "mysql_collate": "utf8mb4_unicode_ci",
    }

    id = Column(Integer, primary_key=True, index=True)

    user_id = Column(Integer, nullable=True)  # system jobs may be null
    username = Column(String(64), nullable=True)
    action = Column(String(32), nullable=False, index=True)  # PAYMENT / REFUND / ...

    table_name = Column(String(64), nullable=False, index=True)
    record_id = Column(String(64), nullable=False,
                       index=True)  # generic pk, stored as string

    old_values = Column(JSON, nullable=True)
    new_values = Column(JSON, nullable=True)
    remark = Column(String(500), nullable=True)

    created_at = Column(DateTime, nullable=False, index=True)
