# FILE: app/services/basic_data_service.py
from __future__ import annotations

from typing import List, Optional

from sqlalchemy.orm import Session

from app.models.department import Department
from app.models.doctor import Doctor


def list_departments(db: Session) -> List[Department]:
    return (db.query(Department).filter(
        Department.is_deleted.is_(False),
        Department.is_active.is_(True),
    ).order_by(Department.sort_order.asc(), Department.id.asc()).all())


def list_doctors(db: Session, department_id: Optional[int] = None) -> List[Doctor]:
    q = db.query(Doctor).filter(
        Doctor.is_deleted.is_(False),
        Doctor.is_active.is_(True),
    )
    if department_id is not None:
        q = q.filter(Doctor.department_id == department_id)
    return q.order_by(Doctor.id.asc()).all()
