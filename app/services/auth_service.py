# FILE: app/services/auth_service.py
from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy.orm import Session, joinedload

from app.core.context import CallerContext
from app.core.security import verify_password
from app.models.enums import UserRole
from app.models.user import User

logger = logging.getLogger(__name__)


def authenticate(db: Session, username: str, password: str) -> Optional[User]:
    user = db.query(User).filter(User.username == username).first()
    if not user or not user.is_active:
        return None
    if not verify_password(password, user.password_hash):
        logger.warning("Failed login for %s", username)
        return None
    return user


def load_active_user(db: Session, user_id: int) -> Optional[User]:
    user = (db.query(User).options(joinedload(User.doctor)).filter(
        User.id == user_id).first())
    if not user or not user.is_active:
        return None
    return user


def build_context(user: User) -> CallerContext:
    doctor = user.doctor
    return CallerContext(
        user_id=user.id,
        username=user.username,
        role=UserRole(user.role),
        doctor_id=user.doctor_id,
        department_id=doctor.department_id if doctor else None,
    )
