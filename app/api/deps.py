# FILE: app/api/deps.py
from __future__ import annotations

from typing import Callable, Generator, Optional

from fastapi import Depends, Header, HTTPException
from sqlalchemy.orm import Session

from app.core.context import CallerContext
from app.core.rbac import need_any_role
from app.db.session import SessionLocal
from app.models.enums import UserRole
from app.services.auth_service import build_context, load_active_user
from app.utils.jwt import decode_token


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def _extract_bearer(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    parts = authorization.split()
    if len(parts) == 2 and parts[0].lower() == "bearer":
        return parts[1]
    return None


def get_current_context(
    authorization: Optional[str] = Header(None),
    db: Session = Depends(get_db),
) -> CallerContext:
    token = _extract_bearer(authorization)
    if not token:
        raise HTTPException(status_code=401, detail="Not authenticated")

    payload = decode_token(token)
    if not payload:
        raise HTTPException(status_code=401, detail="Invalid token")

    try:
        user_id = int(payload.get("sub"))
    except (TypeError, ValueError):
        raise HTTPException(status_code=401, detail="Invalid token")

    user = load_active_user(db, user_id)
    if not user:
        raise HTTPException(status_code=401, detail="User not found or inactive")
    try:
        return build_context(user)
    except ValueError:
        raise HTTPException(status_code=403, detail="Unknown role")


def require_roles(*roles: UserRole) -> Callable[..., CallerContext]:
    """
    Route dependency: the caller must hold one of ``roles`` (ADMIN always passes).
    """

    def _dep(ctx: CallerContext = Depends(get_current_context)) -> CallerContext:
        need_any_role(ctx, roles)
        return ctx

    return _dep
