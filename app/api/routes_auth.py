# FILE: app/api/routes_auth.py
from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from app.api.deps import get_current_context, get_db
from app.api.response import ok
from app.core.context import CallerContext
from app.schemas.basic_data import LoginIn, TokenOut
from app.services.auth_service import authenticate
from app.utils.jwt import create_access_token

router = APIRouter()


@router.post("/login")
def login(payload: LoginIn, db: Session = Depends(get_db)):
    user = authenticate(db, payload.username, payload.password)
    if not user:
        raise HTTPException(status_code=401, detail="Invalid username or password")
    token = create_access_token(user_id=user.id, role=user.role)
    return ok(
        TokenOut(access_token=token,
                 user_id=user.id,
                 role=user.role,
                 full_name=user.full_name))


@router.get("/me")
def me(ctx: CallerContext = Depends(get_current_context)):
    return ok({
        "user_id": ctx.user_id,
        "username": ctx.username,
        "role": ctx.role,
        "doctor_id": ctx.doctor_id,
        "department_id": ctx.department_id,
    })
