# FILE: app/schemas/basic_data.py
from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict


class DepartmentOut(BaseModel):
    id: int
    dept_code: str
    name: str
    parent_id: Optional[int] = None
    sort_order: int = 0

    model_config = ConfigDict(from_attributes=True)


class DoctorOut(BaseModel):
    id: int
    doctor_no: str
    name: str
    title: Optional[str] = None
    specialty: Optional[str] = None
    department_id: int

    model_config = ConfigDict(from_attributes=True)


class LoginIn(BaseModel):
    username: str
    password: str


class TokenOut(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user_id: int
    role: str
    full_name: str
