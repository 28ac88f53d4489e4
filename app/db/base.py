# FILE: app/db/base.py
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """All HIS tables inherit from this."""
    pass


# Import all models so metadata is complete for create_all()
from app.models import (  # noqa: E402,F401
    department,
    doctor,
    patient,
    user,
    registration,
    medical_record,
    medicine,
    prescription,
    charge,
    audit,
    number_series,
)
