# FILE: app/db/init_db.py
from __future__ import annotations

import argparse
from decimal import Decimal

from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.security import hash_password
from app.db.base import Base
from app.db.session import engine
from app.models import Department, Doctor, Medicine, User
from app.models.enums import UserRole

DEPARTMENTS = [
    ("D001", "Internal Medicine"),
    ("D002", "Surgery"),
    ("D003", "Pediatrics"),
]

DOCTORS = [
    # doctor_no, name, title, dept_code
    ("DR001", "Zhang Wei", "Chief Physician", "D001"),
    ("DR002", "Li Na", "Attending Physician", "D001"),
    ("DR003", "Wang Fang", "Attending Physician", "D002"),
]

MEDICINES = [
    # code, name, spec, unit, retail, purchase, stock, min_stock
    ("M0001", "Amoxicillin Capsules", "0.25g*24", "box", "12.50", "8.00", 500, 50),
    ("M0002", "Ibuprofen Tablets", "0.2g*20", "box", "9.80", "5.60", 300, 30),
    ("M0003", "Vitamin C Tablets", "0.1g*100", "bottle", "6.00", "3.20", 200, 20),
]


def init_db(bind: Engine, fresh: bool = False) -> None:
    if fresh:
        print("WARNING: Dropping ALL tables (dev only) …")
        Base.metadata.drop_all(bind=bind)
    print("Creating all missing tables …")
    Base.metadata.create_all(bind=bind)


def seed_basic_data(db: Session, default_password: str = "123456") -> None:
    """
    Seed ONLY missing departments / doctors / users / medicines; safe to run
    multiple times.
    """
    depts = {}
    for idx, (code, name) in enumerate(DEPARTMENTS):
        d = db.query(Department).filter(Department.dept_code == code).first()
        if not d:
            d = Department(dept_code=code, name=name, sort_order=idx)
            db.add(d)
            db.flush()
        depts[code] = d

    doctors = {}
    for doctor_no, name, title, dept_code in DOCTORS:
        doc = db.query(Doctor).filter(Doctor.doctor_no == doctor_no).first()
        if not doc:
            doc = Doctor(doctor_no=doctor_no,
                         name=name,
                         title=title,
                         department_id=depts[dept_code].id)
            db.add(doc)
            db.flush()
        doctors[doctor_no] = doc

    users = [
        ("admin", "Administrator", UserRole.ADMIN, None),
        ("doctor1", "Zhang Wei", UserRole.DOCTOR, doctors["DR001"].id),
        ("doctor2", "Li Na", UserRole.DOCTOR, doctors["DR002"].id),
        ("nurse1", "Front Desk Nurse", UserRole.NURSE, None),
        ("pharm1", "Pharmacist", UserRole.PHARMACIST, None),
        ("cashier1", "Cashier", UserRole.CASHIER, None),
    ]
    for username, full_name, role, doctor_id in users:
        if db.query(User).filter(User.username == username).first():
            continue
        db.add(
            User(username=username,
                 password_hash=hash_password(default_password),
                 full_name=full_name,
                 role=role.value,
                 doctor_id=doctor_id))

    for code, name, spec, unit, retail, purchase, stock, min_stock in MEDICINES:
        if db.query(Medicine).filter(Medicine.medicine_code == code).first():
            continue
        db.add(
            Medicine(medicine_code=code,
                     name=name,
                     specification=spec,
                     unit=unit,
                     retail_price=Decimal(retail),
                     purchase_price=Decimal(purchase),
                     stock_quantity=stock,
                     min_stock=min_stock,
                     max_stock=stock * 4))


def run(fresh: bool = False, seed: bool = True) -> None:
    init_db(engine, fresh=fresh)
    if not seed:
        return
    try:
        with Session(engine) as db:
            seed_basic_data(db)
            db.commit()
            print("Basic data seeded (missing rows inserted).")
    except SQLAlchemyError as e:
        print("Seeding failed:", e)
        raise


if __name__ == "__main__":
    parser = argparse.ArgumentParser(
        description="Initialize DB (create tables, seed basic data).")
    parser.add_argument(
        "--fresh",
        action="store_true",
        help="Drop & recreate all tables (DEV ONLY).",
    )
    parser.add_argument(
        "--no-seed",
        action="store_true",
        help="Create tables only.",
    )
    args = parser.parse_args()
    run(fresh=args.fresh, seed=not args.no_seed)
