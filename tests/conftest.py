"""
Shared fixtures for all tests.

Every test gets a fresh in-memory SQLite database. factory-boy factories
live here so unit/ and api/ can both use them; they commit, so service
rollbacks never wipe the fixture data.
"""
import os

# must be set before anything under app/ is imported
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("JWT_SECRET", "test-secret")

from decimal import Decimal  # noqa: E402

import factory  # noqa: E402
from factory.alchemy import SQLAlchemyModelFactory  # noqa: E402
import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from app.api.deps import get_db  # noqa: E402
from app.core.context import CallerContext  # noqa: E402
from app.core.security import hash_password  # noqa: E402
from app.db.base import Base  # noqa: E402
from app.main import app  # noqa: E402
from app.models import (  # noqa: E402
    Department,
    Doctor,
    MedicalRecord,
    Medicine,
    Patient,
    Registration,
    User,
)
from app.models.enums import RegistrationStatus, UserRole  # noqa: E402
from app.utils.jwt import create_access_token  # noqa: E402
from app.utils.timezone import today_local  # noqa: E402

PASSWORD = "secret-123"


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------

class BaseFactory(SQLAlchemyModelFactory):
    class Meta:
        abstract = True
        sqlalchemy_session_persistence = "commit"


class DepartmentFactory(BaseFactory):
    class Meta:
        model = Department

    dept_code = factory.Sequence(lambda n: f"D{n:03d}")
    name = factory.Sequence(lambda n: f"Department {n}")
    is_active = True
    is_deleted = False


class DoctorFactory(BaseFactory):
    class Meta:
        model = Doctor

    doctor_no = factory.Sequence(lambda n: f"DR{n:03d}")
    name = "Dr. Zhang"
    title = "Attending Physician"
    department = factory.SubFactory(DepartmentFactory)
    is_active = True
    is_deleted = False


class PatientFactory(BaseFactory):
    class Meta:
        model = Patient

    patient_no = factory.Sequence(lambda n: f"PT{n:06d}")
    name = "Wang Xiaoming"
    gender = 1
    age = 35
    id_card = factory.Sequence(lambda n: f"11010119900101{n:04d}")
    phone = "13812345678"
    is_deleted = False


class RegistrationFactory(BaseFactory):
    class Meta:
        model = Registration

    reg_no = factory.Sequence(lambda n: f"RT{n:06d}")
    patient = factory.SubFactory(PatientFactory)
    doctor = factory.SubFactory(DoctorFactory)
    department = factory.SelfAttribute("doctor.department")
    visit_date = factory.LazyFunction(today_local)
    visit_type = 1
    registration_fee = Decimal("10.00")
    status = int(RegistrationStatus.WAITING)
    queue_no = factory.Sequence(lambda n: f"{n + 1:03d}")
    is_deleted = False


class MedicalRecordFactory(BaseFactory):
    class Meta:
        model = MedicalRecord

    record_no = factory.Sequence(lambda n: f"MRT{n:06d}")
    registration = factory.SubFactory(RegistrationFactory)
    patient = factory.SelfAttribute("registration.patient")
    doctor = factory.SelfAttribute("registration.doctor")
    status = 0
    chief_complaint = "Cough for 3 days"
    diagnosis = "Acute bronchitis"
    is_deleted = False


class MedicineFactory(BaseFactory):
    class Meta:
        model = Medicine

    medicine_code = factory.Sequence(lambda n: f"MT{n:04d}")
    name = factory.Sequence(lambda n: f"Amoxicillin {n}")
    specification = "0.25g*24"
    unit = "box"
    category = "Antibiotic"
    manufacturer = "North Pharma"
    retail_price = Decimal("12.50")
    purchase_price = Decimal("8.00")
    stock_quantity = 100
    min_stock = 10
    max_stock = 500
    expiry_warning_days = 90
    is_prescription = True
    status = 1
    is_deleted = False


class UserFactory(BaseFactory):
    class Meta:
        model = User

    username = factory.Sequence(lambda n: f"user{n}")
    password_hash = factory.LazyFunction(lambda: hash_password(PASSWORD))
    full_name = "Test User"
    role = UserRole.NURSE.value
    is_active = True


FACTORIES = (
    DepartmentFactory,
    DoctorFactory,
    PatientFactory,
    RegistrationFactory,
    MedicalRecordFactory,
    MedicineFactory,
    UserFactory,
)


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------

@pytest.fixture
def engine():
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    Base.metadata.create_all(bind=eng)
    yield eng
    Base.metadata.drop_all(bind=eng)
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine, future=True)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    for f in FACTORIES:
        f._meta.sqlalchemy_session = session
    yield session
    session.close()


# ---------------------------------------------------------------------------
# Callers
# ---------------------------------------------------------------------------

def ctx_for(user: User) -> CallerContext:
    doctor = user.doctor
    return CallerContext(
        user_id=user.id,
        username=user.username,
        role=UserRole(user.role),
        doctor_id=user.doctor_id,
        department_id=doctor.department_id if doctor else None,
    )


@pytest.fixture
def doctor(db):
    return DoctorFactory()


@pytest.fixture
def doctor_user(db, doctor):
    return UserFactory(role=UserRole.DOCTOR.value, doctor_id=doctor.id, username="doctor1")


@pytest.fixture
def nurse_user(db):
    return UserFactory(role=UserRole.NURSE.value, username="nurse1")


@pytest.fixture
def pharmacist_user(db):
    return UserFactory(role=UserRole.PHARMACIST.value, username="pharm1")


@pytest.fixture
def cashier_user(db):
    return UserFactory(role=UserRole.CASHIER.value, username="cashier1")


@pytest.fixture
def admin_user(db):
    return UserFactory(role=UserRole.ADMIN.value, username="admin")


@pytest.fixture
def doctor_ctx(doctor_user):
    return ctx_for(doctor_user)


@pytest.fixture
def nurse_ctx(nurse_user):
    return ctx_for(nurse_user)


@pytest.fixture
def pharmacist_ctx(pharmacist_user):
    return ctx_for(pharmacist_user)


@pytest.fixture
def cashier_ctx(cashier_user):
    return ctx_for(cashier_user)


# ---------------------------------------------------------------------------
# Domain shortcuts
# ---------------------------------------------------------------------------

@pytest.fixture
def medicine(db):
    """M1 from the worked example: retail 12.50, 100 in stock."""
    return MedicineFactory(retail_price=Decimal("12.50"), stock_quantity=100)


@pytest.fixture
def visit(db, doctor):
    """Finished consultation with a medical record; fee already settled (0)."""
    reg = RegistrationFactory(
        doctor=doctor,
        registration_fee=Decimal("0.00"),
        status=int(RegistrationStatus.COMPLETED),
    )
    record = MedicalRecordFactory(registration=reg)
    return reg, record


# ---------------------------------------------------------------------------
# HTTP
# ---------------------------------------------------------------------------

@pytest.fixture
def client(session_factory, db):
    def _override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


def auth_headers(user: User) -> dict:
    token = create_access_token(user_id=user.id, role=user.role)
    return {"Authorization": f"Bearer {token}"}
