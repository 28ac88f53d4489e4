# FILE: app/api/router.py
from fastapi import APIRouter
from app.api import (
    # Core
    routes_auth,
    routes_basic_data,
    routes_audit_logs,

    # Outpatient
    routes_registration,
    routes_doctor,
    routes_nurse,
    routes_medical_records,
    routes_prescriptions,

    # Pharmacy / Billing
    routes_medicines,
    routes_pharmacist,
    routes_charges,
)

api_router = APIRouter()

# ---- Core
api_router.include_router(routes_auth.router, prefix="/auth", tags=["auth"])
api_router.include_router(routes_basic_data.router,
                          prefix="/basic",
                          tags=["basic-data"])
api_router.include_router(routes_audit_logs.router,
                          prefix="/audit-logs",
                          tags=["audit-logs"])

# ---- Outpatient
api_router.include_router(routes_registration.router,
                          prefix="/registrations",
                          tags=["registrations"])
api_router.include_router(routes_doctor.router, prefix="/doctor", tags=["doctor"])
api_router.include_router(routes_nurse.router, prefix="/nurse", tags=["nurse"])
api_router.include_router(routes_medical_records.router,
                          prefix="/medical-records",
                          tags=["medical-records"])
api_router.include_router(routes_prescriptions.router,
                          prefix="/prescriptions",
                          tags=["prescriptions"])

# ---- Pharmacy / Billing
api_router.include_router(routes_medicines.router,
                          prefix="/medicines",
                          tags=["medicines"])
api_router.include_router(routes_pharmacist.router,
                          prefix="/pharmacist",
                          tags=["pharmacist"])
api_router.include_router(routes_charges.router, prefix="/charges", tags=["charges"])
