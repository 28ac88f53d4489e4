# FILE: app/services/converters.py
"""
Entity -> view mapping.

Medicine has one projection per role: doctors (and nurses) never see
purchase price or margin; pharmacists and admins get the full view.
All functions here are pure.
"""
from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, Union

from app.models.charge import Charge
from app.models.enums import (
    ChargeItemType,
    ChargeStatus,
    ChargeType,
    PrescriptionStatus,
    RegistrationStatus,
    StockStatus,
    UserRole,
    enum_name,
)
from app.models.medicine import Medicine
from app.models.prescription import Prescription
from app.models.registration import Registration
from app.schemas.charge import ChargeDetailOut, ChargeOut
from app.schemas.medicine import MedicineDoctorView, MedicinePharmacistView
from app.schemas.prescription import PrescriptionDetailOut, PrescriptionOut
from app.schemas.registration import NurseRegistrationOut, RegistrationOut
from app.utils.masking import mask_id_card, mask_phone

_PCT = Decimal("0.01")

PHARMACIST_VIEW_ROLES = {UserRole.PHARMACIST, UserRole.ADMIN}


def compute_stock_status(stock: Optional[int],
                         min_stock: Optional[int]) -> StockStatus:
    stock = stock or 0
    if stock <= 0:
        return StockStatus.OUT_OF_STOCK
    if min_stock is not None and stock <= min_stock:
        return StockStatus.LOW_STOCK
    return StockStatus.IN_STOCK


def profit_margin(retail: Optional[Decimal],
                  purchase: Optional[Decimal]) -> Decimal:
    """(retail - purchase) * 100 / purchase, 2 dp; 0 without a purchase price."""
    if purchase is None or Decimal(purchase) == 0 or retail is None:
        return Decimal("0.00")
    retail, purchase = Decimal(retail), Decimal(purchase)
    return ((retail - purchase) * 100 / purchase).quantize(
        _PCT, rounding=ROUND_HALF_UP)


def _medicine_common(m: Medicine) -> dict:
    return dict(
        id=m.id,
        medicine_code=m.medicine_code,
        name=m.name,
        generic_name=m.generic_name,
        specification=m.specification,
        dosage_form=m.dosage_form,
        unit=m.unit,
        category=m.category,
        manufacturer=m.manufacturer,
        retail_price=m.retail_price,
        stock_quantity=m.stock_quantity or 0,
        stock_status=compute_stock_status(m.stock_quantity, m.min_stock),
        is_prescription=bool(m.is_prescription),
        status=m.status,
    )


def to_medicine_doctor_view(m: Medicine) -> MedicineDoctorView:
    return MedicineDoctorView(**_medicine_common(m))


def to_medicine_pharmacist_view(m: Medicine) -> MedicinePharmacistView:
    return MedicinePharmacistView(
        **_medicine_common(m),
        purchase_price=m.purchase_price,
        profit_margin=profit_margin(m.retail_price, m.purchase_price),
        min_stock=m.min_stock,
        max_stock=m.max_stock,
        storage_condition=m.storage_condition,
        approval_no=m.approval_no,
        expiry_warning_days=m.expiry_warning_days,
    )


def to_medicine_view(
        m: Medicine,
        role: UserRole) -> Union[MedicineDoctorView, MedicinePharmacistView]:
    if role in PHARMACIST_VIEW_ROLES:
        return to_medicine_pharmacist_view(m)
    return to_medicine_doctor_view(m)


def _registration_common(r: Registration) -> dict:
    patient = r.patient
    return dict(
        id=r.id,
        reg_no=r.reg_no,
        patient_id=r.patient_id,
        patient_name=patient.name if patient else None,
        patient_no=patient.patient_no if patient else None,
        gender=patient.gender if patient else None,
        age=patient.age if patient else None,
        department_id=r.department_id,
        department_name=r.department.name if r.department else None,
        doctor_id=r.doctor_id,
        doctor_name=r.doctor.name if r.doctor else None,
        visit_date=r.visit_date,
        visit_type=r.visit_type,
        registration_fee=r.registration_fee,
        status=r.status,
        status_desc=enum_name(RegistrationStatus, r.status),
        queue_no=r.queue_no,
        cancel_reason=r.cancel_reason,
        created_at=r.created_at,
    )


def to_registration_out(r: Registration) -> RegistrationOut:
    return RegistrationOut(**_registration_common(r))


def to_nurse_registration_out(r: Registration) -> NurseRegistrationOut:
    patient = r.patient
    record = r.medical_record
    return NurseRegistrationOut(
        **_registration_common(r),
        id_card=mask_id_card(patient.id_card) if patient else None,
        phone=mask_phone(patient.phone) if patient else None,
        doctor_title=r.doctor.title if r.doctor else None,
        has_medical_record=record is not None and not record.is_deleted,
    )


def to_prescription_out(p: Prescription) -> PrescriptionOut:
    return PrescriptionOut(
        id=p.id,
        prescription_no=p.prescription_no,
        record_id=p.record_id,
        registration_id=p.registration_id,
        patient_id=p.patient_id,
        patient_name=p.patient.name if p.patient else None,
        doctor_id=p.doctor_id,
        doctor_name=p.doctor.name if p.doctor else None,
        prescription_type=p.prescription_type,
        total_amount=p.total_amount,
        item_count=p.item_count,
        status=p.status,
        status_desc=enum_name(PrescriptionStatus, p.status),
        validity_days=p.validity_days,
        review_doctor_id=p.review_doctor_id,
        review_time=p.review_time,
        review_remark=p.review_remark,
        dispense_by=p.dispense_by,
        dispense_time=p.dispense_time,
        return_reason=p.return_reason,
        return_time=p.return_time,
        cancel_reason=p.cancel_reason,
        created_at=p.created_at,
        details=[PrescriptionDetailOut.model_validate(d) for d in p.details],
    )


def to_charge_out(c: Charge) -> ChargeOut:
    return ChargeOut(
        id=c.id,
        charge_no=c.charge_no,
        patient_id=c.patient_id,
        patient_name=c.patient.name if c.patient else None,
        registration_id=c.registration_id,
        charge_type=c.charge_type,
        charge_type_desc=enum_name(ChargeType, c.charge_type),
        total_amount=c.total_amount,
        status=c.status,
        status_desc=enum_name(ChargeStatus, c.status),
        payment_method=c.payment_method,
        transaction_no=c.transaction_no,
        paid_amount=c.paid_amount,
        paid_at=c.paid_at,
        refund_amount=c.refund_amount,
        refund_reason=c.refund_reason,
        refunded_at=c.refunded_at,
        created_at=c.created_at,
        prescription_ids=[
            d.item_id for d in c.details
            if d.item_type == ChargeItemType.PRESCRIPTION.value
        ],
        details=[ChargeDetailOut.model_validate(d) for d in c.details],
    )
