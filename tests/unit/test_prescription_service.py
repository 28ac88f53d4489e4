"""
Prescription lifecycle: creation (price integrity), review, dispense and
return (stock conservation), cancel.
"""
from decimal import Decimal

import pytest

from app.core.exceptions import NotFoundError, StateError, ValidationError
from app.models.audit import AuditLog
from app.models.enums import PrescriptionStatus, RegistrationStatus
from app.schemas.prescription import PrescriptionCreate, PrescriptionItemIn
from app.services import prescription_service
from tests.conftest import MedicineFactory, RegistrationFactory


def _create(db, reg, ctx, *items):
    data = PrescriptionCreate(
        registration_id=reg.id,
        items=[PrescriptionItemIn(medicine_id=m.id, quantity=q) for m, q in items],
    )
    return prescription_service.create_prescription(db, data, ctx)


def _mark_paid(db, rx):
    # payment itself is covered in test_charge_service
    rx.status = int(PrescriptionStatus.PAID)
    db.commit()
    return rx


class TestCreate:

    def test_worked_example(self, db, visit, medicine, doctor_ctx):
        reg, record = visit
        rx = _create(db, reg, doctor_ctx, (medicine, 2))

        assert rx.total_amount == Decimal("25.00")
        assert rx.item_count == 2
        assert rx.status == PrescriptionStatus.ISSUED
        assert rx.record_id == record.id
        assert rx.prescription_no.startswith("RX")
        assert len(rx.prescription_no) == len("RX") + 8 + 4

    def test_client_price_is_ignored(self, db, visit, medicine, doctor_ctx):
        reg, _ = visit
        data = PrescriptionCreate.model_validate({
            "registration_id": reg.id,
            "items": [{"medicine_id": medicine.id, "quantity": 2,
                       "unit_price": "0.01", "subtotal": "0.02"}],
            "total_amount": "0.02",
        })
        rx = prescription_service.create_prescription(db, data, doctor_ctx)
        assert rx.details[0].unit_price == Decimal("12.50")
        assert rx.total_amount == Decimal("25.00")

    def test_total_is_sum_of_rounded_subtotals(self, db, visit, doctor_ctx):
        reg, _ = visit
        a = MedicineFactory(retail_price=Decimal("0.3333"))
        b = MedicineFactory(retail_price=Decimal("1.005"))
        rx = _create(db, reg, doctor_ctx, (a, 3), (b, 1))

        subtotals = [d.subtotal for d in rx.details]
        assert subtotals == [Decimal("1.00"), Decimal("1.01")]
        assert rx.total_amount == sum(subtotals)
        assert rx.item_count == 4

    def test_price_snapshot_survives_catalog_change(self, db, visit, medicine, doctor_ctx):
        reg, _ = visit
        rx = _create(db, reg, doctor_ctx, (medicine, 2))
        medicine.retail_price = Decimal("99.00")
        db.commit()

        rx = prescription_service.get_prescription(db, rx.id)
        assert rx.details[0].unit_price == Decimal("12.50")
        assert rx.total_amount == Decimal("25.00")

    def test_requires_medical_record(self, db, doctor, medicine, doctor_ctx):
        reg = RegistrationFactory(doctor=doctor, status=int(RegistrationStatus.IN_CONSULTATION))
        with pytest.raises(ValidationError, match="medical record first"):
            _create(db, reg, doctor_ctx, (medicine, 1))

    def test_cancelled_registration(self, db, visit, medicine, doctor_ctx):
        reg, _ = visit
        reg.status = int(RegistrationStatus.CANCELLED)
        db.commit()
        with pytest.raises(StateError):
            _create(db, reg, doctor_ctx, (medicine, 1))

    def test_insufficient_stock(self, db, visit, doctor_ctx):
        reg, _ = visit
        m = MedicineFactory(stock_quantity=1)
        with pytest.raises(ValidationError, match="Insufficient stock"):
            _create(db, reg, doctor_ctx, (m, 2))

    def test_duplicate_lines_checked_together(self, db, visit, doctor_ctx):
        reg, _ = visit
        m = MedicineFactory(stock_quantity=3)
        with pytest.raises(ValidationError, match="Insufficient stock"):
            _create(db, reg, doctor_ctx, (m, 2), (m, 2))

    def test_disabled_medicine(self, db, visit, doctor_ctx):
        reg, _ = visit
        m = MedicineFactory(status=0)
        with pytest.raises(ValidationError, match="disabled"):
            _create(db, reg, doctor_ctx, (m, 1))

    def test_unknown_medicine(self, db, visit, doctor_ctx):
        reg, _ = visit
        data = PrescriptionCreate(registration_id=reg.id,
                                  items=[PrescriptionItemIn(medicine_id=4040, quantity=1)])
        with pytest.raises(ValidationError, match="Medicine not found"):
            prescription_service.create_prescription(db, data, doctor_ctx)

    def test_creation_does_not_touch_stock(self, db, visit, medicine, doctor_ctx):
        reg, _ = visit
        _create(db, reg, doctor_ctx, (medicine, 2))
        db.refresh(medicine)
        assert medicine.stock_quantity == 100


class TestReview:

    def test_review(self, db, visit, medicine, doctor_ctx, pharmacist_ctx):
        reg, _ = visit
        rx = _create(db, reg, doctor_ctx, (medicine, 2))
        rx = prescription_service.review(db, rx.id, pharmacist_ctx, remark="ok")

        assert rx.status == PrescriptionStatus.REVIEWED
        assert rx.review_doctor_id == pharmacist_ctx.user_id
        assert rx.review_time is not None
        assert rx.review_remark == "ok"

    def test_review_twice(self, db, visit, medicine, doctor_ctx, pharmacist_ctx):
        reg, _ = visit
        rx = _create(db, reg, doctor_ctx, (medicine, 2))
        prescription_service.review(db, rx.id, pharmacist_ctx)
        with pytest.raises(StateError):
            prescription_service.review(db, rx.id, pharmacist_ctx)

    def test_pending_review_list(self, db, visit, medicine, doctor_ctx, pharmacist_ctx):
        reg, _ = visit
        first = _create(db, reg, doctor_ctx, (medicine, 1))
        second = _create(db, reg, doctor_ctx, (medicine, 1))
        prescription_service.review(db, first.id, pharmacist_ctx)

        pending = prescription_service.get_pending_review_list(db)
        assert [p.id for p in pending] == [second.id]


class TestDispenseAndReturn:

    def test_round_trip_restores_stock(self, db, visit, medicine, doctor_ctx, pharmacist_ctx):
        reg, _ = visit
        rx = _create(db, reg, doctor_ctx, (medicine, 2))
        prescription_service.review(db, rx.id, pharmacist_ctx)
        _mark_paid(db, rx)

        rx = prescription_service.dispense(db, rx.id, pharmacist_ctx)
        db.refresh(medicine)
        assert rx.status == PrescriptionStatus.DISPENSED
        assert rx.dispense_by == pharmacist_ctx.user_id
        assert medicine.stock_quantity == 98

        rx = prescription_service.return_medicine(db, rx.id, "patient request", pharmacist_ctx)
        db.refresh(medicine)
        assert rx.status == PrescriptionStatus.RETURNED
        assert rx.return_reason == "patient request"
        assert medicine.stock_quantity == 100

    def test_dispense_requires_payment(self, db, visit, medicine, doctor_ctx, pharmacist_ctx):
        reg, _ = visit
        rx = _create(db, reg, doctor_ctx, (medicine, 2))
        prescription_service.review(db, rx.id, pharmacist_ctx)
        with pytest.raises(StateError, match="paid"):
            prescription_service.dispense(db, rx.id, pharmacist_ctx)
        db.refresh(medicine)
        assert medicine.stock_quantity == 100

    def test_dispense_is_all_or_nothing(self, db, visit, doctor_ctx, pharmacist_ctx):
        reg, _ = visit
        plenty = MedicineFactory(stock_quantity=50)
        scarce = MedicineFactory(stock_quantity=5)
        rx = _create(db, reg, doctor_ctx, (plenty, 10), (scarce, 5))
        _mark_paid(db, rx)

        # stock drops after the prescription was written
        scarce.stock_quantity = 2
        db.commit()

        with pytest.raises(ValidationError, match="Insufficient stock"):
            prescription_service.dispense(db, rx.id, pharmacist_ctx)

        db.refresh(plenty)
        db.refresh(scarce)
        assert plenty.stock_quantity == 50
        assert scarce.stock_quantity == 2
        assert prescription_service.get_prescription(db, rx.id).status == PrescriptionStatus.PAID

    def test_dispense_twice(self, db, visit, medicine, doctor_ctx, pharmacist_ctx):
        reg, _ = visit
        rx = _create(db, reg, doctor_ctx, (medicine, 2))
        _mark_paid(db, rx)
        prescription_service.dispense(db, rx.id, pharmacist_ctx)
        with pytest.raises(StateError):
            prescription_service.dispense(db, rx.id, pharmacist_ctx)
        db.refresh(medicine)
        assert medicine.stock_quantity == 98

    def test_return_needs_reason(self, db, visit, medicine, doctor_ctx, pharmacist_ctx):
        reg, _ = visit
        rx = _create(db, reg, doctor_ctx, (medicine, 2))
        _mark_paid(db, rx)
        prescription_service.dispense(db, rx.id, pharmacist_ctx)
        with pytest.raises(ValidationError):
            prescription_service.return_medicine(db, rx.id, "", pharmacist_ctx)

    def test_return_twice(self, db, visit, medicine, doctor_ctx, pharmacist_ctx):
        reg, _ = visit
        rx = _create(db, reg, doctor_ctx, (medicine, 2))
        _mark_paid(db, rx)
        prescription_service.dispense(db, rx.id, pharmacist_ctx)
        prescription_service.return_medicine(db, rx.id, "wrong drug", pharmacist_ctx)
        with pytest.raises(StateError):
            prescription_service.return_medicine(db, rx.id, "again", pharmacist_ctx)
        db.refresh(medicine)
        assert medicine.stock_quantity == 100

    def test_audit_trail(self, db, visit, medicine, doctor_ctx, pharmacist_ctx):
        reg, _ = visit
        rx = _create(db, reg, doctor_ctx, (medicine, 2))
        _mark_paid(db, rx)
        prescription_service.dispense(db, rx.id, pharmacist_ctx)
        prescription_service.return_medicine(db, rx.id, "wrong drug", pharmacist_ctx)

        actions = [a.action for a in db.query(AuditLog).filter_by(
            table_name="prescriptions", record_id=str(rx.id)).order_by(AuditLog.id)]
        assert actions == ["CREATE", "DISPENSE", "RETURN"]

    def test_pharmacist_statistics(self, db, visit, medicine, doctor_ctx, pharmacist_ctx):
        reg, _ = visit
        rx = _create(db, reg, doctor_ctx, (medicine, 2))
        _mark_paid(db, rx)
        prescription_service.dispense(db, rx.id, pharmacist_ctx)

        stats = prescription_service.get_pharmacist_statistics(db, pharmacist_ctx.user_id)
        assert stats.dispensed_count == 1
        assert stats.total_amount == Decimal("25.00")
        assert stats.total_items == 2

    def test_pending_dispense_list(self, db, visit, medicine, doctor_ctx):
        reg, _ = visit
        rx = _create(db, reg, doctor_ctx, (medicine, 1))
        assert prescription_service.get_pending_dispense_list(db) == []
        _mark_paid(db, rx)
        assert [p.id for p in prescription_service.get_pending_dispense_list(db)] == [rx.id]


class TestCancel:

    def test_cancel_issued(self, db, visit, medicine, doctor_ctx):
        reg, _ = visit
        rx = _create(db, reg, doctor_ctx, (medicine, 1))
        rx = prescription_service.cancel(db, rx.id, "changed plan", doctor_ctx)
        assert rx.status == PrescriptionStatus.CANCELLED
        assert rx.cancel_reason == "changed plan"

    def test_cannot_cancel_paid(self, db, visit, medicine, doctor_ctx):
        reg, _ = visit
        rx = _create(db, reg, doctor_ctx, (medicine, 1))
        _mark_paid(db, rx)
        with pytest.raises(StateError):
            prescription_service.cancel(db, rx.id, "too late", doctor_ctx)

    def test_not_found(self, db, doctor_ctx):
        with pytest.raises(NotFoundError):
            prescription_service.cancel(db, 12345, "x", doctor_ctx)


class TestReads:

    def test_by_record_and_registration(self, db, visit, medicine, doctor_ctx):
        reg, record = visit
        rx = _create(db, reg, doctor_ctx, (medicine, 1))
        assert [p.id for p in prescription_service.get_by_record_id(db, record.id)] == [rx.id]
        assert [p.id for p in prescription_service.get_by_registration_id(db, reg.id)] == [rx.id]
