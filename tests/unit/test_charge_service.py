"""
Cashier workflow: charge creation, payment (exact amount, idempotent
transaction numbers), refund cascade and daily settlement.
"""
from decimal import Decimal

import pytest

from app.core.exceptions import NotFoundError, StateError, ValidationError
from app.models.audit import AuditLog
from app.models.charge import Charge
from app.models.enums import (
    ChargeStatus,
    ChargeType,
    PaymentMethod,
    PrescriptionStatus,
    RegistrationStatus,
)
from app.models.registration import RegistrationStatusHistory
from app.schemas.charge import PaymentIn
from app.schemas.prescription import PrescriptionCreate, PrescriptionItemIn
from app.services import charge_service, prescription_service
from tests.conftest import MedicalRecordFactory, MedicineFactory, RegistrationFactory


def _reviewed_rx(db, reg, medicine, qty, doctor_ctx, pharmacist_ctx):
    data = PrescriptionCreate(registration_id=reg.id,
                              items=[PrescriptionItemIn(medicine_id=medicine.id, quantity=qty)])
    rx = prescription_service.create_prescription(db, data, doctor_ctx)
    return prescription_service.review(db, rx.id, pharmacist_ctx)


def _pay(db, charge, ctx, amount=None, method=PaymentMethod.CASH, txn=None):
    payment = PaymentIn(payment_method=method,
                        paid_amount=amount if amount is not None else charge.total_amount,
                        transaction_no=txn)
    return charge_service.process_payment(db, charge.id, payment, ctx)


@pytest.fixture
def rx(db, visit, medicine, doctor_ctx, pharmacist_ctx):
    reg, _ = visit
    return _reviewed_rx(db, reg, medicine, 2, doctor_ctx, pharmacist_ctx)


@pytest.fixture
def rx_charge(db, visit, rx, cashier_ctx):
    reg, _ = visit
    return charge_service.create_charge(db, reg.id, [rx.id], cashier_ctx)


class TestCreatePrescriptionCharge:

    def test_worked_example(self, rx_charge, rx):
        assert rx_charge.total_amount == Decimal("25.00")
        assert rx_charge.status == ChargeStatus.UNPAID
        assert rx_charge.charge_type == ChargeType.PRESCRIPTION_ONLY
        assert [d.item_id for d in rx_charge.details] == [rx.id]

    def test_charge_number_format(self, rx_charge):
        assert rx_charge.charge_no.startswith("CHG")
        assert len(rx_charge.charge_no) == len("CHG") + 8 + 6
        assert rx_charge.charge_no.endswith("000001")

    def test_total_equals_sum_of_prescriptions(self, db, visit, medicine, doctor_ctx,
                                               pharmacist_ctx, cashier_ctx):
        reg, _ = visit
        other = MedicineFactory(retail_price=Decimal("3.35"))
        a = _reviewed_rx(db, reg, medicine, 2, doctor_ctx, pharmacist_ctx)
        b = _reviewed_rx(db, reg, other, 3, doctor_ctx, pharmacist_ctx)
        charge = charge_service.create_charge(db, reg.id, [a.id, b.id], cashier_ctx)
        assert charge.total_amount == Decimal("35.05")
        assert sum(d.item_amount for d in charge.details) == charge.total_amount

    def test_prescription_billed_once(self, db, visit, rx, rx_charge, cashier_ctx):
        reg, _ = visit
        with pytest.raises(ValidationError, match="already been charged"):
            charge_service.create_charge(db, reg.id, [rx.id], cashier_ctx)
        assert db.query(Charge).count() == 1

    def test_duplicate_ids_in_one_request(self, db, visit, rx, cashier_ctx):
        reg, _ = visit
        charge = charge_service.create_charge(db, reg.id, [rx.id, rx.id], cashier_ctx)
        assert charge.total_amount == Decimal("25.00")
        assert len(charge.details) == 1

    def test_requires_reviewed_prescription(self, db, visit, medicine, doctor_ctx, cashier_ctx):
        reg, _ = visit
        data = PrescriptionCreate(registration_id=reg.id,
                                  items=[PrescriptionItemIn(medicine_id=medicine.id, quantity=1)])
        issued = prescription_service.create_prescription(db, data, doctor_ctx)
        with pytest.raises(StateError, match="not reviewed"):
            charge_service.create_charge(db, reg.id, [issued.id], cashier_ctx)

    def test_prescription_of_other_registration(self, db, doctor, rx, cashier_ctx):
        other = RegistrationFactory(doctor=doctor, status=int(RegistrationStatus.COMPLETED))
        with pytest.raises(ValidationError, match="does not belong"):
            charge_service.create_charge(db, other.id, [rx.id], cashier_ctx)

    def test_unknown_prescription(self, db, visit, cashier_ctx):
        reg, _ = visit
        with pytest.raises(NotFoundError):
            charge_service.create_charge(db, reg.id, [777], cashier_ctx)

    def test_visit_must_be_completed(self, db, visit, rx, cashier_ctx):
        reg, _ = visit
        reg.status = int(RegistrationStatus.IN_CONSULTATION)
        db.commit()
        with pytest.raises(StateError, match="completed"):
            charge_service.create_charge(db, reg.id, [rx.id], cashier_ctx)

    def test_prescription_charge_needs_ids(self, db, visit, cashier_ctx):
        reg, _ = visit
        with pytest.raises(ValidationError):
            charge_service.create_prescription_charge(db, reg.id, [], cashier_ctx)

    def test_outstanding_fee_makes_mixed_charge(self, db, doctor, medicine, doctor_ctx,
                                                pharmacist_ctx, cashier_ctx):
        reg = RegistrationFactory(doctor=doctor, registration_fee=Decimal("10.00"),
                                  status=int(RegistrationStatus.COMPLETED))
        MedicalRecordFactory(registration=reg)
        p = _reviewed_rx(db, reg, medicine, 2, doctor_ctx, pharmacist_ctx)

        charge = charge_service.create_charge(db, reg.id, [p.id], cashier_ctx)
        assert charge.charge_type == ChargeType.MIXED
        assert charge.total_amount == Decimal("35.00")
        assert [d.item_type for d in charge.details] == ["REGISTRATION", "PRESCRIPTION"]

        charge = _pay(db, charge, cashier_ctx)
        assert charge_service.is_registration_fee_paid(db, reg.id) is True
        db.refresh(reg)
        assert reg.status == RegistrationStatus.COMPLETED


class TestRegistrationCharge:

    def test_fee_charge_and_payment(self, db, cashier_ctx):
        reg = RegistrationFactory(registration_fee=Decimal("10.00"))
        charge = charge_service.create_registration_charge(db, reg.id, cashier_ctx)
        assert charge.charge_type == ChargeType.REGISTRATION_ONLY
        assert charge.total_amount == Decimal("10.00")
        assert charge_service.is_registration_fee_paid(db, reg.id) is False

        _pay(db, charge, cashier_ctx)
        db.refresh(reg)
        assert reg.status == RegistrationStatus.PAID_REGISTRATION
        assert charge_service.is_registration_fee_paid(db, reg.id) is True
        history = db.query(RegistrationStatusHistory).filter_by(registration_id=reg.id).all()
        assert [(h.from_status, h.to_status) for h in history] == [
            (RegistrationStatus.WAITING, RegistrationStatus.PAID_REGISTRATION)
        ]

    def test_fee_not_billed_twice_while_unpaid(self, db, cashier_ctx):
        reg = RegistrationFactory()
        charge_service.create_registration_charge(db, reg.id, cashier_ctx)
        with pytest.raises(ValidationError, match="unpaid charge"):
            charge_service.create_registration_charge(db, reg.id, cashier_ctx)

    def test_fee_not_billed_after_payment(self, db, cashier_ctx):
        reg = RegistrationFactory()
        charge = charge_service.create_registration_charge(db, reg.id, cashier_ctx)
        _pay(db, charge, cashier_ctx)
        with pytest.raises(ValidationError, match="already been paid"):
            charge_service.create_registration_charge(db, reg.id, cashier_ctx)

    def test_free_registration(self, db, cashier_ctx):
        reg = RegistrationFactory(registration_fee=Decimal("0.00"))
        with pytest.raises(ValidationError, match="no fee"):
            charge_service.create_registration_charge(db, reg.id, cashier_ctx)

    def test_cancelled_registration(self, db, cashier_ctx):
        reg = RegistrationFactory(status=int(RegistrationStatus.CANCELLED))
        with pytest.raises(StateError):
            charge_service.create_registration_charge(db, reg.id, cashier_ctx)

    def test_unknown_registration(self, db, cashier_ctx):
        with pytest.raises(NotFoundError):
            charge_service.create_registration_charge(db, 999, cashier_ctx)


class TestPayment:

    def test_marks_charge_and_prescriptions_paid(self, db, rx, rx_charge, cashier_ctx):
        charge = _pay(db, rx_charge, cashier_ctx, amount=Decimal("25.00"), txn="T-001")
        assert charge.status == ChargeStatus.PAID
        assert charge.paid_amount == Decimal("25.00")
        assert charge.payment_method == PaymentMethod.CASH
        assert charge.transaction_no == "T-001"
        assert charge.paid_at is not None
        assert prescription_service.get_prescription(db, rx.id).status == PrescriptionStatus.PAID

    def test_amount_must_match_exactly(self, db, rx, rx_charge, cashier_ctx):
        with pytest.raises(ValidationError, match="does not match"):
            _pay(db, rx_charge, cashier_ctx, amount=Decimal("24.99"))
        with pytest.raises(ValidationError):
            _pay(db, rx_charge, cashier_ctx, amount=Decimal("25.01"))

        assert charge_service.get_charge(db, rx_charge.id).status == ChargeStatus.UNPAID
        assert prescription_service.get_prescription(db, rx.id).status == PrescriptionStatus.REVIEWED

    def test_amount_compared_at_two_places(self, db, rx_charge, cashier_ctx):
        charge = _pay(db, rx_charge, cashier_ctx, amount=Decimal("25.004"))
        assert charge.status == ChargeStatus.PAID

    def test_replayed_transaction_is_idempotent(self, db, rx, rx_charge, medicine, cashier_ctx,
                                                pharmacist_ctx):
        first = _pay(db, rx_charge, cashier_ctx, txn="T-777")
        prescription_service.dispense(db, rx.id, pharmacist_ctx)

        again = _pay(db, rx_charge, cashier_ctx, txn="T-777")
        assert again.id == first.id
        assert again.status == ChargeStatus.PAID
        assert again.paid_at == first.paid_at

        db.refresh(medicine)
        assert medicine.stock_quantity == 98
        assert prescription_service.get_prescription(db, rx.id).status == PrescriptionStatus.DISPENSED
        assert db.query(AuditLog).filter_by(action="PAYMENT").count() == 1
        assert db.query(Charge).count() == 1

    def test_paying_twice_without_transaction_no(self, db, rx_charge, cashier_ctx):
        _pay(db, rx_charge, cashier_ctx)
        with pytest.raises(StateError, match="already paid"):
            _pay(db, rx_charge, cashier_ctx)

    def test_new_transaction_on_paid_charge(self, db, rx_charge, cashier_ctx):
        _pay(db, rx_charge, cashier_ctx, txn="T-1")
        with pytest.raises(StateError):
            _pay(db, rx_charge, cashier_ctx, txn="T-2")

    def test_transaction_no_reused_on_other_charge(self, db, rx_charge, cashier_ctx):
        _pay(db, rx_charge, cashier_ctx, txn="T-9")
        reg = RegistrationFactory()
        other = charge_service.create_registration_charge(db, reg.id, cashier_ctx)
        with pytest.raises(ValidationError, match="already been used"):
            _pay(db, other, cashier_ctx, txn="T-9")
        assert charge_service.get_charge(db, other.id).status == ChargeStatus.UNPAID

    def test_unknown_charge(self, db, cashier_ctx):
        payment = PaymentIn(payment_method=PaymentMethod.CARD, paid_amount=Decimal("1"))
        with pytest.raises(NotFoundError):
            charge_service.process_payment(db, 4242, payment, cashier_ctx)

    def test_payment_status(self, db, rx_charge, cashier_ctx):
        status = charge_service.get_payment_status(db, rx_charge.id)
        assert status.status == ChargeStatus.UNPAID
        assert status.status_desc == "UNPAID"
        _pay(db, rx_charge, cashier_ctx)
        assert charge_service.get_payment_status(db, rx_charge.id).status_desc == "PAID"


class TestRefund:

    def test_refund_paid_prescription(self, db, rx, rx_charge, medicine, cashier_ctx):
        _pay(db, rx_charge, cashier_ctx)
        charge = charge_service.process_refund(db, rx_charge.id, "patient left", cashier_ctx)

        assert charge.status == ChargeStatus.REFUNDED
        assert charge.refund_amount == Decimal("25.00")
        assert charge.refund_reason == "patient left"
        rx = prescription_service.get_prescription(db, rx.id)
        assert rx.status == PrescriptionStatus.REFUNDED
        db.refresh(medicine)
        assert medicine.stock_quantity == 100

    def test_dispensed_must_be_returned_first(self, db, rx, rx_charge, medicine, cashier_ctx,
                                              pharmacist_ctx):
        _pay(db, rx_charge, cashier_ctx)
        prescription_service.dispense(db, rx.id, pharmacist_ctx)

        with pytest.raises(StateError, match="returned before refunding"):
            charge_service.process_refund(db, rx_charge.id, "refund", cashier_ctx)
        assert charge_service.get_charge(db, rx_charge.id).status == ChargeStatus.PAID

        prescription_service.return_medicine(db, rx.id, "patient request", pharmacist_ctx)
        charge = charge_service.process_refund(db, rx_charge.id, "refund", cashier_ctx)
        assert charge.status == ChargeStatus.REFUNDED
        assert prescription_service.get_prescription(db, rx.id).status == PrescriptionStatus.RETURNED
        db.refresh(medicine)
        assert medicine.stock_quantity == 100

    def test_unpaid_charge(self, db, rx_charge, cashier_ctx):
        with pytest.raises(StateError):
            charge_service.process_refund(db, rx_charge.id, "x", cashier_ctx)

    def test_refund_twice(self, db, rx_charge, cashier_ctx):
        _pay(db, rx_charge, cashier_ctx)
        charge_service.process_refund(db, rx_charge.id, "x", cashier_ctx)
        with pytest.raises(StateError):
            charge_service.process_refund(db, rx_charge.id, "x", cashier_ctx)

    def test_reason_required(self, db, rx_charge, cashier_ctx):
        _pay(db, rx_charge, cashier_ctx)
        with pytest.raises(ValidationError):
            charge_service.process_refund(db, rx_charge.id, " ", cashier_ctx)

    def test_registration_fee_refund_closes_registration(self, db, cashier_ctx):
        reg = RegistrationFactory()
        charge = charge_service.create_registration_charge(db, reg.id, cashier_ctx)
        _pay(db, charge, cashier_ctx)
        charge_service.process_refund(db, charge.id, "changed mind", cashier_ctx)

        db.refresh(reg)
        assert reg.status == RegistrationStatus.REFUNDED
        assert reg.cancel_reason == "changed mind"
        steps = [h.to_status for h in db.query(RegistrationStatusHistory).filter_by(
            registration_id=reg.id).order_by(RegistrationStatusHistory.id)]
        assert steps == [
            RegistrationStatus.PAID_REGISTRATION,
            RegistrationStatus.CANCELLED,
            RegistrationStatus.REFUNDED,
        ]


class TestReports:

    def test_daily_settlement(self, db, cashier_ctx):
        cash = charge_service.create_registration_charge(db, RegistrationFactory().id, cashier_ctx)
        card = charge_service.create_registration_charge(
            db, RegistrationFactory(registration_fee=Decimal("15.50")).id, cashier_ctx)
        charge_service.create_registration_charge(db, RegistrationFactory().id, cashier_ctx)

        _pay(db, cash, cashier_ctx, method=PaymentMethod.CASH)
        _pay(db, card, cashier_ctx, method=PaymentMethod.CARD)
        charge_service.process_refund(db, card.id, "duplicate visit", cashier_ctx)

        out = charge_service.get_daily_settlement(db)
        assert out.total_charges == 2
        assert out.total_amount == Decimal("25.50")
        assert out.refund_count == 1
        assert out.refund_amount == Decimal("15.50")
        assert out.net_collection == Decimal("10.00")
        assert out.payment_breakdown["CASH"].count == 1
        assert out.payment_breakdown["CARD"].amount == Decimal("15.50")
        assert out.payment_breakdown["WECHAT"].count == 0

    def test_charges_by_type(self, db, visit, rx, rx_charge, cashier_ctx):
        reg, _ = visit
        out = charge_service.get_charges_by_type(db, reg.id)
        assert [c.id for c in out.prescription] == [rx_charge.id]
        assert out.prescription[0].prescription_ids == [rx.id]
        assert out.registration == []
        assert out.combined == []

    def test_list_charges_filters(self, db, rx_charge, cashier_ctx):
        reg = RegistrationFactory()
        fee = charge_service.create_registration_charge(db, reg.id, cashier_ctx)
        _pay(db, fee, cashier_ctx)

        items, total = charge_service.list_charges(db, status=ChargeStatus.PAID)
        assert total == 1
        assert items[0].id == fee.id

        items, total = charge_service.list_charges(db, page=1, size=1)
        assert total == 2
        assert len(items) == 1
