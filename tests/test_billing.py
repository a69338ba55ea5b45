import re
import pytest
from datetime import time
from decimal import Decimal

from app.core.exceptions import InvalidTransition, NotFound, ValidationError
from app.models.appointment import AppointmentStatus
from app.models.billing import Bill, PaymentStatus
from app.services.billing_service import compute_totals

from .conftest import VISIT_DATE, add_visit_charges

@pytest.fixture
def visit(appointments, doctor, patient):
    """An appointment checked in and in progress."""
    appointment = appointments.book(patient.id, doctor.id, VISIT_DATE, time(9, 0), reason="Fever")
    appointments.confirm(appointment.id)
    return appointments.check_in(appointment.id)

class TestComputeTotals:

    def test_discount_and_tax_percentages(self):
        """Both percentages apply to the subtotal; half-up at the end."""
        totals = compute_totals(
            Decimal("50.00"), Decimal("12.50"), Decimal("25.00"),
            discount_percentage=10, tax_percentage=5
        )

        assert totals.subtotal == Decimal("87.50")
        assert totals.total == Decimal("83.13")

    def test_flat_adjustments(self):
        totals = compute_totals(
            Decimal("50.00"), 0, 0, other_charges=Decimal("10.00"),
            discount_amount=Decimal("5.00"), tax_amount=Decimal("1.50")
        )

        assert totals.subtotal == Decimal("60.00")
        assert totals.total == Decimal("56.50")

    def test_total_is_never_negative(self):
        totals = compute_totals(Decimal("20.00"), 0, 0, discount_amount=Decimal("35.00"))
        assert totals.total == Decimal("0.00")

    def test_full_discount(self):
        totals = compute_totals(Decimal("40.00"), 0, 0, discount_percentage=100)
        assert totals.total == Decimal("0.00")

    @pytest.mark.parametrize("fee,expected", [
        ("0.005", "0.01"),
        ("0.004", "0.00"),
        ("10.125", "10.13"),
    ])
    def test_half_up_rounding(self, fee, expected):
        totals = compute_totals(0, 0, 0, other_charges=0, tax_amount=Decimal(fee))
        assert totals.total == Decimal(expected)

class TestGenerateBill:

    def test_discounted_and_taxed_bill(self, db, billing, visit):
        """50.00 + 12.50 + 25.00 with 10% off and 5% tax is 83.13."""
        add_visit_charges(
            db, visit,
            medicines=[("Paracetamol 500mg", 2, "2.50"), ("Amoxicillin 250mg", 1, "7.50")],
            labs=[("Full blood count", "25.00")],
        )

        bill = billing.generate_bill(
            visit.id, discount_percentage=Decimal("10"), tax_percentage=Decimal("5"), created_by="cashier"
        )

        assert bill.consultation_fee == Decimal("50.00")
        assert bill.medicine_charges == Decimal("12.50")
        assert bill.lab_charges == Decimal("25.00")
        assert bill.subtotal == Decimal("87.50")
        assert bill.total_amount == Decimal("83.13")
        assert bill.paid_amount == Decimal("0.00")
        assert bill.balance_amount == Decimal("83.13")
        assert bill.payment_status == PaymentStatus.PENDING
        assert bill.patient_id == visit.patient_id
        assert re.match(r"^BILL\d{8}\d{4}$", bill.bill_number)

    def test_bill_without_medical_record(self, billing, visit):
        """Only the consultation fee is charged when nothing was prescribed."""
        bill = billing.generate_bill(visit.id)

        assert bill.medicine_charges == Decimal("0.00")
        assert bill.lab_charges == Decimal("0.00")
        assert bill.total_amount == Decimal("50.00")

    def test_booking_fee_is_billed(self, db, billing, doctor, visit):
        """The fee snapshot from booking is billed, not the doctor's current fee."""
        doctor.consultation_fee = Decimal("80.00")
        db.commit()

        assert billing.generate_bill(visit.id).consultation_fee == Decimal("50.00")

    def test_completed_appointment_is_billable(self, appointments, billing, visit):
        appointments.complete(visit.id)
        assert billing.generate_bill(visit.id).total_amount == Decimal("50.00")

    def test_generate_is_idempotent(self, db, billing, audit, visit):
        first = billing.generate_bill(visit.id)
        second = billing.generate_bill(visit.id, other_charges=Decimal("99.00"))

        assert second.id == first.id
        assert second.total_amount == Decimal("50.00")
        assert db.query(Bill).count() == 1
        assert [e.action for e in audit.events].count("bill_generated") == 1

    @pytest.mark.parametrize("action", ["scheduled", "confirmed", "cancelled"])
    def test_non_billable_status(self, appointments, billing, doctor, patient, action):
        appointment = appointments.book(patient.id, doctor.id, VISIT_DATE, time(11, 0), reason="Checkup")
        if action == "confirmed":
            appointments.confirm(appointment.id)
        elif action == "cancelled":
            appointments.cancel(appointment.id, reason="Travelling")

        with pytest.raises(InvalidTransition):
            billing.generate_bill(appointment.id)

    def test_unknown_appointment(self, billing):
        with pytest.raises(NotFound):
            billing.generate_bill(9999)

    @pytest.mark.parametrize("field,value", [
        ("discount_percentage", Decimal("120")),
        ("discount_percentage", Decimal("-1")),
        ("tax_percentage", Decimal("-5")),
        ("discount_amount", Decimal("-0.01")),
        ("other_charges", Decimal("-10.00")),
        ("tax_percentage", Decimal("1000")),
    ])
    def test_invalid_adjustments(self, db, billing, visit, field, value):
        with pytest.raises(ValidationError):
            billing.generate_bill(visit.id, **{field: value})
        assert db.query(Bill).count() == 0

    def test_bill_event(self, billing, audit, visit):
        bill = billing.generate_bill(visit.id, created_by="cashier")

        event = audit.events[-1]
        assert event.action == "bill_generated"
        assert event.entity == "bill"
        assert event.entity_id == bill.id
        assert event.actor == "cashier"
        assert event.details["total_amount"] == "50.00"

    def test_get_bill(self, billing, visit):
        bill = billing.generate_bill(visit.id)

        assert billing.get_bill(bill.id).bill_number == bill.bill_number
        assert billing.get_bill_for_appointment(visit.id).id == bill.id
        with pytest.raises(NotFound):
            billing.get_bill(9999)

    def test_visit_status_unchanged_by_billing(self, appointments, billing, visit):
        billing.generate_bill(visit.id)
        assert appointments.get_appointment(visit.id).status == AppointmentStatus.IN_PROGRESS

    def test_percentages_are_stored_at_two_places(self, db, billing, visit):
        """The stored total is reproducible from the bill's own stored fields."""
        bill = billing.generate_bill(visit.id, discount_percentage=Decimal("33.333"))

        db.expire_all()
        stored = billing.get_bill(bill.id)
        recomputed = compute_totals(
            stored.consultation_fee, stored.medicine_charges, stored.lab_charges,
            stored.other_charges, stored.discount_percentage, stored.discount_amount,
            stored.tax_percentage, stored.tax_amount
        )

        assert stored.discount_percentage == Decimal("33.33")
        assert stored.total_amount == Decimal("33.34")
        assert recomputed.total == stored.total_amount

    def test_largest_tax_percentage(self, billing, visit):
        bill = billing.generate_bill(visit.id, tax_percentage=Decimal("999.99"))
        assert bill.tax_percentage == Decimal("999.99")
