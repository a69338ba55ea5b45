from sqlalchemy.orm import Session
from decimal import Decimal
from typing import Optional, Iterable, NamedTuple
import logging

from ..core.exceptions import InvalidTransition, NotFound, ValidationError
from ..core.locks import KeyedLockRegistry, appointment_scope, scope_locks
from ..core.timeutils import clinic_now, clinic_today
from ..models.appointment import Appointment, AppointmentStatus
from ..models.billing import Bill, PaymentStatus, to_money
from ..schemas.audit import AuditEvent
from ..schemas.billing import ChargeLine
from .audit_service import AuditSink, DatabaseAuditSink, emit_safely
from .charge_service import ClinicalChargeService
from .identifier_service import IdentifierService, BILL_PREFIX

logger = logging.getLogger(__name__)

BILLABLE_STATUSES = frozenset({AppointmentStatus.IN_PROGRESS, AppointmentStatus.COMPLETED})

HUNDRED = Decimal("100")

# Largest value a Numeric(5, 2) percentage column holds
MAX_PERCENTAGE = Decimal("999.99")

def to_percentage(value) -> Decimal:
    """Percentages are stored with 2 decimal places, half-up, like money."""
    return to_money(value)

class BillTotals(NamedTuple):
    subtotal: Decimal
    total: Decimal

def compute_totals(
    consultation_fee,
    medicine_charges,
    lab_charges,
    other_charges=0,
    discount_percentage=0,
    discount_amount=0,
    tax_percentage=0,
    tax_amount=0
) -> BillTotals:
    """
    subtotal = consultation + medicine + lab + other
    total = subtotal * (1 - discount% / 100) - discount
            + subtotal * tax% / 100 + tax

    Discount and tax percentages both apply to the subtotal, not to each
    other. The total is floored at zero and rounded half-up to cents only
    once, at the end.
    """
    subtotal = (
        to_money(consultation_fee) + to_money(medicine_charges)
        + to_money(lab_charges) + to_money(other_charges)
    )
    discount_pct = Decimal(str(discount_percentage))
    tax_pct = Decimal(str(tax_percentage))

    total = (
        subtotal * (1 - discount_pct / HUNDRED)
        - Decimal(str(discount_amount))
        + subtotal * tax_pct / HUNDRED
        + Decimal(str(tax_amount))
    )
    if total < 0:
        total = Decimal("0")

    return BillTotals(subtotal=to_money(subtotal), total=to_money(total))

def sum_charges(lines: Iterable[ChargeLine]) -> Decimal:
    return to_money(sum((line.amount for line in lines), Decimal("0.00")))

class BillingService:
    def __init__(
        self,
        db: Session,
        redis_client,
        audit_sink: Optional[AuditSink] = None,
        locks: Optional[KeyedLockRegistry] = None
    ):
        self.db = db
        self.charges = ClinicalChargeService(db)
        self.identifiers = IdentifierService(db, redis_client)
        self.audit_sink = audit_sink if audit_sink is not None else DatabaseAuditSink(db)
        self.locks = locks or scope_locks

    def get_bill(self, bill_id: int, lock: bool = False) -> Bill:
        query = self.db.query(Bill).filter(Bill.id == bill_id)
        if lock:
            query = query.with_for_update().populate_existing()

        bill = query.first()
        if not bill:
            raise NotFound("Bill", bill_id)
        return bill

    def get_bill_for_appointment(self, appointment_id: int) -> Optional[Bill]:
        return self.db.query(Bill).filter(Bill.appointment_id == appointment_id).first()

    def generate_bill(
        self,
        appointment_id: int,
        other_charges=Decimal("0.00"),
        discount_percentage=Decimal("0"),
        discount_amount=Decimal("0.00"),
        tax_percentage=Decimal("0"),
        tax_amount=Decimal("0.00"),
        notes: Optional[str] = None,
        created_by: Optional[str] = None
    ) -> Bill:
        """
        Materialize the bill for an in-progress or completed appointment.

        Charges are fixed here: the consultation fee snapshot taken at
        booking, prescription lines (quantity x unit price) and lab orders
        from the visit's medical record. A second call for the same
        appointment returns the existing bill.
        """
        # Totals are computed from the same precision the bill stores
        discount_percentage = to_percentage(discount_percentage)
        tax_percentage = to_percentage(tax_percentage)
        self._validate_adjustments(
            other_charges, discount_percentage, discount_amount, tax_percentage, tax_amount
        )

        appointment = self.db.query(Appointment).filter(Appointment.id == appointment_id).first()
        if not appointment:
            raise NotFound("Appointment", appointment_id)
        if appointment.status not in BILLABLE_STATUSES:
            raise InvalidTransition(appointment.status, "billed")

        with self.locks.hold(appointment_scope(appointment_id)):
            existing = self.get_bill_for_appointment(appointment_id)
            if existing:
                logger.info(f"Appointment {appointment_id} already billed as {existing.bill_number}")
                return existing

            try:
                record = self.charges.get_record_for_appointment(appointment_id)
                if record:
                    medicine = sum_charges(self.charges.list_prescription_charges(record.id))
                    lab = sum_charges(self.charges.list_lab_charges(record.id))
                else:
                    medicine = lab = to_money(0)

                consultation = to_money(appointment.consultation_fee)
                totals = compute_totals(
                    consultation, medicine, lab, other_charges,
                    discount_percentage, discount_amount, tax_percentage, tax_amount
                )

                bill = Bill(
                    bill_number=self.identifiers.generate(BILL_PREFIX, Bill.bill_number),
                    patient_id=appointment.patient_id,
                    appointment_id=appointment.id,
                    bill_date=clinic_today(),
                    consultation_fee=consultation,
                    medicine_charges=medicine,
                    lab_charges=lab,
                    other_charges=to_money(other_charges),
                    discount_percentage=discount_percentage,
                    discount_amount=to_money(discount_amount),
                    tax_percentage=tax_percentage,
                    tax_amount=to_money(tax_amount),
                    total_amount=totals.total,
                    paid_amount=to_money(0),
                    payment_status=PaymentStatus.PENDING,
                    notes=notes,
                    created_by=created_by,
                )
                self.db.add(bill)
                self.db.commit()
            except Exception:
                self.db.rollback()
                raise

        self.db.refresh(bill)
        logger.info(
            f"Generated {bill.bill_number} for appointment {appointment.appointment_code}: "
            f"subtotal {bill.subtotal}, total {bill.total_amount}"
        )
        emit_safely(self.audit_sink, AuditEvent(
            entity="bill",
            entity_id=bill.id,
            action="bill_generated",
            new_status=bill.payment_status.value,
            actor=created_by,
            timestamp=clinic_now(),
            details={"bill_number": bill.bill_number, "total_amount": str(bill.total_amount)},
        ))
        return bill

    @staticmethod
    def _validate_adjustments(other_charges, discount_percentage, discount_amount, tax_percentage, tax_amount):
        for name, value in (
            ("other_charges", other_charges),
            ("discount_amount", discount_amount),
            ("tax_amount", tax_amount),
            ("tax_percentage", tax_percentage),
        ):
            if Decimal(str(value)) < 0:
                raise ValidationError(f"{name} must not be negative")

        discount = Decimal(str(discount_percentage))
        if discount < 0 or discount > HUNDRED:
            raise ValidationError("discount_percentage must be between 0 and 100")

        if Decimal(str(tax_percentage)) > MAX_PERCENTAGE:
            raise ValidationError(f"tax_percentage must not exceed {MAX_PERCENTAGE}")
