from sqlalchemy.orm import Session
from decimal import Decimal, InvalidOperation
from typing import List, Optional
import logging

from ..core.exceptions import InvalidAmount
from ..core.locks import KeyedLockRegistry, bill_scope, scope_locks
from ..core.timeutils import clinic_now
from ..models.billing import Bill, PaymentMethod, PaymentStatus, PaymentTransaction, to_money
from ..schemas.audit import AuditEvent
from .audit_service import AuditSink, DatabaseAuditSink, emit_safely
from .billing_service import BillingService
from .directory_service import DirectoryService
from .identifier_service import IdentifierService, TRANSACTION_PREFIX

logger = logging.getLogger(__name__)

# Set by time-based or cancellation policy, never by applying a payment
EXTERNAL_STATUSES = frozenset({PaymentStatus.OVERDUE, PaymentStatus.CANCELLED})

# Bills that still count towards what a patient owes
OUTSTANDING_STATUSES = frozenset({PaymentStatus.PENDING, PaymentStatus.PARTIAL, PaymentStatus.OVERDUE})

def derive_payment_status(total, paid, current: Optional[PaymentStatus] = None) -> PaymentStatus:
    """
    paid >= total     -> Paid
    0 < paid < total  -> Partial
    paid == 0         -> Pending, unless the bill is Overdue or Cancelled
    """
    total = to_money(total)
    paid = to_money(paid)

    if paid >= total:
        return PaymentStatus.PAID
    if paid > 0:
        return PaymentStatus.PARTIAL
    if current in EXTERNAL_STATUSES:
        return current
    return PaymentStatus.PENDING

class PaymentService:
    """Appends payments to a bill's ledger and reconciles paid, balance and status."""

    def __init__(
        self,
        db: Session,
        redis_client,
        audit_sink: Optional[AuditSink] = None,
        locks: Optional[KeyedLockRegistry] = None
    ):
        self.db = db
        self.bills = BillingService(db, redis_client, audit_sink, locks)
        self.identifiers = IdentifierService(db, redis_client)
        self.audit_sink = audit_sink if audit_sink is not None else DatabaseAuditSink(db)
        self.locks = locks or scope_locks

    def apply_payment(
        self,
        bill_id: int,
        amount,
        payment_method: PaymentMethod = PaymentMethod.CASH,
        reference_number: Optional[str] = None,
        bank_name: Optional[str] = None,
        card_last_four: Optional[str] = None,
        received_by: Optional[str] = None,
        notes: Optional[str] = None
    ) -> Bill:
        """
        Record a payment and recompute the bill from its full ledger.

        Raises:
            InvalidAmount: amount is not a positive number of cents
            NotFound: unknown bill
        """
        amount = self._normalize_amount(amount)
        self.bills.get_bill(bill_id)

        with self.locks.hold(bill_scope(bill_id)):
            try:
                bill = self.bills.get_bill(bill_id, lock=True)
                old_status = bill.payment_status

                transaction = PaymentTransaction(
                    transaction_code=self.identifiers.generate(
                        TRANSACTION_PREFIX, PaymentTransaction.transaction_code
                    ),
                    bill_id=bill.id,
                    patient_id=bill.patient_id,
                    payment_date=clinic_now(),
                    amount=amount,
                    payment_method=payment_method,
                    reference_number=reference_number,
                    bank_name=bank_name,
                    card_last_four=card_last_four,
                    received_by=received_by,
                    notes=notes,
                )
                self.db.add(transaction)
                self.db.flush()

                # Sum the ledger rather than adding to paid_amount
                paid = to_money(sum(
                    (to_money(entry.amount) for entry in self._ledger(bill.id)),
                    Decimal("0.00")
                ))
                bill.paid_amount = paid
                bill.payment_method = payment_method
                bill.payment_status = derive_payment_status(bill.total_amount, paid, old_status)
                self.db.commit()
            except Exception:
                self.db.rollback()
                raise

        self.db.refresh(bill)
        logger.info(
            f"Applied {amount} to {bill.bill_number}: paid {bill.paid_amount}, "
            f"balance {bill.balance_amount}, status {bill.payment_status.value}"
        )
        emit_safely(self.audit_sink, AuditEvent(
            entity="bill",
            entity_id=bill.id,
            action="payment_applied",
            old_status=old_status.value,
            new_status=bill.payment_status.value,
            actor=received_by,
            timestamp=clinic_now(),
            details={"amount": str(amount), "paid_amount": str(bill.paid_amount)},
        ))
        return bill

    def list_payments(self, bill_id: int) -> List[PaymentTransaction]:
        self.bills.get_bill(bill_id)
        return self._ledger(bill_id)

    def patient_balance(self, patient_id: int) -> Decimal:
        """
        Outstanding amount across a patient's pending, partial and overdue bills.

        Paid and cancelled bills do not count, so an overpaid bill never
        offsets another bill's debt. Raises NotFound for an unknown patient.
        """
        DirectoryService(self.db).get_patient(patient_id)

        bills = self.db.query(Bill).filter(
            Bill.patient_id == patient_id,
            Bill.payment_status.in_(list(OUTSTANDING_STATUSES))
        ).all()
        return to_money(sum((bill.balance_amount for bill in bills), Decimal("0.00")))

    def _ledger(self, bill_id: int) -> List[PaymentTransaction]:
        return self.db.query(PaymentTransaction).filter(
            PaymentTransaction.bill_id == bill_id
        ).order_by(PaymentTransaction.id).all()

    @staticmethod
    def _normalize_amount(amount) -> Decimal:
        try:
            value = to_money(amount)
        except (InvalidOperation, ValueError, TypeError):
            raise InvalidAmount(amount)
        if not value.is_finite() or value <= 0:
            raise InvalidAmount(amount)
        return value
