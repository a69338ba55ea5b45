from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, Date, Text, Numeric, CheckConstraint, Enum as SQLEnum
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from decimal import Decimal, ROUND_HALF_UP
import enum

from ..core.database import Base

CENT = Decimal("0.01")

def to_money(value) -> Decimal:
    """Fixed-point, 2 decimal places, half-up."""
    if value is None:
        return Decimal("0.00")
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)

class PaymentStatus(str, enum.Enum):
    PENDING = "Pending"
    PARTIAL = "Partial"
    PAID = "Paid"
    OVERDUE = "Overdue"
    CANCELLED = "Cancelled"

class PaymentMethod(str, enum.Enum):
    CASH = "Cash"
    CREDIT_CARD = "Credit Card"
    DEBIT_CARD = "Debit Card"
    INSURANCE = "Insurance"
    ONLINE = "Online"
    CHEQUE = "Cheque"

class Bill(Base):
    __tablename__ = "bills"
    __table_args__ = (
        CheckConstraint("consultation_fee >= 0", name="chk_bill_consultation"),
        CheckConstraint("medicine_charges >= 0", name="chk_bill_medicine"),
        CheckConstraint("lab_charges >= 0", name="chk_bill_lab"),
        CheckConstraint("other_charges >= 0", name="chk_bill_other"),
        CheckConstraint("discount_percentage >= 0 AND discount_percentage <= 100", name="chk_bill_discount_pct"),
        CheckConstraint("discount_amount >= 0", name="chk_bill_discount_amt"),
        CheckConstraint("tax_percentage >= 0", name="chk_bill_tax_pct"),
        CheckConstraint("tax_amount >= 0", name="chk_bill_tax_amt"),
        CheckConstraint("total_amount >= 0", name="chk_bill_total"),
        CheckConstraint("paid_amount >= 0", name="chk_bill_paid"),
    )

    id = Column(Integer, primary_key=True, index=True)
    bill_number = Column(String(30), nullable=False, unique=True, index=True)
    patient_id = Column(Integer, ForeignKey("patients.id"), nullable=False, index=True)
    appointment_id = Column(Integer, ForeignKey("appointments.id", ondelete="SET NULL"), nullable=True, unique=True)
    bill_date = Column(Date, nullable=False)

    # Charges, fixed at creation
    consultation_fee = Column(Numeric(10, 2), nullable=False, default=0)
    medicine_charges = Column(Numeric(10, 2), nullable=False, default=0)
    lab_charges = Column(Numeric(10, 2), nullable=False, default=0)
    other_charges = Column(Numeric(10, 2), nullable=False, default=0)

    # Adjustments
    discount_percentage = Column(Numeric(5, 2), nullable=False, default=0)
    discount_amount = Column(Numeric(10, 2), nullable=False, default=0)
    tax_percentage = Column(Numeric(5, 2), nullable=False, default=0)
    tax_amount = Column(Numeric(10, 2), nullable=False, default=0)

    total_amount = Column(Numeric(10, 2), nullable=False)
    paid_amount = Column(Numeric(10, 2), nullable=False, default=0)
    payment_status = Column(SQLEnum(PaymentStatus), nullable=False, default=PaymentStatus.PENDING, index=True)
    payment_method = Column(SQLEnum(PaymentMethod), nullable=True)

    notes = Column(Text, nullable=True)
    created_by = Column(String(100), nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    patient = relationship("Patient", back_populates="bills")
    appointment = relationship("Appointment", back_populates="bill")
    transactions = relationship(
        "PaymentTransaction",
        back_populates="bill",
        order_by="PaymentTransaction.id",
    )

    @property
    def subtotal(self) -> Decimal:
        return to_money(
            to_money(self.consultation_fee)
            + to_money(self.medicine_charges)
            + to_money(self.lab_charges)
            + to_money(self.other_charges)
        )

    @property
    def balance_amount(self) -> Decimal:
        return to_money(to_money(self.total_amount) - to_money(self.paid_amount))

    def __repr__(self):
        return f"<Bill(id={self.id}, number='{self.bill_number}', total={self.total_amount}, paid={self.paid_amount}, status='{self.payment_status}')>"

class PaymentTransaction(Base):
    """Append-only ledger entry against a bill."""

    __tablename__ = "payment_transactions"
    __table_args__ = (
        CheckConstraint("amount > 0", name="chk_payment_amount"),
    )

    id = Column(Integer, primary_key=True, index=True)
    transaction_code = Column(String(30), nullable=False, unique=True, index=True)
    bill_id = Column(Integer, ForeignKey("bills.id"), nullable=False, index=True)
    patient_id = Column(Integer, ForeignKey("patients.id"), nullable=False)

    payment_date = Column(DateTime, nullable=False)
    amount = Column(Numeric(10, 2), nullable=False)
    payment_method = Column(SQLEnum(PaymentMethod), nullable=False)

    reference_number = Column(String(100), nullable=True)
    bank_name = Column(String(100), nullable=True)
    card_last_four = Column(String(4), nullable=True)
    received_by = Column(String(100), nullable=True)
    notes = Column(Text, nullable=True)

    created_at = Column(DateTime, server_default=func.now())

    bill = relationship("Bill", back_populates="transactions")

    def __repr__(self):
        return f"<PaymentTransaction(id={self.id}, code='{self.transaction_code}', bill_id={self.bill_id}, amount={self.amount})>"
