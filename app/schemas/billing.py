from pydantic import BaseModel, ConfigDict, Field
from typing import Optional
from datetime import date, datetime
from decimal import Decimal

from ..models.billing import PaymentMethod, PaymentStatus, to_money

class ChargeLine(BaseModel):
    description: str
    quantity: int = 1
    unit_price: Decimal = Decimal("0.00")

    @property
    def amount(self) -> Decimal:
        return to_money(self.unit_price) * self.quantity

class BillCreate(BaseModel):
    appointment_id: int
    other_charges: Decimal = Decimal("0.00")
    discount_percentage: Decimal = Decimal("0")
    discount_amount: Decimal = Decimal("0.00")
    tax_percentage: Decimal = Decimal("0")
    tax_amount: Decimal = Decimal("0.00")
    notes: Optional[str] = None
    created_by: Optional[str] = None

class BillResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    bill_number: str
    patient_id: int
    appointment_id: Optional[int] = None
    bill_date: date
    consultation_fee: Decimal
    medicine_charges: Decimal
    lab_charges: Decimal
    other_charges: Decimal
    subtotal: Decimal
    discount_percentage: Decimal
    discount_amount: Decimal
    tax_percentage: Decimal
    tax_amount: Decimal
    total_amount: Decimal
    paid_amount: Decimal
    balance_amount: Decimal
    payment_status: PaymentStatus
    payment_method: Optional[PaymentMethod] = None
    notes: Optional[str] = None

class PaymentCreate(BaseModel):
    # Positivity is enforced by the reconciler so callers get InvalidAmount
    amount: Decimal
    payment_method: PaymentMethod = PaymentMethod.CASH
    reference_number: Optional[str] = Field(default=None, max_length=100)
    bank_name: Optional[str] = Field(default=None, max_length=100)
    card_last_four: Optional[str] = Field(default=None, pattern=r"^\d{4}$")
    received_by: Optional[str] = Field(default=None, max_length=100)
    notes: Optional[str] = None

class PaymentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    transaction_code: str
    bill_id: int
    amount: Decimal
    payment_method: PaymentMethod
    payment_date: datetime
    reference_number: Optional[str] = None
    received_by: Optional[str] = None

class PatientBalanceResponse(BaseModel):
    patient_id: int
    outstanding_balance: Decimal
