from fastapi import APIRouter, Depends, status
from typing import List

from ...api.deps import get_billing_service, get_payment_service
from ...schemas.billing import (
    BillCreate, BillResponse, PaymentCreate, PaymentResponse, PatientBalanceResponse
)
from ...services.billing_service import BillingService
from ...services.payment_service import PaymentService

router = APIRouter(prefix="/bills", tags=["Billing"])
patients_router = APIRouter(prefix="/patients", tags=["Billing"])

@router.post("", response_model=BillResponse, status_code=status.HTTP_201_CREATED)
def generate_bill(
    request: BillCreate,
    service: BillingService = Depends(get_billing_service)
):
    """Generate the bill for an in-progress or completed appointment."""
    bill = service.generate_bill(
        appointment_id=request.appointment_id,
        other_charges=request.other_charges,
        discount_percentage=request.discount_percentage,
        discount_amount=request.discount_amount,
        tax_percentage=request.tax_percentage,
        tax_amount=request.tax_amount,
        notes=request.notes,
        created_by=request.created_by,
    )
    return BillResponse.model_validate(bill)

@router.get("/{bill_id}", response_model=BillResponse)
def get_bill(
    bill_id: int,
    service: BillingService = Depends(get_billing_service)
):
    return BillResponse.model_validate(service.get_bill(bill_id))

@router.post("/{bill_id}/payments", response_model=BillResponse)
def apply_payment(
    bill_id: int,
    payment: PaymentCreate,
    service: PaymentService = Depends(get_payment_service)
):
    """Record a payment and return the reconciled bill."""
    bill = service.apply_payment(
        bill_id,
        payment.amount,
        payment_method=payment.payment_method,
        reference_number=payment.reference_number,
        bank_name=payment.bank_name,
        card_last_four=payment.card_last_four,
        received_by=payment.received_by,
        notes=payment.notes,
    )
    return BillResponse.model_validate(bill)

@router.get("/{bill_id}/payments", response_model=List[PaymentResponse])
def list_payments(
    bill_id: int,
    service: PaymentService = Depends(get_payment_service)
):
    return [PaymentResponse.model_validate(entry) for entry in service.list_payments(bill_id)]

@patients_router.get("/{patient_id}/balance", response_model=PatientBalanceResponse)
def patient_balance(
    patient_id: int,
    service: PaymentService = Depends(get_payment_service)
):
    """Outstanding balance across the patient's unpaid bills."""
    return PatientBalanceResponse(
        patient_id=patient_id,
        outstanding_balance=service.patient_balance(patient_id),
    )
