from sqlalchemy.orm import Session
from typing import List, Optional

from ..models.clinical import MedicalRecord, PrescriptionItem, LabTestOrder
from ..schemas.billing import ChargeLine

class ClinicalChargeService:
    """Read-only view of the billable items recorded during a visit."""

    def __init__(self, db: Session):
        self.db = db

    def get_record_for_appointment(self, appointment_id: int) -> Optional[MedicalRecord]:
        return self.db.query(MedicalRecord).filter(
            MedicalRecord.appointment_id == appointment_id
        ).first()

    def list_prescription_charges(self, record_id: int) -> List[ChargeLine]:
        items = self.db.query(PrescriptionItem).filter(
            PrescriptionItem.medical_record_id == record_id
        ).order_by(PrescriptionItem.id).all()

        return [
            ChargeLine(
                description=item.medicine_name,
                quantity=item.quantity,
                unit_price=item.unit_price,
            )
            for item in items
        ]

    def list_lab_charges(self, record_id: int) -> List[ChargeLine]:
        orders = self.db.query(LabTestOrder).filter(
            LabTestOrder.medical_record_id == record_id
        ).order_by(LabTestOrder.id).all()

        return [
            ChargeLine(description=order.test_name, quantity=1, unit_price=order.price)
            for order in orders
        ]
