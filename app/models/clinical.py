from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, Text, Numeric, CheckConstraint
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship

from ..core.database import Base

class MedicalRecord(Base):
    __tablename__ = "medical_records"

    id = Column(Integer, primary_key=True, index=True)
    appointment_id = Column(Integer, ForeignKey("appointments.id"), nullable=False, unique=True)
    patient_id = Column(Integer, ForeignKey("patients.id"), nullable=False, index=True)
    doctor_id = Column(Integer, ForeignKey("doctors.id"), nullable=False)

    chief_complaint = Column(Text, nullable=True)
    diagnosis = Column(Text, nullable=False)
    treatment_plan = Column(Text, nullable=True)

    created_at = Column(DateTime, server_default=func.now())

    appointment = relationship("Appointment", back_populates="medical_record")
    prescription_items = relationship("PrescriptionItem", back_populates="medical_record")
    lab_orders = relationship("LabTestOrder", back_populates="medical_record")

    def __repr__(self):
        return f"<MedicalRecord(id={self.id}, appointment_id={self.appointment_id})>"

class PrescriptionItem(Base):
    """One dispensed medicine line, priced from the medicine catalog."""

    __tablename__ = "prescription_items"
    __table_args__ = (
        CheckConstraint("quantity > 0", name="chk_prescription_quantity"),
        CheckConstraint("unit_price >= 0", name="chk_prescription_price"),
    )

    id = Column(Integer, primary_key=True, index=True)
    medical_record_id = Column(Integer, ForeignKey("medical_records.id", ondelete="CASCADE"), nullable=False, index=True)
    medicine_name = Column(String(200), nullable=False)
    dosage = Column(String(100), nullable=True)
    quantity = Column(Integer, nullable=False)
    unit_price = Column(Numeric(10, 2), nullable=False, default=0)

    medical_record = relationship("MedicalRecord", back_populates="prescription_items")

    def __repr__(self):
        return f"<PrescriptionItem(id={self.id}, medicine='{self.medicine_name}', quantity={self.quantity})>"

class LabTestOrder(Base):
    __tablename__ = "lab_test_orders"
    __table_args__ = (
        CheckConstraint("price >= 0", name="chk_lab_price"),
    )

    id = Column(Integer, primary_key=True, index=True)
    medical_record_id = Column(Integer, ForeignKey("medical_records.id", ondelete="CASCADE"), nullable=False, index=True)
    test_name = Column(String(200), nullable=False)
    price = Column(Numeric(10, 2), nullable=False, default=0)
    result_status = Column(String(20), nullable=False, default="Pending")
    ordered_at = Column(DateTime, server_default=func.now())

    medical_record = relationship("MedicalRecord", back_populates="lab_orders")

    def __repr__(self):
        return f"<LabTestOrder(id={self.id}, test='{self.test_name}', price={self.price})>"
