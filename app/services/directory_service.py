from sqlalchemy.orm import Session
from typing import List

from ..core.exceptions import NotFound
from ..models.doctor import Doctor
from ..models.patient import Patient
from ..models.schedule import DoctorSchedule

class DirectoryService:
    """Read-only access to doctor, patient and schedule configuration records."""

    def __init__(self, db: Session):
        self.db = db

    def get_doctor(self, doctor_id: int, lock: bool = False) -> Doctor:
        """
        Fetch a doctor.

        With ``lock=True`` the row is selected FOR UPDATE; booking uses this
        as the database-side serialization point for the doctor's calendar.
        """
        query = self.db.query(Doctor).filter(Doctor.id == doctor_id)
        if lock:
            query = query.with_for_update()

        doctor = query.first()
        if not doctor:
            raise NotFound("Doctor", doctor_id)
        return doctor

    def get_patient(self, patient_id: int) -> Patient:
        patient = self.db.query(Patient).filter(Patient.id == patient_id).first()
        if not patient:
            raise NotFound("Patient", patient_id)
        return patient

    def list_schedule_rules(self, doctor_id: int) -> List[DoctorSchedule]:
        return self.db.query(DoctorSchedule).filter(
            DoctorSchedule.doctor_id == doctor_id
        ).order_by(DoctorSchedule.start_time).all()
