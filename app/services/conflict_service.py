from sqlalchemy.orm import Session
from datetime import date, time
from typing import List, Optional

from ..core.exceptions import ValidationError
from ..models.appointment import Appointment, ACTIVE_STATUSES

class ConflictService:
    """Detects overlap between a candidate slot and a doctor's active appointments."""

    def __init__(self, db: Session):
        self.db = db

    def active_appointments(
        self,
        doctor_id: int,
        on_date: date,
        exclude_appointment_id: Optional[int] = None
    ) -> List[Appointment]:
        query = self.db.query(Appointment).filter(
            Appointment.doctor_id == doctor_id,
            Appointment.appointment_date == on_date,
            Appointment.status.in_(list(ACTIVE_STATUSES))
        )
        if exclude_appointment_id is not None:
            query = query.filter(Appointment.id != exclude_appointment_id)

        return query.order_by(Appointment.start_time).all()

    def find_conflicts(
        self,
        doctor_id: int,
        on_date: date,
        start: time,
        end: time,
        exclude_appointment_id: Optional[int] = None
    ) -> List[Appointment]:
        """Active appointments whose [start, end) overlaps the candidate [start, end)."""
        if end <= start:
            raise ValidationError("Appointment end time must be after its start time")

        # Overlap: existing.start < end AND start < existing.end
        query = self.db.query(Appointment).filter(
            Appointment.doctor_id == doctor_id,
            Appointment.appointment_date == on_date,
            Appointment.status.in_(list(ACTIVE_STATUSES)),
            Appointment.start_time < end,
            Appointment.end_time > start
        )
        if exclude_appointment_id is not None:
            query = query.filter(Appointment.id != exclude_appointment_id)

        return query.order_by(Appointment.start_time).all()

    def has_conflict(
        self,
        doctor_id: int,
        on_date: date,
        start: time,
        end: time,
        exclude_appointment_id: Optional[int] = None
    ) -> bool:
        return bool(self.find_conflicts(doctor_id, on_date, start, end, exclude_appointment_id))
