from sqlalchemy.orm import Session
from datetime import date, time
from typing import List, Optional, Iterable

from ..core.timeutils import add_minutes
from ..models.doctor import Doctor
from ..models.schedule import DayOfWeek, DoctorSchedule
from ..schemas.schedule import TimeWindow
from .directory_service import DirectoryService
from .conflict_service import ConflictService

class ScheduleService:
    """Resolves a doctor's open windows for a calendar day from weekly rules."""

    def __init__(self, db: Session, directory: Optional[DirectoryService] = None):
        self.db = db
        self.directory = directory or DirectoryService(db)

    def open_windows(self, doctor_id: int, on_date: date) -> List[TimeWindow]:
        """
        Open windows for ``doctor_id`` on ``on_date``, ordered by start.

        An empty list means the doctor does not work that day; it is not an
        error. Raises NotFound for an unknown doctor.
        """
        doctor = self.directory.get_doctor(doctor_id)
        if not doctor.is_available:
            return []

        rules = self.directory.list_schedule_rules(doctor_id)
        return self.resolve_windows(rules, on_date)

    @staticmethod
    def resolve_windows(rules: Iterable[DoctorSchedule], on_date: date) -> List[TimeWindow]:
        """Pure resolution of already-loaded rules; no database access."""
        weekday = DayOfWeek.of(on_date)
        windows: List[TimeWindow] = []

        for rule in rules:
            if rule.day_of_week != weekday or not rule.is_available:
                continue
            if not rule.covers(on_date):
                continue

            if rule.has_break:
                pieces = [
                    (rule.start_time, rule.break_start_time),
                    (rule.break_end_time, rule.end_time),
                ]
            else:
                pieces = [(rule.start_time, rule.end_time)]

            # A break flush with either edge leaves an empty piece
            windows.extend(
                TimeWindow(start=start, end=end) for start, end in pieces if start < end
            )

        return sorted(windows, key=lambda window: (window.start, window.end))

    @staticmethod
    def window_containing(windows: Iterable[TimeWindow], start: time, end: time) -> Optional[TimeWindow]:
        for window in windows:
            if window.contains(start, end):
                return window
        return None

    def available_slots(self, doctor_id: int, on_date: date) -> List[TimeWindow]:
        """
        Free consultation slots for the day.

        Slots start at each window's opening and step by the doctor's
        consultation duration; slots overlapping an active appointment are
        dropped.
        """
        doctor: Doctor = self.directory.get_doctor(doctor_id)
        windows = self.open_windows(doctor_id, on_date)
        if not windows:
            return []

        booked = ConflictService(self.db).active_appointments(doctor_id, on_date)
        duration = doctor.consultation_duration_minutes
        slots: List[TimeWindow] = []

        for window in windows:
            current = window.start
            while True:
                try:
                    slot_end = add_minutes(current, duration)
                except ValueError:
                    break
                if slot_end > window.end:
                    break

                if not any(appointment.overlaps(current, slot_end) for appointment in booked):
                    slots.append(TimeWindow(start=current, end=slot_end))
                current = slot_end

        return slots
