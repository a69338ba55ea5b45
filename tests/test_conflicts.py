import pytest
from datetime import time
from decimal import Decimal

from app.core.exceptions import ValidationError
from app.models.appointment import Appointment, AppointmentStatus
from app.services.conflict_service import ConflictService

from .conftest import VISIT_DATE, make_doctor, make_patient

def insert_appointment(db, doctor, patient, start, end, status=AppointmentStatus.SCHEDULED, code=None, on_date=VISIT_DATE):
    appointment = Appointment(
        appointment_code=code or f"APT{on_date:%Y%m%d}{db.query(Appointment).count() + 1:04d}",
        patient_id=patient.id,
        doctor_id=doctor.id,
        appointment_date=on_date,
        start_time=start,
        end_time=end,
        status=status,
        reason="Checkup",
        consultation_fee=Decimal("50.00"),
    )
    db.add(appointment)
    db.commit()
    db.refresh(appointment)
    return appointment

class TestHasConflict:

    @pytest.fixture
    def booked(self, db):
        doctor = make_doctor(db)
        patient = make_patient(db)
        appointment = insert_appointment(db, doctor, patient, time(9, 0), time(9, 30))
        return doctor, patient, appointment

    @pytest.mark.parametrize("start,end,expected", [
        (time(9, 0), time(9, 30), True),     # identical
        (time(8, 45), time(9, 15), True),    # overlaps start
        (time(9, 15), time(9, 45), True),    # overlaps end
        (time(8, 30), time(10, 0), True),    # encloses
        (time(9, 10), time(9, 20), True),    # enclosed
        (time(8, 30), time(9, 0), False),    # touches start
        (time(9, 30), time(10, 0), False),   # touches end
        (time(11, 0), time(11, 30), False),  # disjoint
    ])
    def test_half_open_overlap(self, db, booked, start, end, expected):
        """Intervals conflict iff s1 < e2 and s2 < e1."""
        doctor, _, _ = booked
        assert ConflictService(db).has_conflict(doctor.id, VISIT_DATE, start, end) is expected

    @pytest.mark.parametrize("status", [
        AppointmentStatus.CANCELLED,
        AppointmentStatus.NO_SHOW,
        AppointmentStatus.RESCHEDULED,
    ])
    def test_inactive_statuses_never_conflict(self, db, booked, status):
        doctor, _, appointment = booked
        appointment.status = status
        db.commit()

        assert not ConflictService(db).has_conflict(doctor.id, VISIT_DATE, time(9, 0), time(9, 30))

    @pytest.mark.parametrize("status", [
        AppointmentStatus.CONFIRMED,
        AppointmentStatus.IN_PROGRESS,
        AppointmentStatus.COMPLETED,
    ])
    def test_active_statuses_conflict(self, db, booked, status):
        doctor, _, appointment = booked
        appointment.status = status
        db.commit()

        assert ConflictService(db).has_conflict(doctor.id, VISIT_DATE, time(9, 0), time(9, 30))

    def test_exclude_appointment(self, db, booked):
        """The appointment being replaced does not conflict with itself."""
        doctor, _, appointment = booked
        service = ConflictService(db)

        assert not service.has_conflict(
            doctor.id, VISIT_DATE, time(9, 15), time(9, 45),
            exclude_appointment_id=appointment.id
        )

    def test_other_doctor_and_date_are_independent(self, db, booked):
        doctor, patient, _ = booked
        other = make_doctor(db)
        service = ConflictService(db)

        assert not service.has_conflict(other.id, VISIT_DATE, time(9, 0), time(9, 30))
        next_week = VISIT_DATE.replace(day=17)
        assert not service.has_conflict(doctor.id, next_week, time(9, 0), time(9, 30))

    def test_empty_interval_is_rejected(self, db, booked):
        doctor, _, _ = booked
        with pytest.raises(ValidationError):
            ConflictService(db).has_conflict(doctor.id, VISIT_DATE, time(10, 0), time(10, 0))

    def test_find_conflicts_returns_overlapping(self, db, booked):
        doctor, patient, appointment = booked
        later = insert_appointment(db, doctor, patient, time(10, 0), time(10, 30))

        found = ConflictService(db).find_conflicts(doctor.id, VISIT_DATE, time(9, 15), time(10, 15))
        assert [a.id for a in found] == [appointment.id, later.id]
