"""
Shared fixtures.

Tests run against a throwaway SQLite file with ``TESTING=1`` so the Redis
client is the in-process mock. The environment must be set before anything
under ``app`` is imported.
"""
import os
import tempfile
from pathlib import Path

_test_dir = tempfile.mkdtemp(prefix="clinic-tests-")
os.environ["TESTING"] = "1"
os.environ["TEST_DATABASE_URL"] = f"sqlite:///{Path(_test_dir) / 'test.db'}"

import pytest
from datetime import date, time
from decimal import Decimal
from fastapi.testclient import TestClient

from app.main import app
from app.core.database import Base, SessionLocal, engine, redis_client
from app.models.doctor import Doctor
from app.models.patient import Patient
from app.models.schedule import DayOfWeek, DoctorSchedule
from app.models.appointment import Appointment
from app.models.clinical import MedicalRecord, PrescriptionItem, LabTestOrder
from app.services.appointment_service import AppointmentService
from app.services.audit_service import MemoryAuditSink
from app.services.billing_service import BillingService
from app.services.payment_service import PaymentService

# Wednesday
VISIT_DATE = date(2025, 9, 10)

def reset_database():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    redis_client.flushall()

@pytest.fixture(scope="function")
def test_db():
    reset_database()
    yield
    Base.metadata.drop_all(bind=engine)

@pytest.fixture
def db(test_db):
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()

@pytest.fixture
def client(test_db):
    with TestClient(app, base_url="http://testserver") as test_client:
        yield test_client

@pytest.fixture
def audit():
    return MemoryAuditSink()

@pytest.fixture
def appointments(db, audit):
    return AppointmentService(db, redis_client, audit)

@pytest.fixture
def billing(db, audit):
    return BillingService(db, redis_client, audit)

@pytest.fixture
def payments(db, audit):
    return PaymentService(db, redis_client, audit)

def make_doctor(db, **overrides) -> Doctor:
    fields = {
        "first_name": "Grace",
        "last_name": "Otieno",
        "specialization": "General Medicine",
        "license_number": f"LIC-{db.query(Doctor).count() + 1:04d}",
        "consultation_fee": Decimal("50.00"),
        "consultation_duration_minutes": 30,
        "max_appointments_per_day": 20,
        "is_available": True,
    }
    fields.update(overrides)
    doctor = Doctor(**fields)
    db.add(doctor)
    db.commit()
    db.refresh(doctor)
    return doctor

def make_patient(db, **overrides) -> Patient:
    fields = {"first_name": "Amani", "last_name": "Njeri", "is_active": True}
    fields.update(overrides)
    patient = Patient(**fields)
    db.add(patient)
    db.commit()
    db.refresh(patient)
    return patient

def add_schedule(
    db,
    doctor: Doctor,
    day: DayOfWeek = DayOfWeek.WEDNESDAY,
    start: time = time(9, 0),
    end: time = time(12, 0),
    break_start: time = None,
    break_end: time = None,
    effective_from: date = date(2025, 1, 1),
    effective_until: date = None,
    is_available: bool = True,
) -> DoctorSchedule:
    rule = DoctorSchedule(
        doctor_id=doctor.id,
        day_of_week=day,
        start_time=start,
        end_time=end,
        break_start_time=break_start,
        break_end_time=break_end,
        effective_from=effective_from,
        effective_until=effective_until,
        is_available=is_available,
    )
    db.add(rule)
    db.commit()
    db.refresh(rule)
    return rule

def add_visit_charges(db, appointment: Appointment, medicines=(), labs=()) -> MedicalRecord:
    """medicines: (name, quantity, unit_price); labs: (name, price)."""
    record = MedicalRecord(
        appointment_id=appointment.id,
        patient_id=appointment.patient_id,
        doctor_id=appointment.doctor_id,
        diagnosis="Observation",
    )
    db.add(record)
    db.flush()

    for name, quantity, unit_price in medicines:
        db.add(PrescriptionItem(
            medical_record_id=record.id,
            medicine_name=name,
            quantity=quantity,
            unit_price=Decimal(unit_price),
        ))
    for name, price in labs:
        db.add(LabTestOrder(medical_record_id=record.id, test_name=name, price=Decimal(price)))

    db.commit()
    db.refresh(record)
    return record

@pytest.fixture
def doctor(db):
    """Wednesday 09:00-12:00 with a 10:30-10:45 break, 30 minute consultations."""
    doctor = make_doctor(db)
    add_schedule(db, doctor, break_start=time(10, 30), break_end=time(10, 45))
    return doctor

@pytest.fixture
def patient(db):
    return make_patient(db)
