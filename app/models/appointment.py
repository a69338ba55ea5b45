from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, Date, Time, Text, Numeric, CheckConstraint, Index, Enum as SQLEnum
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from typing import FrozenSet
import enum

from ..core.database import Base

class AppointmentStatus(str, enum.Enum):
    SCHEDULED = "scheduled"
    CONFIRMED = "confirmed"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"
    RESCHEDULED = "rescheduled"

    @property
    def is_active(self) -> bool:
        """Active appointments occupy the doctor's time."""
        return self in ACTIVE_STATUSES

    @property
    def is_terminal(self) -> bool:
        return not ALLOWED_TRANSITIONS[self]

    def can_transition_to(self, target: "AppointmentStatus") -> bool:
        return target in ALLOWED_TRANSITIONS[self]

ACTIVE_STATUSES: FrozenSet[AppointmentStatus] = frozenset({
    AppointmentStatus.SCHEDULED,
    AppointmentStatus.CONFIRMED,
    AppointmentStatus.IN_PROGRESS,
    AppointmentStatus.COMPLETED,
})

ALLOWED_TRANSITIONS = {
    AppointmentStatus.SCHEDULED: frozenset({
        AppointmentStatus.CONFIRMED,
        AppointmentStatus.CANCELLED,
        AppointmentStatus.RESCHEDULED,
    }),
    AppointmentStatus.CONFIRMED: frozenset({
        AppointmentStatus.IN_PROGRESS,
        AppointmentStatus.CANCELLED,
        AppointmentStatus.NO_SHOW,
        AppointmentStatus.RESCHEDULED,
    }),
    AppointmentStatus.IN_PROGRESS: frozenset({AppointmentStatus.COMPLETED}),
    AppointmentStatus.COMPLETED: frozenset(),
    AppointmentStatus.CANCELLED: frozenset(),
    AppointmentStatus.NO_SHOW: frozenset(),
    AppointmentStatus.RESCHEDULED: frozenset(),
}

class AppointmentType(str, enum.Enum):
    CONSULTATION = "Consultation"
    FOLLOW_UP = "Follow-up"
    EMERGENCY = "Emergency"
    ROUTINE_CHECKUP = "Routine Checkup"
    VACCINATION = "Vaccination"
    SURGERY = "Surgery"

class AppointmentPriority(str, enum.Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    URGENT = "Urgent"

class Appointment(Base):
    __tablename__ = "appointments"
    __table_args__ = (
        CheckConstraint("end_time > start_time", name="chk_appointment_times"),
        Index("idx_appointment_doctor_date", "doctor_id", "appointment_date"),
    )

    id = Column(Integer, primary_key=True, index=True)
    appointment_code = Column(String(30), nullable=False, unique=True, index=True)

    # Relationships
    patient_id = Column(Integer, ForeignKey("patients.id"), nullable=False, index=True)
    doctor_id = Column(Integer, ForeignKey("doctors.id"), nullable=False)

    # Appointment details
    appointment_date = Column(Date, nullable=False, index=True)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    appointment_type = Column(SQLEnum(AppointmentType), nullable=False, default=AppointmentType.CONSULTATION)
    priority = Column(SQLEnum(AppointmentPriority), nullable=False, default=AppointmentPriority.MEDIUM)
    status = Column(SQLEnum(AppointmentStatus), nullable=False, default=AppointmentStatus.SCHEDULED, index=True)
    reason = Column(Text, nullable=False)
    symptoms = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)

    # Doctor's fee at booking time
    consultation_fee = Column(Numeric(10, 2), nullable=False, default=0)

    # Cancellation
    cancelled_reason = Column(Text, nullable=True)
    cancelled_by = Column(String(100), nullable=True)
    cancelled_at = Column(DateTime, nullable=True)

    rescheduled_from = Column(Integer, ForeignKey("appointments.id", ondelete="SET NULL"), nullable=True)

    # Tracking
    created_by = Column(String(100), nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    # Relationships
    patient = relationship("Patient", back_populates="appointments")
    doctor = relationship("Doctor", back_populates="appointments")
    original = relationship("Appointment", remote_side=[id], uselist=False)
    medical_record = relationship("MedicalRecord", back_populates="appointment", uselist=False)
    bill = relationship("Bill", back_populates="appointment", uselist=False)

    def overlaps(self, start, end) -> bool:
        """Half-open interval overlap: touching endpoints do not overlap."""
        return self.start_time < end and start < self.end_time

    def __repr__(self):
        return f"<Appointment(id={self.id}, code='{self.appointment_code}', doctor_id={self.doctor_id}, date='{self.appointment_date}', {self.start_time}-{self.end_time}, status='{self.status}')>"
