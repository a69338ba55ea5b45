from sqlalchemy import Column, Integer, String, DateTime, Boolean, Text, Numeric, CheckConstraint
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship

from ..core.database import Base

class Doctor(Base):
    __tablename__ = "doctors"
    __table_args__ = (
        CheckConstraint("consultation_fee >= 0", name="chk_doctor_fee"),
        CheckConstraint("consultation_duration_minutes > 0", name="chk_doctor_duration"),
        CheckConstraint("max_appointments_per_day > 0", name="chk_doctor_daily_limit"),
    )

    id = Column(Integer, primary_key=True, index=True)

    # Personal information
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    specialization = Column(String(100), nullable=False)
    license_number = Column(String(50), nullable=False, unique=True)

    # Professional information
    qualification = Column(String(255), nullable=True)
    bio = Column(Text, nullable=True)

    # Contact information
    phone_number = Column(String(20), nullable=True)
    office_address = Column(String(255), nullable=True)

    # Consultation configuration
    consultation_fee = Column(Numeric(10, 2), nullable=False, default=0)
    consultation_duration_minutes = Column(Integer, nullable=False, default=30)
    max_appointments_per_day = Column(Integer, nullable=False, default=20)

    # Availability
    is_available = Column(Boolean, default=True)

    # Timestamps
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    # Relationships
    schedules = relationship("DoctorSchedule", back_populates="doctor")
    appointments = relationship("Appointment", back_populates="doctor")

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    def __repr__(self):
        return f"<Doctor(id={self.id}, name='{self.first_name} {self.last_name}', specialization='{self.specialization}')>"
