from sqlalchemy import Column, Integer, ForeignKey, DateTime, Date, Time, Boolean, CheckConstraint, UniqueConstraint, Enum as SQLEnum
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from datetime import date
import enum

from ..core.database import Base

class DayOfWeek(str, enum.Enum):
    MONDAY = "Monday"
    TUESDAY = "Tuesday"
    WEDNESDAY = "Wednesday"
    THURSDAY = "Thursday"
    FRIDAY = "Friday"
    SATURDAY = "Saturday"
    SUNDAY = "Sunday"

    @classmethod
    def of(cls, on_date: date) -> "DayOfWeek":
        return list(cls)[on_date.weekday()]

class DoctorSchedule(Base):
    """Recurring weekly availability rule for one doctor."""

    __tablename__ = "doctor_schedules"
    __table_args__ = (
        UniqueConstraint("doctor_id", "day_of_week", "start_time", "effective_from", name="uq_doctor_schedule"),
        CheckConstraint("end_time > start_time", name="chk_schedule_times"),
        CheckConstraint(
            "(break_start_time IS NULL AND break_end_time IS NULL) OR "
            "(break_start_time IS NOT NULL AND break_end_time IS NOT NULL AND "
            "break_end_time > break_start_time AND "
            "break_start_time >= start_time AND "
            "break_end_time <= end_time)",
            name="chk_break_times",
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    doctor_id = Column(Integer, ForeignKey("doctors.id", ondelete="CASCADE"), nullable=False, index=True)

    day_of_week = Column(SQLEnum(DayOfWeek), nullable=False)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    break_start_time = Column(Time, nullable=True)
    break_end_time = Column(Time, nullable=True)

    is_available = Column(Boolean, default=True)
    effective_from = Column(Date, nullable=False, default=date.today)
    effective_until = Column(Date, nullable=True)

    created_at = Column(DateTime, server_default=func.now())

    doctor = relationship("Doctor", back_populates="schedules")

    @property
    def has_break(self) -> bool:
        return self.break_start_time is not None and self.break_end_time is not None

    def covers(self, on_date: date) -> bool:
        """True when the rule is in effect on ``on_date``."""
        if on_date < self.effective_from:
            return False
        return self.effective_until is None or on_date <= self.effective_until

    def __repr__(self):
        return f"<DoctorSchedule(id={self.id}, doctor_id={self.doctor_id}, day='{self.day_of_week}', {self.start_time}-{self.end_time})>"
