from pydantic import BaseModel, ConfigDict, Field
from typing import Optional
from datetime import date, time, datetime
from decimal import Decimal

from ..models.appointment import AppointmentStatus, AppointmentType, AppointmentPriority

class AppointmentCreate(BaseModel):
    patient_id: int
    doctor_id: int
    appointment_date: date
    appointment_time: time
    appointment_type: AppointmentType = AppointmentType.CONSULTATION
    priority: AppointmentPriority = AppointmentPriority.MEDIUM
    reason: str = Field(..., min_length=1)
    symptoms: Optional[str] = None
    notes: Optional[str] = None
    created_by: Optional[str] = Field(default=None, max_length=100)

class AppointmentAction(BaseModel):
    actor: str = Field(default="system", max_length=100)

class AppointmentCancel(AppointmentAction):
    # Blank reasons are rejected by the service with a ValidationError
    reason: str = ""

class AppointmentReschedule(AppointmentAction):
    new_date: date
    new_time: time

class AppointmentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    appointment_code: str
    patient_id: int
    doctor_id: int
    appointment_date: date
    start_time: time
    end_time: time
    appointment_type: AppointmentType
    priority: AppointmentPriority
    status: AppointmentStatus
    reason: str
    symptoms: Optional[str] = None
    notes: Optional[str] = None
    consultation_fee: Decimal
    cancelled_reason: Optional[str] = None
    cancelled_by: Optional[str] = None
    cancelled_at: Optional[datetime] = None
    rescheduled_from: Optional[int] = None
    created_by: Optional[str] = None
