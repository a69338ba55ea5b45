from fastapi import APIRouter, Depends, Query, status
from datetime import date
from typing import Optional

from ...api.deps import get_appointment_service, get_schedule_service
from ...schemas.appointment import (
    AppointmentCreate, AppointmentAction, AppointmentCancel,
    AppointmentReschedule, AppointmentResponse
)
from ...schemas.schedule import AvailabilityResponse
from ...services.appointment_service import AppointmentService
from ...services.schedule_service import ScheduleService

router = APIRouter(prefix="/appointments", tags=["Appointments"])
doctors_router = APIRouter(prefix="/doctors", tags=["Availability"])

def _actor(action: Optional[AppointmentAction]) -> str:
    return action.actor if action else "system"

@router.post("", response_model=AppointmentResponse, status_code=status.HTTP_201_CREATED)
def book_appointment(
    booking: AppointmentCreate,
    service: AppointmentService = Depends(get_appointment_service)
):
    """Book an appointment in the requested slot."""
    appointment = service.book(
        patient_id=booking.patient_id,
        doctor_id=booking.doctor_id,
        appointment_date=booking.appointment_date,
        appointment_time=booking.appointment_time,
        appointment_type=booking.appointment_type,
        reason=booking.reason,
        priority=booking.priority,
        symptoms=booking.symptoms,
        notes=booking.notes,
        created_by=booking.created_by,
    )
    return AppointmentResponse.model_validate(appointment)

@router.get("/{appointment_id}", response_model=AppointmentResponse)
def get_appointment(
    appointment_id: int,
    service: AppointmentService = Depends(get_appointment_service)
):
    return AppointmentResponse.model_validate(service.get_appointment(appointment_id))

@router.post("/{appointment_id}/confirm", response_model=AppointmentResponse)
def confirm_appointment(
    appointment_id: int,
    action: Optional[AppointmentAction] = None,
    service: AppointmentService = Depends(get_appointment_service)
):
    return AppointmentResponse.model_validate(service.confirm(appointment_id, _actor(action)))

@router.post("/{appointment_id}/check-in", response_model=AppointmentResponse)
def check_in_appointment(
    appointment_id: int,
    action: Optional[AppointmentAction] = None,
    service: AppointmentService = Depends(get_appointment_service)
):
    """Patient has arrived; the visit is in progress."""
    return AppointmentResponse.model_validate(service.check_in(appointment_id, _actor(action)))

@router.post("/{appointment_id}/complete", response_model=AppointmentResponse)
def complete_appointment(
    appointment_id: int,
    action: Optional[AppointmentAction] = None,
    service: AppointmentService = Depends(get_appointment_service)
):
    return AppointmentResponse.model_validate(service.complete(appointment_id, _actor(action)))

@router.post("/{appointment_id}/no-show", response_model=AppointmentResponse)
def mark_no_show(
    appointment_id: int,
    action: Optional[AppointmentAction] = None,
    service: AppointmentService = Depends(get_appointment_service)
):
    return AppointmentResponse.model_validate(service.mark_no_show(appointment_id, _actor(action)))

@router.post("/{appointment_id}/cancel", response_model=AppointmentResponse)
def cancel_appointment(
    appointment_id: int,
    cancellation: AppointmentCancel,
    service: AppointmentService = Depends(get_appointment_service)
):
    """Cancel an appointment. A reason is required."""
    appointment = service.cancel(appointment_id, cancellation.reason, cancellation.actor)
    return AppointmentResponse.model_validate(appointment)

@router.post(
    "/{appointment_id}/reschedule",
    response_model=AppointmentResponse,
    status_code=status.HTTP_201_CREATED
)
def reschedule_appointment(
    appointment_id: int,
    request: AppointmentReschedule,
    service: AppointmentService = Depends(get_appointment_service)
):
    """Move an appointment to a new slot; returns the replacement appointment."""
    replacement = service.reschedule(
        appointment_id, request.new_date, request.new_time, request.actor
    )
    return AppointmentResponse.model_validate(replacement)

@doctors_router.get("/{doctor_id}/availability", response_model=AvailabilityResponse)
def doctor_availability(
    doctor_id: int,
    on_date: date = Query(..., alias="date"),
    service: ScheduleService = Depends(get_schedule_service)
):
    """Open windows and free slots for a doctor on a given day."""
    doctor = service.directory.get_doctor(doctor_id)
    return AvailabilityResponse(
        doctor_id=doctor_id,
        date=on_date,
        consultation_duration_minutes=doctor.consultation_duration_minutes,
        windows=service.open_windows(doctor_id, on_date),
        available_slots=service.available_slots(doctor_id, on_date),
    )
