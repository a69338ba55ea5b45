from sqlalchemy.orm import Session
from datetime import date, time
from typing import Optional, Callable
import logging

from ..core.exceptions import (
    DoctorUnavailable, SlotConflict, InvalidTransition, ValidationError, NotFound
)
from ..core.locks import KeyedLockRegistry, doctor_scope, scope_locks
from ..core.timeutils import add_minutes, clinic_now
from ..models.appointment import (
    Appointment, AppointmentStatus, AppointmentType, AppointmentPriority
)
from ..models.doctor import Doctor
from ..schemas.audit import AuditEvent
from .audit_service import AuditSink, DatabaseAuditSink, emit_safely
from .conflict_service import ConflictService
from .directory_service import DirectoryService
from .identifier_service import IdentifierService, APPOINTMENT_PREFIX
from .schedule_service import ScheduleService

logger = logging.getLogger(__name__)

class AppointmentService:
    """
    Books appointments and drives them through their lifecycle.

    Admission (booking and the new half of a reschedule) runs as one unit of
    work per (doctor, date): the keyed lock and the doctor row lock are held
    from the conflict re-check until the insert is committed, so two
    overlapping requests for the same doctor can never both be admitted.
    """

    def __init__(
        self,
        db: Session,
        redis_client,
        audit_sink: Optional[AuditSink] = None,
        locks: Optional[KeyedLockRegistry] = None
    ):
        self.db = db
        self.directory = DirectoryService(db)
        self.schedule = ScheduleService(db, self.directory)
        self.conflicts = ConflictService(db)
        self.identifiers = IdentifierService(db, redis_client)
        self.audit_sink = audit_sink if audit_sink is not None else DatabaseAuditSink(db)
        self.locks = locks or scope_locks

    def get_appointment(self, appointment_id: int, lock: bool = False) -> Appointment:
        query = self.db.query(Appointment).filter(Appointment.id == appointment_id)
        if lock:
            # Re-read under the lock; the identity map may hold a stale status
            query = query.with_for_update().populate_existing()

        appointment = query.first()
        if not appointment:
            raise NotFound("Appointment", appointment_id)
        return appointment

    def book(
        self,
        patient_id: int,
        doctor_id: int,
        appointment_date: date,
        appointment_time: time,
        appointment_type: AppointmentType = AppointmentType.CONSULTATION,
        reason: str = "",
        priority: AppointmentPriority = AppointmentPriority.MEDIUM,
        symptoms: Optional[str] = None,
        notes: Optional[str] = None,
        created_by: Optional[str] = None
    ) -> Appointment:
        """
        Admit a new appointment in status scheduled.

        Raises:
            NotFound: unknown patient or doctor
            ValidationError: blank reason, inactive patient, slot past midnight
            DoctorUnavailable: slot outside every open window, or day full
            SlotConflict: slot overlaps an active appointment
            IdentifierExhausted: no free appointment code
        """
        if not reason or not reason.strip():
            raise ValidationError("A reason for the visit is required")

        patient = self.directory.get_patient(patient_id)
        if patient.is_active is False:
            raise ValidationError(f"Patient {patient_id} is inactive")

        doctor = self.directory.get_doctor(doctor_id)
        end_time = self._slot_end(doctor, appointment_time)
        self._ensure_open(doctor, appointment_date, appointment_time, end_time)

        with self.locks.hold(doctor_scope(doctor_id, appointment_date)):
            try:
                appointment = self._admit(
                    doctor_id=doctor_id,
                    appointment_date=appointment_date,
                    start_time=appointment_time,
                    end_time=end_time,
                    patient_id=patient_id,
                    appointment_type=appointment_type,
                    priority=priority,
                    reason=reason.strip(),
                    symptoms=symptoms,
                    notes=notes,
                    created_by=created_by,
                )
                self.db.commit()
            except Exception:
                self.db.rollback()
                raise

        self.db.refresh(appointment)
        logger.info(
            f"Booked {appointment.appointment_code} for doctor {doctor_id} on "
            f"{appointment_date} {appointment_time}-{end_time}"
        )
        self._emit(appointment, None, AppointmentStatus.SCHEDULED, created_by, "appointment_booked")
        return appointment

    def confirm(self, appointment_id: int, actor: str = "system") -> Appointment:
        return self._transition(appointment_id, AppointmentStatus.CONFIRMED, actor)

    def check_in(self, appointment_id: int, actor: str = "system") -> Appointment:
        return self._transition(appointment_id, AppointmentStatus.IN_PROGRESS, actor)

    def complete(self, appointment_id: int, actor: str = "system") -> Appointment:
        return self._transition(appointment_id, AppointmentStatus.COMPLETED, actor)

    def mark_no_show(self, appointment_id: int, actor: str = "system") -> Appointment:
        return self._transition(appointment_id, AppointmentStatus.NO_SHOW, actor)

    def cancel(self, appointment_id: int, reason: str, actor: str = "system") -> Appointment:
        """Cancel with a mandatory reason; records who cancelled and when."""
        if not reason or not reason.strip():
            raise ValidationError("A cancellation reason is required")

        def record_cancellation(appointment: Appointment):
            appointment.cancelled_reason = reason.strip()
            appointment.cancelled_by = actor
            appointment.cancelled_at = clinic_now()

        return self._transition(
            appointment_id, AppointmentStatus.CANCELLED, actor, record_cancellation
        )

    def reschedule(
        self,
        appointment_id: int,
        new_date: date,
        new_time: time,
        actor: str = "system"
    ) -> Appointment:
        """
        Move an appointment to a new slot with the same doctor.

        The replacement is admitted with the original excluded from the
        conflict check, linked through ``rescheduled_from``, and the original
        is marked rescheduled in the same commit. Returns the replacement.
        """
        original = self.get_appointment(appointment_id)
        if not original.status.can_transition_to(AppointmentStatus.RESCHEDULED):
            raise InvalidTransition(original.status, AppointmentStatus.RESCHEDULED)

        doctor = self.directory.get_doctor(original.doctor_id)
        end_time = self._slot_end(doctor, new_time)
        self._ensure_open(doctor, new_date, new_time, end_time)

        scopes = (
            doctor_scope(original.doctor_id, original.appointment_date),
            doctor_scope(original.doctor_id, new_date),
        )
        with self.locks.hold(*scopes):
            try:
                original = self.get_appointment(appointment_id, lock=True)
                old_status = original.status
                if not old_status.can_transition_to(AppointmentStatus.RESCHEDULED):
                    raise InvalidTransition(old_status, AppointmentStatus.RESCHEDULED)

                replacement = self._admit(
                    doctor_id=original.doctor_id,
                    appointment_date=new_date,
                    start_time=new_time,
                    end_time=end_time,
                    exclude_appointment_id=original.id,
                    patient_id=original.patient_id,
                    appointment_type=original.appointment_type,
                    priority=original.priority,
                    reason=original.reason,
                    symptoms=original.symptoms,
                    notes=original.notes,
                    created_by=actor,
                    rescheduled_from=original.id,
                )
                original.status = AppointmentStatus.RESCHEDULED
                self.db.commit()
            except Exception:
                self.db.rollback()
                raise

        self.db.refresh(original)
        self.db.refresh(replacement)
        logger.info(
            f"Rescheduled {original.appointment_code} to {replacement.appointment_code} "
            f"on {new_date} {new_time}-{end_time}"
        )
        self._emit(original, old_status, AppointmentStatus.RESCHEDULED, actor, "appointment_status_changed")
        self._emit(replacement, None, AppointmentStatus.SCHEDULED, actor, "appointment_booked")
        return replacement

    def _transition(
        self,
        appointment_id: int,
        target: AppointmentStatus,
        actor: str,
        mutate: Optional[Callable[[Appointment], None]] = None
    ) -> Appointment:
        appointment = self.get_appointment(appointment_id)

        with self.locks.hold(doctor_scope(appointment.doctor_id, appointment.appointment_date)):
            try:
                appointment = self.get_appointment(appointment_id, lock=True)
                old_status = appointment.status
                if not old_status.can_transition_to(target):
                    raise InvalidTransition(old_status, target)

                appointment.status = target
                if mutate:
                    mutate(appointment)
                self.db.commit()
            except Exception:
                self.db.rollback()
                raise

        self.db.refresh(appointment)
        logger.info(
            f"Appointment {appointment.appointment_code}: {old_status.value} -> {target.value} by {actor}"
        )
        self._emit(appointment, old_status, target, actor, "appointment_status_changed")
        return appointment

    def _admit(
        self,
        doctor_id: int,
        appointment_date: date,
        start_time: time,
        end_time: time,
        exclude_appointment_id: Optional[int] = None,
        **fields
    ) -> Appointment:
        """Conflict re-check and insert; caller holds the scope lock and commits."""
        doctor = self.directory.get_doctor(doctor_id, lock=True)

        conflicts = self.conflicts.find_conflicts(
            doctor_id, appointment_date, start_time, end_time, exclude_appointment_id
        )
        if conflicts:
            logger.warning(
                f"Rejected slot {appointment_date} {start_time}-{end_time} for doctor {doctor_id}: "
                f"overlaps {conflicts[0].appointment_code}"
            )
            raise SlotConflict(
                f"Time slot {start_time.strftime('%H:%M')}-{end_time.strftime('%H:%M')} "
                f"on {appointment_date} is already booked"
            )

        booked = len(self.conflicts.active_appointments(
            doctor_id, appointment_date, exclude_appointment_id
        ))
        if booked >= doctor.max_appointments_per_day:
            logger.warning(f"Doctor {doctor_id} is fully booked on {appointment_date}")
            raise DoctorUnavailable(f"Doctor is fully booked on {appointment_date}")

        appointment = Appointment(
            appointment_code=self.identifiers.generate(APPOINTMENT_PREFIX, Appointment.appointment_code),
            doctor_id=doctor_id,
            appointment_date=appointment_date,
            start_time=start_time,
            end_time=end_time,
            status=AppointmentStatus.SCHEDULED,
            consultation_fee=doctor.consultation_fee,
            **fields
        )
        self.db.add(appointment)
        self.db.flush()
        return appointment

    def _slot_end(self, doctor: Doctor, start_time: time) -> time:
        try:
            return add_minutes(start_time, doctor.consultation_duration_minutes)
        except ValueError as e:
            raise ValidationError(str(e))

    def _ensure_open(self, doctor: Doctor, on_date: date, start_time: time, end_time: time):
        if not doctor.is_available:
            raise DoctorUnavailable(f"Doctor {doctor.id} is not accepting appointments")

        windows = self.schedule.open_windows(doctor.id, on_date)
        if self.schedule.window_containing(windows, start_time, end_time) is None:
            logger.warning(
                f"Doctor {doctor.id} has no open window for {on_date} {start_time}-{end_time}"
            )
            raise DoctorUnavailable()

    def _emit(self, appointment: Appointment, old_status, new_status, actor, action: str):
        event = AuditEvent(
            entity="appointment",
            entity_id=appointment.id,
            action=action,
            old_status=old_status.value if old_status else None,
            new_status=new_status.value,
            actor=actor,
            timestamp=clinic_now(),
            details={"appointment_code": appointment.appointment_code},
        )
        emit_safely(self.audit_sink, event)
