from fastapi import Depends
from sqlalchemy.orm import Session

from ..core.database import get_db, get_redis
from ..services.audit_service import AuditSink, DatabaseAuditSink
from ..services.appointment_service import AppointmentService
from ..services.billing_service import BillingService
from ..services.payment_service import PaymentService
from ..services.schedule_service import ScheduleService

def get_audit_sink(db: Session = Depends(get_db)) -> AuditSink:
    """Audit sink backed by the audit_log table."""
    return DatabaseAuditSink(db)

def get_appointment_service(
    db: Session = Depends(get_db),
    redis_client = Depends(get_redis),
    audit_sink: AuditSink = Depends(get_audit_sink)
) -> AppointmentService:
    return AppointmentService(db, redis_client, audit_sink)

def get_schedule_service(db: Session = Depends(get_db)) -> ScheduleService:
    return ScheduleService(db)

def get_billing_service(
    db: Session = Depends(get_db),
    redis_client = Depends(get_redis),
    audit_sink: AuditSink = Depends(get_audit_sink)
) -> BillingService:
    return BillingService(db, redis_client, audit_sink)

def get_payment_service(
    db: Session = Depends(get_db),
    redis_client = Depends(get_redis),
    audit_sink: AuditSink = Depends(get_audit_sink)
) -> PaymentService:
    return PaymentService(db, redis_client, audit_sink)
