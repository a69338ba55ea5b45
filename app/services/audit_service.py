from sqlalchemy.orm import Session
from typing import List
import logging

from ..models.audit import AuditLog
from ..schemas.audit import AuditEvent

logger = logging.getLogger(__name__)

class AuditSink:
    """Append-only destination for state-change events."""

    def emit(self, event: AuditEvent) -> None:
        raise NotImplementedError

class DatabaseAuditSink(AuditSink):
    """Writes events to the audit_log table in their own commit."""

    def __init__(self, db: Session):
        self.db = db

    def emit(self, event: AuditEvent) -> None:
        old_values = {"status": event.old_status} if event.old_status else None
        new_values = dict(event.details)
        if event.new_status:
            new_values["status"] = event.new_status

        entry = AuditLog(
            actor=event.actor,
            action=event.action,
            entity=event.entity,
            entity_id=event.entity_id,
            old_values=old_values,
            new_values=new_values or None,
            timestamp=event.timestamp,
        )
        try:
            self.db.add(entry)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

class MemoryAuditSink(AuditSink):
    """Keeps events in a list; used where no audit store is configured."""

    def __init__(self):
        self.events: List[AuditEvent] = []

    def emit(self, event: AuditEvent) -> None:
        self.events.append(event)

def emit_safely(sink: AuditSink, event: AuditEvent) -> bool:
    """
    Fire-and-forget emission.

    Called after the originating unit of work has committed. A failing sink
    is logged and never propagated to the caller.
    """
    if sink is None:
        return False

    try:
        sink.emit(event)
        return True
    except Exception:
        logger.exception(
            f"Failed to emit audit event {event.action} for {event.entity} {event.entity_id}"
        )
        return False
