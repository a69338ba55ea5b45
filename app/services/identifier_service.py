from sqlalchemy.orm import Session
from datetime import date
from typing import Optional
import logging

from ..core.config import settings
from ..core.exceptions import IdentifierExhausted
from ..core.timeutils import date_stamp

logger = logging.getLogger(__name__)

APPOINTMENT_PREFIX = "APT"
BILL_PREFIX = "BILL"
TRANSACTION_PREFIX = "TXN"

# Sequence keys outlive the day they count so a late request still sees them
SEQUENCE_TTL_SECONDS = 3 * 24 * 3600

class IdentifierService:
    """
    Human-readable codes: prefix + yyyymmdd + 4-digit per-date sequence.

    The sequence comes from a Redis counter keyed by prefix and date. A code
    that already exists (counter reset, wrap past 9999) is skipped and a new
    one drawn, up to ``IDENTIFIER_MAX_RETRIES`` times.
    """

    def __init__(self, db: Session, redis_client, max_retries: Optional[int] = None):
        self.db = db
        self.redis = redis_client
        self.max_retries = max_retries if max_retries is not None else settings.IDENTIFIER_MAX_RETRIES

    def _next_sequence(self, prefix: str, stamp: str) -> int:
        key = f"sequence:{prefix}:{stamp}"
        value = int(self.redis.incr(key))
        if value == 1:
            self.redis.expire(key, SEQUENCE_TTL_SECONDS)
        return value

    def generate(self, prefix: str, column, on_date: date = None) -> str:
        """
        Return an unused code for ``column`` (e.g. ``Appointment.appointment_code``).

        Raises:
            IdentifierExhausted: every attempt produced a code already in use
        """
        stamp = date_stamp(on_date)

        for attempt in range(1, self.max_retries + 1):
            sequence = self._next_sequence(prefix, stamp) % 10000
            code = f"{prefix}{stamp}{sequence:04d}"

            taken = self.db.query(column).filter(column == code).first()
            if not taken:
                return code

            logger.warning(f"Identifier collision on {code} (attempt {attempt}/{self.max_retries})")

        raise IdentifierExhausted(prefix, self.max_retries)
