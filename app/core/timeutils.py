"""
Clinic-local time helpers.

Appointment dates and times are stored as naive values in the clinic's
timezone. Anything that needs "now" (cancellation stamps, identifier date
stamps, bill dates) goes through these helpers so every component agrees on
the same calendar day.
"""
from datetime import date, datetime, time, timedelta
from zoneinfo import ZoneInfo

from .config import settings

CLINIC_TZ = ZoneInfo(settings.CLINIC_TIMEZONE)


def clinic_now() -> datetime:
    """Current clinic-local time, naive, for storage in DateTime columns."""
    return datetime.now(CLINIC_TZ).replace(tzinfo=None)


def clinic_today() -> date:
    return clinic_now().date()


def date_stamp(on_date: date = None) -> str:
    """8-digit yyyymmdd stamp used in appointment, bill and payment codes."""
    return (on_date or clinic_today()).strftime("%Y%m%d")


def add_minutes(start: time, minutes: int) -> time:
    """
    Add minutes to a wall-clock time on the same day.

    Raises:
        ValueError: if the result would fall on the next day
    """
    combined = datetime.combine(date.min, start) + timedelta(minutes=minutes)
    if combined.date() != date.min:
        raise ValueError(f"{start.isoformat()} plus {minutes} minutes crosses midnight")
    return combined.time()
