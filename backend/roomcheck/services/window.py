from datetime import datetime, timedelta
from typing import Optional

from roomcheck.utils.clock import ensure_utc

DEFAULT_GRACE_MINUTES = 15
DEFAULT_CHECK_IN_LEAD_MINUTES = 15


def grace_end(end: datetime, grace_minutes: int = DEFAULT_GRACE_MINUTES) -> datetime:
    return ensure_utc(end) + timedelta(minutes=grace_minutes)


def is_attendance_window_open(
    start: datetime,
    end: datetime,
    now: datetime,
    grace_minutes: int = DEFAULT_GRACE_MINUTES,
) -> bool:
    """True from meeting start until the grace period after the end"""
    now = ensure_utc(now)
    return ensure_utc(start) <= now <= grace_end(end, grace_minutes)


def should_show_qr(
    start: datetime,
    end: datetime,
    organizer_checked_in_at: Optional[datetime],
    now: datetime,
    grace_minutes: int = DEFAULT_GRACE_MINUTES,
) -> bool:
    """QR is only shown inside the window and after the organizer checked in"""
    if organizer_checked_in_at is None:
        return False
    return is_attendance_window_open(start, end, now, grace_minutes)


def code_expiry(meeting_end: datetime, grace_minutes: int = DEFAULT_GRACE_MINUTES) -> datetime:
    return grace_end(meeting_end, grace_minutes)


def is_code_expired(expires_at: Optional[datetime], now: datetime) -> bool:
    if expires_at is None:
        return True
    return ensure_utc(now) > ensure_utc(expires_at)


def organizer_check_in_opens_at(start: datetime, lead_minutes: int = DEFAULT_CHECK_IN_LEAD_MINUTES) -> datetime:
    return ensure_utc(start) - timedelta(minutes=lead_minutes)


def can_organizer_check_in(
    start: datetime,
    end: datetime,
    now: datetime,
    lead_minutes: int = DEFAULT_CHECK_IN_LEAD_MINUTES,
    grace_minutes: int = DEFAULT_GRACE_MINUTES,
) -> bool:
    """Organizer may check in shortly before the start and until the grace period ends"""
    now = ensure_utc(now)
    return organizer_check_in_opens_at(start, lead_minutes) <= now <= grace_end(end, grace_minutes)
