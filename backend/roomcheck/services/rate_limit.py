"""
Per-invitation rate limit policies.

Both functions are pure: they read the counters stored on the invitation
and the caller's clock, and never touch storage. Resetting counters is the
orchestrator's job.
"""
import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from roomcheck.utils.clock import ensure_utc

DEFAULT_MAX_SENDS = 5
DEFAULT_SEND_COOLDOWN_SECONDS = 60
DEFAULT_MAX_ATTEMPTS = 5
DEFAULT_VERIFY_COOLDOWN_MINUTES = 15


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    reason: Optional[str] = None


ALLOWED = RateLimitDecision(allowed=True)


def can_request_code(
    last_sent_at: Optional[datetime],
    send_count: int,
    now: datetime,
    max_sends: int = DEFAULT_MAX_SENDS,
    cooldown_seconds: int = DEFAULT_SEND_COOLDOWN_SECONDS,
) -> RateLimitDecision:
    """Hard cap on codes per invitation, then a short cooldown between sends"""
    if (send_count or 0) >= max_sends:
        return RateLimitDecision(False, f"Maximum of {max_sends} code requests reached")

    if last_sent_at is None:
        return ALLOWED

    cooldown_end = ensure_utc(last_sent_at) + timedelta(seconds=cooldown_seconds)
    now = ensure_utc(now)
    if now < cooldown_end:
        remaining = math.ceil((cooldown_end - now).total_seconds())
        return RateLimitDecision(False, f"Please wait {remaining} seconds before requesting another code")

    return ALLOWED


def can_attempt_verification(
    attempts: int,
    last_attempt_at: Optional[datetime],
    now: datetime,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    cooldown_minutes: int = DEFAULT_VERIFY_COOLDOWN_MINUTES,
) -> RateLimitDecision:
    """Blocked only while the attempt budget is spent and the cooldown runs"""
    if (attempts or 0) < max_attempts or last_attempt_at is None:
        return ALLOWED

    cooldown_end = ensure_utc(last_attempt_at) + timedelta(minutes=cooldown_minutes)
    now = ensure_utc(now)
    if now < cooldown_end:
        remaining = math.ceil((cooldown_end - now).total_seconds() / 60)
        return RateLimitDecision(False, f"Too many failed attempts. Please try again in {remaining} minutes")

    return ALLOWED
