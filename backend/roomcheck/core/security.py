import logging
from datetime import datetime, timedelta
from typing import Optional
from urllib.parse import urlencode

import jwt

from roomcheck.core.config import get_settings
from roomcheck.utils.clock import ensure_utc, utcnow

logger = logging.getLogger(__name__)

ATTENDANCE_VIEW_SCOPE = "attendance_view"


def create_qr_token(booking_id: int, now: datetime, ttl_minutes: Optional[int] = None) -> str:
    """Create a signed token granting read-only attendance view for one booking"""
    settings = get_settings()
    if ttl_minutes is None:
        ttl_minutes = settings.QR_TOKEN_EXPIRE_MINUTES

    issued_at = ensure_utc(now)
    payload = {
        "booking_id": booking_id,
        "scope": ATTENDANCE_VIEW_SCOPE,
        "iat": int(issued_at.timestamp()),
        "exp": int((issued_at + timedelta(minutes=ttl_minutes)).timestamp()),
    }
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def verify_qr_token(token: str, now: Optional[datetime] = None) -> Optional[dict]:
    """
    Verify a QR token.
    Bad signature, malformed, expired and wrong-scope tokens all return None.
    """
    settings = get_settings()
    try:
        # Expiry is checked against the caller's clock below
        payload = jwt.decode(
            token,
            settings.SECRET_KEY,
            algorithms=[settings.ALGORITHM],
            options={"verify_exp": False, "verify_iat": False, "require": ["exp", "iat", "scope"]},
        )
    except jwt.PyJWTError as e:
        logger.info(f"QR token rejected: {type(e).__name__}")
        return None

    if payload.get("scope") != ATTENDANCE_VIEW_SCOPE:
        logger.info("QR token rejected: wrong scope")
        return None

    current = ensure_utc(now) if now else utcnow()
    try:
        expires = int(payload["exp"])
    except (TypeError, ValueError):
        return None
    if current.timestamp() > expires:
        logger.info("QR token rejected: expired")
        return None

    return payload


def build_qr_url(booking_id: int, token: str) -> str:
    """Public attendance page URL encoded into the QR code"""
    base_url = get_settings().APP_BASE_URL.rstrip("/")
    return f"{base_url}/attendance?{urlencode({'b': booking_id, 't': token})}"
