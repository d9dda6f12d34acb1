"""Error taxonomy for attendance operations.

Policy denials are recoverable and their message is shown to the end user
verbatim. Not-found errors carry a generic message. ``DeliveryFailed`` is
raised after the code state was already persisted.
"""
from typing import Optional


class AttendanceError(Exception):
    status_code = 400
    error_code = "ATTENDANCE_ERROR"
    default_message = "Attendance request failed"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


# --- Policy denials ---

class PolicyDenied(AttendanceError):
    error_code = "POLICY_DENIED"


class BookingNotConfirmed(PolicyDenied):
    error_code = "BOOKING_NOT_CONFIRMED"
    default_message = "Meeting booking is not confirmed"


class WindowClosed(PolicyDenied):
    error_code = "WINDOW_CLOSED"
    default_message = "Attendance marking is not available at this time"


class OrganizerNotCheckedIn(WindowClosed):
    error_code = "ORGANIZER_NOT_CHECKED_IN"
    default_message = "The organizer has not checked in to this meeting yet"


class RateLimited(PolicyDenied):
    status_code = 429
    error_code = "RATE_LIMITED"
    default_message = "Too many requests"


class AlreadyCheckedIn(PolicyDenied):
    status_code = 409
    error_code = "ALREADY_CHECKED_IN"
    default_message = "Attendance already marked as present"


class InvalidCodeFormat(PolicyDenied):
    error_code = "INVALID_CODE_FORMAT"
    default_message = "Invalid code format. Code must be 4 digits"


class NoActiveCode(PolicyDenied):
    error_code = "NO_ACTIVE_CODE"
    default_message = "No attendance code has been issued. Please request a code first"


class CodeExpired(PolicyDenied):
    error_code = "CODE_EXPIRED"
    default_message = "Attendance code has expired"


class CodeMismatch(PolicyDenied):
    error_code = "CODE_MISMATCH"
    default_message = "Invalid attendance code"


class QRUnavailable(PolicyDenied):
    error_code = "QR_UNAVAILABLE"
    default_message = "QR code is not available at this time"


class InvalidQRToken(PolicyDenied):
    status_code = 401
    error_code = "INVALID_QR_TOKEN"
    default_message = "Invalid or expired QR token"


# --- Lookups ---

class NotFound(AttendanceError):
    status_code = 404
    error_code = "NOT_FOUND"
    default_message = "Not found"


class InvitationNotFound(NotFound):
    default_message = "Invitation not found"


class BookingNotFound(NotFound):
    default_message = "Meeting not found"


# --- Side channel ---

class DeliveryFailed(AttendanceError):
    status_code = 502
    error_code = "DELIVERY_FAILED"
    default_message = "Attendance code was issued but the email could not be delivered. Please request a new code"

    def __init__(self, message: Optional[str] = None, send_count: int = 0):
        super().__init__(message)
        self.send_count = send_count


# --- Startup ---

class ConfigurationError(RuntimeError):
    """Fatal misconfiguration (signing secret, randomness source)."""
