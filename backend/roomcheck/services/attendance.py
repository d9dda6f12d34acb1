"""
Attendance code orchestration.

Per invitation the code moves NoCodeIssued -> CodeActive -> Verified, or
expires with the meeting. Re-issuing a code while one is active replaces
hash, salt and expiry, re-arms the verification attempt budget and counts
against the send cap.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import List, Optional, Tuple

from roomcheck.core.config import Settings
from roomcheck.core.exceptions import (
    AlreadyCheckedIn,
    BookingNotConfirmed,
    BookingNotFound,
    CodeExpired,
    CodeMismatch,
    DeliveryFailed,
    InvalidCodeFormat,
    InvalidQRToken,
    InvitationNotFound,
    NoActiveCode,
    OrganizerNotCheckedIn,
    QRUnavailable,
    RateLimited,
    WindowClosed,
)
from roomcheck.core import security
from roomcheck.models.attendance_event import (
    AttendanceEventType,
    CheckInPayload,
    CodeFailedPayload,
    CodeSentPayload,
    CodeVerifiedPayload,
)
from roomcheck.models.booking import Booking
from roomcheck.models.invitation import PRESENT, Invitation
from roomcheck.services.audit import AuditLog
from roomcheck.services.occupancy import OccupancySnapshot, compute_occupancy
from roomcheck.services.rate_limit import can_attempt_verification, can_request_code
from roomcheck.services.store import InvitationStore
from roomcheck.services.window import (
    can_organizer_check_in,
    code_expiry,
    is_attendance_window_open,
    is_code_expired,
    organizer_check_in_opens_at,
    should_show_qr,
)
from roomcheck.utils.crypto import (
    generate_attendance_code,
    generate_salt,
    hash_code,
    is_valid_code_format,
    verify_code_hash,
)
from roomcheck.utils.clock import ensure_utc
from roomcheck.utils.request import RequestMeta

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AttendancePolicy:
    grace_minutes: int = 15
    max_sends: int = 5
    send_cooldown_seconds: int = 60
    max_attempts: int = 5
    verify_cooldown_minutes: int = 15
    check_in_lead_minutes: int = 15
    qr_token_ttl_minutes: int = 15

    @classmethod
    def from_settings(cls, settings: Settings) -> "AttendancePolicy":
        return cls(
            grace_minutes=settings.ATTENDANCE_GRACE_MINUTES,
            max_sends=settings.CODE_MAX_SENDS,
            send_cooldown_seconds=settings.CODE_SEND_COOLDOWN_SECONDS,
            max_attempts=settings.VERIFY_MAX_ATTEMPTS,
            verify_cooldown_minutes=settings.VERIFY_COOLDOWN_MINUTES,
            check_in_lead_minutes=settings.ORGANIZER_CHECK_IN_LEAD_MINUTES,
            qr_token_ttl_minutes=settings.QR_TOKEN_EXPIRE_MINUTES,
        )


# ==============================================================================
# Results
# ==============================================================================

@dataclass(frozen=True)
class CodeRequestResult:
    invitation_id: int
    send_count: int
    sent_at: datetime
    expires_at: datetime


@dataclass(frozen=True)
class VerificationResult:
    invitation_id: int
    checked_in_at: datetime
    occupancy: OccupancySnapshot


@dataclass(frozen=True)
class MeetingInfo:
    id: int
    title: str
    start_time: datetime
    end_time: datetime
    room_name: str
    room_capacity: int
    organizer_checked_in_at: Optional[datetime] = None


@dataclass(frozen=True)
class OccupancyContext:
    meeting: MeetingInfo
    occupancy: OccupancySnapshot
    show_qr: bool


@dataclass(frozen=True)
class QRCodeGrant:
    booking_id: int
    meeting_title: str
    token: str
    qr_url: str
    expires_at: datetime


@dataclass(frozen=True)
class AttendeeEntry:
    invitation_id: int
    display_name: str
    attendance_status: str


@dataclass(frozen=True)
class AttendeeList:
    booking_id: int
    attendees: List[AttendeeEntry] = field(default_factory=list)
    total_invited: int = 0
    present_count: int = 0


@dataclass(frozen=True)
class CheckInStatus:
    booking_id: int
    is_checked_in: bool
    checked_in_at: Optional[datetime]
    can_check_in: bool
    check_in_available_at: datetime


def _meeting_info(booking: Booking) -> MeetingInfo:
    return MeetingInfo(
        id=booking.id,
        title=booking.title,
        start_time=booking.start_time,
        end_time=booking.end_time,
        room_name=booking.room_name,
        room_capacity=booking.room_capacity or 0,
        organizer_checked_in_at=booking.checked_in_at,
    )


class AttendanceCodeService:
    def __init__(self, store: InvitationStore, audit: AuditLog, mailer, policy: Optional[AttendancePolicy] = None):
        self.store = store
        self.audit = audit
        self.mailer = mailer
        self.policy = policy or AttendancePolicy()

    # ------------------------------------------------------------------
    # Loading and gates
    # ------------------------------------------------------------------
    def _load(self, invitation_id: int, booking_id: Optional[int] = None) -> Tuple[Invitation, Booking]:
        invitation = self.store.get_invitation(invitation_id, booking_id=booking_id)
        if invitation is None:
            raise InvitationNotFound()
        booking = self.store.get_booking(invitation.booking_id)
        if booking is None:
            raise BookingNotFound()
        return invitation, booking

    def _load_booking(self, booking_id: int) -> Booking:
        booking = self.store.get_booking(booking_id)
        if booking is None:
            raise BookingNotFound()
        return booking

    @staticmethod
    def _require_confirmed(booking: Booking):
        if not booking.is_confirmed:
            raise BookingNotConfirmed()

    def _window_open(self, booking: Booking, now: datetime) -> bool:
        return is_attendance_window_open(booking.start_time, booking.end_time, now, self.policy.grace_minutes)

    def _show_qr(self, booking: Booking, now: datetime) -> bool:
        return should_show_qr(
            booking.start_time,
            booking.end_time,
            booking.checked_in_at,
            now,
            self.policy.grace_minutes,
        )

    # ------------------------------------------------------------------
    # Codes
    # ------------------------------------------------------------------
    def request_code(
        self,
        invitation_id: int,
        now: datetime,
        booking_id: Optional[int] = None,
        meta: Optional[RequestMeta] = None,
    ) -> CodeRequestResult:
        """Issue a new attendance code and e-mail it to the invitee"""
        invitation, booking = self._load(invitation_id, booking_id)
        self._require_confirmed(booking)

        if invitation.checked_in_at is not None:
            raise AlreadyCheckedIn()

        if not self._window_open(booking, now):
            raise WindowClosed()

        decision = can_request_code(
            invitation.code_last_sent_at,
            invitation.code_send_count,
            now,
            max_sends=self.policy.max_sends,
            cooldown_seconds=self.policy.send_cooldown_seconds,
        )
        if not decision.allowed:
            logger.info(f"Code request for invitation {invitation.id} denied: {decision.reason}")
            raise RateLimited(decision.reason)

        # The same plaintext is hashed and e-mailed; it is never stored or logged
        code = generate_attendance_code()
        salt = generate_salt()
        expires_at = code_expiry(booking.end_time, self.policy.grace_minutes)
        observed_count = invitation.code_send_count or 0

        issued = self.store.record_code_issued(
            invitation.id,
            expected_send_count=observed_count,
            code_hash=hash_code(code, salt),
            code_salt=salt,
            expires_at=expires_at,
            now=now,
        )
        if not issued:
            current = self.store.get_invitation(invitation.id)
            if current is not None and current.checked_in_at is not None:
                raise AlreadyCheckedIn()
            raise RateLimited("Another code request is already being processed. Please try again shortly")

        send_count = observed_count + 1
        logger.info(f"✅ Issued attendance code #{send_count} for invitation {invitation.id}")

        self.audit.record_for_request(
            AttendanceEventType.CODE_SENT,
            booking.id,
            invitation.id,
            CodeSentPayload(send_count=send_count, expires_at=expires_at, email=invitation.invitee_email),
            meta,
        )

        if not self._deliver(invitation, booking, code):
            raise DeliveryFailed(send_count=send_count)

        return CodeRequestResult(
            invitation_id=invitation.id,
            send_count=send_count,
            sent_at=now,
            expires_at=expires_at,
        )

    def _deliver(self, invitation: Invitation, booking: Booking, code: str) -> bool:
        try:
            return bool(self.mailer.send_code_email(
                invitation.invitee_email,
                invitation.invitee_name,
                booking.title,
                booking.room_name,
                booking.start_time,
                booking.end_time,
                code,
            ))
        except Exception:
            # Delivery is outside this service's guarantee; the issued code stands
            logger.exception(f"❌ Attendance code delivery failed for invitation {invitation.id}")
            return False

    def verify_code(
        self,
        invitation_id: int,
        submitted_code: str,
        now: datetime,
        booking_id: Optional[int] = None,
        meta: Optional[RequestMeta] = None,
    ) -> VerificationResult:
        """Check a submitted code and mark the invitee present on success"""
        invitation, booking = self._load(invitation_id, booking_id)
        self._require_confirmed(booking)

        if invitation.checked_in_at is not None:
            raise AlreadyCheckedIn()

        # Malformed input must not consume the attempt budget
        if not is_valid_code_format(submitted_code):
            raise InvalidCodeFormat()

        if not invitation.code_hash or not invitation.code_salt:
            raise NoActiveCode()

        if is_code_expired(invitation.code_expires_at, now):
            raise CodeExpired()

        if not self._window_open(booking, now):
            raise WindowClosed()

        if booking.checked_in_at is None:
            raise OrganizerNotCheckedIn()

        decision = can_attempt_verification(
            invitation.verify_attempt_count,
            invitation.verify_last_attempt_at,
            now,
            max_attempts=self.policy.max_attempts,
            cooldown_minutes=self.policy.verify_cooldown_minutes,
        )
        if not decision.allowed:
            raise RateLimited(decision.reason)

        # The attempt is spent before the comparison, never after it
        attempts = self.store.reserve_attempt(
            invitation.id,
            now,
            max_attempts=self.policy.max_attempts,
            cooldown_minutes=self.policy.verify_cooldown_minutes,
        )
        if attempts is None:
            self._raise_attempt_refused(invitation.id, now)

        if not verify_code_hash(submitted_code, invitation.code_hash, invitation.code_salt):
            logger.info(f"❌ Attendance code mismatch for invitation {invitation.id} (attempt {attempts})")
            self.audit.record_for_request(
                AttendanceEventType.CODE_FAILED,
                booking.id,
                invitation.id,
                CodeFailedPayload(reason="mismatch", attempts=attempts),
                meta,
            )
            raise CodeMismatch(self._mismatch_message(attempts))

        if not self.store.mark_present(invitation.id, invitation.code_hash, now):
            current = self.store.get_invitation(invitation.id)
            if current is not None and current.checked_in_at is not None:
                raise AlreadyCheckedIn()
            # A new code was issued while this one was being checked
            raise CodeMismatch("This attendance code was replaced by a newer one. Please use the latest code")

        logger.info(f"✅ Invitation {invitation.id} marked present for booking {booking.id}")
        self.audit.record_for_request(
            AttendanceEventType.CODE_VERIFIED,
            booking.id,
            invitation.id,
            CodeVerifiedPayload(checked_in_at=now),
            meta,
        )

        occupancy = compute_occupancy(self.store.list_invitations(booking.id), booking.room_capacity)
        return VerificationResult(invitation_id=invitation.id, checked_in_at=now, occupancy=occupancy)

    def _raise_attempt_refused(self, invitation_id: int, now: datetime):
        current = self.store.get_invitation(invitation_id)
        if current is not None and current.checked_in_at is not None:
            raise AlreadyCheckedIn()
        decision = can_attempt_verification(
            current.verify_attempt_count if current else self.policy.max_attempts,
            current.verify_last_attempt_at if current else now,
            now,
            max_attempts=self.policy.max_attempts,
            cooldown_minutes=self.policy.verify_cooldown_minutes,
        )
        raise RateLimited(decision.reason)

    def _mismatch_message(self, attempts: int) -> str:
        remaining = self.policy.max_attempts - attempts
        if remaining > 0:
            return f"Invalid attendance code. {remaining} attempt(s) remaining"
        return (
            "Invalid attendance code. Too many failed attempts. "
            f"Please try again in {self.policy.verify_cooldown_minutes} minutes"
        )

    # ------------------------------------------------------------------
    # Occupancy and QR access
    # ------------------------------------------------------------------
    def get_occupancy_context(self, booking_id: int, now: datetime) -> OccupancyContext:
        booking = self._load_booking(booking_id)
        self._require_confirmed(booking)

        occupancy = compute_occupancy(self.store.list_invitations(booking.id), booking.room_capacity)
        return OccupancyContext(
            meeting=_meeting_info(booking),
            occupancy=occupancy,
            show_qr=self._show_qr(booking, now),
        )

    def issue_qr_token(self, booking_id: int, now: datetime) -> QRCodeGrant:
        """Token for the read-only attendance view, only while the QR may be shown"""
        booking = self._load_booking(booking_id)
        self._require_confirmed(booking)

        if not self._show_qr(booking, now):
            raise QRUnavailable()

        ttl = self.policy.qr_token_ttl_minutes
        token = security.create_qr_token(booking.id, now, ttl_minutes=ttl)
        return QRCodeGrant(
            booking_id=booking.id,
            meeting_title=booking.title,
            token=token,
            qr_url=security.build_qr_url(booking.id, token),
            expires_at=now + timedelta(minutes=ttl),
        )

    def verify_qr_token(self, token: str, now: Optional[datetime] = None) -> Optional[dict]:
        return security.verify_qr_token(token, now)

    def list_attendees(self, booking_id: int, token: Optional[str], now: datetime) -> AttendeeList:
        """Who is present, reachable with a QR token. E-mail addresses are never exposed."""
        payload = security.verify_qr_token(token, now) if token else None
        if payload is None or payload.get("booking_id") != booking_id:
            raise InvalidQRToken()

        booking = self._load_booking(booking_id)
        self._require_confirmed(booking)
        if not self._show_qr(booking, now):
            raise QRUnavailable()

        attendees = [
            AttendeeEntry(
                invitation_id=invitation.id,
                display_name=invitation.display_name,
                attendance_status=invitation.attendance_status,
            )
            for invitation in self.store.list_invitations(booking.id)
        ]
        return AttendeeList(
            booking_id=booking.id,
            attendees=attendees,
            total_invited=len(attendees),
            present_count=sum(1 for a in attendees if a.attendance_status == PRESENT),
        )

    # ------------------------------------------------------------------
    # Organizer check-in
    # ------------------------------------------------------------------
    def check_in_organizer(
        self,
        booking_id: int,
        now: datetime,
        actor: Optional[str] = None,
        meta: Optional[RequestMeta] = None,
    ) -> datetime:
        booking = self._load_booking(booking_id)
        self._require_confirmed(booking)

        if booking.checked_in_at is not None:
            raise AlreadyCheckedIn("Organizer has already checked in to this meeting")

        if not can_organizer_check_in(
            booking.start_time,
            booking.end_time,
            now,
            self.policy.check_in_lead_minutes,
            self.policy.grace_minutes,
        ):
            if ensure_utc(now) < organizer_check_in_opens_at(booking.start_time, self.policy.check_in_lead_minutes):
                raise WindowClosed(
                    f"Check-in opens {self.policy.check_in_lead_minutes} minutes before the meeting starts"
                )
            raise WindowClosed("This meeting has already ended")

        if not self.store.mark_organizer_checked_in(booking.id, now):
            raise AlreadyCheckedIn("Organizer has already checked in to this meeting")

        logger.info(f"✅ Organizer checked in to booking {booking.id}")
        self.audit.record_for_request(
            AttendanceEventType.CHECK_IN,
            booking.id,
            None,
            CheckInPayload(checked_in_at=now, actor=actor),
            meta,
        )
        return now

    def get_check_in_status(self, booking_id: int, now: datetime) -> CheckInStatus:
        booking = self._load_booking(booking_id)
        available_at = organizer_check_in_opens_at(booking.start_time, self.policy.check_in_lead_minutes)
        can_check_in = (
            booking.is_confirmed
            and booking.checked_in_at is None
            and can_organizer_check_in(
                booking.start_time,
                booking.end_time,
                now,
                self.policy.check_in_lead_minutes,
                self.policy.grace_minutes,
            )
        )
        return CheckInStatus(
            booking_id=booking.id,
            is_checked_in=booking.checked_in_at is not None,
            checked_in_at=booking.checked_in_at,
            can_check_in=can_check_in,
            check_in_available_at=available_at,
        )
