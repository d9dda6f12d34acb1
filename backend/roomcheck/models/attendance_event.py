import enum
from datetime import datetime
from typing import Optional, Union

from pydantic import BaseModel as PydanticBase
from pydantic import ConfigDict
from sqlalchemy import JSON, Column, ForeignKey, Integer, String

from roomcheck.db.base import Base, BaseModel


class AttendanceEventType(str, enum.Enum):
    CODE_SENT = "code_sent"
    CODE_VERIFIED = "code_verified"
    CODE_FAILED = "code_failed"
    CHECK_IN = "check_in"


# Database Models
class AttendanceEvent(Base, BaseModel):
    """Append-only audit record, never updated or deleted"""
    __tablename__ = "meeting_attendance_events"

    event_type = Column(String(32), nullable=False, index=True)
    booking_id = Column(Integer, ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False, index=True)
    invitation_id = Column(Integer, ForeignKey("meeting_invitations.id", ondelete="SET NULL"), nullable=True)

    ip_address = Column(String(64), nullable=True)
    user_agent = Column(String(500), nullable=True)
    payload = Column(JSON, default=dict, nullable=False)

    def __repr__(self):
        return f"<AttendanceEvent {self.event_type} booking={self.booking_id} invitation={self.invitation_id}>"


# Event payloads. Unknown keys are kept as extension fields.
class EventPayload(PydanticBase):
    model_config = ConfigDict(extra="allow")


class CodeSentPayload(EventPayload):
    send_count: int
    expires_at: datetime


class CodeVerifiedPayload(EventPayload):
    checked_in_at: datetime


class CodeFailedPayload(EventPayload):
    reason: str
    attempts: int


class CheckInPayload(EventPayload):
    checked_in_at: datetime
    actor: Optional[str] = None


AttendanceEventPayload = Union[CodeSentPayload, CodeVerifiedPayload, CodeFailedPayload, CheckInPayload, EventPayload]

PAYLOAD_TYPES = {
    AttendanceEventType.CODE_SENT: CodeSentPayload,
    AttendanceEventType.CODE_VERIFIED: CodeVerifiedPayload,
    AttendanceEventType.CODE_FAILED: CodeFailedPayload,
    AttendanceEventType.CHECK_IN: CheckInPayload,
}
