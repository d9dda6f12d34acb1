from sqlalchemy import Column, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import relationship

from roomcheck.db.base import Base, BaseModel, UTCDateTime
from roomcheck.utils.clock import utcnow

INVITATION_PENDING = "pending"
INVITATION_ACCEPTED = "accepted"
INVITATION_DECLINED = "declined"

NOT_PRESENT = "not_present"
PRESENT = "present"


class Invitation(Base, BaseModel):
    __tablename__ = "meeting_invitations"
    __table_args__ = (
        UniqueConstraint("booking_id", "invitee_email", name="uq_invitation_booking_email"),
    )

    booking_id = Column(Integer, ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False, index=True)

    # Invitee
    invitee_email = Column(String, nullable=False)
    invitee_name = Column(String, nullable=True)

    # Lifecycle
    status = Column(String, default=INVITATION_PENDING, nullable=False)  # pending, accepted, declined
    attendance_status = Column(String, default=NOT_PRESENT, nullable=False)  # not_present, present

    # Attendance code (hash and salt are set or cleared together)
    code_hash = Column(String(64), nullable=True)
    code_salt = Column(String(32), nullable=True)
    code_expires_at = Column(UTCDateTime, nullable=True)
    code_send_count = Column(Integer, default=0, nullable=False)
    code_last_sent_at = Column(UTCDateTime, nullable=True)

    # Verification
    verify_attempt_count = Column(Integer, default=0, nullable=False)
    verify_last_attempt_at = Column(UTCDateTime, nullable=True)
    checked_in_at = Column(UTCDateTime, nullable=True)  # set once, never cleared

    updated_at = Column(UTCDateTime, default=utcnow, onupdate=utcnow, nullable=False)

    booking = relationship("Booking", back_populates="invitations")

    @property
    def display_name(self) -> str:
        return self.invitee_name or self.invitee_email.split("@")[0]

    def __repr__(self):
        return f"<Invitation {self.id} {self.invitee_email} booking={self.booking_id} ({self.attendance_status})>"
