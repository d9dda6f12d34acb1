from sqlalchemy import Column, Integer, String
from sqlalchemy.orm import relationship

from roomcheck.db.base import Base, BaseModel, UTCDateTime

BOOKING_CONFIRMED = "confirmed"


class Booking(Base, BaseModel):
    """
    Room booking as published by the booking workflow.
    Only the organizer check-in timestamp is written here.
    """
    __tablename__ = "bookings"

    title = Column(String, nullable=False)
    organizer_email = Column(String, nullable=True)

    # Room details (room management lives elsewhere)
    room_name = Column(String, nullable=False)
    room_capacity = Column(Integer, default=0, nullable=False)

    start_time = Column(UTCDateTime, nullable=False)
    end_time = Column(UTCDateTime, nullable=False)
    status = Column(String, default="pending", nullable=False)  # pending, confirmed, cancelled

    # Organizer check-in, gates QR visibility and invitee verification
    checked_in_at = Column(UTCDateTime, nullable=True)

    invitations = relationship("Invitation", back_populates="booking", cascade="all, delete-orphan")

    @property
    def is_confirmed(self) -> bool:
        return self.status == BOOKING_CONFIRMED

    def __repr__(self):
        return f"<Booking {self.id} {self.title} ({self.status})>"
