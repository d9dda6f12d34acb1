import os
from datetime import datetime, timezone

# Settings are read on first import of the application package
os.environ["SECRET_KEY"] = "test-secret-key-0123456789abcdef0123456789abcdef"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["LOG_FILE"] = ""
os.environ["SMTP_HOST"] = ""

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from roomcheck.core.config import get_settings
from roomcheck.db.base import Base
from roomcheck.models.booking import Booking
from roomcheck.models.invitation import INVITATION_ACCEPTED, Invitation
from roomcheck.services.attendance import AttendanceCodeService, AttendancePolicy
from roomcheck.services.audit import AuditLog
from roomcheck.services.store import InvitationStore

get_settings.cache_clear()


def at(hour: int, minute: int = 0, second: int = 0) -> datetime:
    """Timestamps on the day of the test meeting (10:00 - 11:00 UTC)"""
    return datetime(2026, 3, 2, hour, minute, second, tzinfo=timezone.utc)


class FakeMailer:
    def __init__(self, succeed: bool = True):
        self.succeed = succeed
        self.sent = []

    def send_code_email(self, to_address, to_name, meeting_title, room_name, start, end, code):
        self.sent.append({"to": to_address, "name": to_name, "title": meeting_title, "code": code})
        return self.succeed

    @property
    def last_code(self) -> str:
        return self.sent[-1]["code"]


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def make_booking(db):
    def _make_booking(**overrides):
        values = {
            "title": "Quarterly planning",
            "organizer_email": "organizer@example.com",
            "room_name": "Room 4.01",
            "room_capacity": 10,
            "start_time": at(10),
            "end_time": at(11),
            "status": "confirmed",
            "checked_in_at": at(9, 55),
        }
        values.update(overrides)
        booking = Booking(**values)
        db.add(booking)
        db.commit()
        return booking

    return _make_booking


@pytest.fixture
def make_invitation(db):
    def _make_invitation(booking, email="ana@example.com", name="Ana", **overrides):
        invitation = Invitation(
            booking_id=booking.id,
            invitee_email=email,
            invitee_name=name,
            status=overrides.pop("status", INVITATION_ACCEPTED),
            **overrides,
        )
        db.add(invitation)
        db.commit()
        return invitation

    return _make_invitation


@pytest.fixture
def booking(make_booking):
    return make_booking()


@pytest.fixture
def invitation(make_invitation, booking):
    return make_invitation(booking)


@pytest.fixture
def mailer():
    return FakeMailer()


@pytest.fixture
def audit(session_factory):
    return AuditLog(session_factory)


@pytest.fixture
def service(db, audit, mailer):
    return AttendanceCodeService(InvitationStore(db), audit, mailer, AttendancePolicy())
