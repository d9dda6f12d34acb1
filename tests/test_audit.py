from sqlalchemy import create_engine, select
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from roomcheck.models.attendance_event import (
    AttendanceEvent,
    AttendanceEventType,
    CodeFailedPayload,
    CodeSentPayload,
)
from roomcheck.services.audit import AuditLog
from roomcheck.utils.request import RequestMeta

from conftest import at


def test_record_persists_event(audit, db, invitation):
    event = audit.record(
        AttendanceEventType.CODE_SENT,
        invitation.booking_id,
        invitation.id,
        CodeSentPayload(send_count=1, expires_at=at(11, 15)),
        ip_address="203.0.113.9",
        user_agent="Mozilla/5.0",
    )
    assert event is not None

    stored = db.scalars(select(AttendanceEvent)).one()
    assert stored.event_type == "code_sent"
    assert stored.invitation_id == invitation.id
    assert stored.ip_address == "203.0.113.9"
    assert stored.payload["send_count"] == 1
    assert stored.payload["expires_at"].startswith("2026-03-02T11:15:00")


def test_payload_extra_keys_are_kept(audit, db, invitation):
    audit.record(
        "code_failed",
        invitation.booking_id,
        invitation.id,
        {"reason": "mismatch", "attempts": 2, "source": "kiosk"},
    )
    stored = db.scalars(select(AttendanceEvent)).one()
    assert stored.payload == {"reason": "mismatch", "attempts": 2, "source": "kiosk"}


def test_invalid_payload_is_dropped(audit, db, invitation):
    assert audit.record("code_failed", invitation.booking_id, invitation.id, {"reason": "mismatch"}) is None
    assert db.scalars(select(AttendanceEvent)).all() == []


def test_unknown_event_type_is_dropped(audit, db, invitation):
    assert audit.record("deleted", invitation.booking_id, invitation.id) is None
    assert db.scalars(select(AttendanceEvent)).all() == []


def test_record_for_request_sanitizes_user_agent(audit, db, invitation):
    meta = RequestMeta(ip_address="198.51.100.4", user_agent="<script>x</script>Agent" + "a" * 600)
    audit.record_for_request(
        AttendanceEventType.CODE_FAILED,
        invitation.booking_id,
        invitation.id,
        CodeFailedPayload(reason="mismatch", attempts=1),
        meta,
    )
    stored = db.scalars(select(AttendanceEvent)).one()
    assert "<script>" not in stored.user_agent
    assert len(stored.user_agent) <= 500
    assert stored.ip_address == "198.51.100.4"


def test_storage_failure_is_swallowed(caplog):
    # No tables on this engine, so the insert fails
    broken = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    audit = AuditLog(sessionmaker(bind=broken))

    result = audit.record(AttendanceEventType.CODE_FAILED, 1, 1, CodeFailedPayload(reason="mismatch", attempts=1))

    assert result is None
    assert "Failed to record code_failed event" in caplog.text
    broken.dispose()
