from datetime import timedelta
from urllib.parse import parse_qs, urlparse

import pytest
from fastapi.testclient import TestClient

from roomcheck.api.deps import get_audit_log, get_mailer
from roomcheck.db.session import get_db
from roomcheck.main import app
from roomcheck.services.audit import AuditLog
from roomcheck.utils.clock import utcnow


@pytest.fixture
def client(session_factory, mailer):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_audit_log] = lambda: AuditLog(session_factory)
    app.dependency_overrides[get_mailer] = lambda: mailer
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def live_booking(make_booking):
    """A meeting that started ten minutes ago, organizer already in the room"""
    now = utcnow()
    return make_booking(
        start_time=now - timedelta(minutes=10),
        end_time=now + timedelta(minutes=50),
        checked_in_at=now - timedelta(minutes=12),
    )


@pytest.fixture
def live_invitation(make_invitation, live_booking):
    return make_invitation(live_booking)


def test_health(client):
    response = client.get("/api/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_root(client):
    data = client.get("/").json()
    assert data["status"] == "operational"
    assert "/api/meetings/{booking_id}/attendance/verify" in data["endpoints"].values()


def test_send_and_verify_code(client, live_booking, live_invitation, mailer):
    base = f"/api/meetings/{live_booking.id}/attendance"

    response = client.post(f"{base}/send-code", json={"invitation_id": live_invitation.id})
    assert response.status_code == 200
    assert response.json()["send_count"] == 1
    assert "code" not in response.json()

    response = client.post(f"{base}/verify", json={"invitation_id": live_invitation.id, "code": mailer.last_code})
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "success"
    assert body["occupancy"]["present"] == 1

    response = client.post(f"{base}/verify", json={"invitation_id": live_invitation.id, "code": mailer.last_code})
    assert response.status_code == 409
    assert response.json() == {
        "status": "error",
        "error": "ALREADY_CHECKED_IN",
        "message": "Attendance already marked as present",
    }


def test_send_code_cap(client, live_booking, make_invitation):
    invitation = make_invitation(live_booking, code_send_count=5)

    response = client.post(
        f"/api/meetings/{live_booking.id}/attendance/send-code",
        json={"invitation_id": invitation.id},
    )
    assert response.status_code == 429
    assert response.json()["error"] == "RATE_LIMITED"
    assert "Maximum of 5" in response.json()["message"]


def test_send_code_for_other_meeting(client, live_invitation, make_booking):
    other = make_booking(title="Other meeting")
    response = client.post(
        f"/api/meetings/{other.id}/attendance/send-code",
        json={"invitation_id": live_invitation.id},
    )
    assert response.status_code == 404
    assert response.json()["message"] == "Invitation not found"


def test_send_code_delivery_failure(client, live_booking, live_invitation, mailer):
    mailer.succeed = False

    response = client.post(
        f"/api/meetings/{live_booking.id}/attendance/send-code",
        json={"invitation_id": live_invitation.id},
    )
    assert response.status_code == 502
    assert response.json()["error"] == "DELIVERY_FAILED"
    assert response.json()["send_count"] == 1


def test_verify_invalid_format(client, live_booking, live_invitation):
    client.post(f"/api/meetings/{live_booking.id}/attendance/send-code", json={"invitation_id": live_invitation.id})

    response = client.post(
        f"/api/meetings/{live_booking.id}/attendance/verify",
        json={"invitation_id": live_invitation.id, "code": "12a4"},
    )
    assert response.status_code == 400
    assert response.json()["error"] == "INVALID_CODE_FORMAT"


def test_context(client, live_booking, live_invitation):
    response = client.get(f"/api/meetings/{live_booking.id}/attendance/context")
    assert response.status_code == 200
    body = response.json()
    assert body["show_qr"] is True
    assert body["meeting"]["room_name"] == "Room 4.01"
    assert body["occupancy"] == {"present": 0, "accepted": 1, "capacity": 10, "percentage": 0, "status": "low"}


def test_qr_and_attendee_view(client, live_booking, live_invitation):
    response = client.get(f"/api/meetings/{live_booking.id}/qr")
    assert response.status_code == 200
    body = response.json()
    assert body["qr_code_data"].startswith("data:image/png;base64,")

    token = parse_qs(urlparse(body["qr_url"]).query)["t"][0]
    response = client.get(f"/api/meetings/{live_booking.id}/attendance/attendees", params={"t": token})
    assert response.status_code == 200
    attendees = response.json()
    assert attendees["total_invited"] == 1
    assert attendees["attendees"][0] == {
        "invitation_id": live_invitation.id,
        "display_name": "Ana",
        "attendance_status": "not_present",
    }
    assert "ana@example.com" not in response.text


def test_qr_image(client, live_booking):
    response = client.get(f"/api/meetings/{live_booking.id}/qr", params={"format": "image"})
    assert response.status_code == 200
    assert response.headers["content-type"] == "image/png"
    assert response.content.startswith(b"\x89PNG")


def test_qr_hidden_until_organizer_checks_in(client, make_booking):
    now = utcnow()
    booking = make_booking(start_time=now - timedelta(minutes=5), end_time=now + timedelta(minutes=30), checked_in_at=None)

    response = client.get(f"/api/meetings/{booking.id}/qr")
    assert response.status_code == 400
    assert response.json()["error"] == "QR_UNAVAILABLE"


def test_attendees_require_token(client, live_booking):
    response = client.get(f"/api/meetings/{live_booking.id}/attendance/attendees")
    assert response.status_code == 401
    assert response.json()["error"] == "INVALID_QR_TOKEN"


def test_organizer_check_in(client, make_booking):
    now = utcnow()
    booking = make_booking(start_time=now + timedelta(minutes=5), end_time=now + timedelta(minutes=65), checked_in_at=None)
    url = f"/api/meetings/{booking.id}/check-in"

    status = client.get(url).json()
    assert status["is_checked_in"] is False
    assert status["can_check_in"] is True

    response = client.post(url, json={"actor": "organizer@example.com"})
    assert response.status_code == 200
    assert response.json()["status"] == "success"

    assert client.get(url).json()["is_checked_in"] is True

    response = client.post(url)
    assert response.status_code == 409


def test_unknown_meeting(client):
    response = client.get("/api/meetings/9999/check-in")
    assert response.status_code == 404
    assert response.json()["message"] == "Meeting not found"
