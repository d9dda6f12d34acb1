from datetime import datetime

from roomcheck.services.window import (
    can_organizer_check_in,
    code_expiry,
    is_attendance_window_open,
    is_code_expired,
    organizer_check_in_opens_at,
    should_show_qr,
)

from conftest import at


def test_window_closed_before_start():
    assert not is_attendance_window_open(at(10), at(11), at(9, 59))


def test_window_open_from_start_through_grace():
    assert is_attendance_window_open(at(10), at(11), at(10))
    assert is_attendance_window_open(at(10), at(11), at(11, 15))
    assert not is_attendance_window_open(at(10), at(11), at(11, 15, 1))


def test_window_accepts_naive_utc():
    naive_start = datetime(2026, 3, 2, 10)
    naive_end = datetime(2026, 3, 2, 11)
    assert is_attendance_window_open(naive_start, naive_end, at(10, 30))


def test_qr_hidden_until_organizer_checked_in():
    assert not should_show_qr(at(10), at(11), None, at(10, 30))
    assert should_show_qr(at(10), at(11), at(9, 55), at(10, 30))


def test_qr_hidden_outside_window():
    assert not should_show_qr(at(10), at(11), at(9, 55), at(11, 16))


def test_code_expires_with_grace():
    assert code_expiry(at(11)) == at(11, 15)
    assert code_expiry(at(11), grace_minutes=5) == at(11, 5)


def test_is_code_expired():
    assert not is_code_expired(at(11, 15), at(11, 15))
    assert is_code_expired(at(11, 15), at(11, 20))
    assert is_code_expired(None, at(10))


def test_organizer_check_in_window():
    assert organizer_check_in_opens_at(at(10)) == at(9, 45)
    assert not can_organizer_check_in(at(10), at(11), at(9, 44))
    assert can_organizer_check_in(at(10), at(11), at(9, 45))
    assert can_organizer_check_in(at(10), at(11), at(11, 15))
    assert not can_organizer_check_in(at(10), at(11), at(11, 16))
