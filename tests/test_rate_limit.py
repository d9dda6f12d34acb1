from datetime import timedelta

from roomcheck.services.rate_limit import can_attempt_verification, can_request_code

from conftest import at


def test_first_code_request_is_allowed():
    decision = can_request_code(None, 0, at(10, 5))
    assert decision.allowed
    assert decision.reason is None


def test_send_cap_mentions_limit():
    decision = can_request_code(None, 5, at(10, 5))
    assert not decision.allowed
    assert "5" in decision.reason
    assert decision.reason == "Maximum of 5 code requests reached"


def test_send_cap_applies_even_after_cooldown():
    decision = can_request_code(at(9), 5, at(10, 30))
    assert not decision.allowed
    assert "Maximum of 5" in decision.reason


def test_send_cooldown_reports_remaining_seconds():
    decision = can_request_code(at(10, 5), 1, at(10, 5, 20))
    assert not decision.allowed
    assert decision.reason == "Please wait 40 seconds before requesting another code"


def test_send_cooldown_rounds_remaining_up():
    last = at(10, 5)
    decision = can_request_code(last, 1, last + timedelta(seconds=59, milliseconds=500))
    assert decision.reason == "Please wait 1 seconds before requesting another code"


def test_send_allowed_once_cooldown_elapsed():
    assert can_request_code(at(10, 5), 1, at(10, 6)).allowed


def test_verification_allowed_below_limit():
    assert can_attempt_verification(4, at(10, 10), at(10, 10)).allowed


def test_verification_blocked_during_cooldown():
    decision = can_attempt_verification(5, at(10, 10), at(10, 12))
    assert not decision.allowed
    assert decision.reason == "Too many failed attempts. Please try again in 13 minutes"


def test_verification_allowed_after_cooldown_even_at_limit():
    assert can_attempt_verification(5, at(10, 10), at(10, 25)).allowed
    assert can_attempt_verification(7, at(10, 10), at(10, 26)).allowed


def test_custom_limits():
    decision = can_attempt_verification(3, at(10), at(10, 1), max_attempts=3, cooldown_minutes=5)
    assert not decision.allowed
    assert "4 minutes" in decision.reason
