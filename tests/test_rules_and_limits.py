"""
Tests for interview rules, access codes, log redaction and the access-code
rate limiter.
"""
import pytest

from crisp.core.errors import InvalidAccessCode
from crisp.core.interview_rules import difficulty_for, recommendation_for, time_limit_for
from crisp.core.logging_config import sanitize_log_data, session_context
from crisp.core.rate_limit import SlidingWindowLimiter
from crisp.interview.records import SessionStatus, validate_transition
from crisp.services.candidate_service import ACCESS_CODE_PATTERN, normalize_access_code
from scripts.create_interview import generate_access_code


@pytest.mark.parametrize("question_number,difficulty,limit", [
    (1, "easy", 20),
    (2, "easy", 20),
    (3, "medium", 60),
    (4, "medium", 60),
    (5, "hard", 120),
    (6, "hard", 120),
])
def test_difficulty_schedule(question_number, difficulty, limit):
    assert difficulty_for(question_number) == difficulty
    assert time_limit_for(difficulty) == limit


@pytest.mark.parametrize("question_number", [0, 7])
def test_question_number_out_of_range(question_number):
    with pytest.raises(ValueError):
        difficulty_for(question_number)


@pytest.mark.parametrize("percentage,label", [
    (100, "Highly Recommended"),
    (85, "Highly Recommended"),
    (84, "Recommended"),
    (70, "Recommended"),
    (55, "Recommended with Reservations"),
    (54, "Not Recommended"),
    (0, "Not Recommended"),
])
def test_recommendation_tiers(percentage, label):
    assert recommendation_for(percentage) == label


def test_status_graph_is_monotonic():
    assert validate_transition(SessionStatus.NOT_STARTED, SessionStatus.IN_PROGRESS)
    assert validate_transition(SessionStatus.IN_PROGRESS, SessionStatus.PAUSED)
    assert validate_transition(SessionStatus.PAUSED, SessionStatus.IN_PROGRESS)
    assert not validate_transition(SessionStatus.IN_PROGRESS, SessionStatus.NOT_STARTED)
    assert not validate_transition(SessionStatus.COMPLETED, SessionStatus.IN_PROGRESS)
    assert not validate_transition(SessionStatus.EXPIRED, SessionStatus.PAUSED)


def test_access_code_normalization():
    assert normalize_access_code("  crisp-ab12-cd34 ") == "CRISP-AB12-CD34"
    with pytest.raises(InvalidAccessCode):
        normalize_access_code("CRISP-AB12")
    with pytest.raises(InvalidAccessCode):
        normalize_access_code(None)


def test_generated_access_codes_are_valid():
    codes = {generate_access_code() for _ in range(20)}
    assert all(ACCESS_CODE_PATTERN.match(code) for code in codes)
    assert len(codes) > 1


def test_sanitize_log_data_redacts_contact_details():
    sanitized = sanitize_log_data({"candidate_name": "Ada", "candidate_email": "ada@example.com", "resume_data": {}})
    assert sanitized["candidate_name"] == "Ada"
    assert sanitized["candidate_email"] == "***REDACTED***"
    assert sanitized["resume_data"] == "***REDACTED***"


def test_session_context():
    assert session_context("abc") == "session_id=abc"
    assert session_context("abc", 3) == "session_id=abc, question_number=3"


def test_sliding_window_limiter():
    now = [0.0]
    limiter = SlidingWindowLimiter(2, 60, clock=lambda: now[0])

    assert limiter.allow("1.2.3.4")
    assert limiter.allow("1.2.3.4")
    assert not limiter.allow("1.2.3.4")
    assert limiter.allow("5.6.7.8")

    now[0] = 61.0
    assert limiter.allow("1.2.3.4")
