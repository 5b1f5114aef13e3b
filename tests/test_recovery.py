"""
Tests for session recovery routing, resume and restart.
"""
from datetime import timedelta

import pytest

from crisp.core.errors import IllegalTransition, RestartNotAllowed, SessionNotFound
from crisp.interview.records import CandidateProfile, SessionStatus
from crisp.interview.recovery import RecoveryRoute, SessionRecoveryFlow
from crisp.interview.registry import SessionRegistry


@pytest.fixture
def registry(store, oracle, clock):
    return SessionRegistry(store, oracle, clock=clock)


@pytest.fixture
def recovery(store, registry, clock):
    return SessionRecoveryFlow(store, registry, stale_after=timedelta(hours=1), clock=clock)


def test_not_started_goes_to_start(recovery, session_record):
    decision = recovery.enter(session_record.id)
    assert decision.route == RecoveryRoute.START
    assert decision.can_restart is False


def test_in_progress_without_answers_goes_straight_in(recovery, registry, session_record):
    registry.get(session_record.id).begin_or_resume()

    decision = recovery.enter(session_record.id)

    assert decision.route == RecoveryRoute.INTERVIEW


def test_paused_before_first_answer_offers_restart(recovery, registry, session_record):
    controller = registry.get(session_record.id)
    controller.begin_or_resume()
    controller.on_activity_changed(False)

    decision = recovery.enter(session_record.id)

    assert decision.route == RecoveryRoute.WELCOME_BACK
    assert decision.can_restart is True
    assert decision.default_action == "resume"


def test_answered_question_disables_restart(recovery, registry, session_record):
    controller = registry.get(session_record.id)
    controller.begin_or_resume()
    controller.submit_answer("B")

    decision = recovery.enter(session_record.id)

    assert decision.route == RecoveryRoute.WELCOME_BACK
    assert decision.can_restart is False
    assert decision.session.current_question_index == 1
    with pytest.raises(RestartNotAllowed):
        recovery.restart(session_record.id)


def test_completed_goes_to_results(recovery, registry, session_record):
    controller = registry.get(session_record.id)
    controller.begin_or_resume()
    for _ in range(6):
        controller.submit_answer("B")

    decision = recovery.enter(session_record.id)

    assert decision.route == RecoveryRoute.RESULTS
    with pytest.raises(RestartNotAllowed):
        recovery.restart(session_record.id)


def test_stale_session_expires(recovery, registry, session_record, clock, store):
    registry.get(session_record.id).begin_or_resume()
    clock.advance(2 * 3600)

    decision = recovery.enter(session_record.id)

    assert decision.route == RecoveryRoute.EXPIRED
    assert store.get_session(session_record.id).status == SessionStatus.EXPIRED
    assert session_record.id not in registry

    # Entering again is stable
    assert recovery.enter(session_record.id).route == RecoveryRoute.EXPIRED
    result = registry.get(session_record.id).begin_or_resume()
    assert not result.ok
    assert result.error.code == "session_expired"


def test_recent_activity_is_not_stale(recovery, registry, session_record, clock):
    controller = registry.get(session_record.id)
    controller.begin_or_resume()
    clock.advance(50 * 60)
    controller.on_activity_changed(False)
    clock.advance(50 * 60)

    assert recovery.enter(session_record.id).route == RecoveryRoute.WELCOME_BACK


def test_resume_unpauses(recovery, registry, session_record, clock):
    controller = registry.get(session_record.id)
    controller.begin_or_resume()
    controller.on_activity_changed(False)
    registry.clear()

    result = recovery.resume(session_record.id)

    assert result.ok
    assert result.snapshot.status == SessionStatus.IN_PROGRESS
    assert result.snapshot.question_number == 1
    assert not result.snapshot.timer.is_paused


def test_resume_is_idempotent_for_running_session(recovery, registry, session_record):
    registry.get(session_record.id).begin_or_resume()

    first = recovery.resume(session_record.id).snapshot
    second = recovery.resume(session_record.id).snapshot

    assert first.to_dict() == second.to_dict()


def test_restart_abandons_old_session(recovery, registry, store, interview):
    original = store.create_session(
        interview,
        candidate=CandidateProfile(name="Grace Hopper", email="grace@example.com", phone="555-010-0199"),
        resume_data={"name": "Grace Hopper"},
    )
    registry.get(original.id).begin_or_resume()

    fresh = recovery.restart(original.id)

    assert fresh.id != original.id
    assert fresh.status == SessionStatus.NOT_STARTED
    assert fresh.candidate == original.candidate
    assert store.get_resume_data(fresh.id) == {"name": "Grace Hopper"}
    assert store.get_session(original.id).abandoned_at is not None
    assert original.id not in registry

    with pytest.raises(IllegalTransition):
        recovery.enter(original.id)
    with pytest.raises(RestartNotAllowed):
        recovery.restart(original.id)
    assert recovery.enter(fresh.id).route == RecoveryRoute.START


def test_unknown_session(recovery):
    with pytest.raises(SessionNotFound):
        recovery.enter("missing")


def test_registry_reuses_controllers(registry, session_record):
    first = registry.get(session_record.id)
    assert registry.get(session_record.id) is first
    assert len(registry) == 1

    registry.discard(session_record.id)
    assert registry.peek(session_record.id) is None
    assert registry.get(session_record.id) is not first
