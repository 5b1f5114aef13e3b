"""
Tests for the session store: typed records, idempotent shells and
write-once answers.
"""
import pytest

from crisp.core.errors import AnswerAlreadyRecorded, InvariantViolation, SessionNotFound
from crisp.interview.records import CandidateProfile, Grade, OracleQuestion, QuestionPrompt, SessionStatus


def make_question(session_id, question_number=1, difficulty="easy", limit=20):
    return OracleQuestion(
        question_id=f"{session_id}/{question_number}",
        question_number=question_number,
        difficulty=difficulty,
        time_limit_seconds=limit,
        prompt=QuestionPrompt(text="What does HTTP 404 mean?", options={"A": "a", "B": "b", "C": "c", "D": "d"}),
    )


CORRECT = Grade(is_correct=True, score=10, explanation="B it is", feedback="Nice", correct_answer="B")
WRONG = Grade(is_correct=False, score=0, explanation="B it is", feedback="Nope", correct_answer="B")


def test_create_and_get_session(store, interview):
    created = store.create_session(
        interview,
        candidate=CandidateProfile(name="Ada Lovelace", email="ada@example.com"),
        resume_data={"skills": ["python"]},
    )

    loaded = store.get_session(created.id)

    assert loaded.id == created.id
    assert loaded.status == SessionStatus.NOT_STARTED
    assert loaded.current_question_index == 0
    assert loaded.total_score == 0
    assert loaded.candidate.name == "Ada Lovelace"
    assert loaded.candidate.missing_fields() == ["phone"]
    assert loaded.created_at is not None
    assert loaded.created_at.tzinfo is not None
    assert store.get_resume_data(created.id) == {"skills": ["python"]}


def test_unknown_session_raises(store):
    with pytest.raises(SessionNotFound):
        store.get_session("does-not-exist")
    with pytest.raises(SessionNotFound):
        store.update_session("does-not-exist", tab_switch_count=1)


def test_update_session_accepts_status_enum(store, session_record):
    updated = store.update_session(session_record.id, status=SessionStatus.IN_PROGRESS, tab_switch_count=2)
    assert updated.status == SessionStatus.IN_PROGRESS
    assert updated.tab_switch_count == 2


def test_update_session_rejects_unknown_fields(store, session_record):
    with pytest.raises(ValueError):
        store.update_session(session_record.id, id="other")


def test_find_interview_by_code(store, interview):
    found = store.find_interview_by_code("CRISP-TEST-0001")
    assert found is not None
    assert found.id == interview
    assert store.find_interview_by_code("CRISP-NOPE-0000") is None


def test_create_response_is_idempotent(store, session_record):
    first = store.create_response(session_record.id, make_question(session_record.id))
    second = store.create_response(session_record.id, make_question(session_record.id))

    assert first.id == second.id
    assert len(store.list_responses(session_record.id)) == 1
    assert first.grade is None
    assert not first.is_answered


def test_checkpoint_updates_seconds_and_activity(store, session_record, clock):
    store.create_response(session_record.id, make_question(session_record.id))
    clock.advance(7)

    session = store.checkpoint_response(
        session_record.id, 1, 7, clock.now, status=SessionStatus.PAUSED, tab_switch_count=1
    )

    assert session.last_activity_at == clock.now
    assert session.status == SessionStatus.PAUSED
    assert store.get_response(session_record.id, 1).seconds_used == 7


def test_record_answer_advances_session(store, session_record, clock):
    sid = session_record.id
    store.create_response(sid, make_question(sid, 1))
    store.create_response(sid, make_question(sid, 2))

    response, session = store.record_answer(sid, 1, "B", 12, False, CORRECT, clock.now)
    assert response.selected_answer == "B"
    assert response.time_taken_seconds == 12
    assert response.grade.score == 10
    assert response.grade.correct_answer == "B"
    assert session.current_question_index == 1
    assert session.total_score == 10

    response, session = store.record_answer(sid, 2, "A", 20, True, WRONG, clock.now)
    assert response.auto_submitted is True
    assert session.current_question_index == 2
    assert session.total_score == 10


def test_answer_is_write_once(store, session_record, clock):
    sid = session_record.id
    store.create_response(sid, make_question(sid))
    store.record_answer(sid, 1, "B", 5, False, CORRECT, clock.now)

    with pytest.raises(AnswerAlreadyRecorded):
        store.record_answer(sid, 1, "C", 6, False, WRONG, clock.now)

    response = store.get_response(sid, 1)
    assert response.selected_answer == "B"
    assert response.time_taken_seconds == 5
    assert store.get_session(sid).total_score == 10


def test_answer_without_shell_is_a_violation(store, session_record, clock):
    with pytest.raises(InvariantViolation):
        store.record_answer(session_record.id, 3, "B", 5, False, CORRECT, clock.now)


def test_checkpoint_ignores_answered_response(store, session_record, clock):
    sid = session_record.id
    store.create_response(sid, make_question(sid))
    store.record_answer(sid, 1, "B", 5, False, CORRECT, clock.now)

    store.checkpoint_response(sid, 1, 19, clock.now)

    assert store.get_response(sid, 1).seconds_used == 5
