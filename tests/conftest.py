"""
Shared fixtures: in-memory database, fake clock and a scripted oracle.
"""
import pytest
from datetime import timedelta
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from crisp.core.clock import utcnow
from crisp.core.errors import MalformedOracleResponse, OracleUnavailable
from crisp.core.interview_rules import TOTAL_QUESTIONS, normalize_option, time_limit_for
from crisp.db import models  # noqa: F401  (registers tables on Base.metadata)
from crisp.db.base import Base
from crisp.db.models.interview import Interview
from crisp.interview.controller import SessionController
from crisp.interview.records import Grade, OracleQuestion, QuestionPrompt
from crisp.oracle.base import QuestionOracle
from crisp.services.session_store import SessionStore


class FakeClock:
    """Manually advanced clock."""

    def __init__(self):
        self.now = utcnow().replace(microsecond=0)

    def __call__(self):
        return self.now

    def advance(self, seconds: float):
        self.now = self.now + timedelta(seconds=seconds)


class ScriptedOracle(QuestionOracle):
    """
    In-memory oracle. The correct answer is "B" unless overridden per question.

    fail_get / fail_grade / malformed_get make the next N calls fail.
    """

    def __init__(self, correct_answers=None):
        self.correct_answers = correct_answers or {n: "B" for n in range(1, TOTAL_QUESTIONS + 1)}
        self.questions = {}
        self.get_calls = 0
        self.grade_calls = 0
        self.fail_get = 0
        self.fail_grade = 0
        self.malformed_get = 0
        self.fail_narrative = False
        self.narrated = None

    def get_question(self, session_id, question_number, difficulty):
        self.get_calls += 1
        if self.fail_get:
            self.fail_get -= 1
            raise OracleUnavailable("Oracle down", session_id, question_number)
        if self.malformed_get:
            self.malformed_get -= 1
            raise MalformedOracleResponse("Question text missing", session_id, question_number)
        key = (session_id, question_number)
        if key not in self.questions:
            self.questions[key] = OracleQuestion(
                question_id=f"{session_id}/{question_number}",
                question_number=question_number,
                difficulty=difficulty,
                time_limit_seconds=time_limit_for(difficulty),
                prompt=QuestionPrompt(
                    text=f"Question {question_number}?",
                    options={"A": "alpha", "B": "beta", "C": "gamma", "D": "delta"},
                ),
            )
        return self.questions[key]

    def grade_answer(self, question_id, selected_answer):
        self.grade_calls += 1
        if self.fail_grade:
            self.fail_grade -= 1
            raise OracleUnavailable("Grader down")
        question_number = int(question_id.rsplit("/", 1)[1])
        correct = self.correct_answers[question_number]
        is_correct = normalize_option(selected_answer) == correct
        return Grade(
            is_correct=is_correct,
            score=10 if is_correct else 0,
            explanation=f"{correct} is right",
            feedback="Well done" if is_correct else "Not quite",
            correct_answer=correct,
        )

    def narrate_summary(self, metrics, candidate_name, roles):
        if self.fail_narrative:
            raise OracleUnavailable("Narrative down")
        self.narrated = metrics
        return f"Summary for {candidate_name or 'candidate'}: {metrics['recommendation']}"


@pytest.fixture
def engine():
    """Fresh in-memory database per test."""
    test_engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=test_engine)
    yield test_engine
    Base.metadata.drop_all(bind=test_engine)
    test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def store(session_factory):
    return SessionStore(session_factory)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def oracle():
    return ScriptedOracle()


@pytest.fixture
def interview(session_factory):
    """An active interview; returns its id."""
    db = session_factory()
    try:
        row = Interview(
            title="Full Stack Screening",
            roles=["Full Stack Developer (React/Node.js)"],
            access_code="CRISP-TEST-0001",
            status="active",
        )
        db.add(row)
        db.commit()
        db.refresh(row)
        return row.id
    finally:
        db.close()


@pytest.fixture
def session_record(store, interview):
    return store.create_session(interview)


@pytest.fixture
def make_controller(store, oracle, clock):
    def _make(session_id):
        return SessionController(session_id, store, oracle, clock=clock)
    return _make


@pytest.fixture
def controller(make_controller, session_record):
    return make_controller(session_record.id)
