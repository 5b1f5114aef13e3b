"""
Question/answer oracle interface and the shared persistent implementation.

The oracle hands out multiple-choice questions and grades selected options.
get_question is idempotent per (session_id, question_number): the generated
question and its answer key are stored in generated_questions and returned
again on repeat calls.
"""
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from crisp.core.errors import MalformedOracleResponse, OracleUnavailable
from crisp.core.interview_rules import (
    ANSWER_OPTIONS,
    PER_QUESTION_MAX,
    normalize_option,
    time_limit_for,
)
from crisp.core.logging_config import session_context
from crisp.db.models.generated_question import GeneratedQuestion
from crisp.db.models.interview import Interview
from crisp.db.models.interview_session import InterviewSession
from crisp.interview.records import Grade, OracleQuestion, QuestionPrompt

logger = logging.getLogger(__name__)

DEFAULT_ROLES = "Full Stack Developer (React/Node.js)"


class QuestionOracle(ABC):
    """Abstract base class for question oracles."""

    @abstractmethod
    def get_question(self, session_id: str, question_number: int, difficulty: str) -> OracleQuestion:
        """
        Get the question for a session slot, creating it on first request.

        Raises:
            OracleUnavailable: Generation backend unreachable
            MalformedOracleResponse: Generated payload incomplete
        """
        pass

    @abstractmethod
    def grade_answer(self, question_id: str, selected_answer: str) -> Grade:
        """
        Grade a selected option for a previously served question.

        Raises:
            OracleUnavailable: Backend unreachable or question unknown
        """
        pass

    def narrate_summary(self, metrics: Dict[str, Any], candidate_name: Optional[str], roles: str) -> Optional[str]:
        """Narrative assessment for a completed session. None when not supported."""
        return None

    def roles_for_session(self, session_id: str) -> str:
        return DEFAULT_ROLES


def validate_question_payload(data: Dict[str, Any], context: str = "") -> Dict[str, Any]:
    """
    Check a generated question payload and normalize it.

    Accepts either {"options": {"A": ...}} or flat option_a..option_d keys.

    Raises:
        MalformedOracleResponse: Missing text, options or a usable answer key
    """
    if not isinstance(data, dict):
        raise MalformedOracleResponse(f"Question payload is not an object {context}".strip())

    question = data.get("question")
    question = question.strip() if isinstance(question, str) else ""

    options = data.get("options")
    if not isinstance(options, dict):
        options = {letter: data.get(f"option_{letter.lower()}") for letter in ANSWER_OPTIONS}
    options = {normalize_option(k): v.strip() for k, v in options.items() if isinstance(v, str) and v.strip()}

    correct = data.get("correct_answer")
    correct = normalize_option(correct) if isinstance(correct, str) else ""

    if not question:
        raise MalformedOracleResponse(f"Question text missing {context}".strip())
    if sorted(options) != sorted(ANSWER_OPTIONS):
        raise MalformedOracleResponse(f"Question must have options {ANSWER_OPTIONS} {context}".strip())
    if correct not in ANSWER_OPTIONS:
        raise MalformedOracleResponse(f"Invalid correct answer '{correct}' {context}".strip())

    return {
        "question": question,
        "options": {letter: options[letter] for letter in ANSWER_OPTIONS},
        "correct_answer": correct,
        "explanation": (data.get("explanation") or "").strip() or None,
    }


class StoredQuestionOracle(QuestionOracle):
    """
    Oracle that persists its answer key.

    Subclasses supply _compose_question (the raw payload for a new question)
    and may override _compose_feedback.
    """

    source = "stored"

    def __init__(self, session_factory):
        self._session_factory = session_factory

    # ============================================
    # Subclass hooks
    # ============================================

    @abstractmethod
    def _compose_question(self, session_id: str, question_number: int, difficulty: str, roles: str) -> Dict[str, Any]:
        pass

    def _compose_feedback(self, question: GeneratedQuestion, selected: str, is_correct: bool) -> Optional[str]:
        return None

    # ============================================
    # QuestionOracle
    # ============================================

    def roles_for_session(self, session_id: str) -> str:
        db = self._session_factory()
        try:
            interview = (
                db.query(Interview)
                .join(InterviewSession, InterviewSession.interview_id == Interview.id)
                .filter(InterviewSession.id == session_id)
                .first()
            )
            if interview and interview.roles:
                return ", ".join(interview.roles)
            return DEFAULT_ROLES
        except SQLAlchemyError as e:
            logger.warning(f"Could not load roles, using default: {e} ({session_context(session_id)})")
            return DEFAULT_ROLES
        finally:
            db.close()

    def get_question(self, session_id: str, question_number: int, difficulty: str) -> OracleQuestion:
        context = session_context(session_id, question_number)
        cached = self._find_cached(session_id, question_number)
        if cached is not None:
            logger.info(f"Returning cached question ({context})")
            return self._to_oracle_question(cached)

        roles = self.roles_for_session(session_id)
        raw = self._compose_question(session_id, question_number, difficulty, roles)
        payload = validate_question_payload(raw, context=f"({context})")

        db = self._session_factory()
        try:
            row = GeneratedQuestion(
                session_id=session_id,
                question_number=question_number,
                difficulty=difficulty,
                time_limit=time_limit_for(difficulty),
                question_text=payload["question"],
                options=payload["options"],
                correct_answer=payload["correct_answer"],
                explanation=payload["explanation"],
                source=self.source,
            )
            db.add(row)
            db.commit()
            db.refresh(row)
            logger.info(f"Question generated from {self.source} ({context}, difficulty={difficulty})")
            return self._to_oracle_question(row)
        except IntegrityError:
            # A concurrent request created this slot first
            db.rollback()
            existing = self._find_cached(session_id, question_number)
            if existing is None:
                raise OracleUnavailable("Question slot conflict", session_id, question_number)
            return self._to_oracle_question(existing)
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Failed to save generated question: {e} ({context})", exc_info=True)
            raise OracleUnavailable("Failed to save generated question", session_id, question_number)
        finally:
            db.close()

    def grade_answer(self, question_id: str, selected_answer: str) -> Grade:
        question = self._load(question_id)
        selected = normalize_option(selected_answer)
        is_correct = selected == question.correct_answer
        feedback = self._compose_feedback(question, selected, is_correct)
        logger.info(
            f"Answer graded: question_id={question_id}, "
            f"{session_context(question.session_id, question.question_number)}, correct={is_correct}"
        )
        return Grade(
            is_correct=is_correct,
            score=PER_QUESTION_MAX if is_correct else 0,
            explanation=question.explanation,
            feedback=feedback or question.explanation,
            correct_answer=question.correct_answer,
        )

    # ============================================
    # Helpers
    # ============================================

    def _find_cached(self, session_id: str, question_number: int) -> Optional[GeneratedQuestion]:
        db = self._session_factory()
        try:
            return db.query(GeneratedQuestion).filter(
                GeneratedQuestion.session_id == session_id,
                GeneratedQuestion.question_number == question_number,
            ).first()
        except SQLAlchemyError as e:
            raise OracleUnavailable(f"Question lookup failed: {e}", session_id, question_number)
        finally:
            db.close()

    def _load(self, question_id: str) -> GeneratedQuestion:
        db = self._session_factory()
        try:
            question = db.query(GeneratedQuestion).filter(GeneratedQuestion.id == int(question_id)).first()
        except (SQLAlchemyError, ValueError) as e:
            raise OracleUnavailable(f"Question lookup failed for id {question_id}: {e}")
        finally:
            db.close()
        if question is None:
            raise OracleUnavailable(f"Question not found: {question_id}")
        return question

    @staticmethod
    def _to_oracle_question(row: GeneratedQuestion) -> OracleQuestion:
        return OracleQuestion(
            question_id=str(row.id),
            question_number=row.question_number,
            difficulty=row.difficulty,
            time_limit_seconds=row.time_limit,
            prompt=QuestionPrompt(text=row.question_text, options=dict(row.options)),
        )


def option_lines(options: Dict[str, str]) -> List[str]:
    return [f"{letter}: {options.get(letter, '')}" for letter in ANSWER_OPTIONS]
