"""
Durable store for interview sessions and their responses.

All reads return typed records (SessionRecord / ResponseRecord), never live
ORM rows. Every call opens its own short-lived DB session so the store can be
shared by controllers running on different request threads.
"""
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from crisp.core.clock import ensure_utc
from crisp.core.errors import (
    AnswerAlreadyRecorded,
    InvariantViolation,
    SessionNotFound,
    StoreUnavailable,
)
from crisp.core.logging_config import session_context
from crisp.db.models.interview import Interview
from crisp.db.models.interview_response import InterviewResponse
from crisp.db.models.interview_session import InterviewSession
from crisp.interview.records import (
    CandidateProfile,
    Grade,
    OracleQuestion,
    QuestionPrompt,
    ResponseRecord,
    SessionRecord,
    SessionStatus,
)

logger = logging.getLogger(__name__)

SESSION_FIELDS = {
    "status",
    "current_question_index",
    "total_score",
    "tab_switch_count",
    "candidate_name",
    "candidate_email",
    "candidate_phone",
    "resume_data",
    "result_metrics",
    "ai_summary",
    "started_at",
    "completed_at",
    "last_activity_at",
    "abandoned_at",
}


def _clean_session_fields(fields: Dict[str, Any]) -> Dict[str, Any]:
    unknown = set(fields) - SESSION_FIELDS
    if unknown:
        raise ValueError(f"Unknown session fields: {sorted(unknown)}")
    cleaned = dict(fields)
    if isinstance(cleaned.get("status"), SessionStatus):
        cleaned["status"] = cleaned["status"].value
    return cleaned


def to_session_record(row: InterviewSession) -> SessionRecord:
    return SessionRecord(
        id=row.id,
        interview_id=row.interview_id,
        status=SessionStatus(row.status),
        current_question_index=row.current_question_index or 0,
        total_score=row.total_score or 0,
        candidate=CandidateProfile(
            name=row.candidate_name,
            email=row.candidate_email,
            phone=row.candidate_phone,
        ),
        tab_switch_count=row.tab_switch_count or 0,
        started_at=ensure_utc(row.started_at),
        completed_at=ensure_utc(row.completed_at),
        last_activity_at=ensure_utc(row.last_activity_at),
        abandoned_at=ensure_utc(row.abandoned_at),
        created_at=ensure_utc(row.created_at),
        result_metrics=row.result_metrics,
        ai_summary=row.ai_summary,
    )


def to_response_record(row: InterviewResponse) -> ResponseRecord:
    grade = None
    if row.candidate_answer is not None and row.ai_score is not None:
        grade = Grade(
            is_correct=bool(row.is_correct),
            score=row.ai_score,
            explanation=row.explanation,
            feedback=row.ai_feedback,
            correct_answer=row.correct_answer,
        )
    return ResponseRecord(
        id=row.id,
        session_id=row.session_id,
        question_number=row.question_number,
        difficulty=row.question_difficulty,
        time_limit_seconds=row.time_limit,
        question_ref=row.question_ref,
        prompt=QuestionPrompt(text=row.question_text, options=dict(row.options or {})),
        seconds_used=row.seconds_used or 0,
        selected_answer=row.candidate_answer,
        time_taken_seconds=row.time_taken,
        auto_submitted=bool(row.auto_submitted),
        grade=grade,
        answered_at=ensure_utc(row.answered_at),
    )


class SessionStore:
    """CRUD over interview_sessions and interview_responses."""

    def __init__(self, session_factory):
        self._session_factory = session_factory

    # ============================================
    # Interviews
    # ============================================

    def find_interview_by_code(self, access_code: str) -> Optional[Interview]:
        db = self._session_factory()
        try:
            interview = db.query(Interview).filter(
                Interview.access_code == access_code,
                Interview.status == "active",
            ).first()
            if interview is not None:
                db.expunge(interview)
            return interview
        except SQLAlchemyError as e:
            raise StoreUnavailable(f"Interview lookup failed: {e}")
        finally:
            db.close()

    # ============================================
    # Sessions
    # ============================================

    def create_session(
        self,
        interview_id: int,
        candidate: Optional[CandidateProfile] = None,
        resume_data: Optional[Dict[str, Any]] = None,
    ) -> SessionRecord:
        candidate = candidate or CandidateProfile()
        db = self._session_factory()
        try:
            row = InterviewSession(
                interview_id=interview_id,
                status=SessionStatus.NOT_STARTED.value,
                current_question_index=0,
                total_score=0,
                tab_switch_count=0,
                candidate_name=candidate.name,
                candidate_email=candidate.email,
                candidate_phone=candidate.phone,
                resume_data=resume_data,
            )
            db.add(row)
            db.commit()
            db.refresh(row)
            logger.info(f"Session created for interview {interview_id} ({session_context(row.id)})")
            return to_session_record(row)
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Failed to create session for interview {interview_id}: {e}", exc_info=True)
            raise StoreUnavailable("Failed to create session")
        finally:
            db.close()

    def get_session(self, session_id: str) -> SessionRecord:
        """
        Raises:
            SessionNotFound: No session with this id
            StoreUnavailable: Database error
        """
        db = self._session_factory()
        try:
            row = db.query(InterviewSession).filter(InterviewSession.id == session_id).first()
        except SQLAlchemyError as e:
            raise StoreUnavailable(f"Session lookup failed: {e}", session_id)
        finally:
            db.close()
        if row is None:
            raise SessionNotFound(f"Session not found: {session_id}", session_id)
        return to_session_record(row)

    def get_resume_data(self, session_id: str) -> Optional[Dict[str, Any]]:
        db = self._session_factory()
        try:
            row = db.query(InterviewSession.resume_data).filter(InterviewSession.id == session_id).first()
        except SQLAlchemyError as e:
            raise StoreUnavailable(f"Session lookup failed: {e}", session_id)
        finally:
            db.close()
        if row is None:
            raise SessionNotFound(f"Session not found: {session_id}", session_id)
        return row[0]

    def update_session(self, session_id: str, **fields) -> SessionRecord:
        """
        Partial update. updated_at is assigned by the database.

        Raises:
            ValueError: Unknown field name
            SessionNotFound: No session with this id
            StoreUnavailable: Database error
        """
        fields = _clean_session_fields(fields)
        db = self._session_factory()
        try:
            row = db.query(InterviewSession).filter(InterviewSession.id == session_id).first()
            if row is None:
                raise SessionNotFound(f"Session not found: {session_id}", session_id)
            for name, value in fields.items():
                setattr(row, name, value)
            db.commit()
            db.refresh(row)
            return to_session_record(row)
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Session update failed: {e} ({session_context(session_id)})", exc_info=True)
            raise StoreUnavailable("Failed to update session", session_id)
        finally:
            db.close()

    # ============================================
    # Responses
    # ============================================

    def get_response(self, session_id: str, question_number: int) -> Optional[ResponseRecord]:
        db = self._session_factory()
        try:
            row = db.query(InterviewResponse).filter(
                InterviewResponse.session_id == session_id,
                InterviewResponse.question_number == question_number,
            ).first()
            return to_response_record(row) if row else None
        except SQLAlchemyError as e:
            raise StoreUnavailable(f"Response lookup failed: {e}", session_id, question_number)
        finally:
            db.close()

    def list_responses(self, session_id: str) -> List[ResponseRecord]:
        db = self._session_factory()
        try:
            rows = db.query(InterviewResponse).filter(
                InterviewResponse.session_id == session_id,
            ).order_by(InterviewResponse.question_number.asc()).all()
            return [to_response_record(row) for row in rows]
        except SQLAlchemyError as e:
            raise StoreUnavailable(f"Response listing failed: {e}", session_id)
        finally:
            db.close()

    def create_response(self, session_id: str, question: OracleQuestion) -> ResponseRecord:
        """
        Insert the unanswered shell for a served question.

        Idempotent per (session_id, question_number): an existing row is
        returned unchanged.
        """
        context = session_context(session_id, question.question_number)
        existing = self.get_response(session_id, question.question_number)
        if existing is not None:
            return existing

        db = self._session_factory()
        try:
            row = InterviewResponse(
                session_id=session_id,
                question_number=question.question_number,
                question_difficulty=question.difficulty,
                time_limit=question.time_limit_seconds,
                question_ref=question.question_id,
                question_text=question.prompt.text,
                options=dict(question.prompt.options),
                seconds_used=0,
                auto_submitted=False,
            )
            db.add(row)
            db.commit()
            db.refresh(row)
            logger.info(f"Response shell stored ({context}, difficulty={question.difficulty})")
            return to_response_record(row)
        except IntegrityError:
            db.rollback()
            logger.info(f"Response shell already exists ({context})")
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Failed to store response shell: {e} ({context})", exc_info=True)
            raise StoreUnavailable("Failed to store question", session_id, question.question_number)
        finally:
            db.close()

        existing = self.get_response(session_id, question.question_number)
        if existing is None:
            raise StoreUnavailable("Response shell vanished after conflict", session_id, question.question_number)
        return existing

    def checkpoint_response(
        self,
        session_id: str,
        question_number: int,
        seconds_used: int,
        at: datetime,
        **session_fields,
    ) -> SessionRecord:
        """
        Persist timer progress for an unanswered question.

        seconds_used and last_activity_at always move together. Extra session
        fields (e.g. status on pause/resume) are written in the same transaction.
        """
        session_fields = _clean_session_fields(session_fields)
        db = self._session_factory()
        try:
            db.query(InterviewResponse).filter(
                InterviewResponse.session_id == session_id,
                InterviewResponse.question_number == question_number,
                InterviewResponse.candidate_answer.is_(None),
            ).update({"seconds_used": seconds_used}, synchronize_session=False)
            session_row = db.query(InterviewSession).filter(InterviewSession.id == session_id).first()
            if session_row is None:
                raise SessionNotFound(f"Session not found: {session_id}", session_id)
            session_row.last_activity_at = at
            for name, value in session_fields.items():
                setattr(session_row, name, value)
            db.commit()
            db.refresh(session_row)
            return to_session_record(session_row)
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Checkpoint failed: {e} ({session_context(session_id, question_number)})")
            raise StoreUnavailable("Failed to save timer checkpoint", session_id, question_number)
        finally:
            db.close()

    def record_answer(
        self,
        session_id: str,
        question_number: int,
        answer: str,
        time_taken: int,
        auto_submitted: bool,
        grade: Grade,
        answered_at: datetime,
    ) -> Tuple[ResponseRecord, SessionRecord]:
        """
        Write the answer for a question exactly once and advance the session.

        The response update is conditional on candidate_answer IS NULL, and the
        session's index and total score are recomputed from the answered rows
        in the same transaction.

        Raises:
            AnswerAlreadyRecorded: The response already holds an answer
            InvariantViolation: No response shell exists for the question
            StoreUnavailable: Database error
        """
        context = session_context(session_id, question_number)
        db = self._session_factory()
        try:
            updated = db.query(InterviewResponse).filter(
                InterviewResponse.session_id == session_id,
                InterviewResponse.question_number == question_number,
                InterviewResponse.candidate_answer.is_(None),
            ).update({
                "candidate_answer": answer,
                "time_taken": time_taken,
                "seconds_used": time_taken,
                "auto_submitted": auto_submitted,
                "answered_at": answered_at,
                "ai_score": grade.score,
                "is_correct": grade.is_correct,
                "ai_feedback": grade.feedback,
                "explanation": grade.explanation,
                "correct_answer": grade.correct_answer,
            }, synchronize_session=False)

            if updated == 0:
                db.rollback()
                exists = db.query(InterviewResponse.id).filter(
                    InterviewResponse.session_id == session_id,
                    InterviewResponse.question_number == question_number,
                ).first()
                if exists:
                    raise AnswerAlreadyRecorded(
                        f"Question {question_number} already answered", session_id, question_number
                    )
                raise InvariantViolation(
                    f"No question {question_number} has been served", session_id, question_number
                )

            answered_count, total_score = db.query(
                func.count(InterviewResponse.id),
                func.coalesce(func.sum(InterviewResponse.ai_score), 0),
            ).filter(
                InterviewResponse.session_id == session_id,
                InterviewResponse.candidate_answer.isnot(None),
            ).one()

            session_row = db.query(InterviewSession).filter(InterviewSession.id == session_id).first()
            if session_row is None:
                raise SessionNotFound(f"Session not found: {session_id}", session_id)
            if answered_count < session_row.current_question_index:
                raise InvariantViolation(
                    f"Answered count {answered_count} below index {session_row.current_question_index}",
                    session_id,
                    question_number,
                )
            session_row.current_question_index = answered_count
            session_row.total_score = int(total_score)
            session_row.last_activity_at = answered_at
            db.commit()

            response_row = db.query(InterviewResponse).filter(
                InterviewResponse.session_id == session_id,
                InterviewResponse.question_number == question_number,
            ).first()
            db.refresh(session_row)
            logger.info(
                f"Answer recorded ({context}, answer={answer}, score={grade.score}, "
                f"auto_submitted={auto_submitted}, index={answered_count})"
            )
            return to_response_record(response_row), to_session_record(session_row)
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Failed to record answer: {e} ({context})", exc_info=True)
            raise StoreUnavailable("Failed to save answer", session_id, question_number)
        finally:
            db.close()
