"""
Interview response model - one question instance within a session.

Created as an unanswered shell when the question is served, written exactly
once when it is answered (or auto-submitted), never deleted.
"""
from sqlalchemy import Column, Integer, String, ForeignKey, Text, DateTime, JSON, Boolean, UniqueConstraint
from sqlalchemy.sql import func
from crisp.db.base import Base


class InterviewResponse(Base):
    __tablename__ = "interview_responses"

    id = Column(Integer, primary_key=True, index=True)
    session_id = Column(String(32), ForeignKey("interview_sessions.id"), nullable=False, index=True)
    question_number = Column(Integer, nullable=False)  # 1..6
    question_difficulty = Column(String, nullable=False)  # easy / medium / hard
    time_limit = Column(Integer, nullable=False)  # seconds

    # Prompt as served by the oracle (no answer key)
    question_ref = Column(String, nullable=False)  # oracle question id
    question_text = Column(Text, nullable=False)
    options = Column(JSON, nullable=False)  # {"A": "...", "B": "...", ...}

    # Timer checkpoint: seconds consumed up to session.last_activity_at
    seconds_used = Column(Integer, nullable=False, default=0)

    # Answer (immutable once candidate_answer is set)
    candidate_answer = Column(String(1), nullable=True)
    time_taken = Column(Integer, nullable=True)
    auto_submitted = Column(Boolean, nullable=False, default=False)
    answered_at = Column(DateTime(timezone=True), nullable=True)

    # Grade
    ai_score = Column(Integer, nullable=True)
    is_correct = Column(Boolean, nullable=True)
    ai_feedback = Column(Text, nullable=True)
    explanation = Column(Text, nullable=True)
    correct_answer = Column(String(1), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    __table_args__ = (
        UniqueConstraint('session_id', 'question_number', name='uq_response_session_question'),
    )

    def __repr__(self):
        return f"<InterviewResponse(session_id={self.session_id}, question_number={self.question_number})>"
