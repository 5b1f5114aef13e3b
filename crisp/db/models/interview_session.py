"""
Interview session model - one candidate attempt of one interview.
"""
import uuid

from sqlalchemy import Column, Integer, String, ForeignKey, Text, DateTime, JSON, Index
from sqlalchemy.sql import func
from crisp.db.base import Base


def _new_session_id() -> str:
    return uuid.uuid4().hex


class InterviewSession(Base):
    __tablename__ = "interview_sessions"

    id = Column(String(32), primary_key=True, default=_new_session_id)
    interview_id = Column(Integer, ForeignKey("interviews.id"), nullable=False, index=True)

    status = Column(String, nullable=False, default="not_started")  # not_started / in_progress / paused / completed / expired
    current_question_index = Column(Integer, nullable=False, default=0)  # answered question count
    total_score = Column(Integer, nullable=False, default=0)
    tab_switch_count = Column(Integer, nullable=False, default=0)

    # Candidate profile (written by the resume field extractor upstream)
    candidate_name = Column(String, nullable=True)
    candidate_email = Column(String, nullable=True)
    candidate_phone = Column(String, nullable=True)
    resume_data = Column(JSON, nullable=True)

    # Results
    result_metrics = Column(JSON, nullable=True)
    ai_summary = Column(Text, nullable=True)

    # Audit timestamps
    started_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    last_activity_at = Column(DateTime(timezone=True), nullable=True)
    abandoned_at = Column(DateTime(timezone=True), nullable=True)  # set by restart, row is kept
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    __table_args__ = (
        Index('idx_session_interview_created', 'interview_id', 'created_at'),
    )

    def __repr__(self):
        return f"<InterviewSession(id={self.id}, status='{self.status}', index={self.current_question_index})>"
