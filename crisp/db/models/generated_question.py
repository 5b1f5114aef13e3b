"""
Generated question model - the oracle's answer key.

Owned by the question oracle implementations. One row per
(session_id, question_number) so repeated requests return the same question.
"""
from sqlalchemy import Column, Integer, String, Text, DateTime, JSON, UniqueConstraint
from sqlalchemy.sql import func
from crisp.db.base import Base


class GeneratedQuestion(Base):
    __tablename__ = "generated_questions"

    id = Column(Integer, primary_key=True, index=True)
    session_id = Column(String(32), nullable=False, index=True)
    question_number = Column(Integer, nullable=False)
    difficulty = Column(String, nullable=False)
    time_limit = Column(Integer, nullable=False)
    question_text = Column(Text, nullable=False)
    options = Column(JSON, nullable=False)
    correct_answer = Column(String(1), nullable=False)
    explanation = Column(Text, nullable=True)
    source = Column(String, nullable=False)  # "question_bank" or "openai:<model>"
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        UniqueConstraint('session_id', 'question_number', name='uq_generated_session_question'),
    )
