"""
Database models module.

This module imports all database models to ensure they are registered with SQLAlchemy's Base.metadata
before table creation.
"""
from crisp.db.models.interview import Interview
from crisp.db.models.interview_session import InterviewSession
from crisp.db.models.interview_response import InterviewResponse
from crisp.db.models.generated_question import GeneratedQuestion

__all__ = [
    "Interview",
    "InterviewSession",
    "InterviewResponse",
    "GeneratedQuestion",
]
