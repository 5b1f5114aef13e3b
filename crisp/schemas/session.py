"""
Pydantic schemas for candidate access and interview session endpoints.
"""
from typing import Any, Dict, List, Optional
from datetime import datetime
from pydantic import BaseModel, Field

from crisp.interview.records import SessionRecord, SessionStatus, TransitionResult
from crisp.interview.recovery import RecoveryDecision, RecoveryRoute


# ============================================
# Requests
# ============================================

class AccessCodeRequest(BaseModel):
    """Schema for POST /candidate/access."""
    access_code: str = Field(..., min_length=1, description="Interview access code (CRISP-XXXX-XXXX)")
    session_id: Optional[str] = Field(None, description="Session remembered by the browser, if any")

    class Config:
        json_schema_extra = {
            "example": {
                "access_code": "CRISP-AB12-CD34",
                "session_id": None
            }
        }


class CandidateProfileRequest(BaseModel):
    """Candidate details extracted from the resume (or typed in by the candidate)."""
    name: Optional[str] = Field(None, max_length=200, description="Full name")
    email: Optional[str] = Field(None, pattern=r"^[^\s@]+@[^\s@]+\.[^\s@]+$", description="Email address")
    phone: Optional[str] = Field(None, pattern=r"^[\d\s\+\-\(\)]{10,20}$", description="Phone number")
    resume_data: Optional[Dict[str, Any]] = Field(None, description="Raw field-extractor output")


class SelectOptionRequest(BaseModel):
    option: str = Field(..., min_length=1, max_length=1, description="Option letter A-D")


class SubmitAnswerRequest(BaseModel):
    """Schema for POST /sessions/{id}/submit."""
    question_number: int = Field(..., ge=1, le=6, description="Question the answer belongs to")
    answer: Optional[str] = Field(None, min_length=1, max_length=1, description="Option letter; defaults to the selected one")


class ActivityRequest(BaseModel):
    is_foreground: bool = Field(..., description="False when the tab is hidden or the window lost focus")


# ============================================
# Responses
# ============================================

class SessionInfo(BaseModel):
    id: str
    interview_id: int
    status: SessionStatus
    current_question_index: int = Field(..., description="Questions answered so far")
    total_score: int
    tab_switch_count: int
    candidate_name: Optional[str] = None
    candidate_email: Optional[str] = None
    candidate_phone: Optional[str] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    last_activity_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_record(cls, record: SessionRecord) -> "SessionInfo":
        return cls(
            id=record.id,
            interview_id=record.interview_id,
            status=record.status,
            current_question_index=record.current_question_index,
            total_score=record.total_score,
            tab_switch_count=record.tab_switch_count,
            candidate_name=record.candidate.name,
            candidate_email=record.candidate.email,
            candidate_phone=record.candidate.phone,
            started_at=record.started_at,
            completed_at=record.completed_at,
            last_activity_at=record.last_activity_at,
            created_at=record.created_at,
        )


class InterviewInfo(BaseModel):
    id: int
    title: str
    roles: List[str] = Field(default_factory=list)
    status: str

    class Config:
        from_attributes = True


class RecoveryResponse(BaseModel):
    """Where a returning candidate should land."""
    route: RecoveryRoute = Field(..., description="results, welcome_back, start, interview or expired")
    can_restart: bool = Field(False, description="Restart is offered only when nothing was answered")
    default_action: Optional[str] = None
    message: Optional[str] = None
    session: SessionInfo

    @classmethod
    def from_decision(cls, decision: RecoveryDecision) -> "RecoveryResponse":
        return cls(
            route=decision.route,
            can_restart=decision.can_restart,
            default_action=decision.default_action,
            message=decision.message,
            session=SessionInfo.from_record(decision.session),
        )


class AccessResponse(BaseModel):
    interview: InterviewInfo
    recovery: RecoveryResponse


class CandidateProfileResponse(BaseModel):
    session: SessionInfo
    missing_fields: List[str] = Field(..., description="Profile fields still required before starting")


class TimerOut(BaseModel):
    remaining: int
    total: int
    is_paused: bool
    question_number: Optional[int] = None

    class Config:
        from_attributes = True


class QuestionResultOut(BaseModel):
    question_number: int
    selected_answer: str
    is_correct: bool
    score: int
    time_taken_seconds: int
    auto_submitted: bool
    correct_answer: Optional[str] = None
    explanation: Optional[str] = None
    feedback: Optional[str] = None

    class Config:
        from_attributes = True


class ErrorOut(BaseModel):
    code: str
    message: str
    retryable: bool

    class Config:
        from_attributes = True


class SnapshotOut(BaseModel):
    """State snapshot rendered by the candidate UI after every transition."""
    session_id: str
    status: Optional[SessionStatus] = Field(None, description="Null until the session could be loaded")
    question_number: Optional[int] = None
    total_questions: int
    answered_count: int
    total_score: int
    timer: TimerOut
    question: Optional[Dict[str, Any]] = Field(None, description="Active question text and options (no answer key)")
    selected_option: Optional[str] = None
    submission_locked: bool = False
    switch_count: int = 0
    last_result: Optional[QuestionResultOut] = None
    error: Optional[ErrorOut] = None
    summary: Optional[Dict[str, Any]] = None

    class Config:
        from_attributes = True


class TransitionResponse(BaseModel):
    ok: bool
    events: List[str] = Field(default_factory=list)
    error: Optional[ErrorOut] = None
    state: SnapshotOut

    @classmethod
    def from_result(cls, result: TransitionResult) -> "TransitionResponse":
        return cls(
            ok=result.ok,
            events=list(result.events),
            error=ErrorOut.model_validate(result.error) if result.error else None,
            state=SnapshotOut.model_validate(result.snapshot),
        )


class RestartResponse(BaseModel):
    abandoned_session_id: str
    recovery: RecoveryResponse


class QuestionBreakdown(BaseModel):
    question_number: int
    difficulty: str
    question_text: str
    options: Dict[str, str]
    candidate_answer: Optional[str] = None
    correct_answer: Optional[str] = None
    is_correct: Optional[bool] = None
    score: Optional[int] = None
    time_taken: Optional[int] = None
    time_limit: int
    auto_submitted: bool = False
    feedback: Optional[str] = None


class ResultsResponse(BaseModel):
    """Schema for GET /sessions/{id}/results."""
    session_id: str
    candidate_name: Optional[str] = None
    completed_at: Optional[datetime] = None
    metrics: Dict[str, Any] = Field(..., description="Score summary with per-difficulty breakdown and recommendation")
    summary: Optional[str] = Field(None, description="Narrative assessment, when available")
    questions: List[QuestionBreakdown]
