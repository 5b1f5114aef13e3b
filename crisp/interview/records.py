"""
Typed records for the interview session lifecycle.

The controller and the store exchange these instead of ORM rows, so
"ungraded" and "graded" responses are distinguishable by type (grade is
either None or a Grade) rather than by nullable integers.
"""
from dataclasses import dataclass, field, asdict
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional


class SessionStatus(str, Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    PAUSED = "paused"
    COMPLETED = "completed"
    EXPIRED = "expired"


TERMINAL_STATUSES = {SessionStatus.COMPLETED, SessionStatus.EXPIRED}


def allowed_transitions() -> Dict[SessionStatus, List[SessionStatus]]:
    """Status graph. Monotonic except paused <-> in_progress."""
    return {
        SessionStatus.NOT_STARTED: [SessionStatus.IN_PROGRESS, SessionStatus.EXPIRED],
        SessionStatus.IN_PROGRESS: [SessionStatus.PAUSED, SessionStatus.COMPLETED, SessionStatus.EXPIRED],
        SessionStatus.PAUSED: [SessionStatus.IN_PROGRESS, SessionStatus.COMPLETED, SessionStatus.EXPIRED],
        SessionStatus.COMPLETED: [],
        SessionStatus.EXPIRED: [],
    }


def validate_transition(current: SessionStatus, target: SessionStatus) -> bool:
    return target in allowed_transitions()[current]


@dataclass(frozen=True)
class CandidateProfile:
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None

    def missing_fields(self) -> List[str]:
        return [name for name in ("name", "email", "phone") if not getattr(self, name)]


@dataclass(frozen=True)
class SessionRecord:
    id: str
    interview_id: int
    status: SessionStatus
    current_question_index: int
    total_score: int
    candidate: CandidateProfile
    tab_switch_count: int = 0
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    last_activity_at: Optional[datetime] = None
    abandoned_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    result_metrics: Optional[Dict[str, Any]] = None
    ai_summary: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


@dataclass(frozen=True)
class QuestionPrompt:
    """What the candidate sees: question text and lettered options."""
    text: str
    options: Dict[str, str]


@dataclass(frozen=True)
class Grade:
    is_correct: bool
    score: int
    explanation: Optional[str] = None
    feedback: Optional[str] = None
    correct_answer: Optional[str] = None


@dataclass(frozen=True)
class ResponseRecord:
    id: int
    session_id: str
    question_number: int
    difficulty: str
    time_limit_seconds: int
    question_ref: str
    prompt: QuestionPrompt
    seconds_used: int = 0
    selected_answer: Optional[str] = None
    time_taken_seconds: Optional[int] = None
    auto_submitted: bool = False
    grade: Optional[Grade] = None
    answered_at: Optional[datetime] = None

    @property
    def is_answered(self) -> bool:
        return self.selected_answer is not None

    @property
    def score(self) -> Optional[int]:
        return self.grade.score if self.grade else None


@dataclass(frozen=True)
class OracleQuestion:
    """A question as handed out by the oracle."""
    question_id: str
    question_number: int
    difficulty: str
    time_limit_seconds: int
    prompt: QuestionPrompt


@dataclass(frozen=True)
class TimerState:
    remaining: int
    total: int
    is_paused: bool
    question_number: Optional[int]


@dataclass(frozen=True)
class ActivitySignal:
    is_foreground: bool
    switch_count: int
    last_switch_at: Optional[datetime]


@dataclass(frozen=True)
class QuestionResult:
    """Outcome of finalizing one question, shown to the candidate."""
    question_number: int
    selected_answer: str
    is_correct: bool
    score: int
    time_taken_seconds: int
    auto_submitted: bool
    correct_answer: Optional[str] = None
    explanation: Optional[str] = None
    feedback: Optional[str] = None


@dataclass(frozen=True)
class TransitionError:
    code: str
    message: str
    retryable: bool


@dataclass(frozen=True)
class SessionSnapshot:
    """status is None while the session could not be loaded from the store yet."""
    session_id: str
    status: Optional[SessionStatus]
    question_number: Optional[int]
    total_questions: int
    answered_count: int
    total_score: int
    timer: TimerState
    question: Optional[Dict[str, Any]] = None
    selected_option: Optional[str] = None
    submission_locked: bool = False
    switch_count: int = 0
    last_result: Optional[QuestionResult] = None
    error: Optional[TransitionError] = None
    summary: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["status"] = self.status.value if self.status else None
        return data


@dataclass(frozen=True)
class TransitionResult:
    """Explicit outcome of a controller operation."""
    ok: bool
    snapshot: SessionSnapshot
    error: Optional[TransitionError] = None
    events: List[str] = field(default_factory=list)
