"""
Error taxonomy for the interview session lifecycle.

Transient collaborator failures are retryable and are reported to the
presentation layer as explicit outcomes. Invariant violations are programming
errors and always propagate.
"""
from typing import Optional


class AssessmentError(Exception):
    """Base class for all session lifecycle errors."""
    code = "assessment_error"

    def __init__(self, message: str, session_id: Optional[str] = None, question_number: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.session_id = session_id
        self.question_number = question_number


# ============================================
# Transient (retryable)
# ============================================

class TransientCollaboratorError(AssessmentError):
    """An external collaborator (oracle or store) could not complete the call."""
    code = "collaborator_unavailable"
    retryable = True


class OracleUnavailable(TransientCollaboratorError):
    code = "oracle_unavailable"


class MalformedOracleResponse(TransientCollaboratorError):
    """The oracle answered, but the payload is incomplete or unparseable."""
    code = "oracle_malformed_response"


class StoreUnavailable(TransientCollaboratorError):
    code = "store_unavailable"


# ============================================
# Invariant violations (hard failures)
# ============================================

class InvariantViolation(AssessmentError):
    code = "invariant_violation"
    retryable = False


class AnswerAlreadyRecorded(InvariantViolation):
    """A response is immutable once its answer has been recorded."""
    code = "answer_already_recorded"


class IncompleteSessionError(InvariantViolation):
    """Scores were aggregated before every question was answered."""
    code = "session_incomplete"


class IllegalTransition(InvariantViolation):
    code = "illegal_transition"


class RestartNotAllowed(InvariantViolation):
    """Restart is only possible while nothing has been answered."""
    code = "restart_not_allowed"


# ============================================
# Lookup
# ============================================

class SessionNotFound(AssessmentError):
    code = "session_not_found"
    retryable = False


class InterviewNotFound(AssessmentError):
    """No active interview for the given access code."""
    code = "interview_not_found"
    retryable = False


class InvalidAccessCode(AssessmentError):
    """Access code does not match the CRISP-XXXX-XXXX format."""
    code = "invalid_access_code"
    retryable = False
