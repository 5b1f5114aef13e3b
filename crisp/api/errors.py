"""
Maps lifecycle exceptions onto HTTP responses.

Expected collaborator failures never get here; controllers report them as
ok=false outcomes. What does get here is a lookup miss, a contract violation
or a store failure outside a transition.
"""
import logging
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from crisp.core.errors import (
    AssessmentError,
    InterviewNotFound,
    InvalidAccessCode,
    InvariantViolation,
    SessionNotFound,
    TransientCollaboratorError,
)

logger = logging.getLogger(__name__)

STATUS_CODES = [
    (SessionNotFound, status.HTTP_404_NOT_FOUND),
    (InterviewNotFound, status.HTTP_404_NOT_FOUND),
    (InvalidAccessCode, status.HTTP_400_BAD_REQUEST),
    (InvariantViolation, status.HTTP_409_CONFLICT),
    (TransientCollaboratorError, status.HTTP_503_SERVICE_UNAVAILABLE),
]


def status_code_for(exc: AssessmentError) -> int:
    for error_type, code in STATUS_CODES:
        if isinstance(exc, error_type):
            return code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def register_exception_handlers(app: FastAPI):

    @app.exception_handler(AssessmentError)
    async def assessment_error_handler(request: Request, exc: AssessmentError):
        code = status_code_for(exc)
        if isinstance(exc, InvariantViolation):
            logger.error(f"{exc.code} on {request.method} {request.url.path}: {exc.message}")
        else:
            logger.warning(f"{exc.code} on {request.method} {request.url.path}: {exc.message}")
        return JSONResponse(
            status_code=code,
            content={
                "detail": exc.message,
                "code": exc.code,
                "retryable": getattr(exc, "retryable", False),
            },
        )
