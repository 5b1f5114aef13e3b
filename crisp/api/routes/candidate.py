"""
Candidate access endpoint.

Entry point for candidates: an access code opens (or re-opens) a session and
tells the client where to route.
"""
import logging
from fastapi import APIRouter, Depends, status

from crisp.core.dependencies import Services, get_services
from crisp.core.rate_limit import enforce_access_code_limit
from crisp.schemas.session import AccessCodeRequest, AccessResponse, InterviewInfo, RecoveryResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/candidate", tags=["Candidate"])


@router.post(
    "/access",
    response_model=AccessResponse,
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(enforce_access_code_limit)],
)
def validate_access_code(
    request: AccessCodeRequest,
    services: Services = Depends(get_services),
):
    """
    Validate an access code and open the candidate's session.

    Returns the interview and a recovery decision (start, interview,
    welcome_back, results or expired). Pass the session_id stored by the
    browser to get back into an interrupted attempt.
    """
    interview, _, decision = services.candidates.open_session(request.access_code, request.session_id)
    return AccessResponse(
        interview=InterviewInfo.model_validate(interview),
        recovery=RecoveryResponse.from_decision(decision),
    )
