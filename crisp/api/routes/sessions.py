"""
Interview session endpoints.

HTTP side of the candidate UI: every call forwards one user intent (or a
visibility change) to the session's controller and returns the resulting
snapshot. Transient collaborator failures come back as 200 with ok=false so
the client can offer a retry.
"""
import logging
from fastapi import APIRouter, Depends, HTTPException, status

from crisp.core.dependencies import Services, get_services
from crisp.interview.records import SessionStatus
from crisp.schemas.session import (
    ActivityRequest,
    CandidateProfileRequest,
    CandidateProfileResponse,
    QuestionBreakdown,
    RecoveryResponse,
    RestartResponse,
    ResultsResponse,
    SelectOptionRequest,
    SessionInfo,
    SubmitAnswerRequest,
    TransitionResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/sessions", tags=["Sessions"])


@router.get("/{session_id}/recovery", response_model=RecoveryResponse)
def get_recovery_decision(session_id: str, services: Services = Depends(get_services)):
    """Where a returning candidate should land (results, welcome back, start, interview, expired)."""
    return RecoveryResponse.from_decision(services.recovery.enter(session_id))


@router.put("/{session_id}/candidate", response_model=CandidateProfileResponse)
def save_candidate_profile(
    session_id: str,
    request: CandidateProfileRequest,
    services: Services = Depends(get_services),
):
    """Store the candidate profile produced by the resume field extractor."""
    session, missing = services.candidates.save_profile(
        session_id,
        name=request.name,
        email=request.email,
        phone=request.phone,
        resume_data=request.resume_data,
    )
    return CandidateProfileResponse(session=SessionInfo.from_record(session), missing_fields=missing)


@router.post("/{session_id}/begin", response_model=TransitionResponse)
def begin_interview(session_id: str, services: Services = Depends(get_services)):
    """Start a not_started session or re-enter an interrupted one."""
    controller = services.registry.get(session_id)
    return TransitionResponse.from_result(controller.begin_or_resume())


@router.get("/{session_id}/state", response_model=TransitionResponse)
def get_state(session_id: str, services: Services = Depends(get_services)):
    """
    Current snapshot.

    Timer ticks due since the last call are delivered first, so an expired
    question is auto-submitted before the snapshot is taken.
    """
    controller = services.registry.get(session_id)
    return TransitionResponse.from_result(controller.poll())


@router.post("/{session_id}/select", response_model=TransitionResponse)
def select_option(session_id: str, request: SelectOptionRequest, services: Services = Depends(get_services)):
    controller = services.registry.get(session_id)
    return TransitionResponse.from_result(controller.select_option(request.option))


@router.post("/{session_id}/submit", response_model=TransitionResponse)
def submit_answer(session_id: str, request: SubmitAnswerRequest, services: Services = Depends(get_services)):
    """
    Submit the answer for the active question.

    Returns 409 when question_number was already answered by an earlier submit.
    """
    controller = services.registry.get(session_id)
    result = controller.submit_answer(answer=request.answer, question_number=request.question_number)
    return TransitionResponse.from_result(result)


@router.post("/{session_id}/activity", response_model=TransitionResponse)
def report_activity(session_id: str, request: ActivityRequest, services: Services = Depends(get_services)):
    """Tab visibility / window focus change. Going to background pauses the interview."""
    controller = services.registry.get(session_id)
    return TransitionResponse.from_result(controller.on_activity_changed(request.is_foreground))


@router.post("/{session_id}/resume", response_model=TransitionResponse)
def resume_interview(session_id: str, services: Services = Depends(get_services)):
    """Explicit resume (welcome back prompt or pause overlay)."""
    return TransitionResponse.from_result(services.recovery.resume(session_id))


@router.post("/{session_id}/restart", response_model=RestartResponse)
def restart_interview(session_id: str, services: Services = Depends(get_services)):
    """Abandon a session with nothing answered and open a fresh one for the same candidate."""
    fresh = services.recovery.restart(session_id)
    return RestartResponse(
        abandoned_session_id=session_id,
        recovery=RecoveryResponse.from_decision(services.recovery.enter(fresh.id)),
    )


@router.post("/{session_id}/retry", response_model=TransitionResponse)
def retry_operation(session_id: str, services: Services = Depends(get_services)):
    """Re-issue the oracle or store call that last failed."""
    controller = services.registry.get(session_id)
    return TransitionResponse.from_result(controller.retry())


@router.get("/{session_id}/results", response_model=ResultsResponse)
def get_results(session_id: str, services: Services = Depends(get_services)):
    """Final metrics, narrative summary and per-question breakdown of a completed session."""
    session = services.store.get_session(session_id)
    if session.status != SessionStatus.COMPLETED:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Interview not completed (status: {session.status.value})",
        )

    questions = [
        QuestionBreakdown(
            question_number=r.question_number,
            difficulty=r.difficulty,
            question_text=r.prompt.text,
            options=r.prompt.options,
            candidate_answer=r.selected_answer,
            correct_answer=r.grade.correct_answer if r.grade else None,
            is_correct=r.grade.is_correct if r.grade else None,
            score=r.score,
            time_taken=r.time_taken_seconds,
            time_limit=r.time_limit_seconds,
            auto_submitted=r.auto_submitted,
            feedback=r.grade.feedback if r.grade else None,
        )
        for r in services.store.list_responses(session_id)
    ]
    return ResultsResponse(
        session_id=session.id,
        candidate_name=session.candidate.name,
        completed_at=session.completed_at,
        metrics=session.result_metrics or {},
        summary=session.ai_summary,
        questions=questions,
    )
