"""
Candidate access service.

Validates interview access codes, opens (or re-opens) the candidate's
session and stores the profile produced by the resume field extractor.
"""
import logging
import re
from typing import Any, Dict, List, Optional, Tuple

from crisp.core.errors import (
    IllegalTransition,
    InterviewNotFound,
    InvalidAccessCode,
    SessionNotFound,
)
from crisp.core.logging_config import sanitize_log_data, session_context
from crisp.db.models.interview import Interview
from crisp.interview.records import SessionRecord
from crisp.interview.recovery import RecoveryDecision, SessionRecoveryFlow
from crisp.services.session_store import SessionStore

logger = logging.getLogger(__name__)

ACCESS_CODE_PATTERN = re.compile(r"^CRISP-[A-Z0-9]{4}-[A-Z0-9]{4}$")


def normalize_access_code(access_code: str) -> str:
    """
    Upper-case and validate an access code.

    Raises:
        InvalidAccessCode: Code does not match CRISP-XXXX-XXXX
    """
    code = (access_code or "").strip().upper()
    if not ACCESS_CODE_PATTERN.match(code):
        raise InvalidAccessCode("Invalid access code format. Expected: CRISP-XXXX-XXXX")
    return code


class CandidateService:

    def __init__(self, store: SessionStore, recovery: SessionRecoveryFlow):
        self.store = store
        self.recovery = recovery

    def open_session(
        self,
        access_code: str,
        session_id: Optional[str] = None,
    ) -> Tuple[Interview, SessionRecord, RecoveryDecision]:
        """
        Resolve an access code to a session and a recovery decision.

        A session_id remembered by the candidate's browser is re-entered when it
        belongs to this interview and was not abandoned; otherwise every
        candidate gets a fresh session, since one code is shared by many
        candidates.

        Raises:
            InvalidAccessCode: Malformed code
            InterviewNotFound: No active interview with this code
        """
        code = normalize_access_code(access_code)
        interview = self.store.find_interview_by_code(code)
        if interview is None:
            logger.warning(f"Access code rejected: {code}")
            raise InterviewNotFound("Invalid or expired access code. Please check with your interviewer.")

        session = self._known_session(interview.id, session_id)
        if session is None:
            session = self.store.create_session(interview.id)

        decision = self.recovery.enter(session.id)
        logger.info(
            f"Access granted to interview {interview.id}, route={decision.route.value} ({session_context(session.id)})"
        )
        return interview, decision.session, decision

    def save_profile(
        self,
        session_id: str,
        name: Optional[str] = None,
        email: Optional[str] = None,
        phone: Optional[str] = None,
        resume_data: Optional[Dict[str, Any]] = None,
    ) -> Tuple[SessionRecord, List[str]]:
        """
        Store candidate details; only fields that are provided are written.

        Returns:
            The updated session and the profile fields still missing

        Raises:
            SessionNotFound: Unknown session id
            IllegalTransition: Session already ended
        """
        session = self.store.get_session(session_id)
        if session.is_terminal:
            raise IllegalTransition(f"Cannot update profile of a {session.status.value} session", session_id)

        fields: Dict[str, Any] = {}
        if name is not None and name.strip():
            fields["candidate_name"] = name.strip()
        if email is not None and email.strip():
            fields["candidate_email"] = email.strip().lower()
        if phone is not None and phone.strip():
            fields["candidate_phone"] = phone.strip()
        if resume_data is not None:
            fields["resume_data"] = resume_data

        if fields:
            logger.info(f"Saving candidate profile {sanitize_log_data(fields)} ({session_context(session_id)})")
            session = self.store.update_session(session_id, **fields)
        return session, session.candidate.missing_fields()

    def _known_session(self, interview_id: int, session_id: Optional[str]) -> Optional[SessionRecord]:
        if not session_id:
            return None
        try:
            session = self.store.get_session(session_id)
        except SessionNotFound:
            logger.info(f"Remembered session no longer exists ({session_context(session_id)})")
            return None
        if session.interview_id != interview_id or session.abandoned_at is not None:
            return None
        return session
