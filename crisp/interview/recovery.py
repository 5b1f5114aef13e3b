"""
Session recovery on (re)entry.

Decides where a returning candidate lands: results, the welcome-back
resume prompt, the start screen, straight into the interview, or the
expired message. Also carries out the resume and restart choices.
"""
import logging
from dataclasses import dataclass
from datetime import timedelta
from enum import Enum
from typing import Optional

from crisp.core import config
from crisp.core.clock import Clock, ensure_utc, utcnow
from crisp.core.errors import IllegalTransition, RestartNotAllowed
from crisp.core.logging_config import session_context
from crisp.interview.records import (
    SessionRecord,
    SessionStatus,
    TransitionResult,
    validate_transition,
)
from crisp.interview.registry import SessionRegistry
from crisp.services.session_store import SessionStore

logger = logging.getLogger(__name__)


class RecoveryRoute(str, Enum):
    RESULTS = "results"
    WELCOME_BACK = "welcome_back"
    START = "start"
    INTERVIEW = "interview"
    EXPIRED = "expired"


@dataclass(frozen=True)
class RecoveryDecision:
    route: RecoveryRoute
    session: SessionRecord
    can_restart: bool = False
    default_action: Optional[str] = None
    message: Optional[str] = None


class SessionRecoveryFlow:

    def __init__(
        self,
        store: SessionStore,
        registry: SessionRegistry,
        stale_after: Optional[timedelta] = None,
        clock: Clock = utcnow,
    ):
        self.store = store
        self.registry = registry
        self.stale_after = stale_after or timedelta(hours=config.SESSION_STALE_AFTER_HOURS)
        self.clock = clock

    def enter(self, session_id: str) -> RecoveryDecision:
        """
        Load the persisted session and decide where the candidate goes.

        Raises:
            SessionNotFound: Unknown session id
            IllegalTransition: Session was abandoned by a restart
        """
        session = self.store.get_session(session_id)
        if session.abandoned_at is not None:
            raise IllegalTransition("Session was abandoned by a restart", session_id)

        if session.status == SessionStatus.COMPLETED:
            return RecoveryDecision(RecoveryRoute.RESULTS, session, message="Interview already completed")

        if session.status != SessionStatus.EXPIRED and self._is_stale(session):
            session = self._expire(session)
        if session.status == SessionStatus.EXPIRED:
            return RecoveryDecision(RecoveryRoute.EXPIRED, session, message="This interview session has expired")

        if session.status == SessionStatus.NOT_STARTED:
            return RecoveryDecision(RecoveryRoute.START, session)

        index = session.current_question_index
        if session.status == SessionStatus.PAUSED or index > 0:
            logger.info(f"Welcome back offered at index {index} ({session_context(session_id)})")
            return RecoveryDecision(
                RecoveryRoute.WELCOME_BACK,
                session,
                can_restart=index == 0,
                default_action="resume",
                message=f"You have answered {index} question(s). Resume where you left off.",
            )
        return RecoveryDecision(RecoveryRoute.INTERVIEW, session)

    def resume(self, session_id: str) -> TransitionResult:
        """Re-enter the interview; a paused session is resumed explicitly by this choice."""
        controller = self.registry.get(session_id)
        result = controller.begin_or_resume()
        if result.ok and controller.status == SessionStatus.PAUSED:
            result = controller.resume_from_pause()
        return result

    def restart(self, session_id: str) -> SessionRecord:
        """
        Abandon a session with nothing answered and open a fresh one.

        The old row is kept with abandoned_at set.

        Raises:
            RestartNotAllowed: Something was already answered, or the session has ended
        """
        session = self.store.get_session(session_id)
        if session.abandoned_at is not None:
            raise RestartNotAllowed("Session was already restarted", session_id)
        if session.current_question_index > 0:
            raise RestartNotAllowed(
                f"Cannot restart after {session.current_question_index} answered question(s)", session_id
            )
        if session.is_terminal:
            raise RestartNotAllowed(f"Cannot restart a {session.status.value} session", session_id)

        resume_data = self.store.get_resume_data(session_id)
        fresh = self.store.create_session(session.interview_id, candidate=session.candidate, resume_data=resume_data)
        self.registry.discard(session_id)
        self.store.update_session(session_id, abandoned_at=self.clock())
        logger.info(f"Session restarted as {fresh.id} ({session_context(session_id)})")
        return fresh

    def _is_stale(self, session: SessionRecord) -> bool:
        reference = session.last_activity_at or session.started_at or session.created_at
        if reference is None:
            return False
        return self.clock() - ensure_utc(reference) > self.stale_after

    def _expire(self, session: SessionRecord) -> SessionRecord:
        if not validate_transition(session.status, SessionStatus.EXPIRED):
            raise IllegalTransition(f"Cannot expire a {session.status.value} session", session.id)
        self.registry.discard(session.id)
        expired = self.store.update_session(session.id, status=SessionStatus.EXPIRED)
        logger.info(f"Stale session expired ({session_context(session.id)})")
        return expired
