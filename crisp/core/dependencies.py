"""
FastAPI dependencies shared by the route modules.
"""
import logging
from dataclasses import dataclass
from datetime import timedelta
from functools import lru_cache
from typing import Optional

from crisp.core.clock import Clock, utcnow
from crisp.db.session import SessionLocal
from crisp.interview.recovery import SessionRecoveryFlow
from crisp.interview.registry import SessionRegistry
from crisp.llm.openai_provider import OpenAIProvider
from crisp.llm.router import is_llm_available
from crisp.oracle.base import QuestionOracle
from crisp.oracle.llm_oracle import LLMQuestionOracle
from crisp.oracle.question_bank import QuestionBankOracle
from crisp.services.candidate_service import CandidateService
from crisp.services.session_store import SessionStore

logger = logging.getLogger(__name__)


@dataclass
class Services:
    store: SessionStore
    registry: SessionRegistry
    recovery: SessionRecoveryFlow
    candidates: CandidateService


def get_db():
    """Database session dependency."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def build_oracle(session_factory) -> QuestionOracle:
    """LLM oracle when an OpenAI key is configured, otherwise the built-in question bank."""
    if is_llm_available():
        logger.info("Using LLM question oracle")
        return LLMQuestionOracle(session_factory, OpenAIProvider())
    logger.info("OPENAI_API_KEY not set, using question bank oracle")
    return QuestionBankOracle(session_factory)


def build_services(
    session_factory,
    oracle: Optional[QuestionOracle] = None,
    clock: Clock = utcnow,
    stale_after: Optional[timedelta] = None,
) -> Services:
    """Wire store, registry, recovery flow and candidate service around one session factory."""
    store = SessionStore(session_factory)
    registry = SessionRegistry(store, oracle or build_oracle(session_factory), clock=clock)
    recovery = SessionRecoveryFlow(store, registry, stale_after=stale_after, clock=clock)
    return Services(
        store=store,
        registry=registry,
        recovery=recovery,
        candidates=CandidateService(store, recovery),
    )


@lru_cache(maxsize=1)
def get_services() -> Services:
    """Process-wide services. Overridden in tests."""
    return build_services(SessionLocal)
