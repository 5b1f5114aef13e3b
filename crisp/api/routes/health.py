"""
Health check endpoint for deployment monitoring.
"""
import logging
from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from crisp.core.clock import utcnow
from crisp.core.dependencies import get_db
from crisp.llm.router import is_llm_available

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/health", tags=["Health"])


@router.get("")
def health_check(db: Session = Depends(get_db)):
    """
    Returns 200 while the API is up; status is "degraded" when the
    database cannot be reached.
    """
    status = "healthy"
    try:
        db.execute(text("SELECT 1"))
        db_status = "connected"
    except SQLAlchemyError as e:
        logger.error(f"Health check database error: {e}")
        db_status = f"error: {str(e)}"
        status = "degraded"

    return {
        "status": status,
        "timestamp": utcnow().isoformat(),
        "database": db_status,
        "oracle": "openai" if is_llm_available() else "question_bank",
        "version": "1.0.0",
    }
