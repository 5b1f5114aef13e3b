import logging

from crisp.db.base import Base
from crisp.db import models  # noqa: F401  (registers tables on Base.metadata)

logger = logging.getLogger(__name__)


def init_db(bind=None):
    """Create all tables that do not exist yet."""
    if bind is None:
        from crisp.db.session import engine
        bind = engine
    Base.metadata.create_all(bind=bind)
    logger.info("Database tables ensured")
