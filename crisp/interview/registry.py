"""
In-memory registry of live session controllers.

Holds one SessionController per session id for the lifetime of the process.
A controller missing after a restart is rebuilt from the store on first use.
"""
import logging
import threading
from typing import Dict, Optional

from crisp.core.clock import Clock, utcnow
from crisp.core.logging_config import session_context
from crisp.interview.controller import SessionController
from crisp.oracle.base import QuestionOracle
from crisp.services.session_store import SessionStore

logger = logging.getLogger(__name__)


class SessionRegistry:
    """
    Maps session ids to their controllers.

    Each entry is created lazily and reconciled with the store (load) before
    it is handed out, so an in_progress session comes back with its timer
    re-armed.
    """

    def __init__(self, store: SessionStore, oracle: QuestionOracle, clock: Clock = utcnow):
        self.store = store
        self.oracle = oracle
        self.clock = clock
        # {session_id: SessionController}
        self._controllers: Dict[str, SessionController] = {}
        self._lock = threading.Lock()

    def get(self, session_id: str) -> SessionController:
        """
        Get the controller for a session, rebuilding it from the store if needed.

        Raises:
            SessionNotFound: Unknown session id
            StoreUnavailable: Store could not be read
        """
        with self._lock:
            controller = self._controllers.get(session_id)
            if controller is not None:
                return controller
            controller = SessionController(session_id, self.store, self.oracle, clock=self.clock)
            controller.load()
            self._controllers[session_id] = controller
            logger.info(f"Controller attached ({session_context(session_id)}, status={controller.status.value})")
            return controller

    def peek(self, session_id: str) -> Optional[SessionController]:
        with self._lock:
            return self._controllers.get(session_id)

    def discard(self, session_id: str):
        """Drop a controller (restart, expiry). Its timer is stopped."""
        with self._lock:
            controller = self._controllers.pop(session_id, None)
        if controller is not None:
            controller.close()
            logger.info(f"Controller discarded ({session_context(session_id)})")

    def clear(self):
        with self._lock:
            controllers = list(self._controllers.values())
            self._controllers.clear()
        for controller in controllers:
            controller.close()

    def __contains__(self, session_id: str) -> bool:
        with self._lock:
            return session_id in self._controllers

    def __len__(self) -> int:
        with self._lock:
            return len(self._controllers)
