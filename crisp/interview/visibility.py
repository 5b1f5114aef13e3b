"""
Foreground/background tracking for the candidate's surface (tab or window).

Visibility changes and focus loss both arrive as a single boolean. Going to
background while the session is in progress counts as a switch and asks the
controller to pause; coming back never resumes on its own.
"""
import logging
from datetime import datetime
from typing import Callable, Optional

from crisp.core.clock import Clock, utcnow
from crisp.interview.records import ActivitySignal, SessionStatus

logger = logging.getLogger(__name__)


class VisibilityMonitor:

    def __init__(
        self,
        on_background: Optional[Callable[[ActivitySignal], None]] = None,
        clock: Clock = utcnow,
    ):
        self.on_background = on_background
        self._clock = clock
        self.is_foreground = True
        self.switch_count = 0
        self.last_switch_at: Optional[datetime] = None

    def restore(self, switch_count: int):
        """Seed the counter from a persisted session."""
        self.switch_count = max(self.switch_count, switch_count)

    def on_activity_changed(self, is_foreground: bool, session_status: SessionStatus) -> ActivitySignal:
        """
        Record a foreground/background change.

        Only a background transition during an in-progress session increments
        switch_count and notifies on_background.
        """
        self.is_foreground = is_foreground
        if not is_foreground and session_status == SessionStatus.IN_PROGRESS:
            self.switch_count += 1
            self.last_switch_at = self._clock()
            logger.info(f"Surface went to background during session (switch #{self.switch_count})")
            signal = self.signal()
            if self.on_background is not None:
                self.on_background(signal)
            return signal
        return self.signal()

    def signal(self) -> ActivitySignal:
        return ActivitySignal(
            is_foreground=self.is_foreground,
            switch_count=self.switch_count,
            last_switch_at=self.last_switch_at,
        )
