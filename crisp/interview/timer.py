"""
Per-question countdown.

Whole-second granularity. Each tick() stands for one scheduling interval;
the controller delivers ticks from the clock (see SessionController.poll).
"""
import logging
from typing import Callable, Optional

from crisp.interview.records import TimerState

logger = logging.getLogger(__name__)


class QuestionTimer:
    """
    Countdown for the active question with pause/resume and a single expiry callback.

    remaining never goes negative, and on_expire fires at most once per start().
    """

    def __init__(self, on_expire: Optional[Callable[[], None]] = None):
        self.on_expire = on_expire
        self.total = 0
        self.remaining = 0
        self.is_paused = False
        self.question_number: Optional[int] = None
        self._running = False
        self._expired = False

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def has_expired(self) -> bool:
        return self._expired

    def start(
        self,
        limit_seconds: int,
        question_number: Optional[int] = None,
        remaining: Optional[int] = None,
        paused: bool = False,
    ):
        """
        Arm the countdown, cancelling whatever ran before.

        remaining re-arms a recovered question part-way through its budget
        (clamped to [0, limit_seconds]). A countdown armed at zero and not
        paused expires immediately.
        """
        if limit_seconds < 0:
            raise ValueError(f"limit_seconds must be >= 0, got {limit_seconds}")
        self.total = limit_seconds
        self.remaining = limit_seconds if remaining is None else max(0, min(remaining, limit_seconds))
        self.is_paused = paused
        self.question_number = question_number
        self._running = True
        self._expired = False
        if self.remaining == 0 and not paused:
            self._expire()

    def reset(self, limit_seconds: int, question_number: Optional[int] = None):
        self.start(limit_seconds, question_number=question_number)

    def tick(self):
        """Advance one second. No-op while paused, stopped or already expired."""
        if not self._running or self.is_paused or self._expired:
            return
        self.remaining = max(0, self.remaining - 1)
        if self.remaining == 0:
            self._expire()

    def pause(self):
        self.is_paused = True

    def resume(self):
        self.is_paused = False
        if self._running and not self._expired and self.remaining == 0:
            self._expire()

    def stop(self):
        """Freeze the countdown without firing on_expire (question is being finalized)."""
        self._running = False

    def time_taken(self) -> int:
        """Seconds consumed so far, clamped to [0, total]."""
        return max(0, min(self.total - self.remaining, self.total))

    def state(self) -> TimerState:
        return TimerState(
            remaining=self.remaining,
            total=self.total,
            is_paused=self.is_paused,
            question_number=self.question_number,
        )

    def _expire(self):
        self._expired = True
        self._running = False
        logger.debug(f"Timer expired for question {self.question_number}")
        if self.on_expire is not None:
            self.on_expire()
