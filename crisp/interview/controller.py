"""
Session lifecycle controller.

One SessionController per active attempt. It owns the session status, the
current question index, the QuestionTimer and the VisibilityMonitor, and is
the only writer of session and response records while the attempt is live.

Every public entry point runs under a single re-entrant lock, so timer
expiry, user submits and visibility changes are serialized. Expected
collaborator failures come back as TransitionResult(ok=False, error=...);
invariant violations are raised.
"""
import logging
import threading
from dataclasses import dataclass, replace
from datetime import timedelta
from typing import Callable, Dict, List, Optional

from crisp.core.clock import Clock, utcnow, whole_seconds_between
from crisp.core.errors import (
    AnswerAlreadyRecorded,
    IllegalTransition,
    InvariantViolation,
    MalformedOracleResponse,
    TransientCollaboratorError,
)
from crisp.core.interview_rules import (
    DEFAULT_TIMEOUT_ANSWER,
    TOTAL_QUESTIONS,
    difficulty_for,
    is_valid_option,
    normalize_option,
)
from crisp.core.logging_config import session_context
from crisp.interview.records import (
    ActivitySignal,
    QuestionResult,
    ResponseRecord,
    SessionRecord,
    SessionSnapshot,
    SessionStatus,
    TransitionError,
    TransitionResult,
    validate_transition,
)
from crisp.interview.scoring import aggregate_scores
from crisp.interview.timer import QuestionTimer
from crisp.interview.visibility import VisibilityMonitor
from crisp.oracle.base import QuestionOracle
from crisp.services.session_store import SessionStore

logger = logging.getLogger(__name__)

Listener = Callable[[SessionSnapshot], None]


@dataclass(frozen=True)
class PendingAnswer:
    """Answer frozen at the moment finalization of a question started."""
    question_number: int
    answer: str
    time_taken: int
    auto_submitted: bool


class SessionController:
    """State machine for one candidate attempt."""

    def __init__(
        self,
        session_id: str,
        store: SessionStore,
        oracle: QuestionOracle,
        clock: Clock = utcnow,
    ):
        self.session_id = session_id
        self._store = store
        self._oracle = oracle
        self._clock = clock
        self._lock = threading.RLock()

        self.timer = QuestionTimer(on_expire=self.on_timer_expire)
        self.visibility = VisibilityMonitor(on_background=self._on_background, clock=clock)

        self._session: Optional[SessionRecord] = None
        self._active: Optional[ResponseRecord] = None
        self._selected: Optional[str] = None
        self._pending_finalize: Optional[PendingAnswer] = None
        self._finalizing = False
        self._tick_anchor = None

        self._pending_operation: Optional[str] = None
        self._last_error: Optional[TransitionError] = None
        self._call_error: Optional[TransitionError] = None
        self._last_result: Optional[QuestionResult] = None
        self._summary: Optional[Dict] = None

        self._events: Optional[List[str]] = None
        self._listeners: List[Listener] = []

    # ============================================
    # Read access
    # ============================================

    @property
    def session(self) -> Optional[SessionRecord]:
        return self._session

    @property
    def status(self) -> Optional[SessionStatus]:
        return self._session.status if self._session else None

    @property
    def pending_operation(self) -> Optional[str]:
        return self._pending_operation

    def snapshot(self) -> SessionSnapshot:
        with self._lock:
            self._ensure_loaded()
            return self._snapshot()

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener for the snapshot emitted after every transition."""
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe():
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    # ============================================
    # Presentation events
    # ============================================

    def load(self) -> TransitionResult:
        """Reconcile with the store without starting a not_started session."""
        return self._run(lambda: self._reconcile(start=False))

    def begin_or_resume(self) -> TransitionResult:
        """
        Enter the interview.

        not_started starts the first question. in_progress re-arms the active
        question with the time left since the last checkpoint. paused re-arms
        it frozen and waits for resume_from_pause().
        """
        return self._run(lambda: self._attempt("begin", lambda: self._reconcile(start=True)))

    def poll(self) -> TransitionResult:
        """Deliver the timer ticks due since the last poll."""
        def action():
            self._ensure_loaded()
            self._deliver_ticks()
        return self._run(action)

    def tick(self) -> TransitionResult:
        """Deliver exactly one timer tick."""
        def action():
            self._ensure_loaded()
            self.timer.tick()
        return self._run(action)

    def select_option(self, value: str) -> TransitionResult:
        def action():
            self._ensure_loaded()
            self._deliver_ticks()
            if self._active is None or self._session.status != SessionStatus.IN_PROGRESS:
                self._call_error = TransitionError("no_active_question", "No question is waiting for an answer", False)
                return
            if self._pending_finalize is not None:
                self._call_error = TransitionError("submission_locked", "This question has already been submitted", False)
                return
            if not is_valid_option(value):
                self._call_error = TransitionError("invalid_option", f"Invalid option: {value}", False)
                return
            self._selected = normalize_option(value)
            self._record("option_selected")
        return self._run(action)

    def submit_answer(self, answer: Optional[str] = None, question_number: Optional[int] = None) -> TransitionResult:
        """
        Finalize the active question with the given (or currently selected) answer.

        Without question_number the submit is bound to the question that was
        active before any overdue ticks were delivered, so a submit that lost
        the race against expiry never lands on the next question.

        Raises:
            AnswerAlreadyRecorded: question_number was already answered by a submit
            IllegalTransition: No question is active
        """
        def action():
            self._ensure_loaded()
            expected = question_number
            if expected is None and self._active is not None:
                expected = self._active.question_number
            self._deliver_ticks()
            active = self._active
            if expected is not None and (active is None or active.question_number != expected):
                self._reject_inactive_submit(expected)
                return
            if active is None:
                raise IllegalTransition("No active question to submit", self.session_id)

            if self._pending_finalize is not None:
                # Locked: re-issue the frozen answer, ignoring any new one
                self._attempt("finalize", self._finalize_step)
                return

            chosen = normalize_option(answer) if answer is not None else self._selected
            if not chosen:
                self._call_error = TransitionError("no_answer_selected", "Select an answer before submitting", False)
                return
            if not is_valid_option(chosen):
                self._call_error = TransitionError("invalid_option", f"Invalid option: {answer}", False)
                return
            self._selected = chosen
            self._start_finalize(chosen, self.timer.time_taken(), auto_submitted=False)
        return self._run(action)

    def on_timer_expire(self) -> TransitionResult:
        """Auto-submit the active question. No-op when it is already being finalized."""
        def action():
            if self._active is None or self._pending_finalize is not None or self._finalizing:
                return
            if self._session is None or self._session.is_terminal:
                return
            answer = self._selected or DEFAULT_TIMEOUT_ANSWER
            self._record("time_up")
            logger.info(f"Time up, auto-submitting '{answer}' ({self._context()})")
            self._start_finalize(answer, self.timer.total, auto_submitted=True)
        return self._run(action)

    def on_activity_changed(self, is_foreground: bool) -> TransitionResult:
        """Forward a foreground/background change. Background pauses; foreground never resumes."""
        def action():
            self._ensure_loaded()
            self._deliver_ticks()
            self.visibility.on_activity_changed(is_foreground, self._session.status)
        return self._run(action)

    def resume_from_pause(self) -> TransitionResult:
        def action():
            self._ensure_loaded()
            if self._session.status != SessionStatus.PAUSED:
                return
            self._attempt("resume", self._resume_step)
        return self._run(action)

    def retry(self) -> TransitionResult:
        """Re-issue the call that last failed transiently. No-op when nothing is pending."""
        def action():
            self._ensure_loaded()
            operation = self._pending_operation
            if operation is None:
                return
            steps = {
                "begin": lambda: self._reconcile(start=True),
                "advance": self._serve_next,
                "finalize": self._finalize_step,
                "complete": self._complete,
                "pause": self._persist_pause,
                "resume": self._resume_step,
            }
            logger.info(f"Retrying {operation} ({self._context()})")
            self._attempt(operation, steps[operation])
        return self._run(action)

    def close(self):
        """Stop the countdown and drop listeners. Used when the attempt is discarded."""
        with self._lock:
            self.timer.stop()
            self._tick_anchor = None
            self._listeners.clear()

    # ============================================
    # Operation plumbing
    # ============================================

    def _run(self, action: Callable[[], None]) -> TransitionResult:
        with self._lock:
            if self._events is not None:
                # Nested call (e.g. timer expiry during poll); the outer call reports
                action()
                return self._result(list(self._events))
            self._events = []
            self._call_error = None
            try:
                action()
                events = self._events
            finally:
                self._events = None
            result = self._result(events)
            self._emit(result.snapshot)
            return result

    def _result(self, events: List[str]) -> TransitionResult:
        snapshot = self._snapshot()
        return TransitionResult(ok=snapshot.error is None, snapshot=snapshot, error=snapshot.error, events=events)

    def _attempt(self, operation: str, step: Callable[[], None]) -> bool:
        """Run a step that talks to the oracle or the store, recording transient failures."""
        try:
            step()
        except TransientCollaboratorError as e:
            self._pending_operation = operation
            self._last_error = TransitionError(code=e.code, message=e.message, retryable=True)
            logger.warning(
                f"{operation} failed ({e.code}): {e.message} "
                f"({session_context(self.session_id, e.question_number or self._current_question_number())})"
            )
            return False
        if self._pending_operation == operation:
            self._pending_operation = None
            self._last_error = None
        return True

    def _emit(self, snapshot: SessionSnapshot):
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                logger.exception(f"Snapshot listener failed ({self._context()})")

    def _record(self, event: str):
        if self._events is not None:
            self._events.append(event)

    # ============================================
    # Reconciliation
    # ============================================

    def _ensure_loaded(self):
        if self._session is None:
            self._reconcile(start=False)

    def _reconcile(self, start: bool):
        session = self._store.get_session(self.session_id)
        if session.abandoned_at is not None:
            raise IllegalTransition("Session was abandoned by a restart", self.session_id)

        responses = self._store.list_responses(self.session_id)
        answered = [r for r in responses if r.is_answered]
        if len(answered) < session.current_question_index:
            raise InvariantViolation(
                f"Index {session.current_question_index} exceeds answered count {len(answered)}",
                self.session_id,
            )
        if len(answered) > session.current_question_index:
            logger.warning(
                f"Reconciling index {session.current_question_index} -> {len(answered)} ({session_context(self.session_id)})"
            )
            session = self._store.update_session(
                self.session_id,
                current_question_index=len(answered),
                total_score=sum(r.score or 0 for r in answered),
            )

        self._session = session
        self.visibility.restore(session.tab_switch_count)
        status = session.status

        if status == SessionStatus.COMPLETED:
            self._clear_active()
            self._summary = session.result_metrics
            return
        if status == SessionStatus.EXPIRED:
            self._clear_active()
            self._call_error = TransitionError("session_expired", "This interview session has expired", False)
            return
        if status == SessionStatus.NOT_STARTED:
            if start:
                now = self._clock()
                self._set_status(SessionStatus.IN_PROGRESS, started_at=now, last_activity_at=now, current_question_index=0)
                self._record("started")
                self._advance()
            return

        if session.current_question_index >= TOTAL_QUESTIONS:
            self._attempt("complete", self._complete)
            return

        question_number = session.current_question_index + 1
        if self._is_armed_for(question_number, status):
            self._deliver_ticks()
            return

        shell = next((r for r in responses if r.question_number == question_number), None)
        if shell is None:
            if status == SessionStatus.IN_PROGRESS:
                self._advance()
            return
        self._rearm(shell)

    def _is_armed_for(self, question_number: int, status: SessionStatus) -> bool:
        if self._active is None or self._active.question_number != question_number:
            return False
        if self._pending_finalize is not None:
            return True
        return self.timer.is_running and self.timer.is_paused == (status == SessionStatus.PAUSED)

    def _rearm(self, shell: ResponseRecord):
        """Arm a recovered question with the time it has left."""
        session = self._session
        limit = shell.time_limit_seconds
        now = self._clock()
        if session.status == SessionStatus.IN_PROGRESS:
            remaining = limit - shell.seconds_used - whole_seconds_between(session.last_activity_at, now)
        else:
            remaining = limit - shell.seconds_used
        remaining = max(0, min(remaining, limit))

        if session.status == SessionStatus.IN_PROGRESS:
            self._session = self._store.checkpoint_response(self.session_id, shell.question_number, limit - remaining, now)
        logger.info(
            f"Question restored with {remaining}/{limit}s left "
            f"({session_context(self.session_id, shell.question_number)}, status={session.status.value})"
        )
        self._record("question_restored")
        self._arm(shell, remaining=remaining, paused=session.status == SessionStatus.PAUSED)

    # ============================================
    # Question flow
    # ============================================

    def _advance(self):
        if self._session.current_question_index >= TOTAL_QUESTIONS:
            self._attempt("complete", self._complete)
        else:
            self._attempt("advance", self._serve_next)

    def _serve_next(self):
        question_number = self._session.current_question_index + 1
        difficulty = difficulty_for(question_number)
        context = session_context(self.session_id, question_number)

        shell = self._store.get_response(self.session_id, question_number)
        if shell is None:
            question = self._oracle.get_question(self.session_id, question_number, difficulty)
            if question.question_number != question_number or question.difficulty != difficulty:
                raise MalformedOracleResponse(
                    f"Expected {difficulty} question {question_number}, got "
                    f"{question.difficulty} question {question.question_number}",
                    self.session_id,
                    question_number,
                )
            shell = self._store.create_response(self.session_id, question)
        if shell.is_answered:
            raise InvariantViolation(
                f"Question {question_number} is answered but the index is {question_number - 1}",
                self.session_id,
                question_number,
            )

        now = self._clock()
        self._session = self._store.checkpoint_response(self.session_id, question_number, shell.seconds_used, now)
        logger.info(f"Question served ({context}, difficulty={difficulty}, limit={shell.time_limit_seconds}s)")
        self._record("question_served")
        self._arm(
            shell,
            remaining=shell.time_limit_seconds - shell.seconds_used,
            paused=self._session.status == SessionStatus.PAUSED,
        )

    def _arm(self, shell: ResponseRecord, remaining: int, paused: bool):
        self._active = shell
        self._selected = None
        self._pending_finalize = None
        self._tick_anchor = self._clock()
        # May expire immediately (and auto-submit) when nothing is left
        self.timer.start(shell.time_limit_seconds, question_number=shell.question_number, remaining=remaining, paused=paused)

    def _clear_active(self):
        self.timer.stop()
        self._tick_anchor = None
        self._active = None
        self._selected = None
        self._pending_finalize = None

    def _start_finalize(self, answer: str, time_taken: int, auto_submitted: bool):
        self.timer.stop()
        self._tick_anchor = None
        self._pending_finalize = PendingAnswer(
            question_number=self._active.question_number,
            answer=answer,
            time_taken=max(0, min(time_taken, self._active.time_limit_seconds)),
            auto_submitted=auto_submitted,
        )
        self._attempt("finalize", self._finalize_step)

    def _finalize_step(self):
        pending = self._pending_finalize
        active = self._active
        self._finalizing = True
        try:
            grade = self._oracle.grade_answer(active.question_ref, pending.answer)
            response, session = self._store.record_answer(
                self.session_id,
                pending.question_number,
                answer=pending.answer,
                time_taken=pending.time_taken,
                auto_submitted=pending.auto_submitted,
                grade=grade,
                answered_at=self._clock(),
            )
        except AnswerAlreadyRecorded:
            # Another controller finalized this question first; drop the lock and follow the store
            self._finalizing = False
            logger.warning(f"Answer was recorded elsewhere, reloading ({self._context()})")
            self._clear_active()
            if self._pending_operation == "finalize":
                self._pending_operation = None
                self._last_error = None
            self._attempt("begin", lambda: self._reconcile(start=False))
            raise
        finally:
            self._finalizing = False

        # Local pause state wins over the stored row until it is persisted
        self._session = replace(session, status=self._session.status, tab_switch_count=self._session.tab_switch_count)
        self._active = None
        self._selected = None
        self._pending_finalize = None
        self._last_result = QuestionResult(
            question_number=response.question_number,
            selected_answer=response.selected_answer,
            is_correct=grade.is_correct,
            score=grade.score,
            time_taken_seconds=response.time_taken_seconds,
            auto_submitted=response.auto_submitted,
            correct_answer=grade.correct_answer,
            explanation=grade.explanation,
            feedback=grade.feedback,
        )
        self._record("answer_recorded")
        self._advance()

    def _reject_inactive_submit(self, question_number: int):
        response = self._store.get_response(self.session_id, question_number)
        if response is not None and response.is_answered:
            if response.auto_submitted:
                # Lost the race against the timer
                self._call_error = TransitionError(
                    "time_expired", "Time ran out and the question was submitted automatically", False
                )
                return
            raise AnswerAlreadyRecorded(
                f"Question {question_number} already answered", self.session_id, question_number
            )
        raise IllegalTransition(f"Question {question_number} is not the active question", self.session_id, question_number)

    def _complete(self):
        if self._session.status == SessionStatus.COMPLETED:
            return
        responses = self._store.list_responses(self.session_id)
        summary = aggregate_scores(responses)
        metrics = summary.to_dict()

        roles = self._oracle.roles_for_session(self.session_id)
        try:
            narrative = self._oracle.narrate_summary(metrics, self._session.candidate.name, roles)
        except TransientCollaboratorError as e:
            logger.warning(f"Completing without narrative: {e.message} ({self._context()})")
            narrative = None

        now = self._clock()
        self._clear_active()
        self._set_status(
            SessionStatus.COMPLETED,
            completed_at=now,
            last_activity_at=now,
            total_score=summary.total_score,
            result_metrics=metrics,
            ai_summary=narrative,
        )
        self._summary = metrics
        logger.info(
            f"Session completed with {summary.total_score}/{summary.max_score} "
            f"({summary.percentage}%, {summary.recommendation}) ({self._context()})"
        )
        self._record("completed")

    # ============================================
    # Timer and visibility
    # ============================================

    def _deliver_ticks(self):
        """One tick per whole second elapsed since the last delivered tick."""
        if self._tick_anchor is None or not self.timer.is_running:
            return
        elapsed = whole_seconds_between(self._tick_anchor, self._clock())
        if elapsed == 0:
            return
        self._tick_anchor = self._tick_anchor + timedelta(seconds=elapsed)
        question_number = self.timer.question_number
        for _ in range(elapsed):
            if not self.timer.is_running or self.timer.question_number != question_number:
                break
            self.timer.tick()

    def _on_background(self, signal: ActivitySignal):
        if not validate_transition(self._session.status, SessionStatus.PAUSED):
            raise IllegalTransition(f"Cannot pause a {self._session.status.value} session", self.session_id)
        self.timer.pause()
        self._session = replace(self._session, status=SessionStatus.PAUSED, tab_switch_count=signal.switch_count)
        logger.info(f"Session paused, switch #{signal.switch_count} ({self._context()})")
        self._record("paused")
        self._attempt("pause", self._persist_pause)

    def _persist_pause(self):
        now = self._clock()
        fields = {"status": SessionStatus.PAUSED, "tab_switch_count": self.visibility.switch_count}
        if self._active is not None and self._pending_finalize is None:
            self._session = self._store.checkpoint_response(
                self.session_id, self._active.question_number, self.timer.time_taken(), now, **fields
            )
        else:
            self._session = self._store.update_session(self.session_id, last_activity_at=now, **fields)

    def _resume_step(self):
        now = self._clock()
        fields = {"status": SessionStatus.IN_PROGRESS}
        if self._active is not None and self._pending_finalize is None:
            self._session = self._store.checkpoint_response(
                self.session_id, self._active.question_number, self.timer.time_taken(), now, **fields
            )
        else:
            self._session = self._store.update_session(self.session_id, last_activity_at=now, **fields)
        logger.info(f"Session resumed ({self._context()})")
        self._record("resumed")
        self._tick_anchor = now
        if self._active is not None:
            self.timer.resume()
        else:
            self._advance()

    # ============================================
    # Helpers
    # ============================================

    def _set_status(self, target: SessionStatus, **fields):
        current = self._session.status
        if current == target:
            return
        if not validate_transition(current, target):
            raise IllegalTransition(f"Illegal transition {current.value} -> {target.value}", self.session_id)
        self._session = self._store.update_session(self.session_id, status=target, **fields)
        logger.info(f"Session status {current.value} -> {target.value} ({self._context()})")

    def _current_question_number(self) -> Optional[int]:
        if self._active is not None:
            return self._active.question_number
        if self._session is not None:
            return min(self._session.current_question_index + 1, TOTAL_QUESTIONS)
        return None

    def _context(self) -> str:
        return session_context(self.session_id, self._current_question_number())

    def _snapshot(self) -> SessionSnapshot:
        session = self._session
        active = self._active
        question = None
        if active is not None:
            question = {
                "question_number": active.question_number,
                "difficulty": active.difficulty,
                "time_limit": active.time_limit_seconds,
                "text": active.prompt.text,
                "options": dict(active.prompt.options),
            }
        if session is None:
            # Nothing loaded yet (store unreachable on first use)
            return SessionSnapshot(
                session_id=self.session_id,
                status=None,
                question_number=None,
                total_questions=TOTAL_QUESTIONS,
                answered_count=0,
                total_score=0,
                timer=self.timer.state(),
                switch_count=self.visibility.switch_count,
                error=self._call_error or self._last_error,
            )
        if session.status == SessionStatus.COMPLETED:
            question_number = TOTAL_QUESTIONS
        else:
            question_number = self._current_question_number()

        selected = self._pending_finalize.answer if self._pending_finalize else self._selected
        return SessionSnapshot(
            session_id=self.session_id,
            status=session.status,
            question_number=question_number,
            total_questions=TOTAL_QUESTIONS,
            answered_count=session.current_question_index,
            total_score=session.total_score,
            timer=self.timer.state(),
            question=question,
            selected_option=selected,
            submission_locked=self._pending_finalize is not None,
            switch_count=self.visibility.switch_count,
            last_result=self._last_result,
            error=self._call_error or self._last_error,
            summary=self._summary,
        )
