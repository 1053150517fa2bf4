"""Proctored assessment session.

An `AssessmentSession` runs one timed assessment:

    instructions -> active -> submitting -> submitted

Starting requires fullscreen. While active, a countdown runs, fullscreen
exits are counted and escalate (silent re-entry, blocking overlay, 10 second
return window) and other suspicious events are recorded in the activity log.
The session is submitted by the learner or automatically on timeout, on an
unrestored fullscreen exit, or once the allowed number of exits is reached.

A pass records the lesson as completed. When that call fails the learner is
alerted and the session is still submitted; the result carries the error.
"""

import inspect
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from typing import Any
from uuid import UUID

import structlog

from learnmate.assessments.fullscreen import FullscreenController
from learnmate.assessments.keys import ESCAPE_KEY, is_forbidden_key
from learnmate.assessments.models import (
    ASSESSMENT_TRANSITIONS,
    AssessmentConfig,
    AssessmentNotActiveError,
    AssessmentResult,
    AssessmentState,
    InvalidAnswerError,
    InvalidTransitionError,
    SubmitReason,
    Violation,
    ViolationType,
)
from learnmate.assessments.scoring import score_answers
from learnmate.core.timers import TimerCallback, TimerHandle, Timers
from learnmate.playback.gateway import ProgressGateway
from learnmate.playback.tracker import LessonContext


logger = structlog.get_logger(__name__)

FULLSCREEN_REQUIRED_MESSAGE = (
    "This assessment requires fullscreen mode. "
    "Please allow fullscreen access and try again."
)
SUBMIT_FAILED_MESSAGE = (
    "Your answers were submitted but the lesson could not be marked as "
    "complete. Please try again later."
)

AlertFn = Callable[[str], Awaitable[Any] | Any]


class AssessmentSession:
    """State machine of a single proctored assessment attempt."""

    def __init__(
        self,
        config: AssessmentConfig,
        fullscreen: FullscreenController,
        timers: Timers,
        *,
        gateway: ProgressGateway | None = None,
        context: LessonContext | None = None,
        alert: AlertFn | None = None,
        on_complete: Callable[[UUID], Awaitable[Any] | Any] | None = None,
        clock: Callable[[], datetime] = lambda: datetime.now(UTC),
    ) -> None:
        self.config = config
        self.fullscreen = fullscreen
        self.timers = timers
        self.gateway = gateway
        self.context = context
        self._alert_fn = alert
        self._on_complete = on_complete
        self._clock = clock

        self.state = AssessmentState.INSTRUCTIONS
        self.answers: dict[int, int] = {}
        self.fullscreen_exits = 0
        self.violations: list[Violation] = []
        self.time_remaining: int | None = None
        self.exit_countdown: int | None = None
        self.overlay_forced = False
        self.initial_fullscreen_acquired = False
        self.escape_pressed = False
        self.is_fullscreen = False
        self.result: AssessmentResult | None = None

        self._countdown: TimerHandle | None = None
        self._exit_timer: TimerHandle | None = None
        self._retries: list[TimerHandle] = []
        self._closed = False

    def __repr__(self) -> str:
        return (
            f"<AssessmentSession state={self.state.value} "
            f"exits={self.fullscreen_exits} remaining={self.time_remaining}>"
        )

    @property
    def is_active(self) -> bool:
        return self.state is AssessmentState.ACTIVE and not self._closed

    def _transition(self, target: AssessmentState) -> None:
        if target not in ASSESSMENT_TRANSITIONS[self.state]:
            raise InvalidTransitionError(self.state, target)
        logger.debug(
            "assessment_state_changed", from_state=self.state.value, to_state=target.value
        )
        self.state = target

    def _log(self, violation_type: ViolationType, **detail: Any) -> None:
        self.violations.append(Violation(violation_type, detail, self._clock()))

    # ==========================================================================
    # Start
    # ==========================================================================

    async def begin(self) -> bool:
        """Enter fullscreen and start the countdown.

        Returns False (and alerts the learner) when fullscreen is refused;
        the session then stays in the instructions state.
        """
        if self.state is not AssessmentState.INSTRUCTIONS:
            raise InvalidTransitionError(self.state, AssessmentState.ACTIVE)

        if not await self._enter_fullscreen():
            logger.info("assessment_fullscreen_refused", **self._context_fields())
            await self._alert(FULLSCREEN_REQUIRED_MESSAGE)
            return False

        self._transition(AssessmentState.ACTIVE)
        self.is_fullscreen = True
        self.time_remaining = self.config.duration_seconds
        self._log(
            ViolationType.ASSESSMENT_STARTED,
            duration=self.config.duration_minutes,
            questionsCount=len(self.config.questions),
        )
        self._countdown = self.timers.call_every(1, self._tick)

        logger.info(
            "assessment_started",
            duration_minutes=self.config.duration_minutes,
            questions_count=len(self.config.questions),
            **self._context_fields(),
        )
        return True

    async def _tick(self) -> None:
        if not self.is_active or self.time_remaining is None:
            self._cancel(self._countdown)
            return
        self.time_remaining = max(0, self.time_remaining - 1)
        if self.time_remaining == 0:
            await self.auto_submit(SubmitReason.TIME_EXPIRED)

    def answer(self, question_index: int, option_index: int) -> None:
        """Record the learner's option for a question."""
        if not self.is_active:
            raise AssessmentNotActiveError
        if not 0 <= question_index < len(self.config.questions):
            raise InvalidAnswerError(f"Question {question_index} does not exist")
        options = self.config.questions[question_index].options
        if options and not 0 <= option_index < len(options):
            raise InvalidAnswerError(f"Option {option_index} does not exist")
        self.answers[question_index] = option_index

    # ==========================================================================
    # Fullscreen
    # ==========================================================================

    async def _enter_fullscreen(self) -> bool:
        if not await self.fullscreen.request():
            return False
        self.escape_pressed = False
        return True

    async def on_fullscreen_change(self, is_fullscreen: bool) -> None:
        """Handle the browser entering or leaving fullscreen.

        A granted request only counts as acquired once the browser reports
        fullscreen; exits before that are retried silently without escalation.
        """
        self.is_fullscreen = is_fullscreen
        if is_fullscreen and not self._closed:
            self.initial_fullscreen_acquired = True
        if not self.is_active:
            return

        if is_fullscreen:
            self._stop_exit_countdown()
            self.overlay_forced = False
            return

        self.fullscreen_exits += 1
        self._log(
            ViolationType.FULLSCREEN_EXIT,
            exitCount=self.fullscreen_exits,
            timeRemaining=self.time_remaining,
            escapeKey=self.escape_pressed,
        )
        logger.warning(
            "assessment_fullscreen_exit",
            exit_count=self.fullscreen_exits,
            allowed_exits=self.config.allowed_exits,
            escape_key=self.escape_pressed,
            **self._context_fields(),
        )

        if not self.initial_fullscreen_acquired:
            self._schedule(self.config.initial_reentry_delay, self._silent_reenter)
            return

        if self.escape_pressed:
            self.overlay_forced = True
        else:
            self._schedule(self.config.reentry_delay, self._retry_reenter)

        self._start_exit_countdown()

        if self.fullscreen_exits >= self.config.allowed_exits:
            await self.auto_submit(SubmitReason.MAX_EXITS_EXCEEDED)

    async def _silent_reenter(self) -> None:
        if self.is_active:
            await self._enter_fullscreen()

    async def _retry_reenter(self) -> None:
        if not self.is_active:
            return
        if not await self._enter_fullscreen():
            self.overlay_forced = True

    async def reenter_fullscreen(self) -> bool:
        """Learner asked to return to fullscreen from the overlay."""
        if not self.is_active:
            return False
        if not await self._enter_fullscreen():
            return False
        self.overlay_forced = False
        self._stop_exit_countdown()
        return True

    def _start_exit_countdown(self) -> None:
        self._cancel(self._exit_timer)
        self.exit_countdown = self.config.exit_countdown_seconds
        self._exit_timer = self.timers.call_every(1, self._exit_tick)

    def _stop_exit_countdown(self) -> None:
        self._cancel(self._exit_timer)
        self._exit_timer = None
        self.exit_countdown = None

    async def _exit_tick(self) -> None:
        if not self.is_active or self.exit_countdown is None:
            self._cancel(self._exit_timer)
            return
        self.exit_countdown -= 1
        if self.exit_countdown <= 0:
            self.exit_countdown = 0
            await self.auto_submit(SubmitReason.FULLSCREEN_NOT_RESTORED)

    # ==========================================================================
    # Monitored Events
    # ==========================================================================

    def on_context_menu(self, target: str | None = None) -> bool:
        """Right click; returns True when the menu must be suppressed."""
        if not self.is_active:
            return False
        self._log(ViolationType.RIGHT_CLICK, target=target)
        return True

    def on_key_down(
        self, key: str, ctrl: bool = False, alt: bool = False, shift: bool = False
    ) -> bool:
        """Key press; returns True when its default action must be prevented."""
        if not self.is_active:
            return False

        prevented = False
        if key == ESCAPE_KEY:
            self.escape_pressed = True
            prevented = True

        if is_forbidden_key(key, ctrl=ctrl, alt=alt, shift=shift):
            self._log(ViolationType.FORBIDDEN_KEY, key=key, ctrl=ctrl, alt=alt, shift=shift)
            prevented = True
        return prevented

    def on_visibility_change(self, hidden: bool) -> None:
        if hidden and self.is_active:
            self._log(ViolationType.TAB_SWITCH, hidden=True)

    def on_before_unload(self) -> bool:
        """Whether leaving the page should ask for confirmation."""
        return self.is_active

    # ==========================================================================
    # Submission
    # ==========================================================================

    async def submit(self) -> AssessmentResult | None:
        """Submit on the learner's request.

        Returns None when a submission is already running or done.
        """
        return await self._submit(auto=False)

    async def auto_submit(self, reason: SubmitReason) -> AssessmentResult | None:
        if not self.is_active:
            return None
        self._log(ViolationType.AUTO_SUBMIT, reason=reason.value, answers=len(self.answers))
        logger.info(
            "assessment_auto_submitted",
            reason=reason.value,
            answered=len(self.answers),
            **self._context_fields(),
        )
        return await self._submit(auto=True, reason=reason)

    async def _submit(
        self, auto: bool, reason: SubmitReason | None = None
    ) -> AssessmentResult | None:
        if self._closed:
            return None
        if self.state in (AssessmentState.SUBMITTING, AssessmentState.SUBMITTED):
            return None
        self._transition(AssessmentState.SUBMITTING)
        self._cancel_timers()

        scored = score_answers(self.config.questions, self.answers)
        passed = scored.score >= self.config.passing_score

        completion_recorded = False
        completion_error = None
        if passed:
            completion_recorded, completion_error = await self._record_completion()

        time_used = self.config.duration_seconds - (self.time_remaining or 0)
        self._log(
            ViolationType.ASSESSMENT_SUBMITTED,
            autoSubmit=auto,
            score=scored.score,
            correctAnswers=scored.correct_answers,
            totalQuestions=scored.total_questions,
            timeUsed=time_used,
            securityViolations=len(self.violations),
        )

        self.result = AssessmentResult(
            score=scored.score,
            correct_answers=scored.correct_answers,
            total_questions=scored.total_questions,
            passed=passed,
            auto_submit=auto,
            reason=reason,
            time_used=time_used,
            completion_recorded=completion_recorded,
            completion_error=completion_error,
        )
        self._transition(AssessmentState.SUBMITTED)
        self.overlay_forced = False
        self.exit_countdown = None
        await self.fullscreen.exit()

        logger.info(
            "assessment_submitted",
            auto_submit=auto,
            score=scored.score,
            passed=passed,
            time_used=time_used,
            violations=len(self.violations),
            **self._context_fields(),
        )
        return self.result

    async def _record_completion(self) -> tuple[bool, str | None]:
        context = self.context
        if self.gateway is None or context is None or context.course_id is None:
            return False, None

        try:
            await self.gateway.mark_lesson_complete(context.course_id, context.lesson_id)
        except Exception as e:
            logger.error(
                "assessment_completion_failed",
                error=str(e),
                error_type=type(e).__name__,
                **self._context_fields(),
            )
            await self._alert(SUBMIT_FAILED_MESSAGE)
            return False, str(e)

        if self._on_complete is not None:
            result = self._on_complete(context.lesson_id)
            if inspect.isawaitable(result):
                await result
        return True, None

    # ==========================================================================
    # Timers
    # ==========================================================================

    def _schedule(self, delay: float, callback: TimerCallback) -> None:
        self._retries = [h for h in self._retries if not h.cancelled]
        self._retries.append(self.timers.call_later(delay, callback))

    @staticmethod
    def _cancel(handle: TimerHandle | None) -> None:
        if handle is not None:
            handle.cancel()

    def _cancel_timers(self) -> None:
        self._cancel(self._countdown)
        self._cancel(self._exit_timer)
        for handle in self._retries:
            handle.cancel()
        self._countdown = None
        self._exit_timer = None
        self._retries = []

    def close(self) -> None:
        """Discard the session (learner navigated away)."""
        self._closed = True
        self._cancel_timers()
        logger.debug("assessment_session_closed", state=self.state.value)

    async def _alert(self, message: str) -> None:
        if self._alert_fn is None:
            return
        result = self._alert_fn(message)
        if inspect.isawaitable(result):
            await result

    def _context_fields(self) -> dict[str, str]:
        if self.context is None:
            return {}
        fields = {"lesson_id": str(self.context.lesson_id)}
        if self.context.course_id is not None:
            fields["course_id"] = str(self.context.course_id)
        return fields
