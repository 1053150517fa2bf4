"""Assessment session types.

States, violation log entries, configuration and results of a proctored
assessment. Transitions between states are listed in
`ASSESSMENT_TRANSITIONS`; anything not listed there is illegal.
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from learnmate.config.settings import Settings, get_settings
from learnmate.courses.schemas import QuizQuestion
from learnmate.playback.content import AssessmentPlayback


class AssessmentState(str, Enum):
    """Assessment session state."""

    INSTRUCTIONS = "instructions"
    ACTIVE = "active"
    SUBMITTING = "submitting"
    SUBMITTED = "submitted"


ASSESSMENT_TRANSITIONS: dict[AssessmentState, frozenset[AssessmentState]] = {
    AssessmentState.INSTRUCTIONS: frozenset({AssessmentState.ACTIVE}),
    AssessmentState.ACTIVE: frozenset({AssessmentState.SUBMITTING}),
    AssessmentState.SUBMITTING: frozenset({AssessmentState.SUBMITTED}),
    AssessmentState.SUBMITTED: frozenset(),
}


class ViolationType(str, Enum):
    """Entries of the session activity log.

    Not every entry is a violation: start, auto-submit and submission are
    recorded too.
    """

    ASSESSMENT_STARTED = "assessment_started"
    FULLSCREEN_EXIT = "fullscreen_exit"
    RIGHT_CLICK = "right_click"
    FORBIDDEN_KEY = "forbidden_key"
    TAB_SWITCH = "tab_switch"
    AUTO_SUBMIT = "auto_submit"
    ASSESSMENT_SUBMITTED = "assessment_submitted"


class SubmitReason(str, Enum):
    """Why an assessment was submitted automatically."""

    TIME_EXPIRED = "time_expired"
    FULLSCREEN_NOT_RESTORED = "fullscreen_not_restored"
    MAX_EXITS_EXCEEDED = "max_exits_exceeded"


# ==============================================================================
# Custom Exceptions
# ==============================================================================


class AssessmentError(Exception):
    """Base assessment error."""

    def __init__(self, message: str, code: str = "assessment_error"):
        self.message = message
        self.code = code
        super().__init__(message)


class InvalidTransitionError(AssessmentError):
    """State change not allowed from the current state."""

    def __init__(self, current: AssessmentState, target: AssessmentState):
        self.current = current
        self.target = target
        super().__init__(
            f"Cannot move assessment from {current.value} to {target.value}",
            "invalid_transition",
        )


class AssessmentNotActiveError(AssessmentError):
    """Operation requires a running assessment."""

    def __init__(self, message: str = "Assessment is not active"):
        super().__init__(message, "assessment_not_active")


class InvalidAnswerError(AssessmentError):
    """Answer refers to a question or option that does not exist."""

    def __init__(self, message: str = "Invalid answer"):
        super().__init__(message, "invalid_answer")


# ==============================================================================
# Entities
# ==============================================================================


@dataclass(frozen=True)
class Violation:
    type: ViolationType
    detail: dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type.value,
            "detail": self.detail,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass(frozen=True)
class AssessmentConfig:
    """Rules of one assessment."""

    questions: list[QuizQuestion] = field(default_factory=list)
    duration_minutes: int = 60
    passing_score: float = 70
    allowed_exits: int = 3
    exit_countdown_seconds: int = 10
    # Delays before silently retrying fullscreen after an exit
    reentry_delay: float = 0.1
    initial_reentry_delay: float = 0.12

    @property
    def duration_seconds(self) -> int:
        return self.duration_minutes * 60

    @classmethod
    def from_playback(
        cls, playback: AssessmentPlayback, settings: Settings | None = None
    ) -> "AssessmentConfig":
        settings = settings or get_settings()
        return cls(
            questions=list(playback.questions),
            duration_minutes=playback.duration_minutes,
            passing_score=playback.passing_score,
            allowed_exits=settings.assessment_allowed_exits,
            exit_countdown_seconds=settings.assessment_exit_countdown_seconds,
        )


@dataclass(frozen=True)
class AssessmentResult:
    """Outcome of a submitted assessment."""

    score: float
    correct_answers: int
    total_questions: int
    passed: bool
    auto_submit: bool
    reason: SubmitReason | None
    time_used: int
    completion_recorded: bool = False
    completion_error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "score": self.score,
            "correctAnswers": self.correct_answers,
            "totalQuestions": self.total_questions,
            "passed": self.passed,
            "autoSubmit": self.auto_submit,
            "reason": self.reason.value if self.reason else None,
            "timeUsed": self.time_used,
            "completionRecorded": self.completion_recorded,
        }
