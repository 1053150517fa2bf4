"""Assessments and quizzes.

Provides:
- Proctored, timed assessment sessions with fullscreen enforcement
- Activity logging and automatic submission
- Client-side scoring for assessments and untimed quizzes
"""

from .fullscreen import ElementFullscreen, FullscreenController
from .models import (
    ASSESSMENT_TRANSITIONS,
    AssessmentConfig,
    AssessmentError,
    AssessmentResult,
    AssessmentState,
    InvalidTransitionError,
    SubmitReason,
    Violation,
    ViolationType,
)
from .quiz import submit_quiz
from .scoring import grade_quiz, score_answers
from .session import AssessmentSession


__all__ = [
    "ASSESSMENT_TRANSITIONS",
    "AssessmentConfig",
    "AssessmentError",
    "AssessmentResult",
    "AssessmentSession",
    "AssessmentState",
    "ElementFullscreen",
    "FullscreenController",
    "InvalidTransitionError",
    "SubmitReason",
    "Violation",
    "ViolationType",
    "grade_quiz",
    "score_answers",
    "submit_quiz",
]
