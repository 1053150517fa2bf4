"""Untimed quiz lessons."""

from collections.abc import Mapping

import structlog

from learnmate.assessments.scoring import QUIZ_PASSING_SCORE, QuizGrade, grade_quiz
from learnmate.playback.content import QuizPlayback
from learnmate.playback.gateway import ProgressGateway
from learnmate.playback.tracker import LessonContext


logger = structlog.get_logger(__name__)


async def submit_quiz(
    quiz: QuizPlayback,
    answers: Mapping[int, int],
    gateway: ProgressGateway | None = None,
    context: LessonContext | None = None,
    passing_score: int = QUIZ_PASSING_SCORE,
) -> QuizGrade:
    """Grade a quiz and complete the lesson when it is passed.

    Raises:
        GatewayError: If the lesson completion call fails
    """
    grade = grade_quiz(quiz.questions, answers, passing_score)
    logger.info(
        "quiz_submitted",
        lesson_id=str(quiz.lesson_id),
        score=grade.score,
        passed=grade.passed,
    )

    if grade.passed and gateway is not None and context is not None and context.course_id:
        await gateway.mark_lesson_complete(context.course_id, context.lesson_id)
        logger.info(
            "quiz_lesson_completed",
            lesson_id=str(context.lesson_id),
            course_id=str(context.course_id),
        )
    return grade
