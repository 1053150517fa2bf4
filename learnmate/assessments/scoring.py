"""Client-side scoring of quizzes and assessments."""

from collections.abc import Mapping, Sequence
from dataclasses import dataclass

from learnmate.courses.schemas import QuizQuestion
from learnmate.utils import percentage


QUIZ_PASSING_SCORE = 70


@dataclass(frozen=True)
class ScoreResult:
    correct_answers: int
    total_questions: int
    score: float


@dataclass(frozen=True)
class QuizGrade:
    score: int
    correct_answers: int
    total_questions: int
    passed: bool


def count_correct(questions: Sequence[QuizQuestion], answers: Mapping[int, int]) -> int:
    """Count answers matching the question's correct option."""
    return sum(
        1
        for index, question in enumerate(questions)
        if question.correct_answer is not None
        and answers.get(index) == question.correct_answer
    )


def score_answers(
    questions: Sequence[QuizQuestion], answers: Mapping[int, int]
) -> ScoreResult:
    """Unrounded percentage of correct answers; 0 when there are no questions."""
    total = len(questions)
    correct = count_correct(questions, answers)
    score = correct * 100 / total if total else 0.0
    return ScoreResult(correct_answers=correct, total_questions=total, score=score)


def grade_quiz(
    questions: Sequence[QuizQuestion],
    answers: Mapping[int, int],
    passing_score: int = QUIZ_PASSING_SCORE,
) -> QuizGrade:
    """Grade an untimed quiz; the score is rounded to a whole percent."""
    total = len(questions)
    correct = count_correct(questions, answers)
    score = percentage(correct, total)
    return QuizGrade(
        score=score,
        correct_answers=correct,
        total_questions=total,
        passed=total > 0 and score >= passing_score,
    )
