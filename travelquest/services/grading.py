"""
Quiz grading.

Answers are bound to questions by position: ``answers[i]`` is graded against
the i-th question in ascending ``sort_order``. There is no question-id
cross-check, so clients must submit answers in the order questions were served.
"""
from dataclasses import dataclass
from typing import Any, List, Sequence
import json


@dataclass(frozen=True)
class GradableQuestion:
    points: int
    correct_answer: Any  # already JSON-decoded


@dataclass(frozen=True)
class GradeResult:
    score: float
    passed: bool
    earned_points: int
    total_points: int
    correct_count: int
    total_questions: int


_MISSING = object()


def answers_match(submitted: Any, expected: Any) -> bool:
    """Strict JSON-value equality.

    Booleans only equal booleans (``True`` never matches ``1`` or ``"true"``),
    numbers compare by value across int/float, containers compare
    element-wise.
    """
    if isinstance(submitted, bool) or isinstance(expected, bool):
        return type(submitted) is type(expected) and submitted == expected
    if isinstance(submitted, (int, float)) and isinstance(expected, (int, float)):
        return submitted == expected
    if isinstance(submitted, list) and isinstance(expected, list):
        return len(submitted) == len(expected) and all(
            answers_match(s, e) for s, e in zip(submitted, expected)
        )
    if isinstance(submitted, dict) and isinstance(expected, dict):
        return submitted.keys() == expected.keys() and all(
            answers_match(submitted[k], expected[k]) for k in expected
        )
    return type(submitted) is type(expected) and submitted == expected


def grade(passing_score: float, questions: Sequence[GradableQuestion], answers: List[Any]) -> GradeResult:
    total_points = 0
    earned_points = 0
    correct = 0
    for index, question in enumerate(questions):
        total_points += question.points
        submitted = answers[index] if index < len(answers) else _MISSING
        if submitted is not _MISSING and answers_match(submitted, question.correct_answer):
            earned_points += question.points
            correct += 1

    score = (earned_points / total_points) * 100 if total_points > 0 else 0.0
    return GradeResult(
        score=score,
        passed=score >= passing_score,
        earned_points=earned_points,
        total_points=total_points,
        correct_count=correct,
        total_questions=len(questions),
    )


def gradable(points: int, stored_answer: str) -> GradableQuestion:
    """Build a grading input from a stored question row."""
    return GradableQuestion(points=points, correct_answer=json.loads(stored_answer))
