from datetime import date, timedelta

import pytest
from sqlalchemy import func, select

from travelquest.core.exceptions import NotFound, SubmissionFailed, ValidationFailure
from travelquest.models import LearningStreak, PointLedgerEntry, PointSource, QuizResult, QuizStatus, UserBadge
from travelquest.services import ledger
from travelquest.services.submission import (
    DEFAULT_STEPS, SubmissionService, record_result,
)

from tests.conftest import make_quiz

DAY = date(2024, 5, 10)


@pytest.fixture
def service(session_factory, publisher):
    return SubmissionService(session_factory, publisher, clock=lambda: DAY)


async def count(session_factory, model, **filters):
    async with session_factory() as s:
        stmt = select(func.count(model.id))
        for key, value in filters.items():
            stmt = stmt.where(getattr(model, key) == value)
        return await s.scalar(stmt)


async def test_full_pass(service, session_factory, publisher):
    quiz_id = await make_quiz(session_factory, ["Lisbon", True, 3])

    summary = await service.submit_quiz("ana", quiz_id, ["Lisbon", True, 3], 300)

    assert summary.score == 100
    assert summary.passed
    assert summary.points_earned == 3
    assert summary.gamification_points == 150
    assert summary.correct_answers == 3
    assert summary.total_questions == 3
    assert summary.attempt_number == 1
    assert summary.current_streak == 1
    assert summary.badges_earned == ["First Steps", "Perfectionist", "High Performer"]
    assert summary.badge_points == 300

    response = summary.to_response()
    assert response["gamificationPoints"] == 150
    assert response["pointsEarned"] == 3
    assert response["correctAnswers"] == 3
    assert response["totalQuestions"] == 3

    async with session_factory() as s:
        result = await s.get(QuizResult, summary.result_id)
        assert result.time_spent == 300
        assert result.answers == ["Lisbon", True, 3]
        completion = await s.scalar(
            select(PointLedgerEntry).where(PointLedgerEntry.source == PointSource.QUIZ_COMPLETION)
        )
        assert completion.points == 150
        assert completion.source_id == quiz_id
        assert completion.description == "Quiz: Lisbon Basics"
        assert await ledger.total_points(s, "ana") == 150 + 300


async def test_partial_fail(service, session_factory):
    quiz_id = await make_quiz(session_factory, ["Lisbon", True, 3])

    summary = await service.submit_quiz("ana", quiz_id, ["Lisbon", False, "3"], 45)

    assert summary.score == pytest.approx(33.33, abs=0.01)
    assert not summary.passed
    assert summary.points_earned == 1
    assert summary.gamification_points == 100
    assert summary.correct_answers == 1
    assert summary.badges_earned == ["First Steps"]


async def test_high_score_bonus(service, session_factory):
    quiz_id = await make_quiz(session_factory, list(range(10)))

    summary = await service.submit_quiz("ana", quiz_id, list(range(9)) + [-1], 100)

    assert summary.score == pytest.approx(90)
    assert summary.gamification_points == 125


async def test_failure_after_result_insert_rolls_everything_back(session_factory, publisher):
    quiz_id = await make_quiz(session_factory, ["a"])

    async def explode(ctx):
        raise RuntimeError("disk full")

    index = DEFAULT_STEPS.index(record_result) + 1
    steps = DEFAULT_STEPS[:index] + (explode,) + DEFAULT_STEPS[index:]
    service = SubmissionService(session_factory, publisher, steps=steps, clock=lambda: DAY)

    with pytest.raises(SubmissionFailed) as excinfo:
        await service.submit_quiz("ana", quiz_id, ["a"], 10)

    assert isinstance(excinfo.value.__cause__, RuntimeError)
    assert await count(session_factory, QuizResult, user_id="ana") == 0
    assert await count(session_factory, PointLedgerEntry, user_id="ana") == 0
    assert await count(session_factory, LearningStreak, user_id="ana") == 0
    assert await count(session_factory, UserBadge, user_id="ana") == 0
    assert publisher.events == []


async def test_unknown_quiz(service, publisher):
    with pytest.raises(NotFound):
        await service.submit_quiz("ana", 9999, [], 10)
    assert publisher.events == []


async def test_inactive_quiz_is_not_found(service, session_factory):
    quiz_id = await make_quiz(session_factory, ["a"], status=QuizStatus.DRAFT)
    with pytest.raises(NotFound):
        await service.submit_quiz("ana", quiz_id, ["a"], 10)
    assert await count(session_factory, QuizResult) == 0


@pytest.mark.parametrize("answers,time_spent", [
    ("a", 10),
    ({"0": "a"}, 10),
    (["a"], -1),
    (["a"], "10"),
    (["a"], True),
])
async def test_malformed_submission(service, session_factory, answers, time_spent):
    quiz_id = await make_quiz(session_factory, ["a"])
    with pytest.raises(ValidationFailure):
        await service.submit_quiz("ana", quiz_id, answers, time_spent)
    assert await count(session_factory, QuizResult) == 0


async def test_attempts_are_numbered_per_user_and_quiz(service, session_factory):
    quiz_id = await make_quiz(session_factory, ["a"])
    other_quiz = await make_quiz(session_factory, ["b"], title="Porto Basics")

    first = await service.submit_quiz("ana", quiz_id, ["x"], 10)
    second = await service.submit_quiz("ana", quiz_id, ["a"], 10)
    elsewhere = await service.submit_quiz("ana", other_quiz, ["b"], 10)
    someone_else = await service.submit_quiz("rui", quiz_id, ["a"], 10)

    assert (first.attempt_number, second.attempt_number) == (1, 2)
    assert elsewhere.attempt_number == 1
    assert someone_else.attempt_number == 1


async def test_same_day_resubmission_keeps_streak(service, session_factory):
    quiz_id = await make_quiz(session_factory, ["a"])

    await service.submit_quiz("ana", quiz_id, ["a"], 10)
    again = await service.submit_quiz("ana", quiz_id, ["a"], 10)
    next_day = await service.submit_quiz("ana", quiz_id, ["a"], 10, today=DAY + timedelta(days=1))

    assert again.current_streak == 1
    assert again.badges_earned == []
    assert next_day.current_streak == 2


async def test_events_published_after_commit(service, session_factory, publisher):
    quiz_id = await make_quiz(session_factory, ["a", "b"])

    await service.submit_quiz("ana", quiz_id, ["a", "b"], 30)

    events = publisher.for_user("ana")
    assert [e["type"] for e in events] == ["quiz_completed", "badge_earned", "badge_earned", "badge_earned"]
    assert events[0]["data"] == {"quizId": quiz_id, "score": 100.0, "passed": True, "pointsEarned": 2}
    assert events[0]["title"] == "Quiz Passed!"
    assert [e["data"]["badgeName"] for e in events[1:]] == ["First Steps", "Perfectionist", "High Performer"]
    assert events[1]["data"]["pointsReward"] == 50
