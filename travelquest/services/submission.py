"""
Quiz submission pipeline.

A submission runs as an ordered list of steps against one session inside one
transaction::

    load_quiz -> grade_submission -> compute_bonus -> record_result
        -> credit_completion -> touch_streak -> evaluate_badges

Each step receives the ``SubmissionContext`` and returns it. Any exception
rolls the whole transaction back; nothing is published until after commit.
"""
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence
import logging

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from travelquest.core.events import EventPublisher, badge_earned_event, quiz_completed_event
from travelquest.core.exceptions import NotFound, SubmissionFailed, TravelQuestError, ValidationFailure
from travelquest.models import Badge, PointSource, Question, Quiz, QuizResult, QuizStatus
from travelquest.services import badges, ledger, streaks
from travelquest.services.grading import GradeResult, grade, gradable
from travelquest.services.streaks import StreakState

logger = logging.getLogger(__name__)

COMPLETION_POINTS = 100
PERFECT_SCORE_BONUS = 50
HIGH_SCORE_BONUS = 25
HIGH_SCORE_THRESHOLD = 90


def completion_bonus(score: float) -> int:
    """Points credited for finishing a quiz; the score bonuses do not stack."""
    if score == 100:
        return COMPLETION_POINTS + PERFECT_SCORE_BONUS
    if score >= HIGH_SCORE_THRESHOLD:
        return COMPLETION_POINTS + HIGH_SCORE_BONUS
    return COMPLETION_POINTS


@dataclass
class SubmissionContext:
    session: AsyncSession
    user_id: str
    quiz_id: int
    answers: List[Any]
    time_spent: int
    today: date
    quiz: Optional[Quiz] = None
    questions: List[Question] = field(default_factory=list)
    grade: Optional[GradeResult] = None
    completion_points: int = 0
    result: Optional[QuizResult] = None
    streak: Optional[StreakState] = None
    awarded_badges: List[Badge] = field(default_factory=list)


@dataclass(frozen=True)
class SubmissionSummary:
    result_id: int
    attempt_number: int
    score: float
    passed: bool
    points_earned: int
    gamification_points: int
    badge_points: int
    correct_answers: int
    total_questions: int
    badges_earned: List[str]
    current_streak: int

    def to_response(self) -> Dict[str, Any]:
        return {
            "resultId": self.result_id,
            "attemptNumber": self.attempt_number,
            "score": self.score,
            "passed": self.passed,
            "pointsEarned": self.points_earned,
            "gamificationPoints": self.gamification_points,
            "badgePoints": self.badge_points,
            "correctAnswers": self.correct_answers,
            "totalQuestions": self.total_questions,
            "badgesEarned": self.badges_earned,
            "currentStreak": self.current_streak,
        }


Step = Callable[[SubmissionContext], Awaitable[SubmissionContext]]


# ========== Steps ==========

async def load_quiz(ctx: SubmissionContext) -> SubmissionContext:
    quiz = await ctx.session.scalar(
        select(Quiz).where(Quiz.id == ctx.quiz_id, Quiz.status == QuizStatus.ACTIVE)
    )
    if quiz is None:
        raise NotFound("Quiz not found", {"quiz_id": ctx.quiz_id})
    ctx.quiz = quiz
    ctx.questions = list(await ctx.session.scalars(
        select(Question).where(Question.quiz_id == quiz.id).order_by(Question.sort_order.asc(), Question.id.asc())
    ))
    return ctx


async def grade_submission(ctx: SubmissionContext) -> SubmissionContext:
    ctx.grade = grade(
        ctx.quiz.passing_score,
        [gradable(q.points, q.correct_answer) for q in ctx.questions],
        ctx.answers,
    )
    return ctx


async def compute_bonus(ctx: SubmissionContext) -> SubmissionContext:
    ctx.completion_points = completion_bonus(ctx.grade.score)
    return ctx


async def record_result(ctx: SubmissionContext) -> SubmissionContext:
    prior_attempts = await ctx.session.scalar(
        select(func.count(QuizResult.id)).where(
            QuizResult.user_id == ctx.user_id, QuizResult.quiz_id == ctx.quiz.id
        )
    )
    ctx.result = QuizResult(
        user_id=ctx.user_id,
        quiz_id=ctx.quiz.id,
        score=ctx.grade.score,
        points_earned=ctx.grade.earned_points,
        time_spent=ctx.time_spent,
        answers=ctx.answers,
        passed=ctx.grade.passed,
        attempt_number=int(prior_attempts or 0) + 1,
        completed_at=datetime.now(timezone.utc),
    )
    ctx.session.add(ctx.result)
    await ctx.session.flush()
    return ctx


async def credit_completion(ctx: SubmissionContext) -> SubmissionContext:
    await ledger.credit(
        ctx.session,
        ctx.user_id,
        ctx.completion_points,
        PointSource.QUIZ_COMPLETION,
        source_id=ctx.quiz.id,
        description=f"Quiz: {ctx.quiz.title}",
    )
    return ctx


async def touch_streak(ctx: SubmissionContext) -> SubmissionContext:
    ctx.streak = await streaks.touch(ctx.session, ctx.user_id, ctx.today)
    return ctx


async def evaluate_badges(ctx: SubmissionContext) -> SubmissionContext:
    ctx.awarded_badges = await badges.evaluate(ctx.session, ctx.user_id)
    return ctx


DEFAULT_STEPS: Sequence[Step] = (
    load_quiz,
    grade_submission,
    compute_bonus,
    record_result,
    credit_completion,
    touch_streak,
    evaluate_badges,
)


def utc_today() -> date:
    return datetime.now(timezone.utc).date()


def validate_submission(answers: Any, time_spent: Any) -> None:
    if not isinstance(answers, list):
        raise ValidationFailure("answers must be an array")
    if isinstance(time_spent, bool) or not isinstance(time_spent, int) or time_spent < 0:
        raise ValidationFailure("timeSpent must be a non-negative integer of seconds")


class SubmissionService:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        publisher: EventPublisher,
        steps: Sequence[Step] = DEFAULT_STEPS,
        clock: Callable[[], date] = utc_today,
    ):
        self.session_factory = session_factory
        self.publisher = publisher
        self.steps = tuple(steps)
        self.clock = clock

    async def submit_quiz(
        self,
        user_id: str,
        quiz_id: int,
        answers: List[Any],
        time_spent: int,
        today: Optional[date] = None,
    ) -> SubmissionSummary:
        """Grade a submission and apply every reward atomically."""
        validate_submission(answers, time_spent)
        today = today or self.clock()

        try:
            async with self.session_factory() as session:
                async with session.begin():
                    ctx = SubmissionContext(
                        session=session,
                        user_id=user_id,
                        quiz_id=quiz_id,
                        answers=answers,
                        time_spent=time_spent,
                        today=today,
                    )
                    for step in self.steps:
                        ctx = await step(ctx)
        except TravelQuestError:
            raise
        except Exception as exc:
            logger.error(f"Quiz submission failed for user {user_id}, quiz {quiz_id}: {exc}", exc_info=True)
            raise SubmissionFailed("Failed to submit quiz") from exc

        summary = SubmissionSummary(
            result_id=ctx.result.id,
            attempt_number=ctx.result.attempt_number,
            score=ctx.grade.score,
            passed=ctx.grade.passed,
            points_earned=ctx.grade.earned_points,
            gamification_points=ctx.completion_points,
            badge_points=sum(b.points_reward for b in ctx.awarded_badges),
            correct_answers=ctx.grade.correct_count,
            total_questions=ctx.grade.total_questions,
            badges_earned=[b.name for b in ctx.awarded_badges],
            current_streak=ctx.streak.current if ctx.streak else 0,
        )
        logger.info(
            f"User {user_id} submitted quiz {quiz_id}: score={summary.score:.2f} "
            f"passed={summary.passed} badges={summary.badges_earned}"
        )
        await self._publish(ctx, summary)
        return summary

    async def _publish(self, ctx: SubmissionContext, summary: SubmissionSummary) -> None:
        await self.publisher.publish(
            ctx.user_id,
            quiz_completed_event(ctx.quiz.id, ctx.quiz.title, summary.score, summary.passed, summary.points_earned),
        )
        for badge in ctx.awarded_badges:
            await self.publisher.publish(
                ctx.user_id,
                badge_earned_event(badge.id, badge.name, badge.icon, badge.points_reward),
            )
