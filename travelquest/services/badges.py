"""
Badge eligibility and awarding.

Eligibility is a closed rule set keyed by badge name. The ``criteria`` JSON
stored on catalog rows is display data and is not interpreted here; a catalog
badge with no rule below is never awarded by this module.
"""
from dataclasses import dataclass
from typing import Callable, Dict, List
import logging

from sqlalchemy import case, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from travelquest.models import Badge, LearningStreak, PointSource, QuizResult, StreakType, UserBadge
from travelquest.services import ledger

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BadgeStats:
    quiz_count: int
    avg_score: float
    perfect_score_count: int
    current_streak: int


BadgeRule = Callable[[BadgeStats], bool]

BADGE_RULES: Dict[str, BadgeRule] = {
    "First Steps": lambda s: s.quiz_count >= 1,
    "Perfectionist": lambda s: s.perfect_score_count >= 1,
    "Quiz Master": lambda s: s.quiz_count >= 5,
    "High Performer": lambda s: s.avg_score >= 85,
    "Streak Warrior": lambda s: s.current_streak >= 7,
}


def is_eligible(badge_name: str, stats: BadgeStats) -> bool:
    rule = BADGE_RULES.get(badge_name)
    return bool(rule and rule(stats))


async def load_stats(session: AsyncSession, user_id: str) -> BadgeStats:
    """Aggregate stats computed from the user's result and streak rows."""
    row = (await session.execute(
        select(
            func.count(QuizResult.id),
            func.avg(QuizResult.score),
            func.sum(case((QuizResult.score >= 100, 1), else_=0)),
        ).where(QuizResult.user_id == user_id)
    )).one()
    current_streak = await session.scalar(
        select(LearningStreak.current_streak).where(
            LearningStreak.user_id == user_id, LearningStreak.streak_type == StreakType.DAILY
        )
    )
    return BadgeStats(
        quiz_count=int(row[0] or 0),
        avg_score=float(row[1] or 0.0),
        perfect_score_count=int(row[2] or 0),
        current_streak=int(current_streak or 0),
    )


async def award(session: AsyncSession, user_id: str, badge: Badge) -> bool:
    """Grant ``badge`` to the user and credit its reward.

    Returns False when the user already holds the badge; the unique
    (user_id, badge_id) constraint is what decides that under concurrency.
    """
    try:
        async with session.begin_nested():
            session.add(UserBadge(user_id=user_id, badge_id=badge.id, points_awarded=badge.points_reward))
    except IntegrityError:
        logger.info(f"User {user_id} already holds badge '{badge.name}', skipping")
        return False

    if badge.points_reward > 0:
        await ledger.credit(
            session,
            user_id,
            badge.points_reward,
            PointSource.BADGE_EARNED,
            source_id=badge.id,
            description=f"Badge: {badge.name}",
        )
    logger.info(f"Awarded badge '{badge.name}' to user {user_id} (+{badge.points_reward} points)")
    return True


async def evaluate(session: AsyncSession, user_id: str) -> List[Badge]:
    """Award every eligible badge the user does not hold yet; returns the new ones."""
    stats = await load_stats(session, user_id)
    catalog = (await session.scalars(
        select(Badge).where(Badge.is_active.is_(True)).order_by(Badge.id)
    )).all()
    held = set((await session.scalars(
        select(UserBadge.badge_id).where(UserBadge.user_id == user_id)
    )).all())

    newly_awarded: List[Badge] = []
    for badge in catalog:
        if badge.id in held or not is_eligible(badge.name, stats):
            continue
        if await award(session, user_id, badge):
            newly_awarded.append(badge)
    return newly_awarded
