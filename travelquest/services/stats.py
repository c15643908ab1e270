"""
Read-side gamification queries: leaderboards, per-user stats and company
analytics. Each aggregate is computed in its own subquery so joins do not
multiply rows.
"""
from typing import Any, Dict, List, Optional

from sqlalchemy import case, desc, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from travelquest.models import (
    Badge, LearningStreak, PointLedgerEntry, QuizResult, StreakType, User, UserBadge, UserStatus,
)
from travelquest.services import ledger


def _points_subquery():
    return (
        select(PointLedgerEntry.user_id, func.sum(PointLedgerEntry.points).label("total_points"))
        .group_by(PointLedgerEntry.user_id)
        .subquery()
    )


def _results_subquery():
    return (
        select(
            QuizResult.user_id,
            func.count(QuizResult.id).label("quiz_count"),
            func.avg(QuizResult.score).label("average_score"),
            func.sum(case((QuizResult.passed.is_(True), 1), else_=0)).label("passed_quizzes"),
            func.sum(case((QuizResult.score >= 100, 1), else_=0)).label("perfect_scores"),
        )
        .group_by(QuizResult.user_id)
        .subquery()
    )


def _badges_subquery():
    return (
        select(UserBadge.user_id, func.count(func.distinct(UserBadge.badge_id)).label("badge_count"))
        .group_by(UserBadge.user_id)
        .subquery()
    )


async def leaderboard(session: AsyncSession, company_id: str) -> List[Dict[str, Any]]:
    points = _points_subquery()
    results = _results_subquery()
    held = _badges_subquery()
    total_points = func.coalesce(points.c.total_points, 0)
    average_score = func.coalesce(results.c.average_score, 0)

    stmt = (
        select(
            User.id,
            User.name,
            total_points.label("total_points"),
            func.coalesce(held.c.badge_count, 0).label("badge_count"),
            func.coalesce(LearningStreak.current_streak, 0).label("current_streak"),
            func.coalesce(results.c.quiz_count, 0).label("quiz_count"),
            average_score.label("average_score"),
        )
        .outerjoin(points, points.c.user_id == User.id)
        .outerjoin(results, results.c.user_id == User.id)
        .outerjoin(held, held.c.user_id == User.id)
        .outerjoin(
            LearningStreak,
            (LearningStreak.user_id == User.id) & (LearningStreak.streak_type == StreakType.DAILY),
        )
        .where(User.company_id == company_id, User.status == UserStatus.ACTIVE)
        .order_by(desc(total_points), desc(average_score), User.id)
    )
    rows = (await session.execute(stmt)).mappings().all()
    return [
        {
            "id": r["id"],
            "name": r["name"],
            "total_points": int(r["total_points"]),
            "badge_count": int(r["badge_count"]),
            "current_streak": int(r["current_streak"]),
            "quiz_count": int(r["quiz_count"]),
            "average_score": float(r["average_score"]),
            "rank": index + 1,
        }
        for index, r in enumerate(rows)
    ]


async def company_rank(session: AsyncSession, company_id: Optional[str], user_id: str) -> Optional[int]:
    """1 + number of active company users with strictly more points."""
    if company_id is None:
        return None
    points = _points_subquery()
    own_total = await ledger.total_points(session, user_id)
    higher = await session.scalar(
        select(func.count(User.id))
        .outerjoin(points, points.c.user_id == User.id)
        .where(
            User.company_id == company_id,
            User.status == UserStatus.ACTIVE,
            func.coalesce(points.c.total_points, 0) > own_total,
        )
    )
    return int(higher or 0) + 1


async def user_stats(session: AsyncSession, user_id: str) -> Optional[Dict[str, Any]]:
    user = await session.get(User, user_id)
    if user is None:
        return None

    results = (await session.execute(
        select(
            func.count(QuizResult.id),
            func.sum(case((QuizResult.passed.is_(True), 1), else_=0)),
            func.avg(QuizResult.score),
            func.sum(case((QuizResult.score >= 100, 1), else_=0)),
        ).where(QuizResult.user_id == user_id)
    )).one()
    streak = await session.scalar(
        select(LearningStreak).where(
            LearningStreak.user_id == user_id, LearningStreak.streak_type == StreakType.DAILY
        )
    )
    earned = (await session.execute(
        select(Badge, UserBadge.earned_at)
        .join(UserBadge, UserBadge.badge_id == Badge.id)
        .where(UserBadge.user_id == user_id)
        .order_by(UserBadge.earned_at.desc(), UserBadge.id.desc())
    )).all()
    recent = await ledger.history(session, user_id, limit=10)

    return {
        "id": user.id,
        "name": user.name,
        "total_points": await ledger.total_points(session, user_id),
        "badge_count": len(earned),
        "current_streak": streak.current_streak if streak else 0,
        "longest_streak": streak.longest_streak if streak else 0,
        "quiz_count": int(results[0] or 0),
        "passed_quizzes": int(results[1] or 0),
        "average_score": float(results[2] or 0.0),
        "perfect_scores": int(results[3] or 0),
        "rank": await company_rank(session, user.company_id, user_id),
        "badges": [dict(badge.to_dict(), earned_at=earned_at.isoformat()) for badge, earned_at in earned],
        "points_history": [
            {
                "points": e.points,
                "source": e.source.value,
                "description": e.description,
                "created_at": e.created_at.isoformat(),
            }
            for e in recent
        ],
    }


async def company_analytics(session: AsyncSession, company_id: str) -> Dict[str, Any]:
    company_users = select(User.id).where(User.company_id == company_id)
    total_users = await session.scalar(select(func.count(User.id)).where(User.company_id == company_id))
    row = (await session.execute(
        select(
            func.count(QuizResult.id),
            func.avg(QuizResult.score),
            func.sum(case((QuizResult.passed.is_(True), 1), else_=0)),
            func.count(func.distinct(QuizResult.user_id)),
        ).where(QuizResult.user_id.in_(company_users))
    )).one()
    return {
        "total_users": int(total_users or 0),
        "total_quiz_attempts": int(row[0] or 0),
        "average_score": float(row[1] or 0.0),
        "passed_attempts": int(row[2] or 0),
        "active_learners": int(row[3] or 0),
    }
