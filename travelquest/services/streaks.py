"""
Daily learning streaks.

State machine per (user, streak_type):

- no row                      -> current=1, longest=1
- last activity today          -> unchanged
- last activity yesterday      -> current+1, longest=max(longest, current)
- last activity 2+ days ago    -> current=1, longest kept

The row is read under ``SELECT ... FOR UPDATE`` so two submissions racing on
the same day serialize and the second one sees the "already today" branch.
"""
from dataclasses import dataclass
from datetime import date
from typing import Optional, Tuple
import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from travelquest.models import LearningStreak, StreakType

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StreakState:
    current: int
    longest: int
    changed: bool


def advance(current: int, longest: int, last_activity: Optional[date], today: date) -> Tuple[int, int, bool]:
    """Apply one day's activity; returns (current, longest, changed)."""
    if last_activity is None:
        return 1, max(longest, 1), True
    gap = (today - last_activity).days
    if gap <= 0:
        # Same day, or a clock that went backwards: nothing to count
        return current, longest, False
    if gap == 1:
        current += 1
        return current, max(longest, current), True
    return 1, max(longest, 1), True


async def _locked_streak(session: AsyncSession, user_id: str, streak_type: StreakType) -> Optional[LearningStreak]:
    return await session.scalar(
        select(LearningStreak)
        .where(LearningStreak.user_id == user_id, LearningStreak.streak_type == streak_type)
        .with_for_update()
    )


async def touch(
    session: AsyncSession,
    user_id: str,
    today: date,
    streak_type: StreakType = StreakType.DAILY,
) -> StreakState:
    """Record activity for ``today``. Idempotent within one calendar day."""
    streak = await _locked_streak(session, user_id, streak_type)

    if streak is None:
        try:
            async with session.begin_nested():
                streak = LearningStreak(
                    user_id=user_id,
                    streak_type=streak_type,
                    current_streak=1,
                    longest_streak=1,
                    last_activity_date=today,
                )
                session.add(streak)
            logger.info(f"Started {streak_type.value} streak for user {user_id}")
            return StreakState(current=1, longest=1, changed=True)
        except IntegrityError:
            # A concurrent submission created the row first; continue from it
            logger.info(f"Streak row for user {user_id} created concurrently, re-reading")
            streak = await _locked_streak(session, user_id, streak_type)
            if streak is None:
                raise

    current, longest, changed = advance(
        streak.current_streak, streak.longest_streak, streak.last_activity_date, today
    )
    if changed:
        previous = streak.current_streak
        streak.current_streak = current
        streak.longest_streak = longest
        streak.last_activity_date = today
        await session.flush()
        logger.info(f"Streak for user {user_id}: {previous} -> {current} (longest {longest})")
    return StreakState(current=current, longest=longest, changed=changed)
