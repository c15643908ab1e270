"""
Default badge catalog.

Run ``python -m travelquest.seed`` to insert missing badges into the
configured database; the app also does this at startup when
``SEED_DEFAULT_BADGES`` is enabled.
"""
import asyncio
import logging
from typing import Any, Dict, List

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from travelquest.models import Badge, BadgeCategory, BadgeRarity

logger = logging.getLogger(__name__)

DEFAULT_BADGES: List[Dict[str, Any]] = [
    {
        "name": "First Steps",
        "description": "Complete your first quiz",
        "icon": "🎯",
        "criteria": {"quiz_count": 1},
        "points_reward": 50,
        "rarity": BadgeRarity.COMMON,
        "category": BadgeCategory.QUIZ,
    },
    {
        "name": "Perfectionist",
        "description": "Score 100% on any quiz",
        "icon": "⭐",
        "criteria": {"perfect_score": True},
        "points_reward": 100,
        "rarity": BadgeRarity.RARE,
        "category": BadgeCategory.QUIZ,
    },
    {
        "name": "Quiz Master",
        "description": "Complete 5 quizzes",
        "icon": "🎓",
        "criteria": {"quiz_count": 5},
        "points_reward": 200,
        "rarity": BadgeRarity.EPIC,
        "category": BadgeCategory.QUIZ,
    },
    {
        "name": "High Performer",
        "description": "Maintain 85%+ average score",
        "icon": "🏆",
        "criteria": {"average_score": 85},
        "points_reward": 150,
        "rarity": BadgeRarity.RARE,
        "category": BadgeCategory.ACHIEVEMENT,
    },
    {
        "name": "Knowledge Seeker",
        "description": "View 10 destination details",
        "icon": "🌍",
        "criteria": {"destinations_viewed": 10},
        "points_reward": 75,
        "rarity": BadgeRarity.COMMON,
        "category": BadgeCategory.LEARNING,
    },
    {
        "name": "Streak Warrior",
        "description": "Maintain 7-day learning streak",
        "icon": "🔥",
        "criteria": {"streak_days": 7},
        "points_reward": 300,
        "rarity": BadgeRarity.LEGENDARY,
        "category": BadgeCategory.LEARNING,
    },
    {
        "name": "Content Creator",
        "description": "Submit 5 approved content contributions",
        "icon": "✍️",
        "criteria": {"content_contributions": 5},
        "points_reward": 250,
        "rarity": BadgeRarity.EPIC,
        "category": BadgeCategory.SOCIAL,
    },
    {
        "name": "Speed Demon",
        "description": "Complete a quiz in under 2 minutes",
        "icon": "⚡",
        "criteria": {"quick_completion": 120},
        "points_reward": 100,
        "rarity": BadgeRarity.RARE,
        "category": BadgeCategory.ACHIEVEMENT,
    },
]


async def seed_badges(session: AsyncSession) -> int:
    """Insert default badges that are not in the catalog yet; returns how many were added."""
    existing = set((await session.scalars(select(Badge.name))).all())
    added = 0
    for fields in DEFAULT_BADGES:
        if fields["name"] in existing:
            continue
        session.add(Badge(**fields))
        added += 1
    await session.flush()
    if added:
        logger.info(f"Seeded {added} default badges")
    return added


async def main():
    from travelquest.core.database import AsyncSessionLocal, close_db, init_db

    await init_db()
    async with AsyncSessionLocal() as session:
        async with session.begin():
            await seed_badges(session)
    await close_db()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    asyncio.run(main())
