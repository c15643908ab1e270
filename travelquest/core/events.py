"""
Notification port for gamification events.

Submissions publish ``quiz_completed`` and ``badge_earned`` events after their
transaction commits; delivery to connected clients belongs to whatever
subscribes on the other side.
"""
from typing import Any, Dict, List, Optional, Protocol, Tuple
import json
import logging

import redis.asyncio as redis
from fastapi import Request

from travelquest.core.config import settings

logger = logging.getLogger(__name__)


class EventPublisher(Protocol):
    async def publish(self, user_id: str, event: Dict[str, Any]) -> None:
        ...


class InMemoryEventPublisher:
    """Keeps published events in process; used in development and tests."""

    def __init__(self):
        self.events: List[Tuple[str, Dict[str, Any]]] = []

    async def publish(self, user_id: str, event: Dict[str, Any]) -> None:
        self.events.append((user_id, event))

    def for_user(self, user_id: str) -> List[Dict[str, Any]]:
        return [e for uid, e in self.events if uid == user_id]

    def clear(self) -> None:
        self.events.clear()


class RedisEventPublisher:
    """Publishes events as JSON on a per-user Redis channel."""

    def __init__(self, url: str, channel_prefix: str):
        self.url = url
        self.channel_prefix = channel_prefix
        self.redis: Optional[redis.Redis] = None

    async def connect(self):
        """Initialize Redis connection pool."""
        self.redis = redis.from_url(
            self.url,
            encoding="utf-8",
            decode_responses=True,
            max_connections=settings.REDIS_POOL_SIZE,
        )

    async def disconnect(self):
        """Close Redis connection."""
        if self.redis:
            await self.redis.close()

    def channel(self, user_id: str) -> str:
        return f"{self.channel_prefix}:{user_id}"

    async def publish(self, user_id: str, event: Dict[str, Any]) -> None:
        if self.redis is None:
            logger.warning(f"Redis publisher not connected, dropping {event.get('type')} event for user {user_id}")
            return
        try:
            await self.redis.publish(self.channel(user_id), json.dumps(event, default=str))
        except Exception as e:
            logger.error(f"Event publish error: {e}")


def quiz_completed_event(quiz_id: int, quiz_title: str, score: float, passed: bool, points_earned: int) -> Dict[str, Any]:
    return {
        "type": "quiz_completed",
        "title": "Quiz Passed!" if passed else "Quiz Failed",
        "message": f"You scored {round(score, 2)}% on {quiz_title}",
        "data": {
            "quizId": quiz_id,
            "score": score,
            "passed": passed,
            "pointsEarned": points_earned,
        },
    }


def badge_earned_event(badge_id: int, badge_name: str, badge_icon: Optional[str], points_reward: int) -> Dict[str, Any]:
    return {
        "type": "badge_earned",
        "title": "New Badge Earned!",
        "message": f'Congratulations! You\'ve earned the "{badge_name}" badge',
        "data": {
            "badgeId": badge_id,
            "badgeName": badge_name,
            "badgeIcon": badge_icon,
            "pointsReward": points_reward,
        },
    }


async def create_event_publisher() -> EventPublisher:
    if settings.EVENT_PUBLISHER == "redis":
        publisher = RedisEventPublisher(settings.REDIS_URL, settings.EVENTS_CHANNEL_PREFIX)
        await publisher.connect()
    else:
        publisher = InMemoryEventPublisher()
    logger.info(f"Event publisher initialized ({settings.EVENT_PUBLISHER})")
    return publisher


async def close_event_publisher(publisher: EventPublisher):
    if isinstance(publisher, RedisEventPublisher):
        await publisher.disconnect()


def get_event_publisher(request: Request) -> EventPublisher:
    """Dependency returning the publisher attached to the running app."""
    publisher = getattr(request.app.state, "event_publisher", None)
    if publisher is None:
        publisher = InMemoryEventPublisher()
        request.app.state.event_publisher = publisher
    return publisher
