from typing import List, Optional
import logging

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from travelquest.models import PointLedgerEntry, PointSource

logger = logging.getLogger(__name__)


async def credit(
    session: AsyncSession,
    user_id: str,
    points: int,
    source: PointSource,
    source_id: Optional[int] = None,
    description: Optional[str] = None,
) -> PointLedgerEntry:
    """Append a point grant to the user's ledger."""
    entry = PointLedgerEntry(
        user_id=user_id,
        points=points,
        source=source,
        source_id=source_id,
        description=description,
    )
    session.add(entry)
    await session.flush()
    logger.debug(f"Credited {points} points to user {user_id} ({source.value}, source_id={source_id})")
    return entry


async def total_points(session: AsyncSession, user_id: str) -> int:
    total = await session.scalar(
        select(func.coalesce(func.sum(PointLedgerEntry.points), 0)).where(PointLedgerEntry.user_id == user_id)
    )
    return int(total or 0)


async def history(session: AsyncSession, user_id: str, limit: int = 10) -> List[PointLedgerEntry]:
    rows = await session.scalars(
        select(PointLedgerEntry)
        .where(PointLedgerEntry.user_id == user_id)
        .order_by(PointLedgerEntry.created_at.desc(), PointLedgerEntry.id.desc())
        .limit(limit)
    )
    return list(rows)
