from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from travelquest.core.auth import ADMIN_ROLES, TokenData, get_current_user, require_roles
from travelquest.core.database import get_db
from travelquest.core.exceptions import AccessDenied, NotFound
from travelquest.models import Badge
from travelquest.models.gamification import BadgeRarity
from travelquest.services import stats

router = APIRouter()

_RARITY_ORDER = {r: i for i, r in enumerate(BadgeRarity)}


def _check_company(user: TokenData, company_id: str):
    if user.company_id != company_id and not user.is_super_admin():
        raise AccessDenied("Access denied")


@router.get("/leaderboard/{company_id}")
async def get_leaderboard(company_id: str, user: TokenData = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    _check_company(user, company_id)
    return await stats.leaderboard(db, company_id)


@router.get("/user-stats/{user_id}")
async def get_user_stats(user_id: str, user: TokenData = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    if user.sub != user_id and not user.is_admin():
        raise AccessDenied("Access denied")
    data = await stats.user_stats(db, user_id)
    if data is None:
        raise NotFound("User not found", {"user_id": user_id})
    return data


@router.get("/badges", dependencies=[Depends(get_current_user)])
async def get_badges(db: AsyncSession = Depends(get_db)):
    badges = (await db.scalars(select(Badge))).all()
    # rarest first, then alphabetical
    badges = sorted(badges, key=lambda b: (-_RARITY_ORDER[b.rarity], b.name))
    return [b.to_dict() for b in badges]


@router.get("/analytics/{company_id}")
async def get_company_analytics(company_id: str, user: TokenData = Depends(require_roles(*ADMIN_ROLES)),
                                db: AsyncSession = Depends(get_db)):
    _check_company(user, company_id)
    return {"overview": await stats.company_analytics(db, company_id)}
