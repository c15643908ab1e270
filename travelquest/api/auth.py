from datetime import datetime, timezone
from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from typing import List, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from travelquest.core.auth import create_token
from travelquest.core.database import get_db
from travelquest.models import User, UserRole

router = APIRouter()


class MockLogin(BaseModel):
    user_id: str = Field(min_length=1, max_length=255)
    name: Optional[str] = None
    company_id: Optional[str] = None
    roles: List[str] = ["employee"]


def _primary_role(roles: List[str]) -> UserRole:
    for role in (UserRole.SUPER_ADMIN, UserRole.COMPANY_ADMIN):
        if role.value in roles:
            return role
    return UserRole.EMPLOYEE


@router.post("/mock-login")
async def mock_login(payload: MockLogin, db: AsyncSession = Depends(get_db)):
    """Issue a token for development and mirror the user into the users table."""
    user = await db.get(User, payload.user_id)
    if user is None:
        user = User(id=payload.user_id, name=payload.name or payload.user_id)
        db.add(user)
    elif payload.name:
        user.name = payload.name
    user.company_id = payload.company_id
    user.role = _primary_role(payload.roles)
    user.last_login = datetime.now(timezone.utc)
    token = create_token(payload.user_id, payload.roles, payload.company_id)
    return {"access_token": token, "token_type": "bearer", "roles": payload.roles}
