from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from pydantic import BaseModel
from typing import List, Optional
import jwt
from datetime import datetime, timedelta, timezone
from travelquest.core.config import settings
from travelquest.core.exceptions import AccessDenied

ADMIN_ROLES = ("company_admin", "super_admin")


class TokenData(BaseModel):
    sub: str
    roles: List[str]
    company_id: Optional[str] = None

    def is_admin(self) -> bool:
        return bool(set(self.roles).intersection(ADMIN_ROLES))

    def is_super_admin(self) -> bool:
        return "super_admin" in self.roles


bearer = HTTPBearer()


def create_token(user_id: str, roles: List[str], company_id: Optional[str] = None, ttl_minutes: Optional[int] = None) -> str:
    now = datetime.now(timezone.utc)
    ttl = ttl_minutes if ttl_minutes is not None else settings.ACCESS_TOKEN_EXPIRE_MINUTES
    payload = {"sub": user_id, "roles": roles, "company_id": company_id, "iat": int(now.timestamp()), "exp": int((now + timedelta(minutes=ttl)).timestamp())}
    return jwt.encode(payload, settings.SECRET_KEY.get_secret_value(), algorithm=settings.ALGORITHM)


def get_current_user(creds: HTTPAuthorizationCredentials = Depends(bearer)) -> TokenData:
    try:
        payload = jwt.decode(creds.credentials, settings.SECRET_KEY.get_secret_value(), algorithms=[settings.ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Token expired")
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")
    return TokenData(sub=payload["sub"], roles=payload.get("roles", []), company_id=payload.get("company_id"))


def require_roles(*required: str):
    def checker(user: TokenData = Depends(get_current_user)):
        roles = set(user.roles)
        if not roles.intersection(set(required)):
            raise AccessDenied("Insufficient role")
        return user
    return checker
