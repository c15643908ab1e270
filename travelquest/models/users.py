"""
User accounts as seen by the gamification core.

Registration, passwords and sessions live with the identity provider; this
table only mirrors who belongs to which company so leaderboards can be built.
"""
from datetime import datetime
from typing import Optional
import enum

from sqlalchemy import DateTime, Enum as SQLEnum, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from travelquest.core.database import Base
from travelquest.models.base import SerializerMixin, TimestampMixin, enum_values


class UserStatus(str, enum.Enum):
    """User account status."""
    ACTIVE = "active"
    INACTIVE = "inactive"
    SUSPENDED = "suspended"


class UserRole(str, enum.Enum):
    EMPLOYEE = "employee"
    COMPANY_ADMIN = "company_admin"
    SUPER_ADMIN = "super_admin"


class User(Base, TimestampMixin, SerializerMixin):
    __tablename__ = "users"
    __table_args__ = (
        Index("idx_users_company", "company_id"),
        Index("idx_users_status", "status"),
    )

    id: Mapped[str] = mapped_column(String(255), primary_key=True)
    company_id: Mapped[Optional[str]] = mapped_column(String(255))
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[UserRole] = mapped_column(
        SQLEnum(UserRole, values_callable=enum_values), nullable=False, default=UserRole.EMPLOYEE
    )
    status: Mapped[UserStatus] = mapped_column(
        SQLEnum(UserStatus, values_callable=enum_values), nullable=False, default=UserStatus.ACTIVE
    )
    last_login: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
