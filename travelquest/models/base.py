"""
Base database models and mixins.
"""
from datetime import date, datetime
from typing import Any, Dict
import enum

from sqlalchemy import BigInteger, DateTime, Integer, JSON
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from travelquest.core.database import Base

# BIGINT primary keys only autoincrement on SQLite when declared as INTEGER
BigIntPK = BigInteger().with_variant(Integer(), "sqlite")
JSONType = JSON().with_variant(JSONB(), "postgresql")


def enum_values(enum_cls: type[enum.Enum]) -> list[str]:
    """Persist enum values rather than member names."""
    return [member.value for member in enum_cls]


class TimestampMixin:
    """Mixin for automatic creation timestamp."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=func.now(), server_default=func.now(), nullable=False
    )


class SerializerMixin:
    def to_dict(self) -> Dict[str, Any]:
        """Convert model to dictionary."""
        result = {}
        for column in self.__table__.columns:
            value = getattr(self, column.key)
            if isinstance(value, (datetime, date)):
                value = value.isoformat()
            elif isinstance(value, enum.Enum):
                value = value.value
            result[column.key] = value
        return result

    def __repr__(self) -> str:
        """String representation."""
        return f"<{self.__class__.__name__}(id={getattr(self, 'id', None)})>"
