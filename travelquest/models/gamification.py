from datetime import date, datetime
from typing import Any, Dict, List, Optional
import enum

from sqlalchemy import (
    BigInteger, Boolean, CheckConstraint, Date, DateTime, Enum as SQLEnum, Float,
    ForeignKey, Index, Integer, String, Text, UniqueConstraint, func,
)
from sqlalchemy.orm import Mapped, mapped_column

from travelquest.core.database import Base
from travelquest.models.base import BigIntPK, JSONType, SerializerMixin, TimestampMixin, enum_values


class PointSource(str, enum.Enum):
    QUIZ_COMPLETION = "quiz_completion"
    PERFECT_SCORE = "perfect_score"
    HIGH_SCORE = "high_score"
    BADGE_EARNED = "badge_earned"
    STREAK_BONUS = "streak_bonus"
    CONTENT_CONTRIBUTION = "content_contribution"
    DAILY_LOGIN = "daily_login"


class StreakType(str, enum.Enum):
    DAILY = "daily"
    WEEKLY = "weekly"


class BadgeRarity(str, enum.Enum):
    COMMON = "common"
    RARE = "rare"
    EPIC = "epic"
    LEGENDARY = "legendary"


class BadgeCategory(str, enum.Enum):
    QUIZ = "quiz"
    LEARNING = "learning"
    SOCIAL = "social"
    ACHIEVEMENT = "achievement"


class QuizResult(Base, SerializerMixin):
    """One graded submission. Written once, never updated."""

    __tablename__ = "quiz_results"
    __table_args__ = (
        Index("idx_qr_user", "user_id"),
        Index("idx_qr_quiz", "quiz_id"),
        Index("idx_qr_user_quiz", "user_id", "quiz_id"),
        Index("idx_qr_completed", "completed_at"),
        CheckConstraint("score >= 0 AND score <= 100", name="ck_quiz_result_score"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(255), nullable=False)
    quiz_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("quizzes.id"), nullable=False)
    score: Mapped[float] = mapped_column(Float, nullable=False)
    points_earned: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    time_spent: Mapped[int] = mapped_column(Integer, nullable=False)
    answers: Mapped[List[Any]] = mapped_column(JSONType, default=list)
    passed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    attempt_number: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    completed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=func.now(), server_default=func.now(), nullable=False
    )


class PointLedgerEntry(Base, TimestampMixin, SerializerMixin):
    """Append-only point grant. A user's total is the sum of their entries."""

    __tablename__ = "user_points"
    __table_args__ = (
        Index("idx_up_user", "user_id"),
        Index("idx_up_source", "source"),
        Index("idx_up_created", "created_at"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(255), nullable=False)
    points: Mapped[int] = mapped_column(Integer, nullable=False)
    source: Mapped[PointSource] = mapped_column(
        SQLEnum(PointSource, values_callable=enum_values), nullable=False
    )
    source_id: Mapped[Optional[int]] = mapped_column(BigInteger)
    description: Mapped[Optional[str]] = mapped_column(String(255))


class LearningStreak(Base, SerializerMixin):
    __tablename__ = "learning_streaks"
    __table_args__ = (
        UniqueConstraint("user_id", "streak_type", name="uq_user_streak"),
        Index("idx_ls_current_streak", "current_streak"),
        CheckConstraint("longest_streak >= current_streak", name="ck_streak_longest"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(255), nullable=False)
    streak_type: Mapped[StreakType] = mapped_column(
        SQLEnum(StreakType, values_callable=enum_values), nullable=False, default=StreakType.DAILY
    )
    current_streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    longest_streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_activity_date: Mapped[Optional[date]] = mapped_column(Date)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=func.now(), onupdate=func.now(), nullable=False
    )


class Badge(Base, TimestampMixin, SerializerMixin):
    """Catalog entry. ``criteria`` is descriptive only; eligibility rules are
    keyed by badge name in ``travelquest.services.badges``."""

    __tablename__ = "badges"
    __table_args__ = (
        Index("idx_badges_rarity", "rarity"),
        Index("idx_badges_category", "category"),
        Index("idx_badges_active", "is_active"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    description: Mapped[Optional[str]] = mapped_column(Text)
    icon: Mapped[Optional[str]] = mapped_column(String(100))
    criteria: Mapped[Dict[str, Any]] = mapped_column(JSONType, default=dict)
    points_reward: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    rarity: Mapped[BadgeRarity] = mapped_column(
        SQLEnum(BadgeRarity, values_callable=enum_values), nullable=False, default=BadgeRarity.COMMON
    )
    category: Mapped[BadgeCategory] = mapped_column(
        SQLEnum(BadgeCategory, values_callable=enum_values), nullable=False, default=BadgeCategory.ACHIEVEMENT
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


class UserBadge(Base, SerializerMixin):
    __tablename__ = "user_badges"
    __table_args__ = (
        UniqueConstraint("user_id", "badge_id", name="uq_user_badge"),
        Index("idx_ub_user", "user_id"),
        Index("idx_ub_badge", "badge_id"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(255), nullable=False)
    badge_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("badges.id", ondelete="CASCADE"), nullable=False
    )
    points_awarded: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    earned_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=func.now(), server_default=func.now(), nullable=False
    )
