from typing import Any, List, Optional
import enum

from sqlalchemy import (
    BigInteger, Boolean, CheckConstraint, Enum as SQLEnum, ForeignKey,
    Index, Integer, String, Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from travelquest.core.database import Base
from travelquest.models.base import BigIntPK, JSONType, SerializerMixin, TimestampMixin, enum_values


class QuestionType(str, enum.Enum):
    MULTIPLE_CHOICE = "multiple_choice"
    TRUE_FALSE = "true_false"
    SCENARIO = "scenario"


class QuizDifficulty(str, enum.Enum):
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"


class QuizStatus(str, enum.Enum):
    DRAFT = "draft"
    ACTIVE = "active"
    ARCHIVED = "archived"


class Quiz(Base, TimestampMixin, SerializerMixin):
    __tablename__ = "quizzes"
    __table_args__ = (
        Index("idx_quizzes_destination", "destination_id"),
        Index("idx_quizzes_status", "status"),
        Index("idx_quizzes_difficulty", "difficulty"),
        CheckConstraint("passing_score >= 0 AND passing_score <= 100", name="ck_quiz_passing_score"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    destination_id: Mapped[Optional[int]] = mapped_column(BigInteger)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    difficulty: Mapped[QuizDifficulty] = mapped_column(
        SQLEnum(QuizDifficulty, values_callable=enum_values), nullable=False, default=QuizDifficulty.INTERMEDIATE
    )
    passing_score: Mapped[int] = mapped_column(Integer, nullable=False, default=70)
    time_limit: Mapped[int] = mapped_column(Integer, nullable=False, default=600)  # seconds
    status: Mapped[QuizStatus] = mapped_column(
        SQLEnum(QuizStatus, values_callable=enum_values), nullable=False, default=QuizStatus.ACTIVE
    )
    featured: Mapped[bool] = mapped_column(Boolean, default=False)
    created_by: Mapped[Optional[str]] = mapped_column(String(255))

    questions: Mapped[List["Question"]] = relationship(
        back_populates="quiz",
        cascade="all, delete-orphan",
        order_by="Question.sort_order",
        lazy="raise",
    )


class Question(Base, TimestampMixin, SerializerMixin):
    """A quiz question.

    ``sort_order`` is the submission contract: the i-th submitted answer is
    graded against the i-th question in ascending ``sort_order``.
    """

    __tablename__ = "quiz_questions"
    __table_args__ = (
        Index("idx_qq_quiz", "quiz_id"),
        Index("idx_qq_sort_order", "quiz_id", "sort_order"),
        CheckConstraint("points >= 1", name="ck_question_points"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    quiz_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("quizzes.id", ondelete="CASCADE"), nullable=False
    )
    question_text: Mapped[str] = mapped_column(Text, nullable=False)
    question_type: Mapped[QuestionType] = mapped_column(
        SQLEnum(QuestionType, values_callable=enum_values), nullable=False, default=QuestionType.MULTIPLE_CHOICE
    )
    options: Mapped[List[Any]] = mapped_column(JSONType, default=list)
    correct_answer: Mapped[str] = mapped_column(Text, nullable=False)  # JSON-encoded
    explanation: Mapped[Optional[str]] = mapped_column(Text)
    points: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    quiz: Mapped["Quiz"] = relationship(back_populates="questions", lazy="raise")
