from travelquest.models.users import User, UserRole, UserStatus
from travelquest.models.content import Question, QuestionType, Quiz, QuizDifficulty, QuizStatus
from travelquest.models.gamification import (
    Badge,
    BadgeCategory,
    BadgeRarity,
    LearningStreak,
    PointLedgerEntry,
    PointSource,
    QuizResult,
    StreakType,
    UserBadge,
)

__all__ = [
    "Badge",
    "BadgeCategory",
    "BadgeRarity",
    "LearningStreak",
    "PointLedgerEntry",
    "PointSource",
    "Question",
    "QuestionType",
    "Quiz",
    "QuizDifficulty",
    "QuizResult",
    "QuizStatus",
    "StreakType",
    "User",
    "UserBadge",
    "UserRole",
    "UserStatus",
]
