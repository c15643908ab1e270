from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field, constr
from typing import Any, List, Optional
import json
import logging
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from travelquest.core.auth import ADMIN_ROLES, TokenData, get_current_user, require_roles
from travelquest.core.database import get_db, get_sessionmaker
from travelquest.core.events import EventPublisher, get_event_publisher
from travelquest.core.exceptions import AccessDenied, NotFound
from travelquest.models import Question, QuestionType, Quiz, QuizDifficulty, QuizResult, QuizStatus
from travelquest.services.submission import SubmissionService

logger = logging.getLogger(__name__)

router = APIRouter()


class QuestionIn(BaseModel):
    question_text: constr(min_length=1)
    question_type: QuestionType = QuestionType.MULTIPLE_CHOICE
    options: List[Any] = []
    correct_answer: Any
    explanation: Optional[str] = None
    points: int = Field(default=1, ge=1)


class QuizCreate(BaseModel):
    destination_id: Optional[int] = None
    title: constr(min_length=1, max_length=255)
    description: Optional[str] = None
    difficulty: QuizDifficulty = QuizDifficulty.INTERMEDIATE
    passing_score: int = Field(default=70, ge=0, le=100)
    time_limit: int = Field(default=600, ge=1)
    questions: List[QuestionIn] = []


class QuizSubmit(BaseModel):
    """Answers are positional: ``answers[i]`` answers the i-th question as served."""

    model_config = ConfigDict(populate_by_name=True)

    answers: List[Any]
    time_spent: int = Field(alias="timeSpent", ge=0, strict=True)


class QuestionOut(BaseModel):
    id: int
    question_text: str
    question_type: QuestionType
    options: List[Any]
    explanation: Optional[str] = None
    points: int
    sort_order: int


class QuizOut(BaseModel):
    id: int
    destination_id: Optional[int] = None
    title: str
    description: Optional[str] = None
    difficulty: QuizDifficulty
    passing_score: int
    time_limit: int
    question_count: int


class QuizDetail(QuizOut):
    questions: List[QuestionOut]


def get_submission_service(
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_sessionmaker),
    publisher: EventPublisher = Depends(get_event_publisher),
) -> SubmissionService:
    return SubmissionService(session_factory, publisher)


@router.get("", response_model=List[QuizOut], dependencies=[Depends(get_current_user)])
async def list_quizzes(destination_id: Optional[int] = None, difficulty: Optional[QuizDifficulty] = None,
                       limit: int = 20, offset: int = 0, db: AsyncSession = Depends(get_db)):
  question_count = (
    select(Question.quiz_id, func.count(Question.id).label("question_count"))
    .group_by(Question.quiz_id).subquery()
  )
  stmt = (
    select(Quiz, func.coalesce(question_count.c.question_count, 0))
    .outerjoin(question_count, question_count.c.quiz_id == Quiz.id)
    .where(Quiz.status == QuizStatus.ACTIVE)
  )
  if destination_id is not None: stmt = stmt.where(Quiz.destination_id == destination_id)
  if difficulty is not None: stmt = stmt.where(Quiz.difficulty == difficulty)
  stmt = stmt.order_by(Quiz.created_at.desc(), Quiz.id.desc()).limit(min(max(limit, 1), 100)).offset(max(offset, 0))
  rows = (await db.execute(stmt)).all()
  return [QuizOut(**_quiz_fields(q), question_count=int(n)) for q, n in rows]


@router.get("/results/{user_id}")
async def user_results(user_id: str, user: TokenData = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
  if user.sub != user_id and not user.is_admin():
    raise AccessDenied("Access denied")
  rows = (await db.execute(
    select(QuizResult, Quiz.title, Quiz.difficulty)
    .join(Quiz, Quiz.id == QuizResult.quiz_id)
    .where(QuizResult.user_id == user_id)
    .order_by(QuizResult.completed_at.desc(), QuizResult.id.desc())
  )).all()
  return [dict(r.to_dict(), quiz_title=title, difficulty=difficulty.value) for r, title, difficulty in rows]


@router.get("/{quiz_id}", response_model=QuizDetail, dependencies=[Depends(get_current_user)])
async def get_quiz(quiz_id: int, db: AsyncSession = Depends(get_db)):
  quiz = await db.scalar(select(Quiz).where(Quiz.id == quiz_id, Quiz.status == QuizStatus.ACTIVE))
  if not quiz: raise NotFound("Quiz not found", {"quiz_id": quiz_id})
  questions = (await db.scalars(
    select(Question).where(Question.quiz_id == quiz_id).order_by(Question.sort_order.asc(), Question.id.asc())
  )).all()
  return QuizDetail(
    **_quiz_fields(quiz),
    question_count=len(questions),
    questions=[QuestionOut(id=q.id, question_text=q.question_text, question_type=q.question_type,
                           options=q.options or [], explanation=q.explanation, points=q.points,
                           sort_order=q.sort_order) for q in questions],
  )


@router.post("", status_code=201)
async def create_quiz(payload: QuizCreate, user: TokenData = Depends(require_roles(*ADMIN_ROLES)),
                      db: AsyncSession = Depends(get_db)):
  quiz = Quiz(
    destination_id=payload.destination_id, title=payload.title, description=payload.description,
    difficulty=payload.difficulty, passing_score=payload.passing_score, time_limit=payload.time_limit,
    status=QuizStatus.ACTIVE, created_by=user.sub,
  )
  db.add(quiz); await db.flush()
  for position, q in enumerate(payload.questions, start=1):
    db.add(Question(
      quiz_id=quiz.id, question_text=q.question_text, question_type=q.question_type, options=q.options,
      correct_answer=json.dumps(q.correct_answer), explanation=q.explanation, points=q.points, sort_order=position,
    ))
  await db.flush()
  logger.info(f"Quiz {quiz.id} created by {user.sub} with {len(payload.questions)} questions")
  return {"id": quiz.id, "question_count": len(payload.questions)}


@router.post("/{quiz_id}/submit")
async def submit_quiz(quiz_id: int, payload: QuizSubmit, user: TokenData = Depends(get_current_user),
                      service: SubmissionService = Depends(get_submission_service)):
  summary = await service.submit_quiz(user.sub, quiz_id, payload.answers, payload.time_spent)
  return summary.to_response()


def _quiz_fields(quiz: Quiz) -> dict:
  return {
    "id": quiz.id, "destination_id": quiz.destination_id, "title": quiz.title, "description": quiz.description,
    "difficulty": quiz.difficulty, "passing_score": quiz.passing_score, "time_limit": quiz.time_limit,
  }
