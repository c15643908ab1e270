import json

import httpx
import pytest
from sqlalchemy import select

from travelquest.core.auth import create_token
from travelquest.core.database import Base, build_engine, build_sessionmaker, get_sessionmaker
from travelquest.core.events import InMemoryEventPublisher
from travelquest.main import app
from travelquest.models import Badge, Question, Quiz, QuizStatus, User
from travelquest.seed import seed_badges


@pytest.fixture
async def engine():
    engine = build_engine("sqlite+aiosqlite:///:memory:")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
async def session_factory(engine):
    factory = build_sessionmaker(engine)
    async with factory() as session:
        async with session.begin():
            await seed_badges(session)
    return factory


@pytest.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def publisher():
    return InMemoryEventPublisher()


@pytest.fixture
async def client(session_factory, publisher):
    app.dependency_overrides[get_sessionmaker] = lambda: session_factory
    app.state.event_publisher = publisher
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()
    del app.state.event_publisher


def auth_header(user_id, roles=("employee",), company_id="acme"):
    return {"Authorization": f"Bearer {create_token(user_id, list(roles), company_id)}"}


async def make_user(session_factory, user_id, company_id="acme", name=None):
    async with session_factory() as s:
        async with s.begin():
            s.add(User(id=user_id, name=name or user_id, company_id=company_id))


async def make_quiz(session_factory, answers, points=None, passing_score=70, status=QuizStatus.ACTIVE, title="Lisbon Basics"):
    """Create a quiz whose i-th question expects ``answers[i]``; returns its id."""
    points = points or [1] * len(answers)
    async with session_factory() as s:
        async with s.begin():
            quiz = Quiz(title=title, passing_score=passing_score, status=status)
            s.add(quiz)
            await s.flush()
            for position, (answer, pts) in enumerate(zip(answers, points), start=1):
                s.add(Question(
                    quiz_id=quiz.id, question_text=f"Question {position}", options=["a", "b", "c"],
                    correct_answer=json.dumps(answer), points=pts, sort_order=position,
                ))
            quiz_id = quiz.id
    return quiz_id


async def badge_by_name(session, name):
    return await session.scalar(select(Badge).where(Badge.name == name))
