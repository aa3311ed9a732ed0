import asyncio
import os
from datetime import timedelta

# Must be set before examroom.config is imported anywhere
os.environ.setdefault("EXAMROOM_DATABASE_URL", "sqlite://")
os.environ.setdefault("EXAMROOM_SESSION_SECRET", "test-secret")

import httpx
import pytest
from sqlmodel import Session, SQLModel, text

from examroom.database import engine
from examroom.main import app
from examroom.models import Exam
from examroom.timing import utcnow

# ============================================================================
# IN-MEMORY DATABASE FOR TESTING
# ============================================================================

# examroom.database builds a StaticPool engine for "sqlite://", so every
# session and every request handled through ASGITransport share one database.


@pytest.fixture(scope="session", autouse=True)
def setup_test_db():
    """Create the exam and submission tables once per test run."""
    SQLModel.metadata.create_all(engine)
    yield
    SQLModel.metadata.drop_all(engine)


@pytest.fixture(autouse=True)
def cleanup_db_between_tests():
    """Empty both tables after each test so rooms and reg numbers can be reused."""
    yield
    with Session(engine) as session:
        session.exec(text("DELETE FROM submission"))
        session.exec(text("DELETE FROM exam"))
        session.commit()


@pytest.fixture
def session():
    """Session on the shared in-memory engine."""
    with Session(engine) as session:
        yield session


# ============================================================================
# FASTAPI APP & TEST CLIENT
# ============================================================================


class SyncClientWrapper:
    """Drive an httpx.AsyncClient from synchronous tests on a private loop."""

    def __init__(self, async_client, loop):
        self.async_client = async_client
        self.loop = loop

    def get(self, *args, **kwargs):
        return self.loop.run_until_complete(self.async_client.get(*args, **kwargs))

    def post(self, *args, **kwargs):
        return self.loop.run_until_complete(self.async_client.post(*args, **kwargs))

    def delete(self, *args, **kwargs):
        return self.loop.run_until_complete(self.async_client.delete(*args, **kwargs))


@pytest.fixture
def client():
    """Synchronous client for the app, routed in-process through ASGITransport."""
    loop = asyncio.new_event_loop()
    transport = httpx.ASGITransport(app=app)
    async_client = httpx.AsyncClient(transport=transport, base_url="http://testserver")

    yield SyncClientWrapper(async_client, loop)

    loop.run_until_complete(async_client.aclose())
    loop.close()


@pytest.fixture
def admin_client(client):
    """Test client already logged in as the administrator."""
    r = client.post("/api/admin-login", json={"username": "admin", "password": "admin123"})
    assert r.status_code == 200
    return client


# ============================================================================
# ENTITY FIXTURES
# ============================================================================

ABC_QUESTIONS = [
    {"type": "objective", "text": "First?", "options": ["A", "B", "X"], "correctAnswer": "A"},
    {"type": "objective", "text": "Second?", "options": ["A", "B", "X"], "correctAnswer": "B"},
    {"type": "objective", "text": "Third?", "options": ["A", "C", "X"], "correctAnswer": "C"},
]

MIXED_QUESTIONS = [
    {"type": "objective", "text": "2 + 2?", "options": ["3", "4", "5"], "correctAnswer": "4"},
    {"type": "subjective", "text": "Explain recursion.", "correctAnswer": "A function calling itself."},
]


def _store_exam(room="42", started_minutes_ago=5, duration=60, marks_per_correct=2.0,
                negative_marking=0.5, questions=None):
    with Session(engine) as session:
        exam = Exam(
            room_number=room,
            starts_at=utcnow() - timedelta(minutes=started_minutes_ago),
            duration_minutes=duration,
            marks_per_correct=marks_per_correct,
            negative_marking=negative_marking,
            questions=questions if questions is not None else ABC_QUESTIONS,
        )
        session.add(exam)
        session.commit()
        session.refresh(exam)
        exam_id = exam.id

    with Session(engine) as session:
        return session.get(Exam, exam_id)


@pytest.fixture
def make_exam():
    """Factory storing an exam whose start is relative to the current time."""
    return _store_exam


@pytest.fixture
def active_exam():
    """Room 42: started five minutes ago, 60 minutes, 2 marks per correct, 0.5 negative."""
    return _store_exam()


@pytest.fixture
def mixed_exam():
    """Room 7: one objective and one subjective question, 1 mark each, no negative marking."""
    return _store_exam(room="7", marks_per_correct=1.0, negative_marking=0.0, questions=MIXED_QUESTIONS)
