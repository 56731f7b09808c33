import sys
from pathlib import Path

# Add project root to Python path (for direct invocation)
sys.path.insert(0, str(Path(__file__).parent.parent))

import pytest
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, Session, create_engine
from fastapi.testclient import TestClient

import models  # noqa: F401  registers tables
from storage import Store


class FakeAI:
    """Stands in for the LLM collaborators; every call is recorded."""

    def __init__(self, scores=None):
        self.scores = list(scores or [])
        self.fail_questions = False
        self.fail_scoring = False
        self.fail_summary = False
        self.question_overrides = {}
        self.summary_result = None
        self.question_calls = []
        self.score_calls = []
        self.summary_calls = []

    async def generate_question(self, index, resume_text, previous_questions):
        self.question_calls.append((index, resume_text, list(previous_questions)))
        if self.fail_questions:
            raise RuntimeError("question service down")
        result = {"question": f"Question {index + 1}?", "difficulty": None, "time_limit": None}
        result.update(self.question_overrides)
        return result

    async def score_answer(self, question, answer, difficulty, time_spent, time_limit):
        self.score_calls.append((question, answer, difficulty, time_spent, time_limit))
        if self.fail_scoring:
            raise RuntimeError("scoring service down")
        score = self.scores.pop(0) if self.scores else 7
        return {"score": score, "feedback": "ok", "strengths": [], "improvements": []}

    async def generate_summary(self, candidate_name, resume_text, results):
        self.summary_calls.append((candidate_name, resume_text, results))
        if self.fail_summary:
            raise RuntimeError("summary service down")
        return self.summary_result or {
            "overall_score": 8.2,
            "summary": "Solid candidate.",
            "strengths": ["React"],
            "weaknesses": [],
            "recommendation": "Hire",
        }


@pytest.fixture
def db_engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(db_engine):
    with Session(db_engine) as s:
        yield s


@pytest.fixture
def store(session):
    return Store(session)


@pytest.fixture
def ai():
    return FakeAI()


@pytest.fixture
def api(db_engine, ai):
    from main import app
    from deps import get_store, get_ai

    def override_store():
        with Session(db_engine) as s:
            yield Store(s)

    app.dependency_overrides[get_store] = override_store
    app.dependency_overrides[get_ai] = lambda: ai
    client = TestClient(app)
    yield client
    app.dependency_overrides.clear()
