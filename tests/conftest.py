"""
Shared fixtures: a fresh in-memory SQLite database per test, a few users and
questions, and test doubles for the OCR and LLM providers.
"""

from typing import Any, Dict, List, Optional

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from answer_eval import models  # noqa
from answer_eval.db.base import Base
from answer_eval.models.question import Question
from answer_eval.models.user import User
from answer_eval.services.evaluation_service import EvaluationEngine
from answer_eval.services.ocr_client import TextExtractor
from answer_eval.services.ocr_service import OcrCoordinator
from answer_eval.services.submission_service import SubmissionManager

# Test database (in-memory SQLite, shared across threads for TestClient)
TEST_DATABASE_URL = "sqlite:///:memory:"

GOOD_LLM_RESPONSE = """RELEVANCY: 85
SCORE: 7

Introduction:
- Relevant and concise.

Body:
- Addresses the core demand with examples.

Conclusion:
- Balanced.

Strengths:
- Clear structure
- Good examples

Weaknesses:
- Little data

Suggestions:
- Cite reports

Feedback:
A well structured answer that needs more data.

Comments:
- Introduction is crisp and relevant
- Body lacks supporting statistics

Remark:
Good attempt overall.
"""


class FakeOcrProvider:
    """Returns a canned payload per image url; an Exception value is raised."""

    def __init__(self, responses: Optional[Dict[str, Any]] = None, default: Any = None):
        self.responses = responses or {}
        self.default = default if default is not None else {"text": "default extracted text"}
        self.calls: List[str] = []

    def ocr(self, image, options):
        self.calls.append(image.url)
        value = self.responses.get(image.url, self.default)
        if isinstance(value, Exception):
            raise value
        return value


class FakeLlmProvider:
    def __init__(self, name: str, response: Any):
        self.name = name
        self.response = response
        self.prompts: List[str] = []

    def complete(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if isinstance(self.response, Exception):
            raise self.response
        return self.response


class SleepRecorder:
    def __init__(self):
        self.calls: List[float] = []

    def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


@pytest.fixture(scope="function")
def db_session():
    """Create a test database session."""
    engine = create_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


def _add(db, obj):
    db.add(obj)
    db.commit()
    db.refresh(obj)
    return obj


@pytest.fixture
def student(db_session):
    return _add(
        db_session,
        User(email="student@test.com", name="Test Student", role="student", client_id="acme"),
    )


@pytest.fixture
def other_student(db_session):
    return _add(
        db_session,
        User(email="other@test.com", name="Other Student", role="student", client_id="acme"),
    )


@pytest.fixture
def evaluator(db_session):
    return _add(
        db_session,
        User(email="eval@test.com", name="Test Evaluator", role="evaluator", client_id="acme"),
    )


@pytest.fixture
def second_evaluator(db_session):
    return _add(
        db_session,
        User(email="eval2@test.com", name="Second Evaluator", role="evaluator", client_id="acme"),
    )


@pytest.fixture
def foreign_evaluator(db_session):
    return _add(
        db_session,
        User(email="eval@other.com", name="Foreign Evaluator", role="evaluator", client_id="globex"),
    )


@pytest.fixture
def admin(db_session):
    return _add(
        db_session,
        User(email="admin@test.com", name="Test Admin", role="admin", client_id="acme"),
    )


@pytest.fixture
def auto_question(db_session):
    return _add(
        db_session,
        Question(
            question_text="Discuss the role of monsoons in Indian agriculture.",
            max_marks=10,
            word_limit=20,
            evaluation_mode="auto",
        ),
    )


@pytest.fixture
def manual_question(db_session):
    return _add(
        db_session,
        Question(
            question_text="Critically examine federalism in India.",
            max_marks=100,
            evaluation_mode="manual",
        ),
    )


@pytest.fixture
def sleep_recorder():
    return SleepRecorder()


@pytest.fixture
def ocr_provider():
    return FakeOcrProvider()


@pytest.fixture
def coordinator(ocr_provider, sleep_recorder):
    return OcrCoordinator(
        TextExtractor(ocr_provider),
        image_delay_ms=1000,
        batch_delay_ms=2000,
        sleep=sleep_recorder,
    )


@pytest.fixture
def primary_llm():
    return FakeLlmProvider("gemini", GOOD_LLM_RESPONSE)


@pytest.fixture
def secondary_llm():
    return FakeLlmProvider("openai", GOOD_LLM_RESPONSE)


@pytest.fixture
def engine(primary_llm, secondary_llm):
    return EvaluationEngine(primary_llm, secondary_llm)


@pytest.fixture
def manager(coordinator, engine):
    return SubmissionManager(coordinator, engine, max_attempts=5, create_retries=3, max_images=10)
