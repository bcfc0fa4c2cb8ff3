"""Shared fixtures for the QuizHub test suite."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path
import random
import sys

import pytest

PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from quizhub.core.models import Question, QuestionOption, QuestionType, QuizSettings  # noqa: E402
from quizhub.core.quiz_manager import QuizManager  # noqa: E402
from quizhub.core.services.analytics import Analytics  # noqa: E402
from quizhub.core.services.attempt_engine import AttemptEngine  # noqa: E402
from quizhub.core.services.notification_scheduler import NotificationScheduler  # noqa: E402
from quizhub.core.services.quiz_repository import QuizRepository  # noqa: E402
from quizhub.core.store import InMemoryStore  # noqa: E402

START = datetime(2025, 1, 6, 9, 0, tzinfo=timezone.utc)


class FakeClock:
    """Manually advanced clock injected into services."""

    def __init__(self, now: datetime = START) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta: float) -> datetime:
        self.now = self.now + timedelta(**delta)
        return self.now


def make_question(
    question_id: str,
    quiz_id: str = "",
    type: QuestionType = QuestionType.MCQ,
    option_ids: tuple[str, ...] = ("a", "b", "c"),
    correct: tuple[str, ...] = ("a",),
    points: int = 1,
    category: str = "General",
) -> Question:
    return Question(
        id=question_id,
        quiz_id=quiz_id,
        text=f"Question {question_id}?",
        type=type,
        options=[QuestionOption(id=oid, text=f"Option {oid}") for oid in option_ids],
        correct_answer_ids=list(correct),
        points=points,
        category=category,
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def repository(store, clock) -> QuizRepository:
    return QuizRepository(store, clock=clock, rng=random.Random(7))


@pytest.fixture
def engine(store, repository, clock) -> AttemptEngine:
    return AttemptEngine(store, repository, clock=clock)


@pytest.fixture
def analytics(repository, engine) -> Analytics:
    return Analytics(repository, engine)


@pytest.fixture
def scheduler(store, repository, clock) -> NotificationScheduler:
    return NotificationScheduler(store, repository, clock=clock)


@pytest.fixture
def manager(store, clock) -> QuizManager:
    return QuizManager(store, clock=clock, rng=random.Random(11))


@pytest.fixture
def settings() -> QuizSettings:
    return QuizSettings(time_limit_minutes=10, attempt_limit=1)


@pytest.fixture
def two_question_quiz(repository, settings):
    """Quiz with an MCQ worth 1 point and a multiple-correct question worth 2."""
    quiz = repository.create_quiz("teacher-1", "Mixed", "Two questions", settings)
    repository.save_question(make_question("q1", quiz.id, correct=("a",), points=1, category="Basics"))
    repository.save_question(
        make_question(
            "q2",
            quiz.id,
            type=QuestionType.MULTIPLE_CORRECT,
            option_ids=("x", "y", "z"),
            correct=("x", "y"),
            points=2,
            category="Sets",
        )
    )
    return repository.get_quiz(quiz.id)
