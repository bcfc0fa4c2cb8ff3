"""Domain models for the quiz platform.

Records are stored as plain JSON objects; each model converts itself with
``to_record`` / ``from_record``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from quizhub.constants.quiz_constants import DEFAULT_CATEGORY


class UserRole(str, Enum):
    STUDENT = "student"
    TEACHER = "teacher"


class QuestionType(str, Enum):
    MCQ = "mcq"
    MULTIPLE_CORRECT = "multiple_correct"
    TRUE_FALSE = "true_false"


class NotificationType(str, Enum):
    INFO = "info"
    ALERT = "alert"
    SUCCESS = "success"


@dataclass(slots=True)
class User:
    id: str
    name: str
    email: str
    role: UserRole

    def to_record(self) -> dict[str, Any]:
        return {"id": self.id, "name": self.name, "email": self.email, "role": self.role.value}

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> User:
        return cls(
            id=record["id"],
            name=record.get("name", ""),
            email=record["email"],
            role=UserRole(record["role"]),
        )


@dataclass(slots=True)
class QuizSettings:
    """Timing and access rules for a quiz."""

    time_limit_minutes: int
    attempt_limit: int = 1
    randomize_questions: bool = False
    is_public: bool = True
    scheduled_at: str | None = None
    expires_at: str | None = None

    def to_record(self) -> dict[str, Any]:
        return {
            "time_limit_minutes": self.time_limit_minutes,
            "attempt_limit": self.attempt_limit,
            "randomize_questions": self.randomize_questions,
            "is_public": self.is_public,
            "scheduled_at": self.scheduled_at,
            "expires_at": self.expires_at,
        }

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> QuizSettings:
        return cls(
            time_limit_minutes=record["time_limit_minutes"],
            attempt_limit=record.get("attempt_limit") or 1,
            randomize_questions=record.get("randomize_questions", False),
            is_public=record.get("is_public", True),
            scheduled_at=record.get("scheduled_at"),
            expires_at=record.get("expires_at"),
        )

    @property
    def time_limit_seconds(self) -> int:
        return self.time_limit_minutes * 60


@dataclass(slots=True)
class Quiz:
    id: str
    teacher_id: str
    title: str
    description: str
    join_code: str
    settings: QuizSettings
    created_at: str
    question_ids: list[str] = field(default_factory=list)
    is_practice: bool = False

    def to_record(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "teacher_id": self.teacher_id,
            "title": self.title,
            "description": self.description,
            "join_code": self.join_code,
            "settings": self.settings.to_record(),
            "created_at": self.created_at,
            "question_ids": list(self.question_ids),
            "is_practice": self.is_practice,
        }

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> Quiz:
        return cls(
            id=record["id"],
            teacher_id=record["teacher_id"],
            title=record["title"],
            description=record.get("description", ""),
            join_code=record["join_code"],
            settings=QuizSettings.from_record(record["settings"]),
            created_at=record["created_at"],
            question_ids=list(record.get("question_ids", [])),
            is_practice=bool(record.get("is_practice", False)),
        )


@dataclass(slots=True)
class QuestionOption:
    id: str
    text: str


@dataclass(slots=True)
class Question:
    """A gradable question. ``correct_answer_ids`` is a subset of the option ids."""

    id: str
    quiz_id: str
    text: str
    type: QuestionType
    options: list[QuestionOption]
    correct_answer_ids: list[str]
    points: int = 1
    category: str = DEFAULT_CATEGORY
    explanation: str | None = None

    def option_ids(self) -> list[str]:
        return [option.id for option in self.options]

    def to_record(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "quiz_id": self.quiz_id,
            "text": self.text,
            "type": self.type.value,
            "options": [{"id": option.id, "text": option.text} for option in self.options],
            "correct_answer_ids": list(self.correct_answer_ids),
            "points": self.points,
            "category": self.category,
            "explanation": self.explanation,
        }

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> Question:
        return cls(
            id=record["id"],
            quiz_id=record["quiz_id"],
            text=record["text"],
            type=QuestionType(record["type"]),
            options=[QuestionOption(id=o["id"], text=o["text"]) for o in record.get("options", [])],
            correct_answer_ids=list(record.get("correct_answer_ids", [])),
            points=record.get("points", 1),
            category=record.get("category") or DEFAULT_CATEGORY,
            explanation=record.get("explanation"),
        )


@dataclass(slots=True)
class QuizAttempt:
    """One student's timed run through a quiz.

    ``score`` and ``max_score`` are only meaningful once ``is_completed`` is set.
    """

    id: str
    student_id: str
    quiz_id: str
    started_at: str
    answers: dict[str, list[str]] = field(default_factory=dict)
    score: int = 0
    max_score: int = 0
    time_taken_seconds: int = 0
    completed_at: str | None = None
    is_completed: bool = False
    last_question_idx: int = 0
    is_practice: bool = False

    def to_record(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "student_id": self.student_id,
            "quiz_id": self.quiz_id,
            "answers": {qid: list(selected) for qid, selected in self.answers.items()},
            "score": self.score,
            "max_score": self.max_score,
            "time_taken_seconds": self.time_taken_seconds,
            "started_at": self.started_at,
            "completed_at": self.completed_at,
            "is_completed": self.is_completed,
            "last_question_idx": self.last_question_idx,
            "is_practice": self.is_practice,
        }

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> QuizAttempt:
        return cls(
            id=record["id"],
            student_id=record["student_id"],
            quiz_id=record["quiz_id"],
            started_at=record["started_at"],
            answers={qid: list(selected) for qid, selected in record.get("answers", {}).items()},
            score=record.get("score", 0),
            max_score=record.get("max_score", 0),
            time_taken_seconds=record.get("time_taken_seconds", 0),
            completed_at=record.get("completed_at"),
            is_completed=bool(record.get("is_completed", False)),
            last_question_idx=record.get("last_question_idx", 0),
            is_practice=bool(record.get("is_practice", False)),
        )


@dataclass(slots=True)
class Notification:
    id: str
    user_id: str
    title: str
    message: str
    type: NotificationType
    created_at: str
    is_read: bool = False
    link: str | None = None

    def to_record(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "title": self.title,
            "message": self.message,
            "type": self.type.value,
            "created_at": self.created_at,
            "is_read": self.is_read,
            "link": self.link,
        }

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> Notification:
        return cls(
            id=record["id"],
            user_id=record["user_id"],
            title=record["title"],
            message=record["message"],
            type=NotificationType(record.get("type", "info")),
            created_at=record["created_at"],
            is_read=bool(record.get("is_read", False)),
            link=record.get("link"),
        )
