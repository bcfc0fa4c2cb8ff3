"""Service for managing quizzes and the questions that belong to them."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import replace
from datetime import datetime
import logging
import random
from uuid import uuid4

from quizhub.constants.quiz_constants import (
    DEFAULT_CATEGORY,
    JOIN_CODE_ALPHABET,
    JOIN_CODE_LENGTH,
    PRACTICE_JOIN_CODE,
)
from quizhub.core.errors import NotFound, PermissionDenied, ValidationFailed
from quizhub.core.models import Question, QuestionOption, QuestionType, Quiz, QuizSettings
from quizhub.core.store import QUESTION_COLLECTION, QUIZ_COLLECTION, CollectionStore, index_of
from quizhub.utils.time_utils import parse_iso, to_iso, utc_now

logger = logging.getLogger(__name__)


class QuizRepository:
    """CRUD over Quiz and Question records."""

    def __init__(
        self,
        store: CollectionStore,
        clock: Callable[[], datetime] = utc_now,
        rng: random.Random | None = None,
    ) -> None:
        self._store = store
        self._clock = clock
        self._rng = rng or random.Random()

    # --- Quizzes ---

    def create_quiz(
        self,
        teacher_id: str,
        title: str,
        description: str,
        settings: QuizSettings,
        is_practice: bool = False,
    ) -> Quiz:
        cleaned_title = title.strip()
        if not cleaned_title:
            raise ValidationFailed("Quiz title must not be empty.")
        validated_settings = validate_settings(settings)

        quizzes = self._store.read_all(QUIZ_COLLECTION)
        join_code = PRACTICE_JOIN_CODE if is_practice else self._unique_join_code(quizzes)
        quiz = Quiz(
            id=uuid4().hex,
            teacher_id=teacher_id,
            title=cleaned_title,
            description=description.strip(),
            join_code=join_code,
            settings=validated_settings,
            created_at=to_iso(self._clock()),
            question_ids=[],
            is_practice=is_practice,
        )
        quizzes.append(quiz.to_record())
        self._store.write_all(QUIZ_COLLECTION, quizzes)
        logger.info("Created %s quiz %s (%s)", "practice" if is_practice else "graded", quiz.id, join_code)
        return quiz

    def update_quiz(
        self,
        quiz_id: str,
        teacher_id: str,
        *,
        title: str | None = None,
        description: str | None = None,
        settings: QuizSettings | None = None,
        question_ids: list[str] | None = None,
    ) -> Quiz:
        """Overwrite selected fields of a quiz owned by ``teacher_id``."""
        quizzes = self._store.read_all(QUIZ_COLLECTION)
        index = index_of(quizzes, quiz_id)
        if index < 0:
            raise NotFound(f"Quiz {quiz_id} does not exist.")
        quiz = Quiz.from_record(quizzes[index])
        if quiz.teacher_id != teacher_id:
            raise PermissionDenied("Only the quiz owner can update it.")

        if title is not None:
            if not title.strip():
                raise ValidationFailed("Quiz title must not be empty.")
            quiz.title = title.strip()
        if description is not None:
            quiz.description = description.strip()
        if settings is not None:
            quiz.settings = validate_settings(settings)
        if question_ids is not None:
            if len(set(question_ids)) != len(question_ids):
                raise ValidationFailed("Question order must not repeat a question.")
            known = {q.id for q in self.get_questions_for_quiz(quiz_id)}
            unknown = [qid for qid in question_ids if qid not in known]
            if unknown:
                raise ValidationFailed(f"Questions not part of this quiz: {', '.join(unknown)}")
            quiz.question_ids = list(question_ids)

        quizzes[index] = quiz.to_record()
        self._store.write_all(QUIZ_COLLECTION, quizzes)
        return quiz

    def find_quiz(self, quiz_id: str) -> Quiz | None:
        for record in self._store.read_all(QUIZ_COLLECTION):
            if record["id"] == quiz_id:
                return Quiz.from_record(record)
        return None

    def get_quiz(self, quiz_id: str) -> Quiz:
        quiz = self.find_quiz(quiz_id)
        if quiz is None:
            raise NotFound(f"Quiz {quiz_id} does not exist.")
        return quiz

    def get_quiz_by_code(self, code: str) -> Quiz:
        """Look up a published quiz by join code. Practice quizzes are never joinable."""
        wanted = code.strip().upper()
        for record in self._store.read_all(QUIZ_COLLECTION):
            if record["join_code"] == wanted and not record.get("is_practice", False):
                return Quiz.from_record(record)
        raise NotFound(f"No quiz uses join code {wanted!r}.")

    def list_quizzes(self, include_practice: bool = False) -> list[Quiz]:
        quizzes = [Quiz.from_record(record) for record in self._store.read_all(QUIZ_COLLECTION)]
        if include_practice:
            return quizzes
        return [quiz for quiz in quizzes if not quiz.is_practice]

    def get_teacher_quizzes(self, teacher_id: str) -> list[Quiz]:
        return [quiz for quiz in self.list_quizzes() if quiz.teacher_id == teacher_id]

    # --- Questions ---

    def get_questions_for_quiz(self, quiz_id: str) -> list[Question]:
        """Return the quiz's questions in stored quiz order.

        Questions saved for the quiz but missing from ``question_ids`` follow in
        insertion order.
        """
        questions = [
            Question.from_record(record)
            for record in self._store.read_all(QUESTION_COLLECTION)
            if record["quiz_id"] == quiz_id
        ]
        quiz = self.find_quiz(quiz_id)
        if quiz is None:
            return questions
        position = {qid: idx for idx, qid in enumerate(quiz.question_ids)}
        fallback = len(position)
        return sorted(questions, key=lambda q: position.get(q.id, fallback))

    def get_question(self, question_id: str) -> Question:
        for record in self._store.read_all(QUESTION_COLLECTION):
            if record["id"] == question_id:
                return Question.from_record(record)
        raise NotFound(f"Question {question_id} does not exist.")

    def save_question(self, question: Question) -> Question:
        """Insert or replace a question and append new ones to the quiz order."""
        prepared = validate_question(question)
        quizzes = self._store.read_all(QUIZ_COLLECTION)
        quiz_index = index_of(quizzes, prepared.quiz_id)
        if quiz_index < 0:
            raise NotFound(f"Quiz {prepared.quiz_id} does not exist.")

        questions = self._store.read_all(QUESTION_COLLECTION)
        existing_index = index_of(questions, prepared.id)
        if existing_index >= 0:
            if questions[existing_index]["quiz_id"] != prepared.quiz_id:
                raise ValidationFailed("A saved question cannot move to another quiz.")
            questions[existing_index] = prepared.to_record()
            self._store.write_all(QUESTION_COLLECTION, questions)
            return prepared

        questions.append(prepared.to_record())
        self._store.write_all(QUESTION_COLLECTION, questions)
        question_ids = quizzes[quiz_index].setdefault("question_ids", [])
        if prepared.id not in question_ids:
            question_ids.append(prepared.id)
            self._store.write_all(QUIZ_COLLECTION, quizzes)
        return prepared

    def _unique_join_code(self, quizzes: list[dict]) -> str:
        taken = {record["join_code"] for record in quizzes}
        while True:
            code = "".join(self._rng.choice(JOIN_CODE_ALPHABET) for _ in range(JOIN_CODE_LENGTH))
            if code not in taken and code != PRACTICE_JOIN_CODE:
                return code


def validate_settings(settings: QuizSettings) -> QuizSettings:
    """Check settings and return a normalized copy with ISO timestamps in UTC."""
    if not _is_int(settings.time_limit_minutes) or settings.time_limit_minutes <= 0:
        raise ValidationFailed("Time limit must be a positive number of minutes.")
    if not _is_int(settings.attempt_limit) or settings.attempt_limit < 1:
        raise ValidationFailed("Attempt limit must be at least 1.")

    scheduled_at = _normalize_timestamp(settings.scheduled_at, "scheduled_at")
    expires_at = _normalize_timestamp(settings.expires_at, "expires_at")
    if scheduled_at and expires_at and parse_iso(scheduled_at) >= parse_iso(expires_at):
        raise ValidationFailed("The quiz must open before it expires.")
    return replace(settings, scheduled_at=scheduled_at, expires_at=expires_at)


def validate_question(question: Question) -> Question:
    """Validate and normalize a question before storage."""
    cleaned_text = question.text.strip()
    if not cleaned_text:
        raise ValidationFailed("Question text must not be empty.")
    if not _is_int(question.points) or question.points < 1:
        raise ValidationFailed("Question points must be a positive integer.")

    options = _validate_options(question.options)
    if question.type is QuestionType.TRUE_FALSE and len(options) != 2:
        raise ValidationFailed("True/false questions need exactly two options.")

    option_ids = {option.id for option in options}
    correct_ids = list(question.correct_answer_ids)
    if len(set(correct_ids)) != len(correct_ids):
        raise ValidationFailed("Correct answers must not repeat.")
    if not set(correct_ids) <= option_ids:
        raise ValidationFailed("Correct answers must refer to the question's options.")
    if question.type is QuestionType.MULTIPLE_CORRECT:
        if not correct_ids:
            raise ValidationFailed("Select at least one correct answer.")
    elif len(correct_ids) != 1:
        raise ValidationFailed("Single-answer questions need exactly one correct answer.")

    explanation = question.explanation.strip() if question.explanation else None
    return Question(
        id=question.id or uuid4().hex,
        quiz_id=question.quiz_id,
        text=cleaned_text,
        type=question.type,
        options=options,
        correct_answer_ids=correct_ids,
        points=question.points,
        category=question.category.strip() or DEFAULT_CATEGORY,
        explanation=explanation or None,
    )


def _validate_options(options: list[QuestionOption]) -> list[QuestionOption]:
    if len(options) < 2:
        raise ValidationFailed("Each question needs at least two options.")
    cleaned = [QuestionOption(id=option.id.strip(), text=option.text.strip()) for option in options]
    if any(not option.id for option in cleaned):
        raise ValidationFailed("Option ids cannot be empty.")
    if any(not option.text for option in cleaned):
        raise ValidationFailed("Option text cannot be empty.")
    if len({option.id for option in cleaned}) != len(cleaned):
        raise ValidationFailed("Option ids must be unique within a question.")
    return cleaned


def _normalize_timestamp(value: str | None, field_name: str) -> str | None:
    if value is None or not value.strip():
        return None
    try:
        return to_iso(parse_iso(value))
    except ValueError as exc:
        raise ValidationFailed(f"{field_name} must be an ISO-8601 timestamp.") from exc


def _is_int(value: object) -> bool:
    # bool is an int subclass; True must not pass as a one-minute limit.
    return isinstance(value, int) and not isinstance(value, bool)
