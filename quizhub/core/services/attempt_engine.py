"""Service for the attempt lifecycle: start, answer, autosave, submit.

An attempt moves one way from in-progress to submitted. At most one attempt per
(student, quiz) is in progress at any time; starting again resumes it.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, replace
from datetime import datetime
import logging
import math
import random
from uuid import uuid4

from quizhub.core.errors import (
    AttemptLimitExceeded,
    NotFound,
    NotYetOpen,
    ValidationFailed,
    WindowClosed,
)
from quizhub.core.grading import grade_answers
from quizhub.core.models import Question, QuestionType, Quiz, QuizAttempt
from quizhub.core.services.quiz_repository import QuizRepository
from quizhub.core.store import ATTEMPT_COLLECTION, CollectionStore, index_of
from quizhub.utils.time_utils import parse_iso, to_iso, utc_now

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class AttemptSession:
    """What a student needs to (re)enter an attempt."""

    attempt: QuizAttempt
    quiz: Quiz
    questions: list[Question]
    time_left_seconds: int
    resumed: bool = False


class AttemptEngine:
    """Creates, resumes, saves and grades quiz attempts."""

    def __init__(
        self,
        store: CollectionStore,
        repository: QuizRepository,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._store = store
        self._repository = repository
        self._clock = clock

    # --- Lifecycle ---

    def start_attempt(self, student_id: str, quiz_id: str) -> AttemptSession:
        """Start a new attempt or resume the one in progress.

        An in-progress attempt whose time already ran out is submitted with its
        last autosaved answers and returned completed, with no time left.
        """
        quiz = self._repository.find_quiz(quiz_id)
        if quiz is None:
            raise NotFound(f"Quiz {quiz_id} does not exist.")

        attempts = self._store.read_all(ATTEMPT_COLLECTION)
        active = _find_active(attempts, student_id, quiz_id)
        completed_count = sum(
            1
            for record in attempts
            if record["student_id"] == student_id and record["quiz_id"] == quiz_id and record.get("is_completed")
        )
        if active is None and completed_count >= quiz.settings.attempt_limit:
            raise AttemptLimitExceeded(f"Maximum attempts reached ({quiz.settings.attempt_limit}).")

        now = self._clock()
        if quiz.settings.scheduled_at and parse_iso(quiz.settings.scheduled_at) > now:
            raise NotYetOpen(f"Locked until {quiz.settings.scheduled_at}.")
        if quiz.settings.expires_at and parse_iso(quiz.settings.expires_at) < now:
            raise WindowClosed("Assessment window closed.")

        questions = self._repository.get_questions_for_quiz(quiz_id)

        if active is not None:
            attempt = QuizAttempt.from_record(active)
            remaining = self._remaining_seconds(attempt, quiz, now)
            if remaining <= 0:
                logger.info("Attempt %s ran out of time before resuming; submitting", attempt.id)
                submitted = self.submit(attempt.id)
                return AttemptSession(submitted, quiz, order_questions(submitted, quiz, questions), 0, resumed=True)
            return AttemptSession(attempt, quiz, order_questions(attempt, quiz, questions), remaining, resumed=True)

        attempt = QuizAttempt(
            id=uuid4().hex,
            student_id=student_id,
            quiz_id=quiz_id,
            started_at=to_iso(now),
            answers={},
            last_question_idx=0,
            is_completed=False,
            is_practice=quiz.is_practice,
        )
        attempts.append(attempt.to_record())
        self._store.write_all(ATTEMPT_COLLECTION, attempts)
        logger.info("Student %s started attempt %s on quiz %s", student_id, attempt.id, quiz_id)
        return AttemptSession(
            attempt,
            quiz,
            order_questions(attempt, quiz, questions),
            quiz.settings.time_limit_seconds,
        )

    def autosave(self, attempt: QuizAttempt, time_left_seconds: int | None = None) -> QuizAttempt:
        """Upsert the in-progress attempt, last write wins.

        ``time_taken_seconds`` becomes the time limit minus ``time_left_seconds``;
        when the caller has no countdown of its own the server clock is used.
        Saving over an attempt that was already submitted is a no-op.
        """
        quiz = self._repository.get_quiz(attempt.quiz_id)
        attempts = self._store.read_all(ATTEMPT_COLLECTION)
        index = index_of(attempts, attempt.id)

        if index >= 0:
            stored = QuizAttempt.from_record(attempts[index])
            if stored.is_completed:
                logger.debug("Ignoring autosave for submitted attempt %s", attempt.id)
                return stored
            attempt = replace(attempt, student_id=stored.student_id, quiz_id=stored.quiz_id, started_at=stored.started_at)
        else:
            other = _find_active(attempts, attempt.student_id, attempt.quiz_id)
            if other is not None:
                raise ValidationFailed("This student already has an attempt in progress for this quiz.")

        if attempt.is_completed:
            raise ValidationFailed("Use submit to complete an attempt.")

        limit = quiz.settings.time_limit_seconds
        if time_left_seconds is None:
            time_left_seconds = self._remaining_seconds(attempt, quiz, self._clock())
        time_left_seconds = min(max(time_left_seconds, 0), limit)
        saved = replace(
            attempt,
            answers={qid: list(selected) for qid, selected in attempt.answers.items()},
            time_taken_seconds=limit - time_left_seconds,
            score=0,
            max_score=0,
        )

        if index >= 0:
            attempts[index] = saved.to_record()
        else:
            attempts.append(saved.to_record())
        self._store.write_all(ATTEMPT_COLLECTION, attempts)
        return saved

    def submit(self, attempt_id: str) -> QuizAttempt:
        """Grade and complete an attempt. Submitting twice returns the first result."""
        attempts = self._store.read_all(ATTEMPT_COLLECTION)
        index = index_of(attempts, attempt_id)
        if index < 0:
            raise NotFound(f"Attempt {attempt_id} does not exist.")

        attempt = QuizAttempt.from_record(attempts[index])
        if attempt.is_completed:
            return attempt

        now = self._clock()
        quiz = self._repository.find_quiz(attempt.quiz_id)
        questions = self._repository.get_questions_for_quiz(attempt.quiz_id)
        result = grade_answers(questions, attempt.answers)

        # Elapsed time is fixed at submission, capped at the time limit.
        time_taken = attempt.time_taken_seconds
        if quiz is not None:
            elapsed = math.floor((now - parse_iso(attempt.started_at)).total_seconds())
            time_taken = min(quiz.settings.time_limit_seconds, max(time_taken, elapsed))

        completed = replace(
            attempt,
            score=result.score,
            max_score=result.max_score,
            time_taken_seconds=time_taken,
            is_completed=True,
            completed_at=to_iso(now),
            is_practice=quiz.is_practice if quiz is not None else False,
        )
        attempts[index] = completed.to_record()
        self._store.write_all(ATTEMPT_COLLECTION, attempts)
        logger.info("Attempt %s submitted: %d/%d", attempt_id, result.score, result.max_score)
        return completed

    def expire_overdue(self) -> list[QuizAttempt]:
        """Submit every in-progress attempt whose time limit has elapsed."""
        now = self._clock()
        expired: list[QuizAttempt] = []
        for record in self._store.read_all(ATTEMPT_COLLECTION):
            if record.get("is_completed"):
                continue
            attempt = QuizAttempt.from_record(record)
            quiz = self._repository.find_quiz(attempt.quiz_id)
            if quiz is None or self._remaining_seconds(attempt, quiz, now) > 0:
                continue
            expired.append(self.submit(attempt.id))
        if expired:
            logger.info("Auto-submitted %d overdue attempt(s)", len(expired))
        return expired

    # --- In-memory mutations ---

    @staticmethod
    def record_answer(attempt: QuizAttempt, question: Question, option_id: str) -> QuizAttempt:
        """Apply one option click to the attempt's answers.

        Single-answer questions replace the selection; multiple-correct questions
        toggle the option in or out.
        """
        if attempt.is_completed:
            raise ValidationFailed("This attempt was already submitted.")
        if option_id not in question.option_ids():
            raise ValidationFailed(f"Option {option_id!r} is not part of question {question.id}.")

        current = list(attempt.answers.get(question.id, []))
        match question.type:
            case QuestionType.MCQ | QuestionType.TRUE_FALSE:
                updated = [option_id]
            case QuestionType.MULTIPLE_CORRECT:
                if option_id in current:
                    updated = [selected for selected in current if selected != option_id]
                else:
                    updated = current + [option_id]
            case _:
                raise ValueError(f"Unsupported question type: {question.type!r}")
        attempt.answers[question.id] = updated
        return attempt

    @staticmethod
    def navigate(attempt: QuizAttempt, index: int, question_count: int) -> QuizAttempt:
        """Remember the question the student is looking at."""
        if question_count <= 0:
            attempt.last_question_idx = 0
        else:
            attempt.last_question_idx = min(max(index, 0), question_count - 1)
        return attempt

    # --- Queries ---

    def get_attempt(self, attempt_id: str) -> QuizAttempt:
        for record in self._store.read_all(ATTEMPT_COLLECTION):
            if record["id"] == attempt_id:
                return QuizAttempt.from_record(record)
        raise NotFound(f"Attempt {attempt_id} does not exist.")

    def get_active_attempts(self, student_id: str) -> list[QuizAttempt]:
        return [
            QuizAttempt.from_record(record)
            for record in self._store.read_all(ATTEMPT_COLLECTION)
            if record["student_id"] == student_id and not record.get("is_completed")
        ]

    def get_completed_attempts(self, student_id: str) -> list[QuizAttempt]:
        """Completed attempts for a student, most recent first."""
        completed = [
            QuizAttempt.from_record(record)
            for record in self._store.read_all(ATTEMPT_COLLECTION)
            if record["student_id"] == student_id and record.get("is_completed")
        ]
        return sorted(completed, key=lambda a: parse_iso(a.completed_at or a.started_at), reverse=True)

    def get_quiz_attempts(self, quiz_id: str) -> list[QuizAttempt]:
        """Completed, non-practice attempts for a quiz."""
        return [
            QuizAttempt.from_record(record)
            for record in self._store.read_all(ATTEMPT_COLLECTION)
            if record["quiz_id"] == quiz_id and record.get("is_completed") and not record.get("is_practice")
        ]

    def time_left_seconds(self, attempt: QuizAttempt) -> int:
        if attempt.is_completed:
            return 0
        quiz = self._repository.get_quiz(attempt.quiz_id)
        return max(self._remaining_seconds(attempt, quiz, self._clock()), 0)

    @staticmethod
    def _remaining_seconds(attempt: QuizAttempt, quiz: Quiz, now: datetime) -> int:
        elapsed = math.floor((now - parse_iso(attempt.started_at)).total_seconds())
        return quiz.settings.time_limit_seconds - elapsed


def order_questions(attempt: QuizAttempt, quiz: Quiz, questions: list[Question]) -> list[Question]:
    """Question order for an attempt.

    Randomized quizzes shuffle with the attempt id as seed, so a resumed
    attempt sees the same order it started with.
    """
    ordered = list(questions)
    if quiz.settings.randomize_questions:
        random.Random(attempt.id).shuffle(ordered)
    return ordered


def _find_active(records: list[dict], student_id: str, quiz_id: str) -> dict | None:
    return next(
        (
            record
            for record in records
            if record["student_id"] == student_id and record["quiz_id"] == quiz_id and not record.get("is_completed")
        ),
        None,
    )

def validate_answers(questions: list[Question], answers: dict[str, list[str]]) -> dict[str, list[str]]:
    """Check a client-supplied answer sheet against the quiz's questions.

    Every key must be a question of the quiz and every selection one of its
    options. Single-answer questions take at most one selection.
    """
    by_id = {question.id: question for question in questions}
    checked: dict[str, list[str]] = {}
    for question_id, selected in answers.items():
        question = by_id.get(question_id)
        if question is None:
            raise ValidationFailed(f"Question {question_id} is not part of this quiz.")
        selected = list(selected)
        if len(set(selected)) != len(selected):
            raise ValidationFailed(f"Answer for question {question_id} repeats an option.")
        unknown = [option_id for option_id in selected if option_id not in question.option_ids()]
        if unknown:
            raise ValidationFailed(f"Options {', '.join(unknown)} are not part of question {question_id}.")
        if question.type is not QuestionType.MULTIPLE_CORRECT and len(selected) > 1:
            raise ValidationFailed(f"Question {question_id} accepts a single answer.")
        checked[question_id] = selected
    return checked
