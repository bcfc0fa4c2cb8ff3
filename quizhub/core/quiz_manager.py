"""Business logic shared by the API and background tasks."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime
import logging
import random
from threading import Lock

from quizhub.constants.quiz_constants import PRACTICE_MINUTES_PER_QUESTION
from quizhub.core.errors import PermissionDenied
from quizhub.core.models import (
    Notification,
    Question,
    Quiz,
    QuizAttempt,
    QuizSettings,
    User,
    UserRole,
)
from quizhub.core.question_generator import QuestionGenerator, generate_questions
from quizhub.core.quiz_exporter import serialize_questions
from quizhub.core.quiz_importer import parse_questions
from quizhub.core.services.analytics import (
    Analytics,
    CategoryAccuracy,
    CategoryPerformance,
    LeaderboardRow,
    QuizSummary,
)
from quizhub.core.services.attempt_engine import AttemptEngine, AttemptSession, validate_answers
from quizhub.core.services.identity import IdentityService
from quizhub.core.services.notification_scheduler import NotificationScheduler
from quizhub.core.services.question_bank import QuestionBank
from quizhub.core.services.quiz_repository import QuizRepository, validate_question
from quizhub.core.store import CollectionStore
from quizhub.utils.time_utils import utc_now

logger = logging.getLogger(__name__)


class QuizManager:
    """Facade for quiz services: Identity, Repository, Bank, Attempts, Analytics, Notifications.

    Every public method holds one lock, so store reads and writes from API
    threads and background tasks never interleave.
    """

    def __init__(
        self,
        store: CollectionStore,
        generator: QuestionGenerator | None = None,
        clock: Callable[[], datetime] = utc_now,
        rng: random.Random | None = None,
    ) -> None:
        self._lock = Lock()
        self._generator = generator

        # Services
        self._identity = IdentityService(store)
        self._repository = QuizRepository(store, clock=clock, rng=rng)
        self._bank = QuestionBank(store, self._repository)
        self._engine = AttemptEngine(store, self._repository, clock=clock)
        self._analytics = Analytics(self._repository, self._engine)
        self._notifications = NotificationScheduler(store, self._repository, clock=clock)

    # --- Identity ---

    def login(self, email: str, role: UserRole, display_name: str) -> User:
        with self._lock:
            return self._identity.login(email, role, display_name)

    def get_user(self, user_id: str) -> User:
        with self._lock:
            return self._identity.get_user(user_id)

    # --- Quiz Repository Delegation ---

    def create_quiz(
        self,
        teacher_id: str,
        title: str,
        description: str,
        settings: QuizSettings,
        questions: list[Question] | None = None,
        add_to_bank: bool = False,
    ) -> Quiz:
        """Create a graded quiz with optional initial questions and announce it to students."""
        with self._lock:
            drafts = [validate_question(q) for q in questions or []]
            quiz = self._repository.create_quiz(teacher_id, title, description, settings)
            self._save_drafts(quiz.id, drafts, add_to_bank)
            students = [user.id for user in self._identity.list_users(UserRole.STUDENT)]
            self._notifications.notify_quiz_released(quiz, students)
            return self._repository.get_quiz(quiz.id)

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
        with self._lock:
            return self._repository.update_quiz(
                quiz_id,
                teacher_id,
                title=title,
                description=description,
                settings=settings,
                question_ids=question_ids,
            )

    def get_quiz(self, quiz_id: str) -> Quiz:
        with self._lock:
            return self._repository.get_quiz(quiz_id)

    def get_quiz_by_code(self, code: str) -> Quiz:
        with self._lock:
            return self._repository.get_quiz_by_code(code)

    def get_teacher_quizzes(self, teacher_id: str) -> list[Quiz]:
        with self._lock:
            return self._repository.get_teacher_quizzes(teacher_id)

    def get_questions(self, quiz_id: str) -> list[Question]:
        with self._lock:
            self._repository.get_quiz(quiz_id)
            return self._repository.get_questions_for_quiz(quiz_id)

    def save_question(self, teacher_id: str, question: Question, add_to_bank: bool = False) -> Question:
        with self._lock:
            self._require_owner(question.quiz_id, teacher_id)
            saved = self._repository.save_question(question)
            if add_to_bank:
                self._bank.add(saved)
            return saved

    def import_questions(self, teacher_id: str, quiz_id: str, text: str, add_to_bank: bool = False) -> list[Question]:
        """Parse the text format and append every question; nothing is saved if any block is invalid."""
        with self._lock:
            self._require_owner(quiz_id, teacher_id)
            drafts = parse_questions(text, quiz_id)
            return self._save_drafts(quiz_id, drafts, add_to_bank)

    def export_questions(self, quiz_id: str) -> str:
        with self._lock:
            self._repository.get_quiz(quiz_id)
            return serialize_questions(self._repository.get_questions_for_quiz(quiz_id))

    # --- Question Generation ---

    def generate_questions(self, topic: str, count: int) -> list[Question]:
        """Draft questions for a teacher to review; nothing is stored."""
        return generate_questions(self._generator, topic, count)

    def create_practice_quiz(self, student_id: str, topic: str, count: int) -> Quiz:
        """Generate a self-study quiz. A generation failure leaves no quiz behind."""
        drafts = generate_questions(self._generator, topic, count)
        with self._lock:
            settings = QuizSettings(
                time_limit_minutes=len(drafts) * PRACTICE_MINUTES_PER_QUESTION,
                attempt_limit=1,
                randomize_questions=True,
                is_public=False,
            )
            quiz = self._repository.create_quiz(
                student_id,
                f"Practice: {topic.strip()}",
                f"Self-generated mock test on {topic.strip()}.",
                settings,
                is_practice=True,
            )
            self._save_drafts(quiz.id, drafts, add_to_bank=False)
            return self._repository.get_quiz(quiz.id)

    # --- Question Bank Delegation ---

    def get_question_bank(self, category: str | None = None) -> list[Question]:
        with self._lock:
            return self._bank.list_questions(category)

    def add_to_question_bank(self, question: Question) -> Question | None:
        with self._lock:
            return self._bank.add(question)

    def copy_from_bank(self, teacher_id: str, bank_question_id: str, quiz_id: str) -> Question:
        with self._lock:
            self._require_owner(quiz_id, teacher_id)
            return self._bank.copy_to_quiz(bank_question_id, quiz_id)

    # --- Attempt Engine Delegation ---

    def start_attempt(self, student_id: str, quiz_id: str) -> AttemptSession:
        with self._lock:
            return self._engine.start_attempt(student_id, quiz_id)

    def answer_question(self, student_id: str, attempt_id: str, question_id: str, option_id: str) -> QuizAttempt:
        """Apply an option click and autosave.

        If the time limit already ran out the attempt is submitted instead and
        returned completed.
        """
        with self._lock:
            attempt = self._owned_attempt(attempt_id, student_id)
            if attempt.is_completed:
                return attempt
            if self._engine.time_left_seconds(attempt) <= 0:
                return self._engine.submit(attempt_id)
            question = self._repository.get_question(question_id)
            if question.quiz_id != attempt.quiz_id:
                raise PermissionDenied("That question belongs to a different quiz.")
            self._engine.record_answer(attempt, question, option_id)
            return self._engine.autosave(attempt)

    def save_progress(
        self,
        student_id: str,
        attempt_id: str,
        answers: dict[str, list[str]] | None = None,
        last_question_idx: int | None = None,
        time_left_seconds: int | None = None,
    ) -> QuizAttempt:
        """Autosave a client's view of the attempt (answers, position, countdown)."""
        with self._lock:
            attempt = self._owned_attempt(attempt_id, student_id)
            if attempt.is_completed:
                return attempt
            questions = self._repository.get_questions_for_quiz(attempt.quiz_id)
            if answers is not None:
                attempt.answers = validate_answers(questions, answers)
            if last_question_idx is not None:
                self._engine.navigate(attempt, last_question_idx, len(questions))
            return self._engine.autosave(attempt, time_left_seconds)

    def submit_attempt(self, student_id: str, attempt_id: str) -> QuizAttempt:
        with self._lock:
            self._owned_attempt(attempt_id, student_id)
            return self._engine.submit(attempt_id)

    def get_attempt(self, attempt_id: str) -> QuizAttempt:
        with self._lock:
            return self._engine.get_attempt(attempt_id)

    def get_time_left(self, attempt_id: str) -> int:
        with self._lock:
            return self._engine.time_left_seconds(self._engine.get_attempt(attempt_id))

    def get_active_attempts(self, student_id: str) -> list[QuizAttempt]:
        with self._lock:
            return self._engine.get_active_attempts(student_id)

    def get_completed_attempts(self, student_id: str) -> list[QuizAttempt]:
        with self._lock:
            return self._engine.get_completed_attempts(student_id)

    def expire_overdue_attempts(self) -> list[QuizAttempt]:
        with self._lock:
            return self._engine.expire_overdue()

    # --- Analytics Delegation ---

    def get_class_average(self, quiz_id: str) -> int:
        with self._lock:
            return self._analytics.class_average(quiz_id)

    def get_category_breakdown(self, quiz_id: str) -> list[CategoryAccuracy]:
        with self._lock:
            return self._analytics.category_breakdown(quiz_id)

    def get_attempt_breakdown(self, attempt_id: str) -> list[CategoryPerformance]:
        with self._lock:
            return self._analytics.attempt_breakdown(attempt_id)

    def get_leaderboard(self, quiz_id: str, limit: int | None = None) -> list[LeaderboardRow]:
        with self._lock:
            return self._analytics.leaderboard(quiz_id, limit)

    def get_quiz_summary(self, quiz_id: str) -> QuizSummary:
        with self._lock:
            self._repository.get_quiz(quiz_id)
            return self._analytics.quiz_summary(quiz_id)

    # --- Notifications Delegation ---

    def get_notifications(self, user_id: str) -> list[Notification]:
        with self._lock:
            return self._notifications.get_notifications(user_id)

    def mark_notification_read(self, user_id: str, notification_id: str) -> Notification:
        with self._lock:
            owned = {n.id for n in self._notifications.get_notifications(user_id)}
            if notification_id not in owned:
                raise PermissionDenied("That notification belongs to another user.")
            return self._notifications.mark_read(notification_id)

    def mark_all_notifications_read(self, user_id: str) -> int:
        with self._lock:
            return self._notifications.mark_all_read(user_id)

    def process_scheduled_events(self, user_id: str) -> list[Notification]:
        with self._lock:
            return self._notifications.process_scheduled_events(user_id)

    def process_scheduled_events_for_all(self) -> int:
        """One notification tick for every known user."""
        with self._lock:
            created = 0
            for user in self._identity.list_users():
                created += len(self._notifications.process_scheduled_events(user.id))
            return created

    # --- Helpers (call with the lock held) ---

    def _save_drafts(self, quiz_id: str, drafts: list[Question], add_to_bank: bool) -> list[Question]:
        saved: list[Question] = []
        for draft in drafts:
            draft.quiz_id = quiz_id
            stored = self._repository.save_question(draft)
            if add_to_bank:
                self._bank.add(stored)
            saved.append(stored)
        return saved

    def _require_owner(self, quiz_id: str, teacher_id: str) -> Quiz:
        quiz = self._repository.get_quiz(quiz_id)
        if quiz.teacher_id != teacher_id:
            raise PermissionDenied("Only the quiz owner can change its questions.")
        return quiz

    def _owned_attempt(self, attempt_id: str, student_id: str) -> QuizAttempt:
        attempt = self._engine.get_attempt(attempt_id)
        if attempt.student_id != student_id:
            raise PermissionDenied("That attempt belongs to another student.")
        return attempt
