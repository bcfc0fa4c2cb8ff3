"""Service for score statistics derived from completed attempts."""

from __future__ import annotations

from dataclasses import dataclass

from quizhub.core.grading import is_answer_correct
from quizhub.core.models import Question, QuizAttempt
from quizhub.core.services.attempt_engine import AttemptEngine
from quizhub.core.services.quiz_repository import QuizRepository
from quizhub.utils.time_utils import round_half_up


@dataclass(slots=True)
class CategoryAccuracy:
    """Class-wide accuracy for one category of a quiz."""

    category: str
    earned_points: int
    max_points: int
    accuracy: int
    total_questions: int


@dataclass(slots=True)
class CategoryPerformance:
    """One attempt's result within a category."""

    category: str
    score: int
    max_score: int
    percentage: int


@dataclass(slots=True)
class LeaderboardRow:
    rank: int
    attempt_id: str
    student_id: str
    score: int
    max_score: int
    time_taken_seconds: int


@dataclass(slots=True)
class QuizSummary:
    quiz_id: str
    participants: int
    class_average: int
    average_score: float
    average_duration_minutes: int
    category_count: int


class Analytics:
    """Computes class averages, category breakdowns and rankings.

    Only completed, non-practice attempts count toward quiz-wide figures.
    """

    def __init__(self, repository: QuizRepository, engine: AttemptEngine) -> None:
        self._repository = repository
        self._engine = engine

    def class_average(self, quiz_id: str) -> int:
        """Mean of score/max_score over the quiz's attempts, as a 0-100 percentage."""
        attempts = self._engine.get_quiz_attempts(quiz_id)
        return _class_average(attempts)

    def category_breakdown(self, quiz_id: str) -> list[CategoryAccuracy]:
        """Per-category accuracy across every attempt on the quiz, best first.

        The denominator assumes every attempt saw every question of the
        category.
        """
        questions = self._repository.get_questions_for_quiz(quiz_id)
        attempts = self._engine.get_quiz_attempts(quiz_id)
        attempt_count = len(attempts)

        stats: list[CategoryAccuracy] = []
        for category, category_questions in _group_by_category(questions).items():
            max_points = sum(q.points for q in category_questions)
            earned = sum(
                q.points
                for attempt in attempts
                for q in category_questions
                if is_answer_correct(q, attempt.answers.get(q.id))
            )
            denominator = max_points * attempt_count
            accuracy = round_half_up(100 * earned / denominator) if denominator > 0 else 0
            stats.append(
                CategoryAccuracy(
                    category=category,
                    earned_points=earned,
                    max_points=max_points,
                    accuracy=accuracy,
                    total_questions=len(category_questions) * attempt_count,
                )
            )
        return sorted(stats, key=lambda s: -s.accuracy)

    def attempt_breakdown(self, attempt_id: str) -> list[CategoryPerformance]:
        """Per-category score for a single attempt, in first-seen category order."""
        attempt = self._engine.get_attempt(attempt_id)
        questions = self._repository.get_questions_for_quiz(attempt.quiz_id)
        return category_performance(questions, attempt)

    def leaderboard(self, quiz_id: str, limit: int | None = None) -> list[LeaderboardRow]:
        """Highest score first; equal scores rank the faster attempt higher."""
        ordered = sorted(
            self._engine.get_quiz_attempts(quiz_id),
            key=lambda a: (-a.score, a.time_taken_seconds),
        )
        if limit is not None:
            ordered = ordered[:limit]
        return [
            LeaderboardRow(
                rank=position,
                attempt_id=attempt.id,
                student_id=attempt.student_id,
                score=attempt.score,
                max_score=attempt.max_score,
                time_taken_seconds=attempt.time_taken_seconds,
            )
            for position, attempt in enumerate(ordered, start=1)
        ]

    def quiz_summary(self, quiz_id: str) -> QuizSummary:
        attempts = self._engine.get_quiz_attempts(quiz_id)
        questions = self._repository.get_questions_for_quiz(quiz_id)
        count = len(attempts)
        average_score = sum(a.score for a in attempts) / count if count else 0.0
        average_duration = (
            round_half_up(sum(a.time_taken_seconds for a in attempts) / count / 60) if count else 0
        )
        return QuizSummary(
            quiz_id=quiz_id,
            participants=count,
            class_average=_class_average(attempts),
            average_score=average_score,
            average_duration_minutes=average_duration,
            category_count=len(_group_by_category(questions)),
        )


def category_performance(questions: list[Question], attempt: QuizAttempt) -> list[CategoryPerformance]:
    results: list[CategoryPerformance] = []
    for category, category_questions in _group_by_category(questions).items():
        max_score = sum(q.points for q in category_questions)
        score = sum(q.points for q in category_questions if is_answer_correct(q, attempt.answers.get(q.id)))
        percentage = round_half_up(100 * score / max_score) if max_score > 0 else 0
        results.append(CategoryPerformance(category=category, score=score, max_score=max_score, percentage=percentage))
    return results


def _class_average(attempts: list[QuizAttempt]) -> int:
    if not attempts:
        return 0
    total = sum(a.score / (a.max_score or 1) for a in attempts)
    return round_half_up(total / len(attempts) * 100)


def _group_by_category(questions: list[Question]) -> dict[str, list[Question]]:
    grouped: dict[str, list[Question]] = {}
    for question in questions:
        grouped.setdefault(question.category, []).append(question)
    return grouped
