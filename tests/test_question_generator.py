"""Tests for converting generator output into questions and practice quizzes."""

from __future__ import annotations

import pytest

from quizhub.core.errors import GenerationFailed, ValidationFailed
from quizhub.core.models import QuestionType
from quizhub.core.question_generator import GeneratedQuestion, generate_questions
from quizhub.core.quiz_manager import QuizManager


class FakeGenerator:
    def __init__(self, items=None, error=None):
        self.items = items
        self.error = error
        self.calls = []

    def generate(self, topic, count):
        self.calls.append((topic, count))
        if self.error is not None:
            raise self.error
        if self.items is not None:
            return self.items
        return [
            GeneratedQuestion(
                text=f"{topic} question {n}",
                type=QuestionType.MCQ,
                options=["right", "wrong"],
                correct_answer_indices=[0],
            )
            for n in range(count)
        ]


def test_converts_indices_to_option_ids():
    item = GeneratedQuestion(
        text="Pick the even numbers",
        type=QuestionType.MULTIPLE_CORRECT,
        options=["1", "2", "4"],
        correct_answer_indices=[1, 2],
        points=2,
        explanation="Divisible by two.",
    )
    questions = generate_questions(FakeGenerator([item]), "  Parity ", 10)

    question, = questions
    assert question.option_ids() == ["0", "1", "2"]
    assert question.correct_answer_ids == ["1", "2"]
    assert question.category == "Parity"
    assert question.explanation == "Divisible by two."


@pytest.mark.parametrize("topic, count", [("", 10), ("Algebra", 9)])
def test_rejects_bad_requests_before_calling_generator(topic, count):
    generator = FakeGenerator()

    with pytest.raises(ValidationFailed):
        generate_questions(generator, topic, count)
    assert generator.calls == []


def test_missing_generator():
    with pytest.raises(GenerationFailed):
        generate_questions(None, "Algebra", 10)


def test_generator_errors_are_wrapped():
    with pytest.raises(GenerationFailed):
        generate_questions(FakeGenerator(error=RuntimeError("quota exceeded")), "Algebra", 10)


def test_empty_result_fails():
    with pytest.raises(GenerationFailed):
        generate_questions(FakeGenerator(items=[]), "Algebra", 10)


def test_out_of_range_correct_index_fails():
    bad = GeneratedQuestion(text="Broken", type=QuestionType.MCQ, options=["a", "b"], correct_answer_indices=[5])
    with pytest.raises(GenerationFailed):
        generate_questions(FakeGenerator(items=[bad]), "Algebra", 10)


def test_practice_quiz_from_generated_questions(store, clock):
    manager = QuizManager(store, generator=FakeGenerator(), clock=clock)

    quiz = manager.create_practice_quiz("student-1", "Fractions", 10)

    assert quiz.is_practice
    assert quiz.title == "Practice: Fractions"
    assert quiz.settings.time_limit_minutes == 20
    assert quiz.settings.randomize_questions
    assert len(manager.get_questions(quiz.id)) == 10


def test_failed_generation_leaves_no_quiz(store, clock):
    manager = QuizManager(store, generator=FakeGenerator(error=TimeoutError()), clock=clock)

    with pytest.raises(GenerationFailed):
        manager.create_practice_quiz("student-1", "Fractions", 10)
    assert store.read_all("quiz_data") == []
    assert store.read_all("question_data") == []
