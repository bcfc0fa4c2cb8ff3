"""Tests for quiz and question persistence rules."""

from __future__ import annotations

from dataclasses import replace

import pytest

from conftest import make_question
from quizhub.constants.quiz_constants import JOIN_CODE_ALPHABET, JOIN_CODE_LENGTH, PRACTICE_JOIN_CODE
from quizhub.core.errors import NotFound, PermissionDenied, ValidationFailed
from quizhub.core.models import QuestionOption, QuestionType, QuizSettings
from quizhub.core.services.quiz_repository import validate_question, validate_settings


class TestQuizzes:

    def test_create_assigns_join_code(self, repository, settings):
        quiz = repository.create_quiz("teacher-1", "  Algebra  ", "Linear equations", settings)

        assert quiz.title == "Algebra"
        assert len(quiz.join_code) == JOIN_CODE_LENGTH
        assert set(quiz.join_code) <= set(JOIN_CODE_ALPHABET)
        assert repository.get_quiz_by_code(quiz.join_code.lower()).id == quiz.id

    def test_join_codes_are_unique(self, repository, settings):
        codes = {repository.create_quiz("teacher-1", f"Quiz {n}", "", settings).join_code for n in range(20)}
        assert len(codes) == 20

    def test_practice_quiz_is_hidden(self, repository, settings):
        practice = repository.create_quiz("student-1", "Practice: Sets", "", settings, is_practice=True)

        assert practice.join_code == PRACTICE_JOIN_CODE
        with pytest.raises(NotFound):
            repository.get_quiz_by_code(PRACTICE_JOIN_CODE)
        assert repository.list_quizzes() == []
        assert repository.list_quizzes(include_practice=True) == [practice]

    def test_empty_title_rejected(self, repository, settings):
        with pytest.raises(ValidationFailed):
            repository.create_quiz("teacher-1", "   ", "", settings)

    def test_teacher_quizzes(self, repository, settings):
        mine = repository.create_quiz("teacher-1", "Mine", "", settings)
        repository.create_quiz("teacher-2", "Theirs", "", settings)

        assert [q.id for q in repository.get_teacher_quizzes("teacher-1")] == [mine.id]

    def test_update_by_owner(self, repository, two_question_quiz):
        updated = repository.update_quiz(two_question_quiz.id, "teacher-1", title="Renamed", question_ids=["q2", "q1"])

        assert updated.title == "Renamed"
        assert [q.id for q in repository.get_questions_for_quiz(two_question_quiz.id)] == ["q2", "q1"]

    def test_update_by_other_teacher(self, repository, two_question_quiz):
        with pytest.raises(PermissionDenied):
            repository.update_quiz(two_question_quiz.id, "teacher-2", title="Mine now")

    def test_update_rejects_foreign_question_ids(self, repository, two_question_quiz):
        with pytest.raises(ValidationFailed):
            repository.update_quiz(two_question_quiz.id, "teacher-1", question_ids=["q1", "elsewhere"])


class TestQuestions:

    def test_save_appends_to_quiz_order(self, repository, two_question_quiz):
        assert two_question_quiz.question_ids == ["q1", "q2"]

    def test_save_existing_question_replaces_it(self, repository, two_question_quiz):
        question = repository.get_question("q1")
        repository.save_question(replace(question, text="Updated?"))

        assert repository.get_question("q1").text == "Updated?"
        assert repository.get_quiz(two_question_quiz.id).question_ids == ["q1", "q2"]

    def test_save_for_unknown_quiz(self, repository):
        with pytest.raises(NotFound):
            repository.save_question(make_question("q9", "missing"))

    def test_question_cannot_move_between_quizzes(self, repository, settings, two_question_quiz):
        other = repository.create_quiz("teacher-1", "Other", "", settings)

        with pytest.raises(ValidationFailed):
            repository.save_question(replace(repository.get_question("q1"), quiz_id=other.id))

    def test_get_question_unknown(self, repository):
        with pytest.raises(NotFound):
            repository.get_question("missing")


class TestValidation:

    def test_blank_id_gets_generated(self):
        assert validate_question(make_question("")).id

    @pytest.mark.parametrize(
        "changes",
        [
            {"text": "  "},
            {"points": 0},
            {"points": True},
            {"options": [QuestionOption("a", "Only one")]},
            {"correct_answer_ids": ["a", "b"]},
            {"correct_answer_ids": []},
            {"correct_answer_ids": ["zzz"]},
            {"options": [QuestionOption("a", "One"), QuestionOption("a", "Two")]},
            {"options": [QuestionOption("a", "One"), QuestionOption("b", " ")]},
        ],
    )
    def test_invalid_single_answer_questions(self, changes):
        with pytest.raises(ValidationFailed):
            validate_question(replace(make_question("q1"), **changes))

    def test_true_false_needs_two_options(self):
        question = make_question("tf", type=QuestionType.TRUE_FALSE, option_ids=("t", "f", "x"), correct=("t",))
        with pytest.raises(ValidationFailed):
            validate_question(question)

    def test_multiple_correct_needs_one_correct(self):
        question = make_question("mc", type=QuestionType.MULTIPLE_CORRECT, correct=())
        with pytest.raises(ValidationFailed):
            validate_question(question)

    def test_blank_category_defaults(self):
        assert validate_question(make_question("q1", category=" ")).category == "General"

    def test_settings_normalize_timestamps(self):
        settings = validate_settings(
            QuizSettings(time_limit_minutes=5, scheduled_at="2025-01-06T10:00:00Z", expires_at="2025-01-06T12:00:00")
        )

        assert settings.scheduled_at == "2025-01-06T10:00:00+00:00"
        assert settings.expires_at == "2025-01-06T12:00:00+00:00"

    @pytest.mark.parametrize(
        "settings",
        [
            QuizSettings(time_limit_minutes=0),
            QuizSettings(time_limit_minutes=True),
            QuizSettings(time_limit_minutes=5, attempt_limit=True),
            QuizSettings(time_limit_minutes=5, attempt_limit=0),
            QuizSettings(time_limit_minutes=5, scheduled_at="not a date"),
            QuizSettings(
                time_limit_minutes=5,
                scheduled_at="2025-01-06T12:00:00+00:00",
                expires_at="2025-01-06T10:00:00+00:00",
            ),
        ],
    )
    def test_invalid_settings(self, settings):
        with pytest.raises(ValidationFailed):
            validate_settings(settings)
