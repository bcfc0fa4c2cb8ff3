"""End-to-end checks of the QuizManager facade."""

from __future__ import annotations

from datetime import timedelta

import pytest

from conftest import make_question
from quizhub.core.errors import NotFound, PermissionDenied, ValidationFailed
from quizhub.core.models import QuestionType, QuizSettings, UserRole
from quizhub.utils.time_utils import to_iso


@pytest.fixture
def people(manager):
    teacher = manager.login("teacher@example.com", UserRole.TEACHER, "Teacher")
    students = [manager.login(f"s{n}@example.com", UserRole.STUDENT, f"Student {n}") for n in range(2)]
    return teacher, students


@pytest.fixture
def published(manager, people, settings):
    teacher, _ = people
    questions = [
        make_question("", correct=("b",), category="Basics"),
        make_question(
            "",
            type=QuestionType.MULTIPLE_CORRECT,
            option_ids=("x", "y", "z"),
            correct=("x", "y"),
            points=2,
            category="Sets",
        ),
    ]
    return manager.create_quiz(teacher.id, "Mixed", "", settings, questions=questions)


def test_create_quiz_saves_questions_and_announces(manager, people, published):
    _, students = people

    assert len(manager.get_questions(published.id)) == 2
    for student in students:
        assert [n.title for n in manager.get_notifications(student.id)] == ["New Assessment Released"]


def test_invalid_initial_question_creates_nothing(manager, people, settings):
    teacher, _ = people
    bad = make_question("", correct=())

    with pytest.raises(ValidationFailed):
        manager.create_quiz(teacher.id, "Broken", "", settings, questions=[bad])
    assert manager.get_teacher_quizzes(teacher.id) == []


def test_student_session(manager, people, published, clock):
    _, (student, _) = people
    session = manager.start_attempt(student.id, published.id)
    first, second = session.questions

    manager.answer_question(student.id, session.attempt.id, first.id, "b")
    manager.answer_question(student.id, session.attempt.id, second.id, "x")
    manager.answer_question(student.id, session.attempt.id, second.id, "y")
    clock.advance(minutes=3)
    manager.save_progress(student.id, session.attempt.id, last_question_idx=1)

    result = manager.submit_attempt(student.id, session.attempt.id)

    assert (result.score, result.max_score) == (3, 3)
    assert result.time_taken_seconds == 180
    assert manager.get_leaderboard(published.id)[0].student_id == student.id
    assert manager.get_class_average(published.id) == 100


def test_answer_after_time_limit_submits(manager, people, published, clock):
    _, (student, _) = people
    session = manager.start_attempt(student.id, published.id)
    clock.advance(minutes=11)

    attempt = manager.answer_question(student.id, session.attempt.id, session.questions[0].id, "b")

    assert attempt.is_completed
    assert attempt.answers == {}
    assert manager.get_time_left(attempt.id) == 0


def test_answer_for_question_of_another_quiz(manager, people, published, settings):
    teacher, (student, _) = people
    other = manager.create_quiz(teacher.id, "Other", "", settings, questions=[make_question("")])
    foreign = manager.get_questions(other.id)[0]
    session = manager.start_attempt(student.id, published.id)

    with pytest.raises(PermissionDenied):
        manager.answer_question(student.id, session.attempt.id, foreign.id, "a")


def test_attempts_belong_to_their_student(manager, people, published):
    _, (student, other_student) = people
    session = manager.start_attempt(student.id, published.id)

    with pytest.raises(PermissionDenied):
        manager.submit_attempt(other_student.id, session.attempt.id)


def test_only_owner_changes_questions(manager, people, published):
    intruder = manager.login("other@example.com", UserRole.TEACHER, "Other")

    with pytest.raises(PermissionDenied):
        manager.import_questions(intruder.id, published.id, "Q: Hi\nA: a\nB: b\nCORRECT: A\n")


def test_expiry_sweep(manager, people, published, clock):
    _, students = people
    for student in students:
        manager.start_attempt(student.id, published.id)
    clock.advance(minutes=10, seconds=1)

    expired = manager.expire_overdue_attempts()

    assert len(expired) == 2
    assert all(a.is_completed for a in expired)
    assert manager.get_active_attempts(students[0].id) == []


def test_deadline_tick_for_all_users(manager, people, clock):
    teacher, _ = people
    settings = QuizSettings(time_limit_minutes=5, expires_at=to_iso(clock() + timedelta(minutes=10)))
    manager.create_quiz(teacher.id, "Closing soon", "", settings)

    # teacher and both students
    assert manager.process_scheduled_events_for_all() == 3
    assert manager.process_scheduled_events_for_all() == 0


def test_notification_ownership(manager, people, published):
    _, (student, other_student) = people
    notification = manager.get_notifications(student.id)[0]

    with pytest.raises(PermissionDenied):
        manager.mark_notification_read(other_student.id, notification.id)
    assert manager.mark_notification_read(student.id, notification.id).is_read


def test_export_unknown_quiz(manager):
    with pytest.raises(NotFound):
        manager.export_questions("missing")


@pytest.mark.parametrize(
    "answers",
    [
        {"not-a-question": ["a"]},
        {0: ["zzz"]},
        {0: ["a", "b"]},
        {1: ["x", "x"]},
    ],
)
def test_progress_rejects_malformed_answers(manager, people, published, answers):
    _, (student, _) = people
    session = manager.start_attempt(student.id, published.id)
    ids = [q.id for q in session.questions]
    sheet = {ids[key] if isinstance(key, int) else key: selected for key, selected in answers.items()}

    with pytest.raises(ValidationFailed):
        manager.save_progress(student.id, session.attempt.id, answers=sheet)
    assert manager.get_attempt(session.attempt.id).answers == {}


def test_progress_accepts_valid_answers(manager, people, published):
    _, (student, _) = people
    session = manager.start_attempt(student.id, published.id)
    first, second = session.questions

    saved = manager.save_progress(
        student.id, session.attempt.id, answers={first.id: ["b"], second.id: ["y", "x"]}
    )

    assert saved.answers == {first.id: ["b"], second.id: ["y", "x"]}
