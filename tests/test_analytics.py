"""Tests for class averages, category statistics and the leaderboard."""

from __future__ import annotations

from conftest import make_question
from quizhub.core.models import QuizSettings


def _complete(engine, repository, clock, quiz_id, student_id, answers, minutes=1):
    attempt = engine.start_attempt(student_id, quiz_id).attempt
    for question_id, option_ids in answers.items():
        question = repository.get_question(question_id)
        for option_id in option_ids:
            engine.record_answer(attempt, question, option_id)
    clock.advance(minutes=minutes)
    engine.autosave(attempt)
    return engine.submit(attempt.id)


def test_no_attempts_gives_zero_average(analytics, two_question_quiz):
    assert analytics.class_average(two_question_quiz.id) == 0


def test_class_average_is_mean_of_percentages(analytics, engine, repository, clock, two_question_quiz):
    _complete(engine, repository, clock, two_question_quiz.id, "s1", {"q1": ["a"], "q2": ["x", "y"]})
    _complete(engine, repository, clock, two_question_quiz.id, "s2", {"q1": ["a"]})

    # (3/3 + 1/3) / 2 = 66.67%
    assert analytics.class_average(two_question_quiz.id) == 67


def test_category_breakdown_sorted_by_accuracy(analytics, engine, repository, clock, two_question_quiz):
    _complete(engine, repository, clock, two_question_quiz.id, "s1", {"q1": ["a"], "q2": ["x", "y"]})
    _complete(engine, repository, clock, two_question_quiz.id, "s2", {"q1": ["a"]})

    breakdown = analytics.category_breakdown(two_question_quiz.id)

    assert [(row.category, row.accuracy) for row in breakdown] == [("Basics", 100), ("Sets", 50)]
    sets = breakdown[1]
    assert (sets.earned_points, sets.max_points, sets.total_questions) == (2, 2, 2)


def test_category_breakdown_without_attempts_is_zero(analytics, two_question_quiz):
    breakdown = analytics.category_breakdown(two_question_quiz.id)

    assert {row.category: row.accuracy for row in breakdown} == {"Basics": 0, "Sets": 0}


def test_attempt_breakdown(analytics, engine, repository, clock, two_question_quiz):
    attempt = _complete(engine, repository, clock, two_question_quiz.id, "s1", {"q2": ["x", "y"]})

    rows = analytics.attempt_breakdown(attempt.id)

    assert [(r.category, r.score, r.max_score, r.percentage) for r in rows] == [
        ("Basics", 0, 1, 0),
        ("Sets", 2, 2, 100),
    ]


def test_leaderboard_breaks_ties_by_time(analytics, engine, repository, clock, two_question_quiz):
    _complete(engine, repository, clock, two_question_quiz.id, "slow", {"q1": ["a"]}, minutes=5)
    _complete(engine, repository, clock, two_question_quiz.id, "fast", {"q1": ["a"]}, minutes=2)
    _complete(engine, repository, clock, two_question_quiz.id, "best", {"q1": ["a"], "q2": ["x", "y"]}, minutes=9)

    rows = analytics.leaderboard(two_question_quiz.id)

    assert [(row.rank, row.student_id) for row in rows] == [(1, "best"), (2, "fast"), (3, "slow")]
    assert rows[1].time_taken_seconds == 120
    assert len(analytics.leaderboard(two_question_quiz.id, limit=1)) == 1


def test_practice_attempts_are_excluded(analytics, engine, repository, clock):
    practice = repository.create_quiz(
        "student-1", "Practice: Sets", "", QuizSettings(time_limit_minutes=4), is_practice=True
    )
    repository.save_question(make_question("p1", practice.id))
    _complete(engine, repository, clock, practice.id, "student-1", {"p1": ["a"]})

    assert analytics.class_average(practice.id) == 0
    assert analytics.leaderboard(practice.id) == []


def test_quiz_summary(analytics, engine, repository, clock, two_question_quiz):
    _complete(engine, repository, clock, two_question_quiz.id, "s1", {"q1": ["a"], "q2": ["x", "y"]}, minutes=3)
    _complete(engine, repository, clock, two_question_quiz.id, "s2", {"q1": ["a"]}, minutes=6)

    summary = analytics.quiz_summary(two_question_quiz.id)

    assert summary.participants == 2
    assert summary.average_score == 2.0
    assert summary.average_duration_minutes == 5
    assert summary.category_count == 2
    assert summary.class_average == 67


def test_leaderboard_uses_time_at_submission(analytics, engine, repository, clock, two_question_quiz):
    slow = engine.start_attempt("slow", two_question_quiz.id).attempt
    fast = engine.start_attempt("fast", two_question_quiz.id).attempt
    clock.advance(seconds=5)
    for attempt in (slow, fast):
        engine.record_answer(attempt, repository.get_question("q1"), "a")
        engine.autosave(attempt)
    clock.advance(seconds=95)
    engine.submit(fast.id)
    clock.advance(seconds=400)
    engine.submit(slow.id)

    rows = analytics.leaderboard(two_question_quiz.id)

    assert [(row.student_id, row.time_taken_seconds) for row in rows] == [("fast", 100), ("slow", 500)]
