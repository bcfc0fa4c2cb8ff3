"""Scoring rules shared by submission and analytics.

No partial credit: a question earns either all of its points or none.
"""

from __future__ import annotations

from dataclasses import dataclass

from quizhub.core.models import Question, QuestionType


@dataclass(slots=True)
class GradeResult:
    score: int
    max_score: int
    correct_question_ids: list[str]


def is_answer_correct(question: Question, selected: list[str] | None) -> bool:
    """Return True when ``selected`` fully answers ``question``."""
    selected = selected or []
    match question.type:
        case QuestionType.MCQ | QuestionType.TRUE_FALSE:
            if len(question.correct_answer_ids) != 1:
                return False
            return len(selected) == 1 and selected[0] == question.correct_answer_ids[0]
        case QuestionType.MULTIPLE_CORRECT:
            return len(selected) == len(set(selected)) and set(selected) == set(question.correct_answer_ids)
    raise ValueError(f"Unsupported question type: {question.type!r}")


def grade_answers(questions: list[Question], answers: dict[str, list[str]]) -> GradeResult:
    """Grade a full answer sheet. Missing answers count as unanswered."""
    score = 0
    max_score = 0
    correct_ids: list[str] = []
    for question in questions:
        max_score += question.points
        if is_answer_correct(question, answers.get(question.id)):
            score += question.points
            correct_ids.append(question.id)
    return GradeResult(score=score, max_score=max_score, correct_question_ids=correct_ids)
