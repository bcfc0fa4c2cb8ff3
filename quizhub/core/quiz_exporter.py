"""Utilities for exporting questions to the plain-text format used for imports."""

from __future__ import annotations

from quizhub.constants.quiz_constants import DEFAULT_CATEGORY
from quizhub.core.models import Question, QuestionType
from quizhub.core.quiz_importer import OPTION_LETTERS


def serialize_questions(questions: list[Question]) -> str:
    if not questions:
        raise ValueError("Cannot export an empty quiz.")
    blocks = [_serialize_question(question) for question in questions]
    return "\n\n---\n\n".join(blocks) + "\n"


def _serialize_question(question: Question) -> str:
    if len(question.options) > len(OPTION_LETTERS):
        raise ValueError(f"Question {question.id} has more options than the text format supports.")

    lines: list[str] = []
    _append_multiline(lines, "Q", question.text)

    # Options are re-lettered on export; correct ids follow their option.
    letter_for_id: dict[str, str] = {}
    for letter, option in zip(OPTION_LETTERS, question.options):
        letter_for_id[option.id] = letter
        _append_multiline(lines, letter, option.text)

    lines.append("CORRECT: " + ", ".join(letter_for_id[cid] for cid in question.correct_answer_ids))
    if question.type is not QuestionType.MCQ:
        lines.append(f"TYPE: {question.type.value}")
    if question.points != 1:
        lines.append(f"POINTS: {question.points}")
    if question.category != DEFAULT_CATEGORY:
        lines.append(f"CATEGORY: {question.category}")
    if question.explanation:
        _append_multiline(lines, "EXPLANATION", question.explanation)
    return "\n".join(lines)


def _append_multiline(lines: list[str], marker: str, text: str) -> None:
    text_lines = text.splitlines() or [text]
    lines.append(f"{marker}: {text_lines[0]}")
    lines.extend(text_lines[1:])
