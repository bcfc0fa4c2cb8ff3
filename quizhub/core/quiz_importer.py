"""Utilities for importing questions from a human-friendly text format.

Format (repeat blocks separated by blank lines or '---'):

    Q: Question text (supports markdown + LaTeX). Additional lines until the
       next marker are treated as part of the question.
    A: First option text
    B: Second option text
    C: ...            (options A-F, at least two)
    CORRECT: B        (one letter, or several separated by commas)
    TYPE: mcq | multiple_correct | true_false   (optional)
    POINTS: 2         (optional, default 1)
    CATEGORY: Algebra (optional, default General)
    EXPLANATION: Why B is right (optional, may continue on following lines)

Example:

    Q: Which numbers are prime?
    A: 2
    B: 4
    C: 7
    CORRECT: A, C
    POINTS: 2
    CATEGORY: Number theory

When TYPE is omitted, several correct letters make a multiple_correct
question and a single one makes an mcq.
"""

from __future__ import annotations

from uuid import uuid4

from quizhub.constants.quiz_constants import DEFAULT_CATEGORY
from quizhub.core.errors import ValidationFailed
from quizhub.core.models import Question, QuestionOption, QuestionType
from quizhub.core.services.quiz_repository import validate_question


class QuizImportError(ValidationFailed):
    """Raised when a quiz definition cannot be parsed."""


OPTION_LETTERS = ("A", "B", "C", "D", "E", "F")
_FIELD_MARKERS = ("CORRECT:", "TYPE:", "POINTS:", "CATEGORY:", "EXPLANATION:")


def parse_questions(text: str, quiz_id: str) -> list[Question]:
    questions = [_parse_block(block, quiz_id) for block in _split_blocks(text)]
    if not questions:
        raise QuizImportError("Quiz text did not contain any questions.")
    return questions


def _split_blocks(text: str) -> list[str]:
    blocks: list[str] = []
    current_block: list[str] = []
    for raw_line in text.splitlines():
        stripped = raw_line.strip()
        if stripped == "---":
            if current_block:
                blocks.append("\n".join(current_block).strip())
                current_block = []
            continue
        if stripped:
            current_block.append(raw_line)
        elif current_block:
            blocks.append("\n".join(current_block).strip())
            current_block = []
    if current_block:
        blocks.append("\n".join(current_block).strip())
    return [block for block in blocks if block]


def _parse_block(block: str, quiz_id: str) -> Question:
    question_lines: list[str] = []
    explanation_lines: list[str] = []
    options: dict[str, str] = {}
    correct_letters: list[str] = []
    question_type: QuestionType | None = None
    points = 1
    category = DEFAULT_CATEGORY
    current_section: str | None = None

    for raw_line in block.splitlines():
        line = raw_line.strip()
        if not line:
            continue

        upper = line.upper()
        value = line.split(":", 1)[1].strip() if ":" in line else ""
        if upper.startswith("Q:"):
            question_lines = [line[2:].strip()]
            current_section = "Q"
            continue

        if upper.startswith(_FIELD_MARKERS):
            marker = upper.split(":", 1)[0]
            current_section = None
            if marker == "CORRECT":
                correct_letters = [part.strip().upper() for part in value.split(",") if part.strip()]
            elif marker == "TYPE":
                try:
                    question_type = QuestionType(value.lower())
                except ValueError as exc:
                    raise QuizImportError(f"Unknown question type {value!r}.") from exc
            elif marker == "POINTS":
                points = _parse_points(value)
            elif marker == "CATEGORY":
                category = value or DEFAULT_CATEGORY
            else:
                explanation_lines = [value]
                current_section = "EXPLANATION"
            continue

        if len(line) > 2 and line[0].upper() in OPTION_LETTERS and line[1] == ":":
            letter = line[0].upper()
            options[letter] = line[2:].strip()
            current_section = letter
            continue

        if current_section == "Q":
            question_lines.append(line)
        elif current_section == "EXPLANATION":
            explanation_lines.append(line)
        elif current_section in OPTION_LETTERS:
            options[current_section] = options[current_section] + f"\n{line}"
        else:
            raise QuizImportError(f"Encountered text outside of a known section: '{line}'.")

    question_text = "\n".join(question_lines).strip()
    if not question_text:
        raise QuizImportError("Question text missing (Q: ...)")

    present = [letter for letter in OPTION_LETTERS if letter in options]
    if present != list(OPTION_LETTERS[: len(present)]):
        raise QuizImportError("Options must use consecutive letters starting at A.")
    if not correct_letters:
        raise QuizImportError("Each question needs a CORRECT line.")
    unknown = [letter for letter in correct_letters if letter not in options]
    if unknown:
        raise QuizImportError(f"CORRECT refers to missing options: {', '.join(unknown)}.")

    if question_type is None:
        question_type = QuestionType.MULTIPLE_CORRECT if len(correct_letters) > 1 else QuestionType.MCQ

    explanation = "\n".join(explanation_lines).strip() or None
    draft = Question(
        id=uuid4().hex,
        quiz_id=quiz_id,
        text=question_text,
        type=question_type,
        options=[QuestionOption(id=letter, text=options[letter].strip()) for letter in present],
        correct_answer_ids=correct_letters,
        points=points,
        category=category,
        explanation=explanation,
    )
    try:
        return validate_question(draft)
    except ValidationFailed as exc:
        raise QuizImportError(str(exc)) from exc


def _parse_points(raw_value: str) -> int:
    if not raw_value:
        raise QuizImportError("POINTS must include an integer value.")
    try:
        parsed_value = int(raw_value)
    except ValueError as exc:
        raise QuizImportError("POINTS must be an integer.") from exc
    if parsed_value <= 0:
        raise QuizImportError("POINTS must be a positive integer.")
    return parsed_value
