"""Adapter around the question-generation collaborator.

The collaborator (an AI provider client, a fixture in tests) only has to
implement ``QuestionGenerator.generate``. It answers with option texts and the
indices of the correct options; this module turns that into Question entities
whose option ids are the stringified indices.
"""

from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Protocol
from uuid import uuid4

from quizhub.constants.quiz_constants import MIN_GENERATED_QUESTIONS
from quizhub.core.errors import GenerationFailed, ValidationFailed
from quizhub.core.models import Question, QuestionOption, QuestionType
from quizhub.core.services.quiz_repository import validate_question

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class GeneratedQuestion:
    """Structured output of the generation collaborator."""

    text: str
    type: QuestionType
    options: list[str]
    correct_answer_indices: list[int]
    points: int = 1
    explanation: str | None = None


class QuestionGenerator(Protocol):
    def generate(self, topic: str, count: int) -> list[GeneratedQuestion]: ...


def generate_questions(
    generator: QuestionGenerator | None,
    topic: str,
    count: int,
    quiz_id: str = "",
) -> list[Question]:
    """Ask the collaborator for questions and convert them into drafts.

    Nothing is persisted here; callers save the drafts once every one of them
    converted cleanly.
    """
    cleaned_topic = topic.strip()
    if not cleaned_topic:
        raise ValidationFailed("A topic is required to generate questions.")
    if count < MIN_GENERATED_QUESTIONS:
        raise ValidationFailed(f"Generation requires at least {MIN_GENERATED_QUESTIONS} questions.")
    if generator is None:
        raise GenerationFailed("No question generator is configured.")

    try:
        generated = generator.generate(cleaned_topic, count)
    except Exception as exc:
        logger.exception("Question generation for %r failed", cleaned_topic)
        raise GenerationFailed("The question generator is temporarily unavailable.") from exc

    if not generated:
        raise GenerationFailed("The question generator returned no questions.")

    drafts: list[Question] = []
    for index, item in enumerate(generated):
        try:
            drafts.append(_to_question(item, cleaned_topic, quiz_id))
        except (ValidationFailed, ValueError, TypeError) as exc:
            raise GenerationFailed(f"Generated question {index + 1} is malformed: {exc}") from exc
    logger.info("Generated %d questions on %r", len(drafts), cleaned_topic)
    return drafts


def _to_question(item: GeneratedQuestion, topic: str, quiz_id: str) -> Question:
    options = [QuestionOption(id=str(idx), text=text) for idx, text in enumerate(item.options)]
    for correct_index in item.correct_answer_indices:
        if not 0 <= correct_index < len(options):
            raise ValueError(f"correct index {correct_index} is out of range")
    draft = Question(
        id=uuid4().hex,
        quiz_id=quiz_id,
        text=item.text,
        type=QuestionType(item.type),
        options=options,
        correct_answer_ids=[str(idx) for idx in item.correct_answer_indices],
        points=item.points if item.points and item.points > 0 else 1,
        category=topic,
        explanation=item.explanation,
    )
    return validate_question(draft)
