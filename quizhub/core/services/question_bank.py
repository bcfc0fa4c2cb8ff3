"""Service for the shared bank of reusable questions."""

from __future__ import annotations

from dataclasses import replace
import logging
from uuid import uuid4

from quizhub.constants.quiz_constants import BANK_QUIZ_ID
from quizhub.core.errors import NotFound
from quizhub.core.models import Question
from quizhub.core.services.quiz_repository import QuizRepository, validate_question
from quizhub.core.store import QUESTION_BANK_COLLECTION, CollectionStore

logger = logging.getLogger(__name__)


class QuestionBank:
    """Keeps bank copies of questions, deduplicated by text and category."""

    def __init__(self, store: CollectionStore, repository: QuizRepository) -> None:
        self._store = store
        self._repository = repository

    def add(self, question: Question) -> Question | None:
        """Store a bank copy of ``question``; returns None when it is already banked."""
        prepared = validate_question(replace(question, quiz_id=BANK_QUIZ_ID))
        bank = self._store.read_all(QUESTION_BANK_COLLECTION)
        if any(item["text"] == prepared.text and item["category"] == prepared.category for item in bank):
            return None
        bank_item = replace(prepared, id=f"bank_{uuid4().hex}")
        bank.append(bank_item.to_record())
        self._store.write_all(QUESTION_BANK_COLLECTION, bank)
        logger.debug("Banked question %s", bank_item.id)
        return bank_item

    def list_questions(self, category: str | None = None) -> list[Question]:
        questions = [Question.from_record(record) for record in self._store.read_all(QUESTION_BANK_COLLECTION)]
        if category is None:
            return questions
        return [question for question in questions if question.category == category]

    def copy_to_quiz(self, bank_question_id: str, quiz_id: str) -> Question:
        """Attach a fresh copy of a bank question to a quiz."""
        for record in self._store.read_all(QUESTION_BANK_COLLECTION):
            if record["id"] == bank_question_id:
                source = Question.from_record(record)
                return self._repository.save_question(replace(source, id=uuid4().hex, quiz_id=quiz_id))
        raise NotFound(f"Bank question {bank_question_id} does not exist.")
