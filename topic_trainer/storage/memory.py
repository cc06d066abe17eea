"""
In-memory storage adapter.

Dictionaries keyed by id, preserving insertion order. Used by tests and by
callers that do not need durability. Batches are staged on copies and
swapped in only when every step succeeded.
"""

from __future__ import annotations

from datetime import datetime

from loguru import logger

from topic_trainer.core.models import Attempt, Category, Question

from .port import WriteBatch


class InMemoryStorage:
    """Dict-backed implementation of StoragePort."""

    def __init__(self) -> None:
        self.categories: dict[str, Category] = {}
        self.questions: dict[str, Question] = {}
        self.attempts: dict[str, Attempt] = {}

    # =========================================================================
    # Categories
    # =========================================================================

    async def all_categories(self) -> list[Category]:
        return list(self.categories.values())

    async def child_categories(self, parent_id: str | None) -> list[Category]:
        return [c for c in self.categories.values() if c.parent_id == parent_id]

    async def put_category(self, category: Category) -> None:
        self.categories[category.id] = category

    async def delete_category(self, category_id: str) -> None:
        self.categories.pop(category_id, None)

    # =========================================================================
    # Questions
    # =========================================================================

    async def all_questions(self) -> list[Question]:
        return list(self.questions.values())

    async def questions_by_category(self, category_id: str) -> list[Question]:
        return [q for q in self.questions.values() if q.category_id == category_id]

    async def questions_by_tag(self, tag: str) -> list[Question]:
        return [q for q in self.questions.values() if tag in q.tags]

    async def put_question(self, question: Question) -> None:
        self.questions[question.id] = question

    async def delete_question(self, question_id: str) -> None:
        self.questions.pop(question_id, None)

    # =========================================================================
    # Attempts
    # =========================================================================

    async def all_attempts(self) -> list[Attempt]:
        return sorted(self.attempts.values(), key=lambda a: a.date)

    async def attempts_by_question(self, question_id: str) -> list[Attempt]:
        return sorted(
            (a for a in self.attempts.values() if a.question_id == question_id),
            key=lambda a: a.date,
        )

    async def attempts_between(self, start: datetime, end: datetime) -> list[Attempt]:
        return sorted(
            (a for a in self.attempts.values() if start <= a.date <= end),
            key=lambda a: a.date,
        )

    async def put_attempt(self, attempt: Attempt) -> None:
        self.attempts[attempt.id] = attempt

    # =========================================================================
    # Batches
    # =========================================================================

    async def apply(self, batch: WriteBatch) -> None:
        categories = dict(self.categories)
        questions = dict(self.questions)
        attempts = dict(self.attempts)

        for category_id in batch.delete_category_ids:
            categories.pop(category_id, None)
        for question_id in batch.delete_question_ids:
            questions.pop(question_id, None)
        for category in batch.put_categories:
            categories[category.id] = category
        for question in batch.put_questions:
            questions[question.id] = question
        for attempt in batch.put_attempts:
            attempts[attempt.id] = attempt

        self.categories, self.questions, self.attempts = categories, questions, attempts
        logger.debug(f"In-memory batch applied ({len(batch)} operations)")
