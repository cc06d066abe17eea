"""
Storage port: the persistence boundary of the trainer.

Three tables (categories, questions, attempts), each keyed by entity id,
with the secondary lookups the core needs. Every method is a coroutine;
these are the only places where core operations may suspend. Adapter
failures must surface as StorageError.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Protocol, runtime_checkable

from topic_trainer.core.models import Attempt, Category, Question


@dataclass
class WriteBatch:
    """A set of puts and deletes that must commit atomically."""

    put_categories: list[Category] = field(default_factory=list)
    put_questions: list[Question] = field(default_factory=list)
    put_attempts: list[Attempt] = field(default_factory=list)
    delete_category_ids: list[str] = field(default_factory=list)
    delete_question_ids: list[str] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (
            self.put_categories
            or self.put_questions
            or self.put_attempts
            or self.delete_category_ids
            or self.delete_question_ids
        )

    def __len__(self) -> int:
        return (
            len(self.put_categories)
            + len(self.put_questions)
            + len(self.put_attempts)
            + len(self.delete_category_ids)
            + len(self.delete_question_ids)
        )


@runtime_checkable
class StoragePort(Protocol):
    """Persistence contract consumed by ContentGraph and AttemptLog."""

    # Categories
    async def all_categories(self) -> list[Category]: ...

    async def child_categories(self, parent_id: str | None) -> list[Category]: ...

    async def put_category(self, category: Category) -> None: ...

    async def delete_category(self, category_id: str) -> None: ...

    # Questions
    async def all_questions(self) -> list[Question]: ...

    async def questions_by_category(self, category_id: str) -> list[Question]: ...

    async def questions_by_tag(self, tag: str) -> list[Question]: ...

    async def put_question(self, question: Question) -> None: ...

    async def delete_question(self, question_id: str) -> None: ...

    # Attempts
    async def all_attempts(self) -> list[Attempt]: ...

    async def attempts_by_question(self, question_id: str) -> list[Attempt]: ...

    async def attempts_between(self, start: datetime, end: datetime) -> list[Attempt]: ...

    async def put_attempt(self, attempt: Attempt) -> None: ...

    # Batches
    async def apply(self, batch: WriteBatch) -> None: ...
