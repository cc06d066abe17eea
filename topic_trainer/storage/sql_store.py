"""
SQL Storage Adapter.

Implements StoragePort on top of SQLAlchemy's async ORM. SQLite through
aiosqlite is the default; any async SQLAlchemy URL works.

Each port call runs in its own transaction; ``apply`` runs a whole
WriteBatch in one. SQLAlchemy failures are re-raised as StorageError.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import AsyncGenerator, Iterable
from contextlib import asynccontextmanager
from datetime import datetime

from loguru import logger
from sqlalchemy import delete, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from topic_trainer.core.errors import StorageError
from topic_trainer.core.models import Attempt, Category, Question

from .database import create_engine_for, create_session_factory, init_db, session_scope
from .port import WriteBatch
from .tables import AttemptRow, CategoryRow, QuestionRow, QuestionTagRow


class _Sequence:
    """Next insertion-order value for a table, read lazily once per transaction."""

    def __init__(self, session: AsyncSession, column):
        self._session = session
        self._column = column
        self._value: int | None = None

    async def next(self) -> int:
        if self._value is None:
            self._value = await self._session.scalar(
                select(func.coalesce(func.max(self._column), 0))
            )
        self._value += 1
        return self._value


# =============================================================================
# Row <-> Model Conversion
# =============================================================================


def _category_from_row(row: CategoryRow) -> Category:
    return Category(id=row.id, name=row.name, parent_id=row.parent_id)


def _question_from_row(row: QuestionRow, tags: list[str]) -> Question:
    return Question(
        id=row.id,
        text=row.text,
        correct_answer=row.correct_answer,
        difficulty=row.difficulty,
        tags=tags,
        category_id=row.category_id,
        next_review_date=row.next_review_date,
        interval=row.interval,
        repetition_factor=row.repetition_factor,
    )


def _attempt_from_row(row: AttemptRow) -> Attempt:
    return Attempt(
        id=row.id,
        question_id=row.question_id,
        date=row.date,
        user_answer=row.user_answer,
        ai_score=row.ai_score,
        ai_feedback=row.ai_feedback,
        duration=row.duration,
    )


class SqlStorage:
    """
    SQLAlchemy-backed persistence for the trainer.

    Usage:
        storage = await SqlStorage.open("sqlite+aiosqlite:///trainer.db")
        ...
        await storage.close()
    """

    def __init__(self, url: str, echo: bool = False):
        self.url = url
        self.engine = create_engine_for(url, echo=echo)
        self._session_factory = create_session_factory(self.engine)

    @classmethod
    async def open(cls, url: str, echo: bool = False) -> SqlStorage:
        """Create the adapter and make sure the tables exist."""
        storage = cls(url, echo=echo)
        await storage.init()
        return storage

    async def init(self) -> None:
        try:
            await init_db(self.engine)
        except SQLAlchemyError as e:
            raise StorageError(f"could not initialize database: {e}") from e
        logger.info(f"SqlStorage initialized at {self.engine.url.render_as_string()}")

    async def close(self) -> None:
        """Dispose of the engine's connection pool."""
        await self.engine.dispose()

    @asynccontextmanager
    async def _transaction(self, action: str) -> AsyncGenerator[AsyncSession, None]:
        try:
            async with session_scope(self._session_factory) as session:
                yield session
        except SQLAlchemyError as e:
            logger.error(f"Storage {action} failed: {e}")
            raise StorageError(f"{action} failed: {e}") from e

    # =========================================================================
    # Categories
    # =========================================================================

    async def all_categories(self) -> list[Category]:
        async with self._transaction("load categories") as session:
            result = await session.execute(select(CategoryRow).order_by(CategoryRow.seq))
            return [_category_from_row(row) for row in result.scalars()]

    async def child_categories(self, parent_id: str | None) -> list[Category]:
        if parent_id is None:
            condition = CategoryRow.parent_id.is_(None)
        else:
            condition = CategoryRow.parent_id == parent_id
        async with self._transaction("load child categories") as session:
            result = await session.execute(
                select(CategoryRow).where(condition).order_by(CategoryRow.seq)
            )
            return [_category_from_row(row) for row in result.scalars()]

    async def put_category(self, category: Category) -> None:
        async with self._transaction("save category") as session:
            await self._upsert_category(session, category, _Sequence(session, CategoryRow.seq))

    async def delete_category(self, category_id: str) -> None:
        async with self._transaction("delete category") as session:
            await session.execute(delete(CategoryRow).where(CategoryRow.id == category_id))

    async def _upsert_category(
        self, session: AsyncSession, category: Category, seq: _Sequence
    ) -> None:
        row = await session.get(CategoryRow, category.id)
        if row is None:
            session.add(
                CategoryRow(
                    id=category.id,
                    seq=await seq.next(),
                    name=category.name,
                    parent_id=category.parent_id,
                )
            )
            return
        row.name = category.name
        row.parent_id = category.parent_id

    # =========================================================================
    # Questions
    # =========================================================================

    async def all_questions(self) -> list[Question]:
        async with self._transaction("load questions") as session:
            result = await session.execute(select(QuestionRow).order_by(QuestionRow.seq))
            return await self._with_tags(session, result.scalars().all())

    async def questions_by_category(self, category_id: str) -> list[Question]:
        async with self._transaction("load questions by category") as session:
            result = await session.execute(
                select(QuestionRow)
                .where(QuestionRow.category_id == category_id)
                .order_by(QuestionRow.seq)
            )
            return await self._with_tags(session, result.scalars().all())

    async def questions_by_tag(self, tag: str) -> list[Question]:
        async with self._transaction("load questions by tag") as session:
            result = await session.execute(
                select(QuestionRow)
                .join(QuestionTagRow, QuestionTagRow.question_id == QuestionRow.id)
                .where(QuestionTagRow.tag == tag)
                .order_by(QuestionRow.seq)
            )
            return await self._with_tags(session, result.scalars().all())

    async def put_question(self, question: Question) -> None:
        async with self._transaction("save question") as session:
            await self._upsert_question(session, question, _Sequence(session, QuestionRow.seq))

    async def delete_question(self, question_id: str) -> None:
        async with self._transaction("delete question") as session:
            await self._delete_question(session, question_id)

    async def _with_tags(
        self, session: AsyncSession, rows: Iterable[QuestionRow]
    ) -> list[Question]:
        rows = list(rows)
        if not rows:
            return []
        tag_result = await session.execute(
            select(QuestionTagRow)
            .where(QuestionTagRow.question_id.in_([row.id for row in rows]))
            .order_by(QuestionTagRow.question_id, QuestionTagRow.position)
        )
        tags: dict[str, list[str]] = defaultdict(list)
        for tag_row in tag_result.scalars():
            tags[tag_row.question_id].append(tag_row.tag)
        return [_question_from_row(row, tags.get(row.id, [])) for row in rows]

    async def _upsert_question(
        self, session: AsyncSession, question: Question, seq: _Sequence
    ) -> None:
        row = await session.get(QuestionRow, question.id)
        if row is None:
            row = QuestionRow(id=question.id, seq=await seq.next())
            session.add(row)
        row.text = question.text
        row.correct_answer = question.correct_answer
        row.difficulty = question.difficulty
        row.category_id = question.category_id
        row.next_review_date = question.next_review_date
        row.interval = question.interval
        row.repetition_factor = question.repetition_factor

        await session.execute(
            delete(QuestionTagRow).where(QuestionTagRow.question_id == question.id)
        )
        for position, tag in enumerate(question.tags):
            session.add(QuestionTagRow(question_id=question.id, tag=tag, position=position))

    async def _delete_question(self, session: AsyncSession, question_id: str) -> None:
        await session.execute(delete(QuestionTagRow).where(QuestionTagRow.question_id == question_id))
        await session.execute(delete(QuestionRow).where(QuestionRow.id == question_id))

    # =========================================================================
    # Attempts
    # =========================================================================

    async def all_attempts(self) -> list[Attempt]:
        async with self._transaction("load attempts") as session:
            result = await session.execute(select(AttemptRow).order_by(AttemptRow.date))
            return [_attempt_from_row(row) for row in result.scalars()]

    async def attempts_by_question(self, question_id: str) -> list[Attempt]:
        async with self._transaction("load attempts by question") as session:
            result = await session.execute(
                select(AttemptRow)
                .where(AttemptRow.question_id == question_id)
                .order_by(AttemptRow.date)
            )
            return [_attempt_from_row(row) for row in result.scalars()]

    async def attempts_between(self, start: datetime, end: datetime) -> list[Attempt]:
        async with self._transaction("load attempts by date") as session:
            result = await session.execute(
                select(AttemptRow)
                .where(AttemptRow.date >= start, AttemptRow.date <= end)
                .order_by(AttemptRow.date)
            )
            return [_attempt_from_row(row) for row in result.scalars()]

    async def put_attempt(self, attempt: Attempt) -> None:
        async with self._transaction("save attempt") as session:
            session.add(self._attempt_row(attempt))

    @staticmethod
    def _attempt_row(attempt: Attempt) -> AttemptRow:
        return AttemptRow(
            id=attempt.id,
            question_id=attempt.question_id,
            date=attempt.date,
            user_answer=attempt.user_answer,
            ai_score=attempt.ai_score,
            ai_feedback=attempt.ai_feedback,
            duration=attempt.duration,
        )

    # =========================================================================
    # Batches
    # =========================================================================

    async def apply(self, batch: WriteBatch) -> None:
        if batch.is_empty:
            return
        async with self._transaction("apply batch") as session:
            for question_id in batch.delete_question_ids:
                await self._delete_question(session, question_id)
            if batch.delete_category_ids:
                await session.execute(
                    delete(CategoryRow).where(CategoryRow.id.in_(batch.delete_category_ids))
                )

            category_seq = _Sequence(session, CategoryRow.seq)
            for category in batch.put_categories:
                await self._upsert_category(session, category, category_seq)

            question_seq = _Sequence(session, QuestionRow.seq)
            for question in batch.put_questions:
                await self._upsert_question(session, question, question_seq)

            for attempt in batch.put_attempts:
                session.add(self._attempt_row(attempt))

        logger.debug(f"SQL batch committed ({len(batch)} operations)")
