"""
Attempt Log: append-only review history.

Attempts are immutable once recorded; there is no update or delete path.
An attempt may reference a question that has since been deleted.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from loguru import logger

from topic_trainer.core.errors import ValidationError
from topic_trainer.core.models import Attempt, parse_model
from topic_trainer.storage.port import StoragePort


class AttemptLog:
    """Records and reads attempts through the storage port."""

    def __init__(self, storage: StoragePort):
        self.storage = storage

    @staticmethod
    def new_attempt(
        question_id: str,
        ai_score: float,
        user_answer: str = "",
        ai_feedback: str = "",
        duration: float = 0,
        date: datetime | None = None,
    ) -> Attempt:
        """
        Build a validated Attempt with a fresh id.

        Raises:
            ValidationError: score outside [0, 10] or negative duration
        """
        data: dict[str, Any] = {
            "question_id": question_id,
            "ai_score": ai_score,
            "user_answer": user_answer,
            "ai_feedback": ai_feedback,
            "duration": duration,
        }
        if date is not None:
            data["date"] = date
        return parse_model(Attempt, data)

    async def record(self, attempt: Attempt) -> Attempt:
        """Append an attempt."""
        if not isinstance(attempt, Attempt):
            raise ValidationError(f"expected an Attempt, got {type(attempt).__name__}")

        await self.storage.put_attempt(attempt)

        logger.debug(
            f"Recorded attempt {attempt.id} for {attempt.question_id}: "
            f"score={attempt.ai_score}, duration={attempt.duration}s"
        )
        return attempt

    async def by_question(self, question_id: str) -> list[Attempt]:
        """Attempts for one question, oldest first."""
        return await self.storage.attempts_by_question(question_id)

    async def all(self) -> list[Attempt]:
        """Every attempt, oldest first, in a single storage read."""
        return await self.storage.all_attempts()

    async def between(self, start: datetime, end: datetime) -> list[Attempt]:
        """Attempts with start <= date <= end, oldest first."""
        if start > end:
            raise ValidationError(f"start {start} is after end {end}")
        return await self.storage.attempts_between(start, end)
