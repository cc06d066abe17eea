"""
Review Service: one answered question, end to end.

Flow:
1. Evaluate the answer through the evaluation port (cancellable)
2. Schedule the question with SM-2
3. Persist the updated question and its attempt as one atomic batch
   through the ContentGraph

If evaluation is cancelled, nothing is written and the outcome reports
``status == "cancelled"``.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime
from typing import Literal

from loguru import logger

from topic_trainer.core.errors import EvaluationCancelled
from topic_trainer.core.models import Attempt, Question
from topic_trainer.graph.content_graph import ContentGraph

from .attempt_log import AttemptLog
from .evaluation import Evaluation, Evaluator
from .scheduler import SM2Scheduler


@dataclass
class ReviewOutcome:
    """Result of submitting an answer."""

    status: Literal["scheduled", "cancelled"]
    question: Question
    attempt: Attempt | None = None
    evaluation: Evaluation | None = None

    @property
    def updated(self) -> bool:
        return self.status == "scheduled"


class ReviewService:
    """Ties evaluation, scheduling and attempt recording together."""

    def __init__(
        self,
        graph: ContentGraph,
        attempt_log: AttemptLog,
        evaluator: Evaluator | None = None,
        scheduler: SM2Scheduler | None = None,
    ):
        self.graph = graph
        self.attempt_log = attempt_log
        self.evaluator = evaluator
        self.scheduler = scheduler or SM2Scheduler()

    async def submit_answer(
        self,
        question_id: str,
        user_answer: str,
        duration: float = 0,
        cancel_event: asyncio.Event | None = None,
        now: datetime | None = None,
    ) -> ReviewOutcome:
        """
        Evaluate an answer and, unless cancelled, schedule and record it.

        Args:
            question_id: Question being answered
            user_answer: Learner's free-text answer
            duration: Seconds spent answering
            cancel_event: Setting it aborts the pending evaluation
            now: Review timestamp (defaults to the current time)

        Raises:
            NotFoundError: unknown question
            EvaluationError: evaluator failed (nothing written)
            StorageError: persistence failed
        """
        if self.evaluator is None:
            raise RuntimeError("ReviewService has no evaluator configured")

        question = self.graph.get_question(question_id)

        try:
            evaluation = await self._evaluate(question, user_answer, cancel_event)
        except EvaluationCancelled:
            logger.info(f"Evaluation of {question_id} cancelled; no update")
            return ReviewOutcome(status="cancelled", question=question)

        return await self._apply(question, evaluation, user_answer, duration, now)

    async def record_score(
        self,
        question_id: str,
        score: float,
        user_answer: str = "",
        feedback: str = "",
        duration: float = 0,
        now: datetime | None = None,
    ) -> ReviewOutcome:
        """Schedule and record a score obtained without the evaluator (self-grading)."""
        question = self.graph.get_question(question_id)
        self.scheduler.quality_from_score(score)
        evaluation = Evaluation(score=score, feedback=feedback)
        return await self._apply(question, evaluation, user_answer, duration, now)

    async def _evaluate(
        self,
        question: Question,
        user_answer: str,
        cancel_event: asyncio.Event | None,
    ) -> Evaluation:
        pending = self.evaluator.evaluate(question.text, question.correct_answer, user_answer)
        if cancel_event is None:
            return await pending

        evaluation_task = asyncio.ensure_future(pending)
        cancel_waiter = asyncio.ensure_future(cancel_event.wait())
        try:
            done, _ = await asyncio.wait(
                {evaluation_task, cancel_waiter},
                return_when=asyncio.FIRST_COMPLETED,
            )
        except asyncio.CancelledError:
            evaluation_task.cancel()
            raise
        finally:
            cancel_waiter.cancel()

        if cancel_waiter in done or cancel_event.is_set():
            evaluation_task.cancel()
            await asyncio.gather(evaluation_task, return_exceptions=True)
            raise EvaluationCancelled("evaluation cancelled by caller")

        return evaluation_task.result()

    async def _apply(
        self,
        question: Question,
        evaluation: Evaluation,
        user_answer: str,
        duration: float,
        now: datetime | None,
    ) -> ReviewOutcome:
        now = now or datetime.now()
        updated = self.scheduler.schedule(question, evaluation.score, now=now)
        attempt = self.attempt_log.new_attempt(
            question_id=question.id,
            ai_score=evaluation.score,
            user_answer=user_answer,
            ai_feedback=evaluation.feedback,
            duration=duration,
            date=now,
        )

        updated = await self.graph.record_review(updated, attempt)

        logger.info(
            f"Reviewed {question.id}: score={evaluation.score}, "
            f"next review in {updated.interval}d"
        )
        return ReviewOutcome(
            status="scheduled",
            question=updated,
            attempt=attempt,
            evaluation=evaluation,
        )
