"""
Unit tests for ReviewService.

Evaluation is faked; storage is in-memory.
"""

import asyncio
from datetime import timedelta

import pytest

from topic_trainer.core.errors import EvaluationError, NotFoundError, StorageError, ValidationError
from topic_trainer.delivery.evaluation import Evaluation
from topic_trainer.delivery.review_service import ReviewService


class FixedEvaluator:
    """Returns a fixed verdict, optionally after waiting on a gate."""

    def __init__(self, score=9.0, feedback="Good", gate=None):
        self.score = score
        self.feedback = feedback
        self.gate = gate
        self.calls = []

    async def evaluate(self, question_text, correct_answer, user_answer):
        self.calls.append((question_text, correct_answer, user_answer))
        if self.gate is not None:
            await self.gate.wait()
        return Evaluation(score=self.score, feedback=self.feedback)


class FailingEvaluator:
    async def evaluate(self, question_text, correct_answer, user_answer):
        raise EvaluationError("upstream down")


class TestSubmitAnswer:
    """Evaluate, schedule, persist, record."""

    @pytest.mark.asyncio
    async def test_scheduled(self, graph, attempt_log, storage, tree, now):
        evaluator = FixedEvaluator(score=9)
        service = ReviewService(graph, attempt_log, evaluator=evaluator)

        outcome = await service.submit_answer("q1", "my answer", duration=12.5, now=now)

        assert outcome.updated
        assert outcome.question.interval == 1
        assert outcome.question.next_review_date == now + timedelta(days=1)
        assert storage.questions["q1"] == outcome.question
        assert graph.get_question("q1") == outcome.question

        attempts = await attempt_log.by_question("q1")
        assert len(attempts) == 1
        assert attempts[0].ai_score == 9
        assert attempts[0].ai_feedback == "Good"
        assert attempts[0].user_answer == "my answer"
        assert attempts[0].duration == 12.5
        assert attempts[0].date == now
        assert evaluator.calls == [("What is A?", "A", "my answer")]

    @pytest.mark.asyncio
    async def test_cancelled_leaves_state_untouched(self, graph, attempt_log, storage, tree):
        gate = asyncio.Event()
        cancel = asyncio.Event()
        service = ReviewService(graph, attempt_log, evaluator=FixedEvaluator(gate=gate))
        before = graph.get_question("q1")

        pending = asyncio.ensure_future(service.submit_answer("q1", "answer", cancel_event=cancel))
        await asyncio.sleep(0)
        cancel.set()
        outcome = await pending

        assert outcome.status == "cancelled"
        assert not outcome.updated
        assert outcome.attempt is None
        assert graph.get_question("q1") == before
        assert storage.questions["q1"] == before
        assert await attempt_log.all() == []

    @pytest.mark.asyncio
    async def test_cancel_event_unused(self, graph, attempt_log, tree, now):
        service = ReviewService(graph, attempt_log, evaluator=FixedEvaluator(score=3))

        outcome = await service.submit_answer("q1", "answer", cancel_event=asyncio.Event(), now=now)

        assert outcome.updated
        assert outcome.question.interval == 1

    @pytest.mark.asyncio
    async def test_evaluation_error_writes_nothing(self, graph, attempt_log, tree):
        service = ReviewService(graph, attempt_log, evaluator=FailingEvaluator())
        before = graph.get_question("q1")

        with pytest.raises(EvaluationError):
            await service.submit_answer("q1", "answer")

        assert graph.get_question("q1") == before
        assert await attempt_log.all() == []

    @pytest.mark.asyncio
    async def test_unknown_question(self, graph, attempt_log):
        service = ReviewService(graph, attempt_log, evaluator=FixedEvaluator())

        with pytest.raises(NotFoundError):
            await service.submit_answer("missing", "answer")

    @pytest.mark.asyncio
    async def test_requires_evaluator(self, graph, attempt_log, tree):
        with pytest.raises(RuntimeError):
            await ReviewService(graph, attempt_log).submit_answer("q1", "answer")

    @pytest.mark.asyncio
    async def test_storage_failure_writes_nothing(self, graph, attempt_log, storage, tree):
        async def broken_apply(batch):
            raise StorageError("locked")

        storage.apply = broken_apply
        service = ReviewService(graph, attempt_log, evaluator=FixedEvaluator())
        before = graph.get_question("q1")

        with pytest.raises(StorageError):
            await service.submit_answer("q1", "answer")

        assert graph.get_question("q1") == before
        assert await attempt_log.all() == []
        assert storage.questions["q1"] == before
        assert before.repetition_factor == 2.5

    @pytest.mark.asyncio
    async def test_question_and_attempt_written_together(self, graph, attempt_log, storage, tree, now):
        async def no_single_writes(item):
            raise StorageError("single writes are not used for reviews")

        storage.put_question = no_single_writes
        storage.put_attempt = no_single_writes
        batches = []
        apply = storage.apply

        async def recording_apply(batch):
            batches.append(batch)
            await apply(batch)

        storage.apply = recording_apply
        service = ReviewService(graph, attempt_log, evaluator=FixedEvaluator(score=8))

        outcome = await service.submit_answer("q1", "answer", now=now)

        assert len(batches) == 1
        assert batches[0].put_questions == [outcome.question]
        assert batches[0].put_attempts == [outcome.attempt]
        assert storage.questions["q1"] == outcome.question
        assert await attempt_log.all() == [outcome.attempt]


class TestRecordScore:
    """Self-graded reviews."""

    @pytest.mark.asyncio
    async def test_record_score(self, graph, attempt_log, tree, now):
        service = ReviewService(graph, attempt_log)

        outcome = await service.record_score("q3", 2, user_answer="no idea", now=now)

        assert outcome.updated
        assert outcome.question.interval == 1
        assert outcome.question.repetition_factor == 2.5
        assert (await attempt_log.by_question("q3"))[0].ai_score == 2

    @pytest.mark.asyncio
    async def test_out_of_range_score(self, graph, attempt_log, tree):
        service = ReviewService(graph, attempt_log)

        with pytest.raises(ValidationError):
            await service.record_score("q3", 12)

        assert await attempt_log.all() == []
