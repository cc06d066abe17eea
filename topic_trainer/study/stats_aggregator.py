"""
Stats Aggregator: summary and time-series statistics.

Everything is recomputed on demand from the ContentGraph and the
AttemptLog; nothing derived is persisted.

Attempts whose question (or that question's category) no longer exists are
left out of category-grouped numbers but still count in the global totals.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Sequence
from dataclasses import asdict, dataclass, field
from datetime import date, datetime, timedelta
from typing import Any

from loguru import logger

from topic_trainer.config import Settings
from topic_trainer.core.errors import ValidationError
from topic_trainer.core.models import Attempt
from topic_trainer.delivery.attempt_log import AttemptLog
from topic_trainer.graph.content_graph import ContentGraph

# =============================================================================
# Result Types
# =============================================================================


@dataclass
class StatsSummary:
    """Global totals over the whole attempt history."""

    total_attempts: int = 0
    average_score: float = 0.0
    success_rate: float = 0.0
    total_study_time: float = 0.0
    question_count: int = 0
    category_count: int = 0
    due_count: int = 0

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class CategoryStat:
    """Attempts grouped by the category of their question."""

    category_id: str
    name: str
    path: str
    count: int
    total_score: float

    @property
    def average_score(self) -> float:
        return self.total_score / self.count if self.count else 0.0

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["average_score"] = self.average_score
        return data


@dataclass
class DailyStat:
    """Attempts of one calendar day."""

    day: date
    count: int
    total_score: float

    @property
    def average_score(self) -> float:
        return self.total_score / self.count if self.count else 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "day": self.day.isoformat(),
            "count": self.count,
            "average_score": self.average_score,
        }


@dataclass
class QuestionHistory:
    """Attempt history of a single question."""

    question_id: str
    count: int = 0
    average_score: float = 0.0
    best_score: float = 0.0
    last_attempt: datetime | None = None


@dataclass
class StatsReport:
    summary: StatsSummary
    categories: list[CategoryStat] = field(default_factory=list)
    daily: list[DailyStat] = field(default_factory=list)


# =============================================================================
# Aggregator
# =============================================================================


class StatsAggregator:
    """
    Read-side statistics over a ContentGraph and AttemptLog.

    The async methods fetch attempts themselves; the ``compute_*`` methods
    work on an attempt list the caller already holds.
    """

    DEFAULT_SUCCESS_THRESHOLD = 7.0
    DEFAULT_MAX_BUCKETS = 30
    DEFAULT_WINDOW_DAYS = 30

    def __init__(
        self,
        graph: ContentGraph,
        attempt_log: AttemptLog,
        success_threshold: float = DEFAULT_SUCCESS_THRESHOLD,
        max_buckets: int = DEFAULT_MAX_BUCKETS,
        window_days: int = DEFAULT_WINDOW_DAYS,
    ):
        self.graph = graph
        self.attempt_log = attempt_log
        self.success_threshold = success_threshold
        self.max_buckets = max_buckets
        self.window_days = window_days

    @classmethod
    def from_settings(
        cls, graph: ContentGraph, attempt_log: AttemptLog, settings: Settings
    ) -> StatsAggregator:
        return cls(
            graph,
            attempt_log,
            success_threshold=settings.success_score_threshold,
            max_buckets=settings.daily_progress_max_buckets,
            window_days=settings.daily_progress_window_days,
        )

    # =========================================================================
    # Async Entry Points
    # =========================================================================

    async def summary(self, now: datetime | None = None) -> StatsSummary:
        return self.compute_summary(await self.attempt_log.all(), now=now)

    async def per_category_stats(self) -> list[CategoryStat]:
        return self.compute_per_category(await self.attempt_log.all())

    async def daily_progress(
        self, window_days: int | None = None, now: datetime | None = None
    ) -> list[DailyStat]:
        """Per-day buckets over the last ``window_days`` (the configured window by default)."""
        if window_days is None:
            window_days = self.window_days
        now = now or datetime.now()
        start = self._window_start(window_days, now)
        attempts = await self.attempt_log.between(start, now)
        return self.compute_daily(attempts, window_days, now=now)

    async def question_history(self, question_id: str) -> QuestionHistory:
        attempts = await self.attempt_log.by_question(question_id)
        history = QuestionHistory(question_id=question_id, count=len(attempts))
        if attempts:
            scores = [a.ai_score for a in attempts]
            history.average_score = sum(scores) / len(scores)
            history.best_score = max(scores)
            history.last_attempt = max(a.date for a in attempts)
        return history

    async def report(
        self, window_days: int | None = None, now: datetime | None = None
    ) -> StatsReport:
        """All statistics from a single attempt read."""
        if window_days is None:
            window_days = self.window_days
        now = now or datetime.now()
        attempts = await self.attempt_log.all()
        report = StatsReport(
            summary=self.compute_summary(attempts, now=now),
            categories=self.compute_per_category(attempts),
            daily=self.compute_daily(attempts, window_days, now=now),
        )
        logger.debug(
            f"Stats report: {report.summary.total_attempts} attempts, "
            f"{len(report.categories)} categories, {len(report.daily)} days"
        )
        return report

    # =========================================================================
    # Pure Computations
    # =========================================================================

    def compute_summary(
        self, attempts: Sequence[Attempt], now: datetime | None = None
    ) -> StatsSummary:
        now = now or datetime.now()
        questions = self.graph.questions()
        summary = StatsSummary(
            total_attempts=len(attempts),
            question_count=len(questions),
            category_count=len(self.graph.categories()),
            due_count=sum(1 for q in questions if q.is_due(now)),
        )
        if attempts:
            summary.average_score = sum(a.ai_score for a in attempts) / len(attempts)
            successes = sum(1 for a in attempts if a.ai_score >= self.success_threshold)
            summary.success_rate = successes / len(attempts)
            summary.total_study_time = sum(a.duration for a in attempts)
        return summary

    def compute_per_category(self, attempts: Sequence[Attempt]) -> list[CategoryStat]:
        """Per-category count and mean score, highest mean first."""
        questions = {q.id: q for q in self.graph.questions()}
        grouped: dict[str, list[float]] = defaultdict(list)

        for attempt in attempts:
            question = questions.get(attempt.question_id)
            if question is None or not self.graph.has_category(question.category_id):
                continue
            grouped[question.category_id].append(attempt.ai_score)

        stats = [
            CategoryStat(
                category_id=category_id,
                name=self.graph.get_category(category_id).name,
                path=self.graph.path_of(category_id),
                count=len(scores),
                total_score=sum(scores),
            )
            for category_id, scores in grouped.items()
        ]
        stats.sort(key=lambda s: s.average_score, reverse=True)
        return stats

    def compute_daily(
        self,
        attempts: Sequence[Attempt],
        window_days: int | None = None,
        now: datetime | None = None,
    ) -> list[DailyStat]:
        """Per-day count and mean over the trailing window, oldest day first."""
        if window_days is None:
            window_days = self.window_days
        now = now or datetime.now()
        start = self._window_start(window_days, now)

        buckets: dict[date, list[float]] = defaultdict(list)
        for attempt in attempts:
            if start <= attempt.date <= now:
                buckets[attempt.date.date()].append(attempt.ai_score)

        days = [
            DailyStat(day=day, count=len(scores), total_score=sum(scores))
            for day, scores in sorted(buckets.items())
        ]
        return days[-self.max_buckets :]

    @staticmethod
    def _window_start(window_days: int, now: datetime) -> datetime:
        if window_days < 1:
            raise ValidationError(f"window_days must be at least 1, got {window_days}")
        return now - timedelta(days=window_days)
