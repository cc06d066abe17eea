"""
Application wiring: storage, graph, attempt log, scheduler, sessions, stats.

Follows an explicit "load, mutate, persist, update in-memory copy" sequence;
nothing observes the store implicitly.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from dataclasses import dataclass

from loguru import logger

from topic_trainer.config import Settings, get_settings
from topic_trainer.delivery.attempt_log import AttemptLog
from topic_trainer.delivery.evaluation import Evaluator
from topic_trainer.delivery.review_service import ReviewService
from topic_trainer.delivery.scheduler import SM2Config, SM2Scheduler
from topic_trainer.delivery.session_builder import SessionBuilder
from topic_trainer.graph.content_graph import ContentGraph
from topic_trainer.storage.port import StoragePort
from topic_trainer.storage.sql_store import SqlStorage
from topic_trainer.study.stats_aggregator import StatsAggregator


@dataclass
class TrainerApp:
    """All core components sharing one storage port."""

    settings: Settings
    storage: StoragePort
    graph: ContentGraph
    attempts: AttemptLog
    scheduler: SM2Scheduler
    sessions: SessionBuilder
    stats: StatsAggregator

    @classmethod
    async def create(cls, storage: StoragePort, settings: Settings | None = None) -> TrainerApp:
        """Wire the components around ``storage`` and load the graph."""
        settings = settings or get_settings()
        sm2 = SM2Config.from_settings(settings)
        graph = ContentGraph(storage, initial_factor=sm2.initial_factor)
        await graph.load()
        attempts = AttemptLog(storage)
        return cls(
            settings=settings,
            storage=storage,
            graph=graph,
            attempts=attempts,
            scheduler=SM2Scheduler(sm2),
            sessions=SessionBuilder(graph),
            stats=StatsAggregator.from_settings(graph, attempts, settings),
        )

    def review_service(self, evaluator: Evaluator | None = None) -> ReviewService:
        return ReviewService(self.graph, self.attempts, evaluator=evaluator, scheduler=self.scheduler)


@asynccontextmanager
async def open_app(
    settings: Settings | None = None,
    storage: StoragePort | None = None,
) -> AsyncGenerator[TrainerApp, None]:
    """
    Open the trainer on ``storage`` or on the configured SQL database.

    A SqlStorage created here is closed on exit; a passed-in storage is not.
    """
    settings = settings or get_settings()
    owned: SqlStorage | None = None
    if storage is None:
        owned = await SqlStorage.open(settings.database_url)
        storage = owned
    try:
        app = await TrainerApp.create(storage, settings)
        yield app
    finally:
        if owned is not None:
            await owned.close()
            logger.debug("Storage closed")
