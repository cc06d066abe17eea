"""
Topic Trainer: a personal question bank with SM-2 spaced repetition.

Categories form a forest, questions hang off categories, and every answered
question is scored 0-10 (by an LLM or by the learner) and rescheduled.
"""

from topic_trainer.app import TrainerApp, open_app
from topic_trainer.delivery import ReviewService, SessionBuilder, SM2Scheduler
from topic_trainer.graph import ContentGraph
from topic_trainer.storage import InMemoryStorage, SqlStorage
from topic_trainer.study import StatsAggregator

__version__ = "1.0.0"

__all__ = [
    "TrainerApp",
    "open_app",
    "ContentGraph",
    "SessionBuilder",
    "SM2Scheduler",
    "ReviewService",
    "StatsAggregator",
    "InMemoryStorage",
    "SqlStorage",
]
