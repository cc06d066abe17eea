"""
Study Statistics Module.

Provides read-side statistics over the content graph and attempt history:
- Global summary (attempts, mean score, success rate, study time)
- Per-category mastery
- Daily progress over a trailing window
"""

from topic_trainer.study.stats_aggregator import (
    CategoryStat,
    DailyStat,
    QuestionHistory,
    StatsAggregator,
    StatsReport,
    StatsSummary,
)

__all__ = [
    "StatsAggregator",
    "StatsSummary",
    "StatsReport",
    "CategoryStat",
    "DailyStat",
    "QuestionHistory",
]
