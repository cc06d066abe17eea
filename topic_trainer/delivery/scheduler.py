"""
SM-2 Spaced Repetition Scheduler.

Maps a 0-10 evaluator score onto the SM-2 quality scale and computes the
next interval, ease factor and due date of a question.

SM-2 Quality Scale (q = score / 2, rounded half-up):
0 - Complete blackout, wrong response
1 - Incorrect, but upon seeing answer remembered
2 - Incorrect, but answer seemed easy to recall
3 - Correct, but with significant difficulty
4 - Correct, with some hesitation
5 - Correct, with perfect recall
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timedelta

from loguru import logger

from topic_trainer.config import Settings
from topic_trainer.core.errors import ValidationError
from topic_trainer.core.models import Question

MAX_SCORE = 10.0


def round_half_up(value: float) -> int:
    """Round .5 away from zero for non-negative values (2.5 -> 3, 4.5 -> 5)."""
    return math.floor(value + 0.5)


@dataclass
class SM2Config:
    """Configuration for SM-2 algorithm."""

    initial_factor: float = 2.5
    minimum_factor: float = 1.3
    first_interval: int = 1  # Days after the first successful review
    second_interval: int = 6  # Days after the second successful review
    passing_quality: int = 3

    @classmethod
    def from_settings(cls, settings: Settings) -> SM2Config:
        return cls(**settings.get_sm2_config())


class SM2Scheduler:
    """
    Implements the SM-2 spaced repetition algorithm.

    Each question carries:
    - Repetition factor (EF): how quickly intervals grow (2.5 default, min 1.3)
    - Interval: days until next review

    A failed recall restarts the interval at one day and leaves EF alone.
    The scheduler never writes storage; callers pass the returned question
    to ContentGraph.record_review (or update_question).
    """

    def __init__(self, config: SM2Config | None = None):
        self.config = config or SM2Config()

    @staticmethod
    def quality_from_score(score: float) -> int:
        """
        Convert a 0-10 evaluator score to SM-2 quality 0-5.

        Raises:
            ValidationError: score outside [0, 10]
        """
        if isinstance(score, bool) or not isinstance(score, (int, float)) or math.isnan(score):
            raise ValidationError(f"score must be a number, got {score!r}")
        if score < 0 or score > MAX_SCORE:
            raise ValidationError(f"score must be between 0 and 10, got {score}")
        return max(0, min(5, round_half_up(score / 2)))

    def next_factor(self, factor: float, quality: int) -> float:
        # EF' = EF + (0.1 - (5 - q) * (0.08 + (5 - q) * 0.02))
        delta = 0.1 - (5 - quality) * (0.08 + (5 - quality) * 0.02)
        return max(self.config.minimum_factor, factor + delta)

    def next_interval(self, interval: int, factor: float) -> int:
        if interval == 0:
            return self.config.first_interval
        if interval == 1:
            return self.config.second_interval
        return round_half_up(interval * factor)

    def schedule(
        self,
        question: Question,
        external_score: float,
        now: datetime | None = None,
    ) -> Question:
        """
        Calculate the question's next review after an answered attempt.

        Args:
            question: Question as it was before the attempt
            external_score: Evaluator score (0-10)
            now: Review timestamp (defaults to the current time)

        Returns:
            New Question with updated interval, repetition_factor and next_review_date

        Raises:
            ValidationError: score outside [0, 10], or the result breaks a
                question constraint (e.g. a configured minimum_factor below 1.3)
        """
        quality = self.quality_from_score(external_score)
        now = now or datetime.now()

        if quality < self.config.passing_quality:
            # Failed - restart the interval, keep EF
            interval = self.config.first_interval
            factor = question.repetition_factor
        else:
            interval = self.next_interval(question.interval, question.repetition_factor)
            factor = self.next_factor(question.repetition_factor, quality)

        updated = question.replace_fields(
            interval=interval,
            repetition_factor=factor,
            next_review_date=now + timedelta(days=interval),
        )

        logger.debug(
            f"Scheduled {question.id}: score={external_score} q={quality} "
            f"interval {question.interval}->{interval}d "
            f"factor {question.repetition_factor:.2f}->{factor:.2f}"
        )
        return updated
