"""
Delivery: review sessions and spaced repetition.

Components:
- SessionBuilder: category/tag selection to an ordered StudySession
- SM2Scheduler: spaced repetition update after each answer
- AttemptLog: append-only attempt history
- Evaluator / Evaluation: evaluation port
- ReviewService: evaluate, schedule, persist, record
"""

from .attempt_log import AttemptLog
from .evaluation import Evaluation, Evaluator, parse_evaluation
from .review_service import ReviewOutcome, ReviewService
from .scheduler import SM2Config, SM2Scheduler, round_half_up
from .session_builder import SessionBuilder, StudySession

__all__ = [
    # Sessions
    "SessionBuilder",
    "StudySession",
    # Scheduling
    "SM2Config",
    "SM2Scheduler",
    "round_half_up",
    # History
    "AttemptLog",
    # Evaluation
    "Evaluation",
    "Evaluator",
    "parse_evaluation",
    "ReviewOutcome",
    "ReviewService",
]
