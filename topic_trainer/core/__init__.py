"""
Core Module - Shared domain models and errors.

Components:
- models: Category, Question, Attempt value objects and the CategoryNode tree view
- errors: TrainerError hierarchy shared by every layer
"""

from topic_trainer.core.errors import (
    AgentLoopError,
    CategoryNotEmptyError,
    CycleError,
    EvaluationCancelled,
    EvaluationError,
    NotFoundError,
    StorageError,
    TrainerError,
    ValidationError,
)
from topic_trainer.core.models import (
    Attempt,
    Category,
    CategoryNode,
    Question,
    new_id,
    parse_model,
)

__all__ = [
    # Models
    "Attempt",
    "Category",
    "CategoryNode",
    "Question",
    "new_id",
    "parse_model",
    # Errors
    "TrainerError",
    "NotFoundError",
    "CycleError",
    "ValidationError",
    "CategoryNotEmptyError",
    "StorageError",
    "EvaluationError",
    "EvaluationCancelled",
    "AgentLoopError",
]
