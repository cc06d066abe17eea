"""
Error hierarchy for the trainer core.

Caller errors (NotFoundError, CycleError, ValidationError) are raised before
anything is written. StorageError wraps adapter failures and is never retried
by the core. EvaluationCancelled is an expected outcome, not a failure.
"""

from __future__ import annotations


class TrainerError(Exception):
    """Base class for all topic-trainer errors."""

    kind = "error"

    def to_dict(self) -> dict[str, str]:
        """JSON-shaped error object used by the tool contract."""
        return {"error": str(self), "kind": self.kind}


class NotFoundError(TrainerError):
    """A referenced category or question id does not exist."""

    kind = "not_found"

    def __init__(self, entity: str, entity_id: str | None):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} not found: {entity_id}")


class CycleError(TrainerError):
    """Reparenting would make a category its own ancestor."""

    kind = "cycle"

    def __init__(self, category_id: str, new_parent_id: str):
        self.category_id = category_id
        self.new_parent_id = new_parent_id
        super().__init__(
            f"cannot move category {category_id} under {new_parent_id}: "
            "the target is the category itself or one of its descendants"
        )


class ValidationError(TrainerError):
    """Out-of-range or malformed input."""

    kind = "validation"


class CategoryNotEmptyError(ValidationError):
    """Category has children or questions and cascade was not confirmed."""

    kind = "category_not_empty"

    def __init__(self, category_id: str, descendant_count: int, question_count: int):
        self.category_id = category_id
        self.descendant_count = descendant_count
        self.question_count = question_count
        super().__init__(
            f"category {category_id} has {descendant_count} subcategories and "
            f"{question_count} questions; confirm with cascade to delete them all"
        )


class StorageError(TrainerError):
    """The persistence port failed; nothing was applied in memory."""

    kind = "storage"


class EvaluationError(TrainerError):
    """The external evaluator failed or returned an unusable result."""

    kind = "evaluation"


class EvaluationCancelled(TrainerError):
    """External scoring was aborted before it produced a result."""

    kind = "cancelled"


class AgentLoopError(TrainerError):
    """The agent kept requesting tools past the configured round limit."""

    kind = "agent_loop"
