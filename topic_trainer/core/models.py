"""
Domain models: Category, Question, Attempt.

All three are frozen pydantic models. A change always produces a new
instance (``model_copy`` / ``replace_fields``), so readers never observe a
half-applied multi-field write. Field names are snake_case in Python and
dump to the camelCase wire names used by the tool contract.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, TypeVar
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from .errors import ValidationError

MAX_TAG_LENGTH = 64
INITIAL_REPETITION_FACTOR = 2.5
MINIMUM_REPETITION_FACTOR = 1.3

ModelT = TypeVar("ModelT", bound="TrainerModel")


def new_id() -> str:
    """Generate a stable entity identifier."""
    return uuid4().hex


class TrainerModel(BaseModel):
    """Base for all persisted entities."""

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    def to_dict(self) -> dict[str, Any]:
        """JSON-shaped dump with wire (camelCase) names."""
        return self.model_dump(mode="json", by_alias=True)

    def replace_fields(self: ModelT, **changes: Any) -> ModelT:
        """Return a validated copy with ``changes`` applied."""
        data = self.model_dump()
        data.update(changes)
        return parse_model(type(self), data)


def parse_model(model_cls: type[ModelT], data: dict[str, Any]) -> ModelT:
    """
    Validate ``data`` into ``model_cls``.

    Raises:
        ValidationError: pydantic rejected the input
    """
    try:
        return model_cls.model_validate(data)
    except PydanticValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or model_cls.__name__}: {err['msg']}"
            for err in e.errors()
        )
        raise ValidationError(f"invalid {model_cls.__name__.lower()}: {problems}") from e


# =============================================================================
# Entities
# =============================================================================


class Category(TrainerModel):
    """A node of the category forest."""

    id: str = Field(default_factory=new_id)
    name: str = Field(min_length=1)
    parent_id: str | None = None

    @field_validator("name")
    @classmethod
    def _strip_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("name must not be blank")
        return value


class Question(TrainerModel):
    """A reviewable question attached to exactly one category."""

    id: str = Field(default_factory=new_id)
    text: str
    correct_answer: str
    difficulty: int = Field(default=3, ge=1, le=5)
    tags: list[str] = Field(default_factory=list)
    category_id: str
    next_review_date: datetime = Field(default_factory=datetime.now)
    interval: int = Field(default=0, ge=0)
    repetition_factor: float = Field(
        default=INITIAL_REPETITION_FACTOR, ge=MINIMUM_REPETITION_FACTOR
    )

    @field_validator("tags")
    @classmethod
    def _normalize_tags(cls, value: list[str]) -> list[str]:
        seen: list[str] = []
        for raw in value:
            tag = raw.strip()
            if not tag:
                raise ValueError("tags must not be blank")
            if len(tag) > MAX_TAG_LENGTH:
                raise ValueError(f"tag longer than {MAX_TAG_LENGTH} characters: {tag[:20]}...")
            if tag not in seen:
                seen.append(tag)
        return seen

    def has_any_tag(self, tags: set[str] | frozenset[str]) -> bool:
        """Check whether the tag sets intersect."""
        return not tags.isdisjoint(self.tags)

    def is_due(self, now: datetime | None = None) -> bool:
        """Check if the question is due for review."""
        return self.next_review_date <= (now or datetime.now())


class Attempt(TrainerModel):
    """One answered review. Never mutated after creation."""

    id: str = Field(default_factory=new_id)
    question_id: str
    date: datetime = Field(default_factory=datetime.now)
    user_answer: str = ""
    ai_score: float = Field(ge=0, le=10)
    ai_feedback: str = ""
    duration: float = Field(default=0, ge=0)


# =============================================================================
# Tree View
# =============================================================================


@dataclass(eq=False)
class CategoryNode:
    """Materialized node of the category forest."""

    category: Category
    children: list[CategoryNode] = field(default_factory=list)

    @property
    def id(self) -> str:
        return self.category.id

    @property
    def name(self) -> str:
        return self.category.name

    def walk(self, depth: int = 0) -> Iterator[tuple[int, CategoryNode]]:
        """Depth-first traversal yielding (depth, node)."""
        yield depth, self
        for child in self.children:
            yield from child.walk(depth + 1)

    def to_dict(self) -> dict[str, Any]:
        data = self.category.to_dict()
        data["children"] = [child.to_dict() for child in self.children]
        return data
