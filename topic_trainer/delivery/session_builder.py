"""
Session Builder: picks the questions for one review pass.

Selection rules:
1. Selected categories expand to their whole subtree (no selection = all)
2. Selected tags require at least one shared tag (no selection = all)
3. Most overdue first: ascending next_review_date, ties in graph order
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Sequence
from dataclasses import dataclass, field
from datetime import datetime

from loguru import logger

from topic_trainer.core.models import Question
from topic_trainer.graph.content_graph import ContentGraph


@dataclass
class StudySession:
    """
    An ordered review queue driven start-to-finish by index.

    Iterating always starts from the first question, so the sequence can be
    replayed; ``current``/``advance``/``restart`` drive an interactive pass.
    """

    questions: Sequence[Question] = field(default_factory=tuple)
    position: int = 0

    def __len__(self) -> int:
        return len(self.questions)

    def __iter__(self) -> Iterator[Question]:
        for index in range(len(self.questions)):
            yield self.questions[index]

    def __getitem__(self, index: int) -> Question:
        return self.questions[index]

    @property
    def is_empty(self) -> bool:
        return not self.questions

    @property
    def is_finished(self) -> bool:
        return self.position >= len(self.questions)

    @property
    def current(self) -> Question | None:
        """Question at the cursor, or None once the pass is over."""
        if self.is_finished:
            return None
        return self.questions[self.position]

    @property
    def remaining(self) -> int:
        return max(0, len(self.questions) - self.position)

    def advance(self) -> Question | None:
        """Move to the next question and return it."""
        if not self.is_finished:
            self.position += 1
        return self.current

    def restart(self) -> None:
        self.position = 0

    def ids(self) -> list[str]:
        return [q.id for q in self.questions]


class SessionBuilder:
    """Builds StudySessions from a ContentGraph selection."""

    def __init__(self, graph: ContentGraph):
        self.graph = graph

    def candidates(
        self,
        selected_category_ids: Iterable[str] = (),
        selected_tags: Iterable[str] = (),
    ) -> list[Question]:
        """Questions matching the selection, in graph order."""
        category_ids = set(selected_category_ids)
        tags = frozenset(selected_tags)

        scope = self.graph.expand_selection(category_ids) if category_ids else None

        return [
            q
            for q in self.graph.questions()
            if (scope is None or q.category_id in scope) and (not tags or q.has_any_tag(tags))
        ]

    def build_session(
        self,
        selected_category_ids: Iterable[str] = (),
        selected_tags: Iterable[str] = (),
        due_only: bool = False,
        now: datetime | None = None,
    ) -> StudySession:
        """
        Build a review queue for the selection.

        Args:
            selected_category_ids: Categories to include with their descendants (empty = all)
            selected_tags: Tags of which a question needs at least one (empty = any)
            due_only: Keep only questions whose due date has passed
            now: Reference time for due_only

        Returns:
            StudySession sorted by next_review_date; empty when nothing matches
        """
        selected_category_ids = list(selected_category_ids)
        selected_tags = list(selected_tags)

        questions = self.candidates(selected_category_ids, selected_tags)
        if due_only:
            now = now or datetime.now()
            questions = [q for q in questions if q.is_due(now)]

        # sorted() is stable, so equal due dates keep graph order
        ordered = tuple(sorted(questions, key=lambda q: q.next_review_date))

        if ordered:
            logger.info(
                f"Session built: {len(ordered)} questions "
                f"(categories={len(selected_category_ids)}, tags={len(selected_tags)})"
            )
        else:
            logger.info("Session built: no matching questions")

        return StudySession(questions=ordered)
