"""
Content Graph: categories and questions.

Owns the category forest and the questions attached to it. Categories live
in a flat table keyed by id with parent pointers as ids; child and
descendant lookups are computed on demand and cached until the next
mutation.

Invariants enforced at the mutation boundary:
- no category is its own ancestor (moves that would create a cycle raise CycleError)
- every question's category_id resolves to a live category

Every mutation writes through the storage port first and only then updates
the in-memory graph, so a failed write leaves the graph unchanged.
"""

from __future__ import annotations

from collections import deque
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from loguru import logger

from topic_trainer.core.errors import (
    CategoryNotEmptyError,
    CycleError,
    NotFoundError,
    ValidationError,
)
from topic_trainer.core.models import (
    INITIAL_REPETITION_FACTOR,
    Attempt,
    Category,
    CategoryNode,
    Question,
    parse_model,
)
from topic_trainer.storage.port import StoragePort, WriteBatch

_UNSET: Any = object()


@dataclass
class Removal:
    """What a category removal deleted."""

    category_ids: list[str] = field(default_factory=list)
    question_ids: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "deletedCategoryIds": self.category_ids,
            "deletedQuestionIds": self.question_ids,
        }


class ContentGraph:
    """
    In-memory category forest and question store backed by a StoragePort.

    Usage:
        graph = ContentGraph(storage)
        await graph.load()
        root = await graph.add_category("Networking")
    """

    def __init__(
        self,
        storage: StoragePort,
        initial_factor: float = INITIAL_REPETITION_FACTOR,
    ):
        self.storage = storage
        self.initial_factor = initial_factor
        self._categories: dict[str, Category] = {}
        self._questions: dict[str, Question] = {}
        self._children_cache: dict[str | None, list[str]] | None = None
        self._tree_cache: list[CategoryNode] | None = None
        self.is_loaded = False

    async def load(self) -> None:
        """Replace the in-memory graph with the storage contents."""
        categories = await self.storage.all_categories()
        questions = await self.storage.all_questions()

        self._categories = {c.id: c for c in categories}
        self._questions = {q.id: q for q in questions}
        self._invalidate()
        self.is_loaded = True

        logger.info(f"Content graph loaded: {len(categories)} categories, {len(questions)} questions")

    def _invalidate(self) -> None:
        self._children_cache = None
        self._tree_cache = None

    # =========================================================================
    # Category Reads
    # =========================================================================

    def categories(self) -> list[Category]:
        return list(self._categories.values())

    def has_category(self, category_id: str) -> bool:
        return category_id in self._categories

    def get_category(self, category_id: str) -> Category:
        try:
            return self._categories[category_id]
        except KeyError:
            raise NotFoundError("category", category_id) from None

    def _children_index(self) -> dict[str | None, list[str]]:
        if self._children_cache is None:
            index: dict[str | None, list[str]] = {}
            for category in self._categories.values():
                index.setdefault(category.parent_id, []).append(category.id)
            self._children_cache = index
        return self._children_cache

    def children_of(self, category_id: str | None) -> list[Category]:
        """Direct children in insertion order (None lists parentless categories)."""
        return [self._categories[cid] for cid in self._children_index().get(category_id, [])]

    def descendants(self, category_id: str) -> list[str]:
        """
        Ids of every category below ``category_id`` (breadth-first, self excluded).

        Raises:
            NotFoundError: unknown category
        """
        self.get_category(category_id)
        index = self._children_index()
        found: list[str] = []
        seen = {category_id}
        queue = deque(index.get(category_id, []))
        while queue:
            current = queue.popleft()
            if current in seen:
                continue
            seen.add(current)
            found.append(current)
            queue.extend(index.get(current, []))
        return found

    def ancestors(self, category_id: str) -> list[Category]:
        """Parent chain from the direct parent up to the root."""
        chain: list[Category] = []
        seen = {category_id}
        parent_id = self.get_category(category_id).parent_id
        while parent_id is not None and parent_id in self._categories and parent_id not in seen:
            seen.add(parent_id)
            parent = self._categories[parent_id]
            chain.append(parent)
            parent_id = parent.parent_id
        return chain

    def path_of(self, category_id: str, separator: str = " / ") -> str:
        """Human-readable path such as ``A / A1 / A1a``."""
        names = [c.name for c in reversed(self.ancestors(category_id))]
        names.append(self.get_category(category_id).name)
        return separator.join(names)

    def expand_selection(self, category_ids: Iterable[str]) -> set[str]:
        """Selected categories plus all their descendants; unknown ids are skipped."""
        expanded: set[str] = set()
        for category_id in category_ids:
            if category_id not in self._categories:
                logger.debug(f"Ignoring unknown category in selection: {category_id}")
                continue
            expanded.add(category_id)
            expanded.update(self.descendants(category_id))
        return expanded

    def category_tree(self) -> list[CategoryNode]:
        """
        Materialized forest, rebuilt lazily after mutations.

        Children keep insertion order. A dangling parent_id makes the node a
        root; nodes trapped in a cycle (only possible with corrupt storage)
        are also surfaced as roots so the view is always complete.
        """
        if self._tree_cache is not None:
            return self._tree_cache

        nodes = {cid: CategoryNode(category) for cid, category in self._categories.items()}
        roots: list[CategoryNode] = []

        for category in self._categories.values():
            node = nodes[category.id]
            parent_id = category.parent_id
            if parent_id is not None and parent_id in nodes and parent_id != category.id:
                nodes[parent_id].children.append(node)
            else:
                roots.append(node)

        reached: set[str] = set()
        for root in roots:
            reached.update(n.id for _, n in root.walk())

        for category in self._categories.values():
            if category.id in reached:
                continue
            node = nodes[category.id]
            parent = nodes.get(category.parent_id) if category.parent_id else None
            if parent is not None and node in parent.children:
                parent.children.remove(node)
            logger.warning(f"Category {category.id} is part of a parent cycle; shown as root")
            roots.append(node)
            reached.update(n.id for _, n in node.walk())

        self._tree_cache = roots
        return roots

    # =========================================================================
    # Category Mutations
    # =========================================================================

    async def add_category(
        self,
        name: str,
        parent_id: str | None = None,
        category_id: str | None = None,
    ) -> Category:
        """
        Create a category.

        Raises:
            NotFoundError: parent_id does not exist
            ValidationError: blank name
        """
        if parent_id is not None:
            self.get_category(parent_id)

        data: dict[str, Any] = {"name": name, "parent_id": parent_id}
        if category_id is not None:
            data["id"] = category_id
        category = parse_model(Category, data)

        await self.storage.put_category(category)
        self._categories[category.id] = category
        self._invalidate()

        logger.debug(f"Added category {category.id} ({category.name!r}) under {parent_id}")
        return category

    async def rename_category(self, category_id: str, name: str) -> Category:
        return await self.edit_category(category_id, name=name)

    async def move_category(self, category_id: str, new_parent_id: str | None) -> Category:
        """
        Reparent a category (None moves it to the root level).

        Raises:
            NotFoundError: category or new parent does not exist
            CycleError: new parent is the category itself or one of its descendants
        """
        return await self.edit_category(category_id, parent_id=new_parent_id)

    async def edit_category(
        self,
        category_id: str,
        *,
        name: str = _UNSET,
        parent_id: str | None = _UNSET,
    ) -> Category:
        """Rename and/or reparent as a single write."""
        current = self.get_category(category_id)
        changes: dict[str, Any] = {}

        if name is not _UNSET:
            changes["name"] = name

        if parent_id is not _UNSET:
            if parent_id is not None:
                self.get_category(parent_id)
                if parent_id == category_id or parent_id in self.descendants(category_id):
                    raise CycleError(category_id, parent_id)
            changes["parent_id"] = parent_id

        updated = current.replace_fields(**changes)
        if updated == current:
            return current

        await self.storage.put_category(updated)
        self._categories[category_id] = updated
        self._invalidate()

        logger.debug(f"Updated category {category_id}: {changes}")
        return updated

    async def remove_category(self, category_id: str, cascade: bool = False) -> Removal:
        """
        Delete a category.

        A category with subcategories or questions is only removed when
        ``cascade`` is True; the whole subtree and its questions are then
        deleted in one batch. Attempts are kept.

        Raises:
            NotFoundError: unknown category
            CategoryNotEmptyError: non-empty category without cascade
        """
        self.get_category(category_id)
        subtree = [category_id, *self.descendants(category_id)]
        subtree_set = set(subtree)
        question_ids = [q.id for q in self._questions.values() if q.category_id in subtree_set]

        if (len(subtree) > 1 or question_ids) and not cascade:
            raise CategoryNotEmptyError(category_id, len(subtree) - 1, len(question_ids))

        if len(subtree) == 1 and not question_ids:
            await self.storage.delete_category(category_id)
        else:
            await self.storage.apply(
                WriteBatch(delete_category_ids=subtree, delete_question_ids=question_ids)
            )

        for cid in subtree:
            del self._categories[cid]
        for qid in question_ids:
            del self._questions[qid]
        self._invalidate()

        logger.info(
            f"Removed category {category_id} "
            f"({len(subtree) - 1} subcategories, {len(question_ids)} questions)"
        )
        return Removal(category_ids=subtree, question_ids=question_ids)

    # =========================================================================
    # Question Reads
    # =========================================================================

    def questions(self) -> list[Question]:
        return list(self._questions.values())

    def get_question(self, question_id: str) -> Question:
        try:
            return self._questions[question_id]
        except KeyError:
            raise NotFoundError("question", question_id) from None

    def questions_in(self, category_id: str, recursive: bool = False) -> list[Question]:
        """
        Questions attached to a category, optionally including its subtree.

        Raises:
            NotFoundError: unknown category
        """
        self.get_category(category_id)
        if recursive:
            scope = {category_id, *self.descendants(category_id)}
        else:
            scope = {category_id}
        return [q for q in self._questions.values() if q.category_id in scope]

    # =========================================================================
    # Question Mutations
    # =========================================================================

    async def add_question(
        self,
        text: str,
        correct_answer: str,
        category_id: str,
        difficulty: int = 3,
        tags: Iterable[str] = (),
        next_review_date: datetime | None = None,
        question_id: str | None = None,
    ) -> Question:
        """
        Create a question, immediately due unless next_review_date is given.

        Raises:
            NotFoundError: category does not exist
            ValidationError: difficulty out of 1-5 or malformed tag
        """
        self.get_category(category_id)

        data: dict[str, Any] = {
            "text": text,
            "correct_answer": correct_answer,
            "category_id": category_id,
            "difficulty": difficulty,
            "tags": list(tags),
            "repetition_factor": self.initial_factor,
        }
        if next_review_date is not None:
            data["next_review_date"] = next_review_date
        if question_id is not None:
            data["id"] = question_id
        question = parse_model(Question, data)

        await self.storage.put_question(question)
        self._questions[question.id] = question

        logger.debug(f"Added question {question.id} to category {category_id}")
        return question

    async def update_question(self, question: Question) -> Question:
        """
        Replace a stored question with ``question`` (same id).

        Raises:
            NotFoundError: question or its category does not exist
            ValidationError: question breaks a field constraint
        """
        question = self._checked(question)

        await self.storage.put_question(question)
        self._questions[question.id] = question

        logger.debug(f"Updated question {question.id}")
        return question

    async def record_review(self, question: Question, attempt: Attempt) -> Question:
        """
        Store a rescheduled question and its attempt in one atomic batch.

        Memory changes only after the batch commits; a failed write leaves
        both the question and the attempt log untouched.

        Raises:
            NotFoundError: question or its category does not exist
            ValidationError: question breaks a field constraint
            StorageError: the batch failed
        """
        question = self._checked(question)
        if attempt.question_id != question.id:
            raise ValidationError(
                f"attempt {attempt.id} belongs to {attempt.question_id}, not {question.id}"
            )

        await self.storage.apply(WriteBatch(put_questions=[question], put_attempts=[attempt]))
        self._questions[question.id] = question

        logger.debug(f"Recorded review of {question.id} (attempt {attempt.id})")
        return question

    def _checked(self, question: Question) -> Question:
        # model_copy() output is unvalidated
        self.get_question(question.id)
        question = parse_model(Question, question.model_dump())
        self.get_category(question.category_id)
        return question

    async def edit_question(self, question_id: str, **changes: Any) -> Question:
        """Apply field changes to a question and persist the validated result."""
        updated = self.get_question(question_id).replace_fields(**changes)
        return await self.update_question(updated)

    async def remove_question(self, question_id: str) -> Question:
        """
        Delete a question. Its attempts stay in the log.

        Raises:
            NotFoundError: unknown question
        """
        question = self.get_question(question_id)

        await self.storage.delete_question(question_id)
        del self._questions[question_id]

        logger.debug(f"Removed question {question_id}")
        return question
