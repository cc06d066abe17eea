"""
Unit tests for the ContentGraph.

Covers the category forest (children, descendants, paths, tree view),
cycle protection on reparenting, cascade deletion and question CRUD.
"""

import pytest

from topic_trainer.core.errors import (
    CategoryNotEmptyError,
    CycleError,
    NotFoundError,
    StorageError,
    ValidationError,
)
from topic_trainer.core.models import Attempt, Category
from topic_trainer.graph.content_graph import ContentGraph
from topic_trainer.storage.memory import InMemoryStorage


class FailingStorage(InMemoryStorage):
    """In-memory storage whose writes can be switched to fail."""

    def __init__(self):
        super().__init__()
        self.fail = False

    async def put_category(self, category):
        if self.fail:
            raise StorageError("disk full")
        await super().put_category(category)

    async def put_question(self, question):
        if self.fail:
            raise StorageError("disk full")
        await super().put_question(question)

    async def apply(self, batch):
        if self.fail:
            raise StorageError("disk full")
        await super().apply(batch)


class TestCategoryReads:
    """Tests for forest navigation."""

    @pytest.mark.asyncio
    async def test_children_keep_insertion_order(self, graph):
        root = await graph.add_category("Root")
        for name in ("b", "a", "c"):
            await graph.add_category(name, parent_id=root.id)

        assert [c.name for c in graph.children_of(root.id)] == ["b", "a", "c"]

    @pytest.mark.asyncio
    async def test_descendants(self, graph, tree):
        assert graph.descendants("A") == ["A1", "A1a"]
        assert graph.descendants("A1a") == []

    @pytest.mark.asyncio
    async def test_path_of(self, graph, tree):
        assert graph.path_of("A1a") == "A / A1 / A1a"
        assert graph.path_of("A1a", separator=">") == "A>A1>A1a"

    @pytest.mark.asyncio
    async def test_expand_selection_skips_unknown(self, graph, tree):
        assert graph.expand_selection(["A1", "missing"]) == {"A1", "A1a"}

    @pytest.mark.asyncio
    async def test_unknown_category_raises(self, graph):
        with pytest.raises(NotFoundError) as exc:
            graph.get_category("nope")
        assert exc.value.kind == "not_found"

    @pytest.mark.asyncio
    async def test_category_tree(self, graph, tree):
        roots = graph.category_tree()

        assert [r.id for r in roots] == ["A", "B"]
        assert [(depth, node.id) for depth, node in roots[0].walk()] == [
            (0, "A"),
            (1, "A1"),
            (2, "A1a"),
        ]
        assert roots[0].to_dict()["children"][0]["name"] == "A1"

    @pytest.mark.asyncio
    async def test_dangling_parent_becomes_root(self, storage):
        await storage.put_category(Category(id="orphan", name="Orphan", parent_id="gone"))
        graph = ContentGraph(storage)
        await graph.load()

        assert [r.id for r in graph.category_tree()] == ["orphan"]

    @pytest.mark.asyncio
    async def test_corrupt_cycle_still_listed(self, storage):
        await storage.put_category(Category(id="x", name="X", parent_id="y"))
        await storage.put_category(Category(id="y", name="Y", parent_id="x"))
        graph = ContentGraph(storage)
        await graph.load()

        listed = {node.id for root in graph.category_tree() for _, node in root.walk()}
        assert listed == {"x", "y"}


class TestCategoryMutations:
    """Tests for add/rename/move/remove."""

    @pytest.mark.asyncio
    async def test_add_persists(self, graph, storage):
        category = await graph.add_category("  Networking  ")

        assert category.name == "Networking"
        assert storage.categories[category.id] == category

    @pytest.mark.asyncio
    async def test_add_blank_name_rejected(self, graph):
        with pytest.raises(ValidationError):
            await graph.add_category("   ")

    @pytest.mark.asyncio
    async def test_add_under_missing_parent(self, graph):
        with pytest.raises(NotFoundError):
            await graph.add_category("child", parent_id="missing")

    @pytest.mark.asyncio
    async def test_rename(self, graph, tree, storage):
        renamed = await graph.rename_category("A1", "Layer 1")

        assert renamed.name == "Layer 1"
        assert storage.categories["A1"].name == "Layer 1"
        assert graph.path_of("A1a") == "A / Layer 1 / A1a"

    @pytest.mark.asyncio
    async def test_move_to_root(self, graph, tree):
        await graph.move_category("A1", None)

        assert [r.id for r in graph.category_tree()] == ["A", "A1", "B"]
        assert graph.descendants("A") == []

    @pytest.mark.asyncio
    async def test_move_under_sibling(self, graph, tree):
        await graph.move_category("A1", "B")

        assert graph.path_of("A1a") == "B / A1 / A1a"

    @pytest.mark.asyncio
    async def test_move_under_self_is_cycle(self, graph, tree):
        with pytest.raises(CycleError):
            await graph.move_category("A", "A")

    @pytest.mark.asyncio
    async def test_move_under_descendant_is_cycle(self, graph, tree, storage):
        with pytest.raises(CycleError) as exc:
            await graph.move_category("A", "A1a")

        assert exc.value.kind == "cycle"
        assert storage.categories["A"].parent_id is None
        assert graph.get_category("A").parent_id is None

    @pytest.mark.asyncio
    async def test_remove_empty_category(self, graph, tree, storage):
        leaf = await graph.add_category("Leaf", parent_id="B")

        removal = await graph.remove_category(leaf.id)

        assert removal.category_ids == [leaf.id]
        assert leaf.id not in storage.categories

    @pytest.mark.asyncio
    async def test_remove_non_empty_needs_cascade(self, graph, tree, storage):
        with pytest.raises(CategoryNotEmptyError) as exc:
            await graph.remove_category("A")

        assert exc.value.descendant_count == 2
        assert exc.value.question_count == 2
        assert "A" in storage.categories

    @pytest.mark.asyncio
    async def test_cascade_removes_subtree_and_questions(self, graph, tree, storage):
        removal = await graph.remove_category("A", cascade=True)

        assert removal.category_ids == ["A", "A1", "A1a"]
        assert sorted(removal.question_ids) == ["q1", "q2"]
        assert set(storage.categories) == {"B"}
        assert set(storage.questions) == {"q3"}
        assert [q.id for q in graph.questions()] == ["q3"]

    @pytest.mark.asyncio
    async def test_failed_write_leaves_graph_untouched(self):
        storage = FailingStorage()
        graph = ContentGraph(storage)
        await graph.load()
        root = await graph.add_category("Root")
        await graph.add_question("Q", "A", root.id)

        storage.fail = True
        with pytest.raises(StorageError):
            await graph.rename_category(root.id, "Other")
        with pytest.raises(StorageError):
            await graph.remove_category(root.id, cascade=True)

        assert graph.get_category(root.id).name == "Root"
        assert len(graph.questions()) == 1


class TestQuestions:
    """Tests for question CRUD."""

    @pytest.mark.asyncio
    async def test_add_question_defaults(self, graph, tree, now):
        question = await graph.add_question("Q?", "A.", "B", tags=[" net ", "net", "ip"])

        assert question.difficulty == 3
        assert question.interval == 0
        assert question.repetition_factor == 2.5
        assert question.tags == ["net", "ip"]
        assert question.is_due()

    @pytest.mark.asyncio
    async def test_add_question_needs_category(self, graph):
        with pytest.raises(NotFoundError):
            await graph.add_question("Q?", "A.", "missing")

    @pytest.mark.parametrize("difficulty", [0, 6])
    @pytest.mark.asyncio
    async def test_difficulty_range(self, graph, tree, difficulty):
        with pytest.raises(ValidationError):
            await graph.add_question("Q?", "A.", "B", difficulty=difficulty)

    @pytest.mark.asyncio
    async def test_questions_in(self, graph, tree):
        assert [q.id for q in graph.questions_in("A")] == ["q1"]
        assert [q.id for q in graph.questions_in("A", recursive=True)] == ["q1", "q2"]

    @pytest.mark.asyncio
    async def test_edit_question(self, graph, tree, storage):
        edited = await graph.edit_question("q1", text="New text", category_id="B")

        assert edited.text == "New text"
        assert storage.questions["q1"].category_id == "B"

    @pytest.mark.asyncio
    async def test_edit_question_into_missing_category(self, graph, tree):
        with pytest.raises(NotFoundError):
            await graph.edit_question("q1", category_id="missing")

        assert graph.get_question("q1").category_id == "A"

    @pytest.mark.asyncio
    async def test_remove_question(self, graph, tree, storage):
        removed = await graph.remove_question("q2")

        assert removed.id == "q2"
        assert "q2" not in storage.questions
        with pytest.raises(NotFoundError):
            graph.get_question("q2")

    @pytest.mark.asyncio
    async def test_reload_matches_memory(self, graph, tree, storage):
        reloaded = ContentGraph(storage)
        await reloaded.load()

        assert reloaded.categories() == graph.categories()
        assert reloaded.questions() == graph.questions()

    @pytest.mark.asyncio
    async def test_initial_factor_from_config(self, storage):
        graph = ContentGraph(storage, initial_factor=2.0)
        await graph.load()
        await graph.add_category("B", category_id="B")

        question = await graph.add_question("Q?", "A.", "B")

        assert question.repetition_factor == 2.0
        assert storage.questions[question.id].repetition_factor == 2.0


class TestUpdateQuestion:
    """Whole-question replacement is validated before it is stored."""

    @pytest.mark.asyncio
    async def test_update_question(self, graph, tree, storage):
        changed = graph.get_question("q1").replace_fields(interval=6, repetition_factor=2.6)

        stored = await graph.update_question(changed)

        assert stored == changed
        assert storage.questions["q1"] == changed
        assert graph.get_question("q1") == changed

    @pytest.mark.asyncio
    async def test_unvalidated_copy_rejected(self, graph, tree, storage):
        before = graph.get_question("q1")
        broken = before.model_copy(update={"interval": -5, "repetition_factor": 0.2, "difficulty": 9})

        with pytest.raises(ValidationError):
            await graph.update_question(broken)

        assert storage.questions["q1"] == before
        assert graph.get_question("q1") == before

    @pytest.mark.asyncio
    async def test_update_unknown_question(self, graph, tree):
        ghost = graph.get_question("q1").replace_fields(id="ghost")

        with pytest.raises(NotFoundError):
            await graph.update_question(ghost)


class TestRecordReview:
    """Rescheduled question and its attempt are stored as one batch."""

    @pytest.mark.asyncio
    async def test_record_review(self, graph, tree, storage, now):
        question = graph.get_question("q1").replace_fields(interval=1)
        attempt = Attempt(question_id="q1", ai_score=8, date=now)

        stored = await graph.record_review(question, attempt)

        assert stored == question
        assert storage.questions["q1"] == question
        assert list(storage.attempts.values()) == [attempt]
        assert graph.get_question("q1") == question

    @pytest.mark.asyncio
    async def test_attempt_for_other_question(self, graph, tree, storage, now):
        before = graph.get_question("q1")
        attempt = Attempt(question_id="q2", ai_score=8, date=now)

        with pytest.raises(ValidationError):
            await graph.record_review(before.replace_fields(interval=1), attempt)

        assert storage.questions["q1"] == before
        assert storage.attempts == {}

    @pytest.mark.asyncio
    async def test_invalid_question_records_nothing(self, graph, tree, storage, now):
        before = graph.get_question("q1")
        broken = before.model_copy(update={"repetition_factor": 0.2})
        attempt = Attempt(question_id="q1", ai_score=2, date=now)

        with pytest.raises(ValidationError):
            await graph.record_review(broken, attempt)

        assert storage.questions["q1"] == before
        assert storage.attempts == {}
