"""
Unit tests for SessionBuilder and StudySession.
"""

from datetime import timedelta

import pytest

from topic_trainer.delivery.session_builder import SessionBuilder, StudySession


@pytest.fixture
def builder(graph):
    return SessionBuilder(graph)


class TestBuildSession:
    """Selection and ordering."""

    @pytest.mark.asyncio
    async def test_category_and_tag_selection(self, graph, builder, now):
        await graph.add_category("A", category_id="A")
        await graph.add_category("A1", parent_id="A", category_id="A1")
        await graph.add_category("A1a", parent_id="A1", category_id="A1a")
        q1 = await graph.add_question(
            "Q1", "a", "A1a", tags=["x"], next_review_date=now, question_id="Q1"
        )
        q2 = await graph.add_question(
            "Q2", "a", "A", tags=["y"], next_review_date=now + timedelta(days=1), question_id="Q2"
        )

        assert builder.build_session(["A"], []).ids() == [q1.id, q2.id]
        assert builder.build_session([], ["x"]).ids() == [q1.id]

    @pytest.mark.asyncio
    async def test_no_filters_returns_all_sorted(self, builder, tree):
        session = builder.build_session()

        assert session.ids() == ["q2", "q3", "q1"]

    @pytest.mark.asyncio
    async def test_subcategory_selection(self, builder, tree):
        assert builder.build_session(["A1"]).ids() == ["q2"]

    @pytest.mark.asyncio
    async def test_categories_and_tags_combine(self, builder, tree):
        assert builder.build_session(["A"], ["x"]).ids() == ["q1"]
        assert builder.build_session(["A1"], ["x"]).is_empty

    @pytest.mark.asyncio
    async def test_unknown_category_matches_nothing(self, builder, tree):
        assert builder.build_session(["missing"]).is_empty

    @pytest.mark.asyncio
    async def test_due_only(self, builder, tree, now):
        session = builder.build_session(due_only=True, now=now.replace(day=13))

        assert session.ids() == ["q2", "q3"]

    @pytest.mark.asyncio
    async def test_equal_due_dates_keep_graph_order(self, graph, builder, now):
        root = await graph.add_category("Root")
        for name in ("first", "second", "third"):
            await graph.add_question(name, "a", root.id, next_review_date=now, question_id=name)

        assert builder.build_session().ids() == ["first", "second", "third"]


class TestStudySession:
    """Cursor behaviour of a built session."""

    @pytest.mark.asyncio
    async def test_advance_to_end(self, builder, tree):
        session = builder.build_session()

        assert session.current.id == "q2"
        assert session.advance().id == "q3"
        assert session.advance().id == "q1"
        assert session.advance() is None
        assert session.is_finished
        assert session.remaining == 0

    @pytest.mark.asyncio
    async def test_iteration_restarts(self, builder, tree):
        session = builder.build_session()
        session.advance()

        assert [q.id for q in session] == ["q2", "q3", "q1"]
        assert [q.id for q in session] == ["q2", "q3", "q1"]

        session.restart()
        assert session.current.id == "q2"

    def test_empty_session(self):
        session = StudySession()

        assert session.is_empty
        assert session.current is None
        assert len(session) == 0
