"""
Pytest Configuration and Fixtures.

This file configures pytest and provides shared fixtures for all tests.
"""
import sys
from datetime import datetime
from pathlib import Path

import pytest
import pytest_asyncio

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from topic_trainer.delivery.attempt_log import AttemptLog  # noqa: E402
from topic_trainer.graph.content_graph import ContentGraph  # noqa: E402
from topic_trainer.storage.memory import InMemoryStorage  # noqa: E402

NOW = datetime(2024, 3, 15, 12, 0, 0)


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests (real SQLite database)")
    config.addinivalue_line("markers", "smoke: Smoke tests for CLI commands")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        # Mark based on test file location
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        elif "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)
        elif "smoke" in str(item.fspath):
            item.add_marker(pytest.mark.smoke)


@pytest.fixture(scope="session")
def project_root():
    """Return the project root directory."""
    return PROJECT_ROOT


@pytest.fixture
def now():
    """Fixed reference time."""
    return NOW


@pytest.fixture
def storage():
    """Fresh in-memory storage."""
    return InMemoryStorage()


@pytest_asyncio.fixture
async def graph(storage):
    """Loaded, empty content graph."""
    graph = ContentGraph(storage)
    await graph.load()
    return graph


@pytest.fixture
def attempt_log(storage):
    return AttemptLog(storage)


@pytest_asyncio.fixture
async def tree(graph, now):
    """
    Category forest A -> A1 -> A1a plus a sibling root B.

    Questions:
        q1 in A   (tag "x",  due now - 1 day)
        q2 in A1a (tag "y",  due now - 3 days)
        q3 in B   (tag "x",  due now - 2 days)
    """
    a = await graph.add_category("A", category_id="A")
    a1 = await graph.add_category("A1", parent_id="A", category_id="A1")
    a1a = await graph.add_category("A1a", parent_id="A1", category_id="A1a")
    b = await graph.add_category("B", category_id="B")

    q1 = await graph.add_question(
        "What is A?", "A", "A", tags=["x"],
        next_review_date=now.replace(day=14), question_id="q1",
    )
    q2 = await graph.add_question(
        "What is A1a?", "A1a", "A1a", tags=["y"],
        next_review_date=now.replace(day=12), question_id="q2",
    )
    q3 = await graph.add_question(
        "What is B?", "B", "B", tags=["x"],
        next_review_date=now.replace(day=13), question_id="q3",
    )
    return {
        "categories": {"A": a, "A1": a1, "A1a": a1a, "B": b},
        "questions": {"q1": q1, "q2": q2, "q3": q3},
    }
