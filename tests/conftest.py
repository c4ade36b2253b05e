"""
Pytest Configuration and Fixtures.

This file configures pytest and provides shared fixtures for all tests.
"""
import sys
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from recall.core.mastery import MasteryLevel  # noqa: E402
from recall.delivery.session import ReviewController  # noqa: E402
from recall.delivery.state_store import MemoryStateStore, ReviewCard, StateStore  # noqa: E402


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "smoke: Smoke tests for CLI commands")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        elif "smoke" in str(item.fspath):
            item.add_marker(pytest.mark.smoke)


@pytest.fixture
def now():
    """A fixed review time."""
    return datetime(2024, 3, 10, 9, 0, tzinfo=UTC)


@pytest.fixture
def store():
    """In-memory store."""
    return MemoryStateStore()


@pytest.fixture
def sqlite_store(tmp_path):
    """SQLite store in a temp directory."""
    s = StateStore(tmp_path / "state.db")
    yield s
    s.close()


@pytest.fixture
def controller(store):
    """Controller over the in-memory store."""
    return ReviewController(store)


@pytest.fixture
def make_card(now):
    """Build a card that has already been reviewed once."""

    def _make(
        question_id="q-1",
        interval_days=10.0,
        ease_factor=2.5,
        repetitions=3,
        lapses=0,
        mastery_level=MasteryLevel.YOUNG,
        due_in_days=0.0,
        channel="system-design",
        difficulty="intermediate",
    ):
        return ReviewCard(
            question_id=question_id,
            channel=channel,
            difficulty=difficulty,
            ease_factor=ease_factor,
            interval_days=interval_days,
            repetitions=repetitions,
            lapses=lapses,
            mastery_level=mastery_level,
            due_at=now + timedelta(days=due_in_days),
            last_reviewed_at=now - timedelta(days=interval_days),
            total_reviews=repetitions + lapses,
        )

    return _make
