"""
Shared fixtures for PrepDeck tests.

Provides:
- A fixed clock (``now``) so due dates are deterministic
- In-memory and SQLite-backed repositories
- ``make_entry`` factory for interview entries
"""
from datetime import datetime, timezone

import pytest

from prepdeck.models.entry import Entry
from prepdeck.services.repository import ContentRepository
from prepdeck.services.scheduler import ReviewPolicy, Scheduler


@pytest.fixture
def now() -> datetime:
    return datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)


@pytest.fixture
def make_entry():
    def _make(entry_id: str = "beh-1", **overrides) -> Entry:
        fields = {
            "id": entry_id,
            "category": "behavioral",
            "prompt": "Tell me about a time you handled a difficult stakeholder.",
            "answer": "Situation, task, action, result: aligned on goals, then escalated with data.",
            "tags": ["star", "stakeholders"],
            "difficulty": 2,
            "source": "hrbp-notes",
        }
        fields.update(overrides)
        return Entry(**fields)

    return _make


@pytest.fixture
def repo() -> ContentRepository:
    return ContentRepository()


@pytest.fixture
def sqlite_repo(tmp_path) -> ContentRepository:
    return ContentRepository.open(tmp_path)


@pytest.fixture
def scheduler() -> Scheduler:
    return Scheduler(ReviewPolicy())
