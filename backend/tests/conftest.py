"""
Shared Test Fixtures and Configuration

This module provides pytest fixtures used across unit and integration tests.
"""

import os
import sys
from datetime import date, datetime, timezone
from pathlib import Path
from types import SimpleNamespace
from typing import Callable, Optional
from unittest.mock import AsyncMock, MagicMock

import pytest

# Add the backend directory to the path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

# Settings and the engine are built at import time, so the test configuration
# must be in place before anything under hifz is imported.
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["DEBUG"] = "false"

from hifz.enums.progress import ActivityProgram  # noqa: E402


# ============================================================================
# Record Builders
# ============================================================================
#
# Pure derivation functions only read attributes, so unit tests feed them
# lightweight stand-ins instead of ORM rows.


@pytest.fixture
def make_entry() -> Callable[..., SimpleNamespace]:
    """Build progress-entry-like records."""

    def _make(
        chapter: int,
        start: int,
        end: int,
        program: ActivityProgram = ActivityProgram.MEMORIZATION,
        entry_date: date = date(2024, 3, 4),
        learner_id: int = 1,
    ) -> SimpleNamespace:
        return SimpleNamespace(
            learner_id=learner_id,
            program=program.value,
            chapter_number=chapter,
            verse_start=start,
            verse_end=end,
            entry_date=entry_date,
        )

    return _make


@pytest.fixture
def make_record() -> Callable[..., SimpleNamespace]:
    """Build mastery-record-like records."""

    def _make(
        chapter: int,
        status: str,
        learner_id: int = 1,
        validated_week: Optional[int] = None,
        validated_at: Optional[datetime] = None,
    ) -> SimpleNamespace:
        return SimpleNamespace(
            learner_id=learner_id,
            chapter_number=chapter,
            status=status,
            validated_week=validated_week,
            validated_at=validated_at,
        )

    return _make


@pytest.fixture
def make_completion() -> Callable[..., SimpleNamespace]:
    """Build daily-completion-like records."""

    def _make(
        day: date,
        program: ActivityProgram = ActivityProgram.MEMORIZATION,
        completed: bool = True,
    ) -> SimpleNamespace:
        return SimpleNamespace(program=program.value, completion_date=day, completed=completed)

    return _make


@pytest.fixture
def make_cycle() -> Callable[..., SimpleNamespace]:
    """Build completion-cycle-like records."""

    def _make(
        cycle_type: str,
        completed_at: datetime,
        days_to_complete: Optional[int] = None,
        unit_count: Optional[int] = None,
    ) -> SimpleNamespace:
        if completed_at.tzinfo is None:
            completed_at = completed_at.replace(tzinfo=timezone.utc)
        return SimpleNamespace(
            cycle_type=cycle_type,
            completed_at=completed_at,
            days_to_complete=days_to_complete,
            unit_count=unit_count,
        )

    return _make


# ============================================================================
# Mock Fixtures
# ============================================================================


@pytest.fixture
def mock_db_session() -> MagicMock:
    """
    Create a mock database session for unit testing.
    """
    mock = MagicMock()
    mock.execute = AsyncMock()
    mock.get = AsyncMock(return_value=None)
    mock.flush = AsyncMock()
    mock.commit = AsyncMock()
    mock.rollback = AsyncMock()
    mock.close = AsyncMock()
    return mock
