# Copyright 2024-2025 Amiable Development
# SPDX-License-Identifier: Apache-2.0

"""
Root pytest configuration with shared fixtures and markers.

This file is automatically loaded by pytest and provides:
- Custom markers for grouping tests
- In-memory fakes of the milestone store and session registry
- A milestone factory and a fixed reference time
"""

from datetime import datetime, timezone
from typing import Callable, Optional

import pytest

from milestone_search.schemas import (
    Milestone,
    MilestoneIndex,
    SessionIndexEntry,
    SessionRecord,
)

# Fixed reference time for recency and scope tests
NOW = datetime(2025, 6, 1, 12, 0, 0, tzinfo=timezone.utc)


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers",
        "integration: Mark test as integration test (service + adapters)",
    )


# ============================================================================
# Fakes
# ============================================================================


class FakeMilestoneStore:
    """In-memory MilestoneStore with call counters."""

    def __init__(self) -> None:
        self.sessions: dict[str, list[Milestone]] = {}
        self.last_updated = 1.0
        self.index_reads = 0
        self.milestone_reads = 0

    def add(self, *milestones: Milestone) -> None:
        for milestone in milestones:
            self.sessions.setdefault(milestone.session_id, []).append(milestone)

    def touch(self) -> None:
        """Simulate the pipeline writing new data."""
        self.last_updated += 1

    def get_index(self) -> MilestoneIndex:
        self.index_reads += 1
        return MilestoneIndex(
            last_updated=self.last_updated,
            sessions={
                sid: SessionIndexEntry(milestone_count=len(ms))
                for sid, ms in self.sessions.items()
            },
        )

    def get_milestones(self, session_id: str) -> list[Milestone]:
        self.milestone_reads += 1
        return list(self.sessions.get(session_id, []))

    def get_milestone_by_id(self, milestone_id: str) -> Optional[Milestone]:
        for milestones in self.sessions.values():
            for milestone in milestones:
                if milestone.id == milestone_id:
                    return milestone
        return None


class FakeSessionRegistry:
    """In-memory SessionRegistry; can be told to fail."""

    def __init__(self, sessions: Optional[list[SessionRecord]] = None) -> None:
        self.sessions = list(sessions or [])
        self.fail = False

    def list_sessions(self) -> list[SessionRecord]:
        if self.fail:
            raise RuntimeError("registry not ready")
        return list(self.sessions)


# ============================================================================
# Shared Fixtures
# ============================================================================


@pytest.fixture
def now() -> datetime:
    """Fixed reference time."""
    return NOW


@pytest.fixture
def make_milestone() -> Callable[..., Milestone]:
    """Factory for milestones; id is derived from session_id and index."""

    def _make(session_id: str = "s1", index: int = 0, **kwargs) -> Milestone:
        return Milestone(
            id=f"{session_id}:{index}",
            session_id=session_id,
            index=index,
            **kwargs,
        )

    return _make


@pytest.fixture
def store() -> FakeMilestoneStore:
    """Empty in-memory milestone store."""
    return FakeMilestoneStore()


@pytest.fixture
def registry() -> FakeSessionRegistry:
    """Empty in-memory session registry."""
    return FakeSessionRegistry()
