# Copyright 2024-2025 Amiable Development
# SPDX-License-Identifier: Apache-2.0

"""Protocols for the external collaborators of milestone search.

The milestone store, session registry, semantic vector store and
lexical index are owned elsewhere. Search only depends on these
structural interfaces, so any object with matching methods can be
plugged in (including simple fakes in tests).
"""

from dataclasses import dataclass
from typing import Iterable, List, Optional, Protocol, runtime_checkable

from milestone_search.schemas import (
    LexicalHit,
    Milestone,
    MilestoneIndex,
    SemanticHit,
    SessionRecord,
)


@runtime_checkable
class MilestoneStore(Protocol):
    """Protocol for the persistent milestone store."""

    def get_index(self) -> MilestoneIndex:
        """Return the index of sessions that have milestones."""
        ...

    def get_milestones(self, session_id: str) -> List[Milestone]:
        """Return a session's milestones in order (empty if unknown)."""
        ...

    def get_milestone_by_id(self, milestone_id: str) -> Optional[Milestone]:
        """Return a milestone by its "<session_id>:<index>" ID."""
        ...


@runtime_checkable
class SessionRegistry(Protocol):
    """Protocol for the registry of known sessions."""

    def list_sessions(self) -> Iterable[SessionRecord]:
        """Enumerate known sessions with their file path and cwd."""
        ...


@dataclass
class VectorStoreStats:
    """Vector store readiness as reported by get_stats()."""

    is_initialized: bool
    total_vectors: int


@runtime_checkable
class SemanticStore(Protocol):
    """Protocol for the semantic (embedding) vector store."""

    async def search(self, query: str, limit: int) -> List[SemanticHit]:
        """Return hits ordered by similarity, best first."""
        ...

    async def get_stats(self) -> VectorStoreStats:
        """Return initialization state and vector count."""
        ...


@runtime_checkable
class LexicalIndex(Protocol):
    """Protocol for the lexical full-text index.

    Search is synchronous; callers run it in a worker thread.
    """

    def search(
        self, query: str, limit: int, record_type: Optional[str] = None
    ) -> List[LexicalHit]:
        """Return hits ordered by lexical score, best first."""
        ...
