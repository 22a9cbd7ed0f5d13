# Copyright 2024-2025 Amiable Development
# SPDX-License-Identifier: Apache-2.0

"""Staleness-aware cache of the searchable milestone corpus.

Keyword search scans every milestone, so the flattened list is kept in
memory and rebuilt only when stale:
- First use
- TTL expiry (default 30s)
- Fingerprint change (index last-updated time or session count)

Both checks must pass for a hit: a matching fingerprint does not keep
an expired snapshot alive, and a fresh snapshot is dropped as soon as
the fingerprint changes.

A snapshot is immutable and replaced by a single attribute assignment,
so readers never see a half-built corpus. Rebuilds are serialized by a
lock; a rebuild is idempotent, so the lock only avoids wasted work.
"""

import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional

from milestone_search.constants import DEFAULT_CACHE_TTL_SECONDS
from milestone_search.protocols import MilestoneStore, SessionRegistry
from milestone_search.schemas import Milestone

logger = logging.getLogger(__name__)

ExclusionPredicate = Callable[[str], bool]


@dataclass(frozen=True)
class CorpusSnapshot:
    """A built corpus with the state it was built from."""

    milestones: tuple[Milestone, ...]
    built_at: float
    fingerprint: str

    def is_valid(self, fingerprint: str, now: float, ttl_seconds: float) -> bool:
        """Check the snapshot still matches the source and is within TTL."""
        return self.fingerprint == fingerprint and (now - self.built_at) < ttl_seconds


def build_excluded_session_ids(
    registry: Optional[SessionRegistry],
    is_excluded: ExclusionPredicate,
) -> set[str]:
    """Collect session IDs that belong to excluded projects.

    A session is excluded when either its cwd or its session file path
    matches. Recomputed per call; exclusion settings can change at any time.

    Args:
        registry: Session registry (None means nothing is excluded).
        is_excluded: Predicate over a cwd or file path.

    Returns:
        Set of excluded session IDs. Empty if the registry is unavailable.
    """
    excluded: set[str] = set()
    if registry is None:
        return excluded

    try:
        for record in registry.list_sessions():
            if is_excluded(record.cwd or "") or is_excluded(record.file_path):
                excluded.add(record.session_id)
    except Exception:
        # Registry may not be ready yet; search everything rather than nothing
        logger.warning("Session registry unavailable; no sessions excluded", exc_info=True)
        return set()

    return excluded


class CorpusCache:
    """Holds the flattened, exclusion-filtered milestone corpus.

    Example:
        >>> cache = CorpusCache(store, registry, settings.is_excluded)
        >>> milestones = cache.get_or_rebuild()

    Attributes:
        store: Milestone store to read from.
        registry: Session registry for the exclusion set.
        is_excluded: Predicate deciding whether a project path is excluded.
        ttl_seconds: Maximum snapshot age.
    """

    def __init__(
        self,
        store: MilestoneStore,
        registry: Optional[SessionRegistry] = None,
        is_excluded: Optional[ExclusionPredicate] = None,
        ttl_seconds: float = DEFAULT_CACHE_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the cache.

        Args:
            store: Milestone store.
            registry: Session registry; None disables exclusion.
            is_excluded: Exclusion predicate; None excludes nothing.
            ttl_seconds: Time-to-live in seconds.
            clock: Time source in seconds (injectable for tests).
        """
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        self.store = store
        self.registry = registry
        self.is_excluded = is_excluded or (lambda _path: False)
        self.ttl_seconds = ttl_seconds
        self._clock = clock

        self._snapshot: Optional[CorpusSnapshot] = None
        self._lock = threading.Lock()

        # Metrics
        self._hits = 0
        self._misses = 0
        self._rebuilds = 0

    def get_or_rebuild(self) -> list[Milestone]:
        """Return the current corpus, rebuilding it if stale.

        Returns:
            Milestones of every non-excluded session, in index order.
        """
        fingerprint = self.store.get_index().fingerprint
        snapshot = self._snapshot

        if snapshot is not None and snapshot.is_valid(fingerprint, self._clock(), self.ttl_seconds):
            self._hits += 1
            return list(snapshot.milestones)

        with self._lock:
            # Another caller may have rebuilt while we waited
            fingerprint = self.store.get_index().fingerprint
            snapshot = self._snapshot
            if snapshot is not None and snapshot.is_valid(
                fingerprint, self._clock(), self.ttl_seconds
            ):
                self._hits += 1
                return list(snapshot.milestones)

            self._misses += 1
            snapshot = self._rebuild()
            self._snapshot = snapshot

        return list(snapshot.milestones)

    def _rebuild(self) -> CorpusSnapshot:
        """Build a fresh snapshot from the store."""
        started = time.perf_counter()
        index = self.store.get_index()
        excluded = build_excluded_session_ids(self.registry, self.is_excluded)

        milestones: list[Milestone] = []
        for session_id in index.sessions:
            if session_id in excluded:
                continue
            milestones.extend(self.store.get_milestones(session_id))

        self._rebuilds += 1
        logger.debug(
            f"Rebuilt milestone corpus: {len(milestones)} milestones from "
            f"{len(index.sessions) - len(excluded & index.sessions.keys())} sessions "
            f"in {(time.perf_counter() - started) * 1000:.1f}ms"
        )
        return CorpusSnapshot(
            milestones=tuple(milestones),
            built_at=self._clock(),
            fingerprint=index.fingerprint,
        )

    def invalidate(self) -> None:
        """Drop the current snapshot so the next read rebuilds."""
        with self._lock:
            self._snapshot = None

    @property
    def snapshot(self) -> Optional[CorpusSnapshot]:
        """Current snapshot, if any."""
        return self._snapshot

    def get_metrics(self) -> dict[str, Any]:
        """Get cache metrics.

        Returns:
            Dictionary with cache statistics
        """
        snapshot = self._snapshot
        total = self._hits + self._misses
        return {
            "size": len(snapshot.milestones) if snapshot else 0,
            "hits": self._hits,
            "misses": self._misses,
            "rebuilds": self._rebuilds,
            "hit_rate": self._hits / total if total else 0.0,
            "ttl_seconds": self.ttl_seconds,
            "fingerprint": snapshot.fingerprint if snapshot else None,
        }
