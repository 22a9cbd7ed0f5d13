# Copyright 2024-2025 Amiable Development
# SPDX-License-Identifier: Apache-2.0

"""Milestone search service.

Orchestrates both search paths over the external collaborators:

Keyword search (synchronous, always available):
  - Corpus from the staleness-aware cache
  - Project/directory/scope filters
  - Field scoring + recency/quality boosts

Hybrid search (async, once vectors are indexed):
  - Semantic and lexical searches issued concurrently
  - Scope and exclusion filtering of both candidate lists
  - RRF fusion + composite re-ranking
  - Hydration of milestone results from the store

If one hybrid source fails the other is used alone; only when both
fail is SearchUnavailableError raised.
"""

import asyncio
import logging
import time
from datetime import datetime, timezone
from typing import Any, Optional

from milestone_search.config import SearchSettings
from milestone_search.constants import (
    HYBRID_OVERFETCH_FACTOR,
    RECENT_DIRECTORY_LIMIT,
    RECENT_LIMIT,
    RECENT_PER_SESSION_CAP,
)
from milestone_search.errors import (
    MissingQueryError,
    SearchUnavailableError,
    VectorsNotReadyError,
)
from milestone_search.protocols import (
    LexicalIndex,
    MilestoneStore,
    SemanticStore,
    SessionRegistry,
)
from milestone_search.retrieval import (
    CompositeScoreOptions,
    CorpusCache,
    MilestoneRanker,
    RRFFusion,
    SearchFilters,
    SearchScope,
    build_excluded_session_ids,
    is_within_scope,
    parse_timestamp,
    rank_hybrid,
)
from milestone_search.retrieval.filters import sessions_in_project
from milestone_search.retrieval.fusion import collapse_semantic_hits
from milestone_search.schemas import (
    CandidateKind,
    LexicalHit,
    MilestoneSearchResult,
    SearchMetrics,
    SearchRequest,
    SearchResponse,
    SemanticHit,
)

logger = logging.getLogger(__name__)

_OLDEST = datetime.min.replace(tzinfo=timezone.utc)


class MilestoneSearchService:
    """Search entry point for milestones.

    Example:
        >>> service = MilestoneSearchService(store, registry)
        >>> response = service.search(SearchRequest(query="fix login bug", limit=10))
        >>> for result in response.results:
        ...     print(f"{result.milestone_id}: {result.score:.2f}")

        >>> service = MilestoneSearchService(store, registry, semantic, lexical)
        >>> response = await service.search_hybrid(SearchRequest(query="auth refactor"))

    Attributes:
        store: Milestone store.
        registry: Session registry (project filters and exclusions).
        semantic: Optional semantic vector store for hybrid search.
        lexical: Optional lexical index for hybrid search.
        settings: Search settings.
        cache: Corpus cache for keyword search.
    """

    def __init__(
        self,
        store: MilestoneStore,
        registry: Optional[SessionRegistry] = None,
        semantic: Optional[SemanticStore] = None,
        lexical: Optional[LexicalIndex] = None,
        settings: Optional[SearchSettings] = None,
        cache: Optional[CorpusCache] = None,
        ranker: Optional[MilestoneRanker] = None,
    ):
        """Initialize the service.

        Args:
            store: Milestone store.
            registry: Session registry. Without one, nothing is excluded and
                project filters match nothing.
            semantic: Semantic store; hybrid search requires it.
            lexical: Lexical index; optional second hybrid source.
            settings: Search settings (defaults if not provided).
            cache: Corpus cache. Created from store/registry/settings if
                not provided.
            ranker: Keyword ranker (default if not provided).
        """
        self.store = store
        self.registry = registry
        self.semantic = semantic
        self.lexical = lexical
        self.settings = settings or SearchSettings()
        self.cache = cache or CorpusCache(
            store,
            registry,
            self.settings.is_excluded,
            ttl_seconds=self.settings.cache_ttl_seconds,
        )
        self.ranker = ranker or MilestoneRanker()
        self.fusion = RRFFusion(
            k=self.settings.rrf_k,
            semantic_weight=self.settings.semantic_weight,
            lexical_weight=self.settings.lexical_weight,
        )

    # -------------------------------------------------------------------------
    # Keyword search
    # -------------------------------------------------------------------------

    def search(self, request: SearchRequest, now: Optional[datetime] = None) -> SearchResponse:
        """Keyword search over the cached corpus.

        Args:
            request: Search request.
            now: Reference time for scope and recency (defaults to now).

        Returns:
            SearchResponse with results sorted by score descending.

        Raises:
            MissingQueryError: If the query is empty or blank.
        """
        start_time = time.perf_counter()
        query = self._require_query(request.query)
        scope = self._resolve_scope(request.scope)

        filters = self._build_filters(scope, request.project_path, request.directory)
        corpus = self.cache.get_or_rebuild()
        ranked, scanned = self.ranker.rank(query, corpus, filters, request.limit, now)

        results = [MilestoneSearchResult.from_milestone(m, score) for m, score in ranked]
        metrics = SearchMetrics(
            search_time_ms=(time.perf_counter() - start_time) * 1000,
            milestones_scanned=scanned,
            final_results=len(results),
        )
        logger.debug(
            f"Keyword search {query!r}: {len(results)} results, "
            f"{scanned} scanned in {metrics.search_time_ms:.1f}ms"
        )

        return SearchResponse(
            results=results,
            total=len(results),
            query=query,
            scope=scope.value,
            metrics=metrics,
        )

    def recent(
        self,
        project_path: Optional[str] = None,
        directory: Optional[str] = None,
    ) -> list[MilestoneSearchResult]:
        """Most recent milestones, no query needed.

        Without a directory this is the general activity feed: enriched
        (phase 2) milestones only, at most 5 per session, 50 in total.
        Browsing a directory includes every phase with no per-session cap,
        up to 200 results.

        Args:
            project_path: Restrict to sessions run in this project.
            directory: Restrict to milestones touching this directory.

        Returns:
            Milestones newest first, with score 0.
        """
        filters = self._build_filters(SearchScope.ALL, project_path, directory)
        browsing_directory = bool(directory)
        per_session_cap = None if browsing_directory else RECENT_PER_SESSION_CAP
        total_limit = RECENT_DIRECTORY_LIMIT if browsing_directory else RECENT_LIMIT

        candidates = [
            m
            for m in self.cache.get_or_rebuild()
            if filters.matches_location(m) and (browsing_directory or m.phase == 2)
        ]
        candidates.sort(key=lambda m: parse_timestamp(m.timestamp) or _OLDEST, reverse=True)

        session_counts: dict[str, int] = {}
        recent: list[MilestoneSearchResult] = []
        for milestone in candidates:
            if len(recent) >= total_limit:
                break
            count = session_counts.get(milestone.session_id, 0)
            if per_session_cap is not None and count >= per_session_cap:
                continue
            session_counts[milestone.session_id] = count + 1
            recent.append(MilestoneSearchResult.from_milestone(milestone, 0.0))

        return recent

    # -------------------------------------------------------------------------
    # Hybrid search
    # -------------------------------------------------------------------------

    async def search_hybrid(
        self,
        request: SearchRequest,
        parent_session_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> SearchResponse:
        """Hybrid semantic + lexical search.

        Args:
            request: Search request. project_path doubles as the current
                project for the affinity boost.
            parent_session_id: Caller's parent session for the affinity boost.
            now: Reference time for scope and recency (defaults to now).

        Returns:
            SearchResponse with hydrated milestone results.

        Raises:
            MissingQueryError: If the query is empty or blank.
            VectorsNotReadyError: If the vector store is not populated.
            SearchUnavailableError: If both sources failed.
        """
        start_time = time.perf_counter()
        query = self._require_query(request.query)
        scope = self._resolve_scope(request.scope)
        now = now or datetime.now(timezone.utc)
        metrics = SearchMetrics()

        await self._ensure_vectors_ready()

        fetch_limit = (
            request.limit * HYBRID_OVERFETCH_FACTOR
            if request.limit > 0
            else self.settings.hybrid_candidate_limit
        )
        semantic_hits, lexical_hits, metrics.degraded = await self._gather_sources(
            query, fetch_limit
        )
        metrics.vector_candidates = len(semantic_hits)
        metrics.lexical_candidates = len(lexical_hits)

        excluded = build_excluded_session_ids(self.registry, self.settings.is_excluded)
        semantic_hits = [
            h
            for h in semantic_hits
            if is_within_scope(h.timestamp, scope, now) and h.session_id not in excluded
        ]
        lexical_hits = [
            h
            for h in lexical_hits
            if is_within_scope(h.timestamp, scope, now) and h.owner_session_id not in excluded
        ]

        options = CompositeScoreOptions(
            current_project=request.project_path,
            parent_session_id=parent_session_id,
        )
        ranked = rank_hybrid(
            collapse_semantic_hits(semantic_hits),
            lexical_hits,
            options,
            fusion=self.fusion,
            now=now,
        )
        metrics.fused_candidates = len(ranked)

        if request.limit > 0:
            ranked = ranked[: request.limit]

        # Milestones are the unit of display; session and knowledge hits
        # only influence ranking
        results: list[MilestoneSearchResult] = []
        for candidate in ranked:
            if candidate.kind != CandidateKind.MILESTONE:
                continue
            milestone = self.store.get_milestone_by_id(candidate.id)
            if milestone is not None:
                results.append(MilestoneSearchResult.from_milestone(milestone, candidate.final_score))

        metrics.final_results = len(results)
        metrics.search_time_ms = (time.perf_counter() - start_time) * 1000
        logger.debug(
            f"Hybrid search {query!r}: {metrics.vector_candidates} semantic + "
            f"{metrics.lexical_candidates} lexical -> {len(results)} results "
            f"in {metrics.search_time_ms:.1f}ms"
        )

        return SearchResponse(
            results=results,
            total=len(results),
            query=query,
            scope=scope.value,
            metrics=metrics,
        )

    async def _ensure_vectors_ready(self) -> None:
        """Raise VectorsNotReadyError unless the vector store has vectors."""
        if self.semantic is None:
            raise VectorsNotReadyError(total_vectors=0, is_initialized=False)
        stats = await self.semantic.get_stats()
        if not stats.is_initialized or stats.total_vectors == 0:
            raise VectorsNotReadyError(
                total_vectors=stats.total_vectors,
                is_initialized=stats.is_initialized,
            )

    async def _gather_sources(
        self, query: str, limit: int
    ) -> tuple[list[SemanticHit], list[LexicalHit], bool]:
        """Run both searches concurrently.

        Returns:
            Tuple of (semantic hits, lexical hits, degraded flag).

        Raises:
            SearchUnavailableError: If no source returned data.
        """
        tasks = [self.semantic.search(query, limit)]
        if self.lexical is not None:
            tasks.append(
                asyncio.to_thread(
                    self.lexical.search, query, limit, CandidateKind.MILESTONE.value
                )
            )

        outcomes = await asyncio.gather(*tasks, return_exceptions=True)
        semantic_outcome = outcomes[0]
        lexical_outcome: Any = outcomes[1] if len(outcomes) > 1 else []

        for outcome in outcomes:
            if isinstance(outcome, BaseException) and not isinstance(outcome, Exception):
                raise outcome

        semantic_failed = isinstance(semantic_outcome, Exception)
        lexical_failed = isinstance(lexical_outcome, Exception)

        if semantic_failed and (lexical_failed or self.lexical is None):
            raise SearchUnavailableError(
                f"No search source returned data: semantic={semantic_outcome!r}, "
                f"lexical={lexical_outcome!r}"
            ) from semantic_outcome

        if semantic_failed:
            logger.warning(f"Semantic search failed, using lexical only: {semantic_outcome!r}")
            return [], list(lexical_outcome), True
        if lexical_failed:
            logger.warning(f"Lexical search failed, using semantic only: {lexical_outcome!r}")
            return list(semantic_outcome), [], True

        return list(semantic_outcome), list(lexical_outcome), False

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _require_query(self, query: Optional[str]) -> str:
        if not query or not isinstance(query, str) or not query.strip():
            raise MissingQueryError("query is required")
        return query.strip()

    def _resolve_scope(self, scope: Optional[str]) -> SearchScope:
        return SearchScope.parse(scope, default=SearchScope(self.settings.default_scope))

    def _build_filters(
        self,
        scope: SearchScope,
        project_path: Optional[str],
        directory: Optional[str],
    ) -> SearchFilters:
        allowed_sessions = None
        if project_path:
            sessions = self.registry.list_sessions() if self.registry is not None else []
            allowed_sessions = frozenset(sessions_in_project(sessions, project_path))
        return SearchFilters(
            scope=scope,
            allowed_sessions=allowed_sessions,
            directory=directory or None,
            project_path=project_path or None,
        )

