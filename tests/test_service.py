# Copyright 2024-2025 Amiable Development
# SPDX-License-Identifier: Apache-2.0

"""Tests for the milestone search service.

Covers keyword search, the recent view and hybrid search, with the
external semantic store and lexical index mocked.
"""

from datetime import datetime, timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest

from milestone_search.config import SearchSettings
from milestone_search.errors import (
    MissingQueryError,
    SearchUnavailableError,
    VectorsNotReadyError,
)
from milestone_search.protocols import VectorStoreStats
from milestone_search.schemas import (
    CandidateKind,
    LexicalHit,
    SearchRequest,
    SemanticHit,
    SessionRecord,
)
from milestone_search.service import MilestoneSearchService


@pytest.fixture
def seeded_store(store, make_milestone):
    """Two projects: s1 in /work/app, s2 in /work/site."""
    store.add(
        make_milestone("s1", 0, title="Fix login bug", phase=2),
        make_milestone("s1", 1, title="Cache layer"),
        make_milestone("s2", 0, title="login page styling"),
    )
    return store


@pytest.fixture
def seeded_registry(registry):
    registry.sessions = [
        SessionRecord(session_id="s1", cwd="/work/app"),
        SessionRecord(session_id="s2", cwd="/work/site"),
    ]
    return registry


@pytest.fixture
def settings() -> SearchSettings:
    return SearchSettings(excluded_paths=[])


@pytest.fixture
def service(seeded_store, seeded_registry, settings) -> MilestoneSearchService:
    return MilestoneSearchService(seeded_store, seeded_registry, settings=settings)


class TestKeywordSearch:
    """Tests for synchronous keyword search."""

    def test_ranked_results(self, service: MilestoneSearchService, now: datetime) -> None:
        response = service.search(SearchRequest(query="login"), now=now)

        assert [r.milestone_id for r in response.results] == ["s1:0", "s2:0"]
        assert response.results[0].score == pytest.approx(88.0 * 1.3)
        assert response.results[1].score == pytest.approx(88.0)
        assert response.total == 2
        assert response.query == "login"
        assert response.scope == "all"

    def test_metrics(self, service: MilestoneSearchService, now: datetime) -> None:
        response = service.search(SearchRequest(query="login"), now=now)
        assert response.metrics.milestones_scanned == 3
        assert response.metrics.final_results == 2
        assert response.metrics.search_time_ms >= 0

    def test_query_is_stripped(self, service: MilestoneSearchService, now: datetime) -> None:
        assert service.search(SearchRequest(query="  login  "), now=now).query == "login"

    @pytest.mark.parametrize("query", ["", "   ", None])
    def test_missing_query(self, service: MilestoneSearchService, query) -> None:
        with pytest.raises(MissingQueryError) as exc_info:
            service.search(SearchRequest(query=query))
        assert exc_info.value.code == "MISSING_QUERY"

    def test_limit(self, service: MilestoneSearchService, now: datetime) -> None:
        response = service.search(SearchRequest(query="login", limit=1), now=now)
        assert [r.milestone_id for r in response.results] == ["s1:0"]

    def test_project_filter(self, service: MilestoneSearchService, now: datetime) -> None:
        response = service.search(SearchRequest(query="login", project_path="/work/site"), now=now)
        assert [r.milestone_id for r in response.results] == ["s2:0"]

    def test_project_filter_without_registry(self, seeded_store, settings, now: datetime) -> None:
        """Test a project filter with no registry matches nothing."""
        service = MilestoneSearchService(seeded_store, settings=settings)
        response = service.search(SearchRequest(query="login", project_path="/work/app"), now=now)
        assert response.results == []

    def test_directory_filter(self, store, make_milestone, settings, now: datetime) -> None:
        store.add(
            make_milestone("s1", 0, title="login", files_modified=["src/auth/login.py"]),
            make_milestone("s1", 1, title="login", files_read=["docs/login.md"]),
        )
        service = MilestoneSearchService(store, settings=settings)
        response = service.search(SearchRequest(query="login", directory="src/auth"), now=now)
        assert [r.milestone_id for r in response.results] == ["s1:0"]

    def test_scope_filter(self, store, make_milestone, settings, now: datetime) -> None:
        store.add(
            make_milestone("s1", 0, title="login", end_timestamp=(now - timedelta(hours=2)).isoformat()),
            make_milestone("s1", 1, title="login", end_timestamp=(now - timedelta(days=2)).isoformat()),
        )
        service = MilestoneSearchService(store, settings=settings)
        response = service.search(SearchRequest(query="login", scope="24h"), now=now)

        assert [r.milestone_id for r in response.results] == ["s1:0"]
        assert response.scope == "24h"

    def test_default_scope_from_settings(self, seeded_store, now: datetime) -> None:
        """Test requests without a scope use the configured default."""
        settings = SearchSettings(excluded_paths=[], default_scope="7d")
        service = MilestoneSearchService(seeded_store, settings=settings)
        response = service.search(SearchRequest(query="login"), now=now)

        assert response.scope == "7d"
        # Seeded milestones are undated, so nothing is inside the window
        assert response.results == []

    def test_excluded_projects_hidden(self, seeded_store, seeded_registry, now: datetime) -> None:
        settings = SearchSettings(excluded_paths=["/work/site"])
        service = MilestoneSearchService(seeded_store, seeded_registry, settings=settings)
        response = service.search(SearchRequest(query="login"), now=now)
        assert [r.milestone_id for r in response.results] == ["s1:0"]

    def test_corpus_cached_between_searches(
        self, service: MilestoneSearchService, seeded_store, now: datetime
    ) -> None:
        service.search(SearchRequest(query="login"), now=now)
        reads = seeded_store.milestone_reads
        service.search(SearchRequest(query="cache"), now=now)
        assert seeded_store.milestone_reads == reads

    def test_to_dict(self, service: MilestoneSearchService, now: datetime) -> None:
        data = service.search(SearchRequest(query="login"), now=now).to_dict()
        assert data["total"] == 2
        assert data["results"][0]["milestone_id"] == "s1:0"
        assert data["metrics"]["degraded"] is False

    def test_prompt_previews(self, store, make_milestone, settings, now: datetime) -> None:
        """Test results carry at most three prompts, each truncated to 150 chars."""
        store.add(
            make_milestone(
                title="login",
                user_prompts=["x" * 200, "short", "third", "fourth"],
            )
        )
        service = MilestoneSearchService(store, settings=settings)
        prompts = service.search(SearchRequest(query="login"), now=now).results[0].user_prompts

        assert prompts == ["x" * 150 + "...", "short", "third"]


class TestRecent:
    """Tests for the recent milestones view."""

    @pytest.fixture
    def recent_service(self, store, make_milestone, seeded_registry, settings, now):
        for i in range(7):
            store.add(
                make_milestone(
                    "s1",
                    i,
                    phase=2,
                    files_modified=["src/a.py"],
                    end_timestamp=(now - timedelta(hours=10 - i)).isoformat(),
                )
            )
        store.add(
            make_milestone(
                "s2",
                0,
                phase=1,
                files_modified=["src/x.py"],
                end_timestamp=(now - timedelta(hours=1)).isoformat(),
            ),
            make_milestone("s2", 1, phase=2, end_timestamp=(now - timedelta(minutes=30)).isoformat()),
        )
        return MilestoneSearchService(store, seeded_registry, settings=settings)

    def test_enriched_only_capped_per_session(self, recent_service: MilestoneSearchService) -> None:
        results = recent_service.recent()

        assert [r.milestone_id for r in results] == ["s2:1", "s1:6", "s1:5", "s1:4", "s1:3", "s1:2"]
        assert all(r.score == 0.0 for r in results)

    def test_directory_includes_all_phases(self, recent_service: MilestoneSearchService) -> None:
        results = recent_service.recent(directory="src")

        ids = [r.milestone_id for r in results]
        assert len(ids) == 8
        assert "s2:0" in ids
        assert "s2:1" not in ids

    def test_project_filter(self, recent_service: MilestoneSearchService) -> None:
        assert [r.milestone_id for r in recent_service.recent(project_path="/work/site")] == ["s2:1"]

    def test_total_limit(self, store, make_milestone, settings, now) -> None:
        for session in range(12):
            for i in range(5):
                store.add(
                    make_milestone(
                        f"s{session}",
                        i,
                        phase=2,
                        end_timestamp=(now - timedelta(minutes=session * 10 + i)).isoformat(),
                    )
                )
        service = MilestoneSearchService(store, settings=settings)
        assert len(service.recent()) == 50


@pytest.fixture
def semantic() -> MagicMock:
    """Mocked semantic store with vectors ready."""
    mock = MagicMock()
    mock.get_stats = AsyncMock(return_value=VectorStoreStats(is_initialized=True, total_vectors=10))
    mock.search = AsyncMock(
        return_value=[
            SemanticHit(
                kind=CandidateKind.MILESTONE,
                session_id="s1",
                score=0.9,
                milestone_index=0,
                project_path="/work/app",
                phase=2,
            ),
            SemanticHit(kind=CandidateKind.SESSION, session_id="s2", score=0.8),
        ]
    )
    return mock


@pytest.fixture
def lexical() -> MagicMock:
    """Mocked lexical index."""
    mock = MagicMock()
    mock.search.return_value = [
        LexicalHit(id="s2:0", kind=CandidateKind.MILESTONE, score=4.0),
        LexicalHit(id="s1:0", kind=CandidateKind.MILESTONE, score=3.0),
    ]
    return mock


@pytest.fixture
def hybrid_service(seeded_store, seeded_registry, settings, semantic, lexical):
    return MilestoneSearchService(
        seeded_store, seeded_registry, semantic=semantic, lexical=lexical, settings=settings
    )


@pytest.mark.integration
class TestHybridSearch:
    """Tests for hybrid semantic + lexical search."""

    @pytest.mark.asyncio
    async def test_fused_and_hydrated(self, hybrid_service: MilestoneSearchService, now) -> None:
        response = await hybrid_service.search_hybrid(SearchRequest(query="login"), now=now)

        # s2's session hit is superseded by its milestone s2:0
        assert [r.milestone_id for r in response.results] == ["s1:0", "s2:0"]
        assert response.results[0].title == "Fix login bug"
        assert response.results[0].score == pytest.approx((1 / 61 + 0.8 / 62) * 1.5 * 1.3)
        assert response.results[1].score == pytest.approx(0.8 / 61 * 1.5)

        metrics = response.metrics
        assert metrics.vector_candidates == 2
        assert metrics.lexical_candidates == 2
        assert metrics.fused_candidates == 2
        assert metrics.final_results == 2
        assert metrics.degraded is False

    @pytest.mark.asyncio
    async def test_overfetch(self, hybrid_service, semantic, lexical, now) -> None:
        """Test each source is asked for three times the limit."""
        response = await hybrid_service.search_hybrid(SearchRequest(query="login", limit=1), now=now)

        semantic.search.assert_awaited_once_with("login", 3)
        lexical.search.assert_called_once_with("login", 3, "milestone")
        assert len(response.results) == 1

    @pytest.mark.asyncio
    async def test_unlimited_uses_candidate_limit(self, hybrid_service, semantic, lexical, now) -> None:
        await hybrid_service.search_hybrid(SearchRequest(query="login"), now=now)

        semantic.search.assert_awaited_once_with("login", 150)
        lexical.search.assert_called_once_with("login", 150, "milestone")

    @pytest.mark.asyncio
    async def test_semantic_failure_degrades(self, hybrid_service, semantic, now, caplog) -> None:
        semantic.search.side_effect = RuntimeError("embedding model crashed")

        response = await hybrid_service.search_hybrid(SearchRequest(query="login"), now=now)

        assert response.metrics.degraded is True
        assert [r.milestone_id for r in response.results] == ["s2:0", "s1:0"]
        assert "Semantic search failed" in caplog.text

    @pytest.mark.asyncio
    async def test_lexical_failure_degrades(self, hybrid_service, lexical, now) -> None:
        lexical.search.side_effect = RuntimeError("index locked")

        response = await hybrid_service.search_hybrid(SearchRequest(query="login"), now=now)

        assert response.metrics.degraded is True
        # Only semantic remains: s2 is a session hit and is not displayed
        assert [r.milestone_id for r in response.results] == ["s1:0"]

    @pytest.mark.asyncio
    async def test_both_sources_fail(self, hybrid_service, semantic, lexical, now) -> None:
        semantic.search.side_effect = RuntimeError("down")
        lexical.search.side_effect = RuntimeError("down")

        with pytest.raises(SearchUnavailableError):
            await hybrid_service.search_hybrid(SearchRequest(query="login"), now=now)

    @pytest.mark.asyncio
    async def test_semantic_fails_without_lexical(
        self, seeded_store, seeded_registry, settings, semantic, now
    ) -> None:
        semantic.search.side_effect = RuntimeError("down")
        service = MilestoneSearchService(
            seeded_store, seeded_registry, semantic=semantic, settings=settings
        )
        with pytest.raises(SearchUnavailableError):
            await service.search_hybrid(SearchRequest(query="login"), now=now)

    @pytest.mark.asyncio
    async def test_semantic_only(self, seeded_store, seeded_registry, settings, semantic, now) -> None:
        service = MilestoneSearchService(
            seeded_store, seeded_registry, semantic=semantic, settings=settings
        )
        response = await service.search_hybrid(SearchRequest(query="login"), now=now)

        assert response.metrics.degraded is False
        assert response.metrics.lexical_candidates == 0
        assert [r.milestone_id for r in response.results] == ["s1:0"]

    @pytest.mark.asyncio
    async def test_empty_results_are_not_errors(self, hybrid_service, semantic, lexical, now) -> None:
        semantic.search.return_value = []
        lexical.search.return_value = []

        response = await hybrid_service.search_hybrid(SearchRequest(query="login"), now=now)

        assert response.results == []
        assert response.metrics.degraded is False

    @pytest.mark.asyncio
    async def test_vectors_not_ready(self, hybrid_service, semantic) -> None:
        semantic.get_stats.return_value = VectorStoreStats(is_initialized=True, total_vectors=0)

        with pytest.raises(VectorsNotReadyError) as exc_info:
            await hybrid_service.search_hybrid(SearchRequest(query="login"))

        assert exc_info.value.code == "VECTORS_NOT_READY"
        assert exc_info.value.total_vectors == 0
        assert "Run milestone pipeline first" in str(exc_info.value)
        semantic.search.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_vectors_not_initialized(self, hybrid_service, semantic) -> None:
        semantic.get_stats.return_value = VectorStoreStats(is_initialized=False, total_vectors=5)
        with pytest.raises(VectorsNotReadyError):
            await hybrid_service.search_hybrid(SearchRequest(query="login"))

    @pytest.mark.asyncio
    async def test_no_semantic_store(self, service: MilestoneSearchService) -> None:
        with pytest.raises(VectorsNotReadyError):
            await service.search_hybrid(SearchRequest(query="login"))

    @pytest.mark.asyncio
    async def test_missing_query(self, hybrid_service, semantic) -> None:
        with pytest.raises(MissingQueryError):
            await hybrid_service.search_hybrid(SearchRequest(query=" "))
        semantic.get_stats.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_excluded_projects(self, seeded_store, seeded_registry, semantic, lexical, now) -> None:
        settings = SearchSettings(excluded_paths=["/work/site"])
        service = MilestoneSearchService(
            seeded_store, seeded_registry, semantic=semantic, lexical=lexical, settings=settings
        )
        response = await service.search_hybrid(SearchRequest(query="login"), now=now)
        assert [r.milestone_id for r in response.results] == ["s1:0"]

    @pytest.mark.asyncio
    async def test_scope_filter(self, hybrid_service, semantic, lexical, now) -> None:
        semantic.search.return_value = [
            SemanticHit(
                kind=CandidateKind.MILESTONE,
                session_id="s1",
                score=0.9,
                milestone_index=0,
                timestamp=(now - timedelta(hours=2)).isoformat(),
            ),
        ]
        lexical.search.return_value = [
            LexicalHit(id="s2:0", kind=CandidateKind.MILESTONE, score=4.0),
        ]
        response = await hybrid_service.search_hybrid(SearchRequest(query="login", scope="24h"), now=now)

        assert [r.milestone_id for r in response.results] == ["s1:0"]
        assert response.scope == "24h"

    @pytest.mark.asyncio
    async def test_parent_session_affinity(self, hybrid_service, semantic, now) -> None:
        semantic.search.return_value = []
        lexical_results = await hybrid_service.search_hybrid(
            SearchRequest(query="login"), parent_session_id="s1", now=now
        )
        assert lexical_results.results[0].milestone_id == "s1:0"

        no_parent = await hybrid_service.search_hybrid(SearchRequest(query="login"), now=now)
        assert no_parent.results[0].milestone_id == "s2:0"

    @pytest.mark.asyncio
    async def test_unknown_milestones_dropped(self, hybrid_service, semantic, lexical, now) -> None:
        """Test candidates the store cannot hydrate are left out."""
        semantic.search.return_value = []
        lexical.search.return_value = [
            LexicalHit(id="s9:0", kind=CandidateKind.MILESTONE, score=9.0),
            LexicalHit(id="K001", kind=CandidateKind.KNOWLEDGE, score=8.0, session_id="s1"),
            LexicalHit(id="s1:1", kind=CandidateKind.MILESTONE, score=1.0),
        ]
        response = await hybrid_service.search_hybrid(SearchRequest(query="cache"), now=now)

        assert [r.milestone_id for r in response.results] == ["s1:1"]
        assert response.metrics.fused_candidates == 3
