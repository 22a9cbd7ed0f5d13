# Copyright 2024-2025 Amiable Development
# SPDX-License-Identifier: Apache-2.0

"""Ranking entry points for both search paths.

Keyword path:
    query -> tokenize -> filter corpus -> field score -> boost -> sort/limit

Hybrid path:
    semantic candidates + lexical hits -> RRF -> composite score

Both are pure: the caller supplies the corpus or the external results.
"""

from datetime import datetime, timezone
from typing import Iterable, Optional

from milestone_search.retrieval.boosts import BoostModel
from milestone_search.retrieval.composite import CompositeScoreOptions, CompositeScorer
from milestone_search.retrieval.field_scorer import LexicalFieldScorer, PreparedQuery
from milestone_search.retrieval.filters import SearchFilters
from milestone_search.retrieval.fusion import RRFFusion
from milestone_search.schemas import LexicalHit, Milestone, ScoredResult


class MilestoneRanker:
    """Ranks milestones against a keyword query.

    Combines:
    - Per-field keyword score with coverage penalty
    - Phase 2 quality boost
    - Recency boost

    Example:
        >>> ranker = MilestoneRanker()
        >>> ranked, scanned = ranker.rank("fix login bug", corpus, limit=10)
        >>> for milestone, score in ranked:
        ...     print(f"{milestone.title}: {score:.2f}")
    """

    def __init__(
        self,
        scorer: Optional[LexicalFieldScorer] = None,
        boosts: Optional[BoostModel] = None,
    ):
        self.scorer = scorer or LexicalFieldScorer()
        self.boosts = boosts or BoostModel()

    def rank(
        self,
        query: str,
        corpus: Iterable[Milestone],
        filters: Optional[SearchFilters] = None,
        limit: int = 0,
        now: Optional[datetime] = None,
    ) -> tuple[list[tuple[Milestone, float]], int]:
        """Rank a corpus against a query.

        Args:
            query: Free-text query.
            corpus: Milestones to consider.
            filters: Scope/project/directory filters.
            limit: Maximum results; 0 means no limit.
            now: Reference time for scope and recency.

        Returns:
            Tuple of ((milestone, boosted score) list sorted by score
            descending, number of milestones scanned inside the scope).
        """
        filters = filters or SearchFilters()
        now = now or datetime.now(timezone.utc)
        prepared = PreparedQuery.from_query(query)

        scored: list[tuple[Milestone, float]] = []
        scanned = 0
        for milestone in corpus:
            if not filters.matches_location(milestone):
                continue
            if not filters.in_scope(milestone, now):
                continue
            scanned += 1

            raw = self.scorer.score(milestone, prepared)
            if raw <= 0:
                continue
            scored.append((milestone, self.boosts.apply(raw, milestone, now)))

        # Stable sort: equal scores keep corpus order
        scored.sort(key=lambda x: x[1], reverse=True)

        if limit > 0:
            scored = scored[:limit]

        return scored, scanned


def rank_milestones(
    query: str,
    filters: Optional[SearchFilters],
    corpus: Iterable[Milestone],
    limit: int = 0,
    now: Optional[datetime] = None,
) -> list[tuple[Milestone, float]]:
    """Keyword-rank a corpus; see MilestoneRanker.rank()."""
    ranked, _ = MilestoneRanker().rank(query, corpus, filters, limit, now)
    return ranked


def rank_hybrid(
    semantic_results: list[ScoredResult],
    lexical_results: list[LexicalHit],
    options: Optional[CompositeScoreOptions] = None,
    fusion: Optional[RRFFusion] = None,
    now: Optional[datetime] = None,
) -> list[ScoredResult]:
    """Fuse semantic and lexical candidates, then composite re-rank.

    Args:
        semantic_results: Semantic candidates, best first. May be empty.
        lexical_results: Lexical hits, best first. May be empty.
        options: Affinity context (current project, parent session).
        fusion: RRF configuration (defaults k=60, 1.0/0.8).
        now: Reference time for recency.

    Returns:
        Candidates sorted by final_score descending.
    """
    fusion = fusion or RRFFusion()
    merged = fusion.fuse(semantic_results, lexical_results)
    return CompositeScorer().score(merged, options, now)
