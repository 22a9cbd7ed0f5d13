# Copyright 2024-2025 Amiable Development
# SPDX-License-Identifier: Apache-2.0

"""Composite re-ranking of fused candidates.

Multiplies each candidate's fused score by contextual signals:
1. Type preference: milestone x1.5, knowledge x1.4, session x1.0
2. Recency: same tiers as keyword search
3. Quality: x1.3 for phase 2 milestones
4. Affinity: x1.2 same project, x1.4 same parent session (both may apply)

Then drops a session-level candidate whenever one of its milestones
also matched: the specific hit always supersedes its generic parent.
"""

from dataclasses import dataclass, replace
from datetime import datetime
from typing import Optional

from milestone_search.constants import (
    KNOWLEDGE_TYPE_BOOST,
    MILESTONE_TYPE_BOOST,
    PARENT_SESSION_BOOST,
    SAME_PROJECT_BOOST,
)
from milestone_search.retrieval.boosts import quality_multiplier, recency_multiplier
from milestone_search.schemas import CandidateKind, ScoredResult

TYPE_BOOSTS: dict[CandidateKind, float] = {
    CandidateKind.MILESTONE: MILESTONE_TYPE_BOOST,
    CandidateKind.KNOWLEDGE: KNOWLEDGE_TYPE_BOOST,
}


@dataclass(frozen=True)
class CompositeScoreOptions:
    """Caller context for affinity boosts.

    Attributes:
        current_project: Project the caller is working in.
        parent_session_id: Parent of the caller's session.
    """

    current_project: Optional[str] = None
    parent_session_id: Optional[str] = None


class CompositeScorer:
    """Multi-signal re-ranker for fused candidates."""

    def multiplier(
        self,
        result: ScoredResult,
        options: CompositeScoreOptions,
        now: Optional[datetime] = None,
    ) -> float:
        """Combined multiplier for one candidate."""
        multiplier = TYPE_BOOSTS.get(result.kind, 1.0)
        multiplier *= recency_multiplier(result.timestamp, now)
        multiplier *= quality_multiplier(result.phase)

        if options.current_project and result.project_path == options.current_project:
            multiplier *= SAME_PROJECT_BOOST
        if options.parent_session_id and result.session_id == options.parent_session_id:
            multiplier *= PARENT_SESSION_BOOST

        return multiplier

    def score(
        self,
        results: list[ScoredResult],
        options: Optional[CompositeScoreOptions] = None,
        now: Optional[datetime] = None,
    ) -> list[ScoredResult]:
        """Re-rank candidates.

        Args:
            results: Fused candidates.
            options: Affinity context.
            now: Reference time for recency (defaults to now).

        Returns:
            New candidate records with final_score set, session-level
            duplicates removed, sorted by final_score descending. Ties
            keep their input order.
        """
        options = options or CompositeScoreOptions()

        scored = [
            replace(r, final_score=r.score * self.multiplier(r, options, now))
            for r in results
        ]

        milestone_sessions = {
            r.session_id for r in scored if r.kind == CandidateKind.MILESTONE
        }
        deduped = [
            r
            for r in scored
            if not (r.kind == CandidateKind.SESSION and r.session_id in milestone_sessions)
        ]

        deduped.sort(key=lambda r: r.final_score, reverse=True)
        return deduped


def composite_score(
    results: list[ScoredResult],
    options: Optional[CompositeScoreOptions] = None,
    now: Optional[datetime] = None,
) -> list[ScoredResult]:
    """Functional form of CompositeScorer.score()."""
    return CompositeScorer().score(results, options, now)
