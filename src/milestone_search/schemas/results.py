# Copyright 2024-2025 Amiable Development
# SPDX-License-Identifier: Apache-2.0

"""Search request and response shapes."""

from dataclasses import asdict, dataclass, field
from typing import Any, Optional

from milestone_search.constants import (
    PROMPT_PREVIEW_COUNT,
    PROMPT_PREVIEW_LENGTH,
)
from milestone_search.schemas.milestone_types import Milestone


@dataclass
class SearchRequest:
    """A milestone search request.

    Attributes:
        query: Free-text query.
        project_path: Restrict to sessions run in this project (cwd).
        directory: Restrict to milestones touching files under this directory.
        scope: Time window ("24h", "3d", "7d", "30d", "all"). None means the
            configured default.
        limit: Maximum results; 0 means no limit.
    """

    query: str
    project_path: Optional[str] = None
    directory: Optional[str] = None
    scope: Optional[str] = None
    limit: int = 0


@dataclass
class MilestoneSearchResult:
    """A ranked milestone, flattened for display."""

    milestone_id: str
    session_id: str
    milestone_index: int
    title: Optional[str]
    type: Optional[str]
    description: Optional[str]
    outcome: Optional[str]
    facts: list[str]
    concepts: list[str]
    start_turn: int
    end_turn: int
    score: float
    phase: int
    timestamp: Optional[str]
    files_modified: list[str]
    user_prompts: list[str]

    @classmethod
    def from_milestone(cls, milestone: Milestone, score: float) -> "MilestoneSearchResult":
        """Build a display result, trimming prompts to short previews."""
        previews = [
            p[:PROMPT_PREVIEW_LENGTH] + "..." if len(p) > PROMPT_PREVIEW_LENGTH else p
            for p in milestone.user_prompts[:PROMPT_PREVIEW_COUNT]
        ]
        return cls(
            milestone_id=milestone.id,
            session_id=milestone.session_id,
            milestone_index=milestone.index,
            title=milestone.title,
            type=milestone.type,
            description=milestone.description,
            outcome=milestone.outcome,
            facts=list(milestone.facts or []),
            concepts=list(milestone.concepts or []),
            start_turn=milestone.start_turn,
            end_turn=milestone.end_turn,
            score=score,
            phase=milestone.phase,
            timestamp=milestone.timestamp,
            files_modified=list(milestone.files_modified),
            user_prompts=previews,
        )


@dataclass
class SearchMetrics:
    """Metrics for a search operation.

    Attributes:
        search_time_ms: Wall time of the search.
        milestones_scanned: Milestones inside the scope window (keyword path).
        vector_candidates: Raw semantic hits (hybrid path).
        lexical_candidates: Raw lexical hits (hybrid path).
        fused_candidates: Candidates after fusion (hybrid path).
        final_results: Results returned.
        degraded: True if a hybrid source failed and the other was used alone.
    """

    search_time_ms: float = 0.0
    milestones_scanned: int = 0
    vector_candidates: int = 0
    lexical_candidates: int = 0
    fused_candidates: int = 0
    final_results: int = 0
    degraded: bool = False


@dataclass
class SearchResponse:
    """Ranked results plus the context they were produced in."""

    results: list[MilestoneSearchResult]
    total: int
    query: str
    scope: str
    metrics: SearchMetrics = field(default_factory=SearchMetrics)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a JSON-compatible dictionary."""
        return asdict(self)
