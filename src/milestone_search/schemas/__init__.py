# Copyright 2024-2025 Amiable Development
# SPDX-License-Identifier: Apache-2.0

"""Record and result schemas for milestone search."""

from milestone_search.schemas.candidates import (
    CandidateKind,
    LexicalHit,
    ScoredResult,
    SemanticHit,
)
from milestone_search.schemas.milestone_types import (
    Milestone,
    MilestoneIndex,
    MilestoneType,
    SessionIndexEntry,
    SessionRecord,
)
from milestone_search.schemas.results import (
    MilestoneSearchResult,
    SearchMetrics,
    SearchRequest,
    SearchResponse,
)

__all__ = [
    "CandidateKind",
    "LexicalHit",
    "Milestone",
    "MilestoneIndex",
    "MilestoneSearchResult",
    "MilestoneType",
    "ScoredResult",
    "SearchMetrics",
    "SearchRequest",
    "SearchResponse",
    "SemanticHit",
    "SessionIndexEntry",
    "SessionRecord",
]
