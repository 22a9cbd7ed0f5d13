# Copyright 2024-2025 Amiable Development
# SPDX-License-Identifier: Apache-2.0

"""Milestone ranking and fusion.

This module provides:
- Keyword search (field scorer + coverage penalty + recency/quality boosts)
- A staleness-aware cache of the searchable corpus
- Two-stage hybrid ranking (RRF fusion + composite re-ranking)
"""

from milestone_search.retrieval.boosts import (
    BoostModel,
    parse_timestamp,
    quality_multiplier,
    recency_multiplier,
)
from milestone_search.retrieval.composite import (
    CompositeScoreOptions,
    CompositeScorer,
    composite_score,
)
from milestone_search.retrieval.corpus_cache import (
    CorpusCache,
    CorpusSnapshot,
    build_excluded_session_ids,
)
from milestone_search.retrieval.field_scorer import (
    LexicalFieldScorer,
    PreparedQuery,
    score_milestone,
)
from milestone_search.retrieval.filters import (
    SearchFilters,
    SearchScope,
    files_match_directory,
    is_within_scope,
)
from milestone_search.retrieval.fusion import (
    FusedResult,
    RRFFusion,
    collapse_semantic_hits,
    reciprocal_rank_fusion,
)
from milestone_search.retrieval.ranking import (
    MilestoneRanker,
    rank_hybrid,
    rank_milestones,
)
from milestone_search.retrieval.tokenizer import QueryTokens, iter_tokens, tokenize

__all__ = [
    # Keyword path
    "QueryTokens",
    "iter_tokens",
    "tokenize",
    "LexicalFieldScorer",
    "PreparedQuery",
    "score_milestone",
    "BoostModel",
    "parse_timestamp",
    "quality_multiplier",
    "recency_multiplier",
    "MilestoneRanker",
    "rank_milestones",
    # Corpus
    "CorpusCache",
    "CorpusSnapshot",
    "build_excluded_session_ids",
    # Filters
    "SearchFilters",
    "SearchScope",
    "files_match_directory",
    "is_within_scope",
    # Hybrid path
    "RRFFusion",
    "FusedResult",
    "reciprocal_rank_fusion",
    "collapse_semantic_hits",
    "CompositeScorer",
    "CompositeScoreOptions",
    "composite_score",
    "rank_hybrid",
]
