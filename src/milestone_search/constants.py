# Copyright 2024-2025 Amiable Development
# SPDX-License-Identifier: Apache-2.0

"""Shared scoring table for milestone search.

Both the synchronous keyword path and the hybrid (semantic + lexical)
path read their weights and multipliers from here, so the two call
sites rank with the same recency curve and quality boost.
"""

# =============================================================================
# Lexical field weights
# =============================================================================
# Per-field weight applied to token hits (x1) and whole-query hits (x10).
# List fields are scored best-of: only their strongest item counts.

TITLE_WEIGHT = 8.0
DESCRIPTION_WEIGHT = 4.0
OUTCOME_WEIGHT = 3.0
TYPE_WEIGHT = 2.0
FACTS_WEIGHT = 3.0
CONCEPTS_WEIGHT = 2.0
USER_PROMPTS_WEIGHT = 1.0
FILES_MODIFIED_WEIGHT = 1.0

# Multiplier on the field weight when the field contains the full query
FULL_QUERY_MULTIPLIER = 10.0

# Tokens of this length or shorter are dropped by the tokenizer
MIN_TOKEN_LENGTH = 2

# =============================================================================
# Recency tiers
# =============================================================================
# (max age in hours, multiplier). First tier whose bound exceeds the age
# wins; anything older than the last bound gets no boost.

RECENCY_TIERS: tuple[tuple[float, float], ...] = (
    (1.0, 2.0),
    (6.0, 1.5),
    (24.0, 1.3),
    (72.0, 1.1),
)

# =============================================================================
# Quality, type and affinity boosts
# =============================================================================

PHASE2_BOOST = 1.3

MILESTONE_TYPE_BOOST = 1.5
KNOWLEDGE_TYPE_BOOST = 1.4

SAME_PROJECT_BOOST = 1.2
PARENT_SESSION_BOOST = 1.4

# =============================================================================
# Reciprocal Rank Fusion
# =============================================================================

DEFAULT_RRF_K = 60
DEFAULT_SEMANTIC_WEIGHT = 1.0
# Lexical index is the noisier fallback signal
DEFAULT_LEXICAL_WEIGHT = 0.8

# =============================================================================
# Corpus cache
# =============================================================================

DEFAULT_CACHE_TTL_SECONDS = 30.0

# =============================================================================
# Result shaping
# =============================================================================

PROMPT_PREVIEW_LENGTH = 150
PROMPT_PREVIEW_COUNT = 3

# Candidates requested from each hybrid source when no limit is given
DEFAULT_HYBRID_CANDIDATE_LIMIT = 150
HYBRID_OVERFETCH_FACTOR = 3

RECENT_PER_SESSION_CAP = 5
RECENT_LIMIT = 50
RECENT_DIRECTORY_LIMIT = 200
