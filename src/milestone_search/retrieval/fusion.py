# Copyright 2024-2025 Amiable Development
# SPDX-License-Identifier: Apache-2.0

"""Reciprocal Rank Fusion (RRF) of semantic and lexical candidates.

Weighted RRF Formula:
    score(d) = w_sem / (k + rank_sem(d)) + w_lex / (k + rank_lex(d))

Where:
- k is a constant (default 60)
- rank_x(d) is the 1-indexed position of d in list x; the term is
  omitted when d is not in that list
- w_sem defaults to 1.0 and w_lex to 0.8 (the lexical index is the
  noisier signal)

Only ranks are used, never raw scores, so cosine similarities and BM25
scores never need to be calibrated against each other. A candidate in
only one list still surfaces, just with a smaller score.

Reference: Cormack, G. V., Clarke, C. L., & Buettcher, S. (2009).
"Reciprocal Rank Fusion Outperforms Condorcet and Individual Rank
Learning Methods."
"""

from dataclasses import dataclass, replace

from milestone_search.constants import (
    DEFAULT_LEXICAL_WEIGHT,
    DEFAULT_RRF_K,
    DEFAULT_SEMANTIC_WEIGHT,
)
from milestone_search.schemas import LexicalHit, ScoredResult, SemanticHit

SEMANTIC = "semantic"
LEXICAL = "lexical"


@dataclass
class FusedResult:
    """A fused candidate with per-source provenance.

    Attributes:
        result: The fused candidate (score holds the RRF score).
        source_ranks: 1-indexed rank in each source that returned it.
        source_scores: Original score from each source.
    """

    result: ScoredResult
    source_ranks: dict[str, int]
    source_scores: dict[str, float]


def _rank_map(ids: list[str]) -> dict[str, int]:
    """Map ID to its 1-indexed rank; the last occurrence wins."""
    ranks: dict[str, int] = {}
    for rank, item_id in enumerate(ids, start=1):
        ranks[item_id] = rank
    return ranks


class RRFFusion:
    """Weighted Reciprocal Rank Fusion of two ranked candidate lists.

    Example:
        >>> fusion = RRFFusion()
        >>> merged = fusion.fuse(semantic_results, lexical_hits)
        >>> for result in merged:
        ...     print(f"{result.id}: {result.score:.4f}")

    Attributes:
        k: RRF constant. Higher values flatten the gap between top ranks.
        semantic_weight: Weight of the semantic list.
        lexical_weight: Weight of the lexical list.
    """

    def __init__(
        self,
        k: int = DEFAULT_RRF_K,
        semantic_weight: float = DEFAULT_SEMANTIC_WEIGHT,
        lexical_weight: float = DEFAULT_LEXICAL_WEIGHT,
    ):
        """Initialize RRF fusion.

        Args:
            k: RRF constant.
            semantic_weight: Weight of the semantic list.
            lexical_weight: Weight of the lexical list.
        """
        if k < 0:
            raise ValueError("k must be non-negative")
        self.k = k
        self.semantic_weight = semantic_weight
        self.lexical_weight = lexical_weight

    def fuse_with_details(
        self,
        semantic: list[ScoredResult],
        lexical: list[LexicalHit],
    ) -> list[FusedResult]:
        """Fuse both lists, keeping per-source ranks and scores.

        Args:
            semantic: Semantic candidates, best first.
            lexical: Lexical hits, best first.

        Returns:
            FusedResult list sorted by RRF score descending, ties by ID.
        """
        semantic_ranks = _rank_map([r.id for r in semantic])
        lexical_ranks = _rank_map([h.id for h in lexical])

        semantic_by_id: dict[str, ScoredResult] = {}
        for result in semantic:
            semantic_by_id[result.id] = result
        lexical_by_id: dict[str, LexicalHit] = {}
        for hit in lexical:
            lexical_by_id[hit.id] = hit

        fused: list[FusedResult] = []
        for item_id in semantic_ranks.keys() | lexical_ranks.keys():
            ranks: dict[str, int] = {}
            scores: dict[str, float] = {}
            rrf_score = 0.0

            if item_id in semantic_ranks:
                ranks[SEMANTIC] = semantic_ranks[item_id]
                scores[SEMANTIC] = semantic_by_id[item_id].score
                rrf_score += self.semantic_weight / (self.k + ranks[SEMANTIC])

            if item_id in lexical_ranks:
                ranks[LEXICAL] = lexical_ranks[item_id]
                scores[LEXICAL] = lexical_by_id[item_id].score
                rrf_score += self.lexical_weight / (self.k + ranks[LEXICAL])

            # Semantic records carry richer attributes; prefer them
            if item_id in semantic_by_id:
                result = replace(semantic_by_id[item_id], score=rrf_score, final_score=0.0)
            else:
                result = ScoredResult.from_lexical(lexical_by_id[item_id], rrf_score)

            fused.append(FusedResult(result=result, source_ranks=ranks, source_scores=scores))

        # Explicit ID tie-break keeps output independent of set iteration order
        fused.sort(key=lambda f: (-f.result.score, f.result.id))
        return fused

    def fuse(
        self,
        semantic: list[ScoredResult],
        lexical: list[LexicalHit],
    ) -> list[ScoredResult]:
        """Fuse both lists into one ranked candidate list.

        Args:
            semantic: Semantic candidates, best first.
            lexical: Lexical hits, best first.

        Returns:
            Candidates with score set to the RRF score and final_score 0,
            sorted by score descending.
        """
        return [f.result for f in self.fuse_with_details(semantic, lexical)]


def reciprocal_rank_fusion(
    semantic: list[ScoredResult],
    lexical: list[LexicalHit],
    k: int = DEFAULT_RRF_K,
    semantic_weight: float = DEFAULT_SEMANTIC_WEIGHT,
    lexical_weight: float = DEFAULT_LEXICAL_WEIGHT,
) -> list[ScoredResult]:
    """Functional form of RRFFusion.fuse()."""
    return RRFFusion(k, semantic_weight, lexical_weight).fuse(semantic, lexical)


def collapse_semantic_hits(hits: list[SemanticHit]) -> list[ScoredResult]:
    """Convert semantic hits to candidates, one per candidate ID.

    Several vectors (title, facts, prompts) can point at the same
    milestone; the best-scoring one represents it, at the position the
    ID was first seen.
    """
    best: dict[str, ScoredResult] = {}
    for hit in hits:
        candidate = ScoredResult.from_semantic(hit)
        existing = best.get(candidate.id)
        if existing is None or candidate.score > existing.score:
            best[candidate.id] = candidate
    return list(best.values())
