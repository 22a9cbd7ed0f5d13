# Copyright 2024-2025 Amiable Development
# SPDX-License-Identifier: Apache-2.0

"""Per-field keyword scoring for milestones.

Each field contributes ``weight x 10`` when it contains the whole query
and ``weight`` per query token it contains. List fields (facts,
concepts, prompts, modified files) count only their best item, so a
milestone with twenty loosely related facts cannot outrank one with a
single on-point fact.

A milestone that only matches some query tokens is discounted by
``(matched / total) ** 2``. Matched tokens are tracked across all
fields together: "login" in the title and "bug" in a fact still add up
to full coverage.

Formula:
    score = sum(field scores) * coverage ** 2   (coverage only if > 1 token)
"""

from dataclasses import dataclass
from typing import Any, Iterable, Optional

from milestone_search.constants import (
    CONCEPTS_WEIGHT,
    DESCRIPTION_WEIGHT,
    FACTS_WEIGHT,
    FILES_MODIFIED_WEIGHT,
    FULL_QUERY_MULTIPLIER,
    OUTCOME_WEIGHT,
    TITLE_WEIGHT,
    TYPE_WEIGHT,
    USER_PROMPTS_WEIGHT,
)
from milestone_search.retrieval.tokenizer import QueryTokens
from milestone_search.schemas.milestone_types import Milestone


@dataclass(frozen=True)
class PreparedQuery:
    """A query lowered and tokenized once, reused across the corpus.

    Attributes:
        text: Lowercased, stripped query used for whole-query matching.
        tokens: Query tokens in order, repeats kept. A repeated token
            scores once per occurrence and adds to the coverage denominator
            each time.
    """

    text: str
    tokens: tuple[str, ...]

    @classmethod
    def from_query(cls, query: str) -> "PreparedQuery":
        query = (query or "").strip()
        return cls(text=query.lower(), tokens=tuple(QueryTokens(query)))


class LexicalFieldScorer:
    """Scores milestones against a keyword query.

    Example:
        >>> scorer = LexicalFieldScorer()
        >>> query = PreparedQuery.from_query("fix login bug")
        >>> scorer.score(milestone, query)
        24.0

    Attributes:
        scalar_fields: (attribute, weight) pairs for single-text fields.
        list_fields: (attribute, weight) pairs for best-of list fields.
    """

    scalar_fields: tuple[tuple[str, float], ...] = (
        ("title", TITLE_WEIGHT),
        ("description", DESCRIPTION_WEIGHT),
        ("outcome", OUTCOME_WEIGHT),
        ("type", TYPE_WEIGHT),
    )
    list_fields: tuple[tuple[str, float], ...] = (
        ("facts", FACTS_WEIGHT),
        ("concepts", CONCEPTS_WEIGHT),
        ("user_prompts", USER_PROMPTS_WEIGHT),
        ("files_modified", FILES_MODIFIED_WEIGHT),
    )

    def score_field(
        self,
        text: Any,
        query: PreparedQuery,
        weight: float,
        matched: set[str],
    ) -> float:
        """Score one text field, recording matched tokens.

        Args:
            text: Field value. Anything but a non-empty string scores 0.
            query: Prepared query.
            weight: Field weight.
            matched: Set updated with the query tokens found.

        Returns:
            Field score.
        """
        if not text or not isinstance(text, str):
            return 0.0
        lower = text.lower()
        score = 0.0

        if query.text and query.text in lower:
            score += FULL_QUERY_MULTIPLIER * weight
            matched.update(query.tokens)

        for token in query.tokens:
            if token in lower:
                score += weight
                matched.add(token)

        return score

    def score_best_of(
        self,
        items: Optional[Iterable[Any]],
        query: PreparedQuery,
        weight: float,
        matched: set[str],
    ) -> float:
        """Score a list field by its single best item.

        Every item still records its matched tokens.
        """
        if not items or isinstance(items, str):
            return 0.0
        best = 0.0
        for item in items:
            best = max(best, self.score_field(item, query, weight, matched))
        return best

    def score(self, milestone: Milestone, query: PreparedQuery) -> float:
        """Score a milestone against a prepared query.

        Args:
            milestone: Milestone to score.
            query: Prepared query.

        Returns:
            Non-negative score; 0 means no match.
        """
        matched: set[str] = set()
        score = 0.0

        for attribute, weight in self.scalar_fields:
            score += self.score_field(getattr(milestone, attribute, None), query, weight, matched)

        for attribute, weight in self.list_fields:
            score += self.score_best_of(getattr(milestone, attribute, None), query, weight, matched)

        # Penalize partial coverage of multi-token queries
        if len(query.tokens) > 1:
            coverage = len(matched) / len(query.tokens)
            score *= coverage * coverage

        return score


def score_milestone(milestone: Milestone, query: str) -> float:
    """Convenience wrapper: score one milestone against a raw query string."""
    return LexicalFieldScorer().score(milestone, PreparedQuery.from_query(query))
