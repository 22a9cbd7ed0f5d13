# Copyright 2024-2025 Amiable Development
# SPDX-License-Identifier: Apache-2.0

"""Recency and quality boosts.

Turns a raw keyword score into a display score. The recency curve is
deliberately steep (x2.0 inside the first hour) because the common
question is "what did I just do". Shared with the composite scorer so
both search paths use the same tiers.
"""

import math
from datetime import datetime, timezone
from typing import Optional, Union

from milestone_search.constants import PHASE2_BOOST, RECENCY_TIERS
from milestone_search.schemas.milestone_types import Milestone

TimestampLike = Union[str, datetime, None]


def parse_timestamp(value: TimestampLike) -> Optional[datetime]:
    """Parse an ISO timestamp into an aware datetime.

    Naive values are treated as UTC. Returns None for missing or
    unparseable input.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def age_hours(value: TimestampLike, now: Optional[datetime] = None) -> float:
    """Age of a timestamp in hours; infinity when it cannot be parsed."""
    parsed = parse_timestamp(value)
    if parsed is None:
        return math.inf
    now = now or datetime.now(timezone.utc)
    return (now - parsed).total_seconds() / 3600


def recency_multiplier(value: TimestampLike, now: Optional[datetime] = None) -> float:
    """Recency boost for a timestamp.

    Args:
        value: ISO timestamp or datetime.
        now: Reference time (defaults to current UTC time).

    Returns:
        2.0 under 1h, 1.5 under 6h, 1.3 under 24h, 1.1 under 72h, else 1.0.
    """
    age = age_hours(value, now)
    for max_age, multiplier in RECENCY_TIERS:
        if age < max_age:
            return multiplier
    return 1.0


def quality_multiplier(phase: Optional[int]) -> float:
    """Boost for enrichment-reviewed (phase 2) milestones."""
    return PHASE2_BOOST if phase == 2 else 1.0


class BoostModel:
    """Applies phase and recency boosts to raw keyword scores.

    Factors multiply, so the largest combined boost is 1.3 x 2.0 = 2.6.
    """

    def multiplier(self, milestone: Milestone, now: Optional[datetime] = None) -> float:
        """Combined boost for a milestone."""
        multiplier = quality_multiplier(milestone.phase)
        multiplier *= recency_multiplier(milestone.timestamp, now)
        return multiplier

    def apply(
        self,
        score: float,
        milestone: Milestone,
        now: Optional[datetime] = None,
    ) -> float:
        """Return the boosted display score."""
        return score * self.multiplier(milestone, now)
