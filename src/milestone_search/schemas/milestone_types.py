# Copyright 2024-2025 Amiable Development
# SPDX-License-Identifier: Apache-2.0

"""
Milestone record schemas.

Defines Pydantic models for the records this package reads from the
external milestone store and session registry. Field names are
snake_case; the store's camelCase JSON keys are accepted as aliases.
"""

from enum import Enum
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


class MilestoneType(str, Enum):
    """Classification assigned to a milestone during extraction."""

    DISCOVERY = "discovery"
    IMPLEMENTATION = "implementation"
    BUGFIX = "bugfix"
    REFACTOR = "refactor"
    DECISION = "decision"
    CONFIGURATION = "configuration"


class Milestone(BaseModel):
    """A summarized unit of session activity.

    Produced by the extraction pipeline; this package only reads it.

    - id: "<session_id>:<index>"
    - phase: 1 for heuristic extraction, 2 once quality-enriched
    - title/description/outcome/type: nullable summary fields
    - facts/concepts: nullable lists filled by enrichment
    - user_prompts/files_modified/files_read: raw activity lists
    - start_turn/end_turn: turn range within the session
    - start_timestamp/end_timestamp: ISO timestamps, kept as given so an
      unparseable value degrades to "no recency boost" instead of failing
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str = Field(..., description="Milestone ID (<session_id>:<index>)")
    session_id: str = Field(..., description="Owning session")
    index: int = Field(default=0, ge=0, description="Position within the session")
    phase: Literal[1, 2] = Field(default=1, description="1 = heuristic, 2 = enriched")
    title: Optional[str] = None
    description: Optional[str] = None
    outcome: Optional[str] = None
    type: Optional[str] = Field(default=None, description="MilestoneType value")
    facts: Optional[list[str]] = None
    concepts: Optional[list[str]] = None
    user_prompts: list[str] = Field(default_factory=list)
    files_modified: list[str] = Field(default_factory=list)
    files_read: list[str] = Field(default_factory=list)
    start_turn: int = Field(default=0, ge=0)
    end_turn: int = Field(default=0, ge=0)
    start_timestamp: Optional[str] = None
    end_timestamp: Optional[str] = None
    subagent_count: int = Field(default=0, ge=0)

    @model_validator(mode="after")
    def validate_turn_range(self) -> "Milestone":
        """Validate end_turn is not before start_turn."""
        if self.end_turn < self.start_turn:
            raise ValueError("end_turn must be >= start_turn")
        return self

    @property
    def timestamp(self) -> Optional[str]:
        """Timestamp used for recency: end of the milestone, else its start."""
        return self.end_timestamp or self.start_timestamp


class SessionIndexEntry(BaseModel):
    """Per-session bookkeeping kept in the milestone index."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    phase: Literal[1, 2] = 1
    milestone_count: int = Field(default=0, ge=0)
    last_updated: float = 0


class MilestoneIndex(BaseModel):
    """Index of all sessions that have milestones.

    ``last_updated`` together with the session count forms the corpus
    cache fingerprint.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    last_updated: float = 0
    sessions: dict[str, SessionIndexEntry] = Field(default_factory=dict)

    @property
    def fingerprint(self) -> str:
        """Cheap staleness fingerprint: last update plus session count."""
        return f"{self.last_updated}:{len(self.sessions)}"


class SessionRecord(BaseModel):
    """A session known to the session registry."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    session_id: str
    file_path: str = ""
    cwd: Optional[str] = None
