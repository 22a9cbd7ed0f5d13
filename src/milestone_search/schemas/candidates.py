# Copyright 2024-2025 Amiable Development
# SPDX-License-Identifier: Apache-2.0

"""Per-query candidate records for the hybrid path.

Each external source gets its own closed hit type. Both are converted
into ScoredResult before fusion, so everything downstream of the
boundary sees a single shape. None of these are persisted.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class CandidateKind(str, Enum):
    """Entity kind of a search candidate.

    - MILESTONE: a specific unit of work
    - SESSION: the generic parent session
    - KNOWLEDGE: a curated knowledge document or part
    """

    MILESTONE = "milestone"
    SESSION = "session"
    KNOWLEDGE = "knowledge"


@dataclass(frozen=True)
class SemanticHit:
    """A hit from the semantic vector store.

    Attributes:
        kind: What the embedded vector belongs to.
        session_id: Owning session.
        score: Cosine similarity in [0, 1].
        milestone_index: Milestone position, for milestone hits.
        knowledge_id: Knowledge document ID, for knowledge hits.
        part_id: Knowledge part ID, for knowledge part hits.
        content_type: What the vector represents (title, fact, prompt...).
        text: Embedded text (truncated).
        timestamp: ISO timestamp for recency.
        project_path: Project of the owning session.
        phase: Milestone phase, when known.
    """

    kind: CandidateKind
    session_id: str
    score: float
    milestone_index: Optional[int] = None
    knowledge_id: Optional[str] = None
    part_id: Optional[str] = None
    content_type: Optional[str] = None
    text: Optional[str] = None
    timestamp: Optional[str] = None
    project_path: Optional[str] = None
    phase: Optional[int] = None

    @property
    def candidate_id(self) -> str:
        """ID shared with the lexical index for the same entity."""
        if self.kind == CandidateKind.MILESTONE and self.milestone_index is not None:
            return f"{self.session_id}:{self.milestone_index}"
        if self.kind == CandidateKind.KNOWLEDGE:
            return self.part_id or self.knowledge_id or self.session_id
        return self.session_id


@dataclass(frozen=True)
class LexicalHit:
    """A hit from the lexical full-text index."""

    id: str
    kind: CandidateKind
    score: float
    session_id: str = ""
    timestamp: Optional[str] = None
    knowledge_id: Optional[str] = None
    part_id: Optional[str] = None
    project_path: Optional[str] = None
    phase: Optional[int] = None

    @property
    def owner_session_id(self) -> str:
        """Session ID, falling back to the ID prefix before the first ':'."""
        return self.session_id or self.id.split(":", 1)[0]


@dataclass
class ScoredResult:
    """Canonical ranking unit for fusion and composite scoring.

    Attributes:
        kind: Entity kind.
        id: Unique within its kind.
        session_id: Owning session.
        score: Raw source score, replaced by the RRF score after fusion.
        final_score: Score after composite re-ranking (0 until then).
        timestamp: ISO timestamp for recency, "" when unknown.
        phase: Milestone phase, when known.
        project_path: Project of the owning session.
        knowledge_id: Knowledge document ID, for knowledge results.
        part_id: Knowledge part ID, for knowledge part results.
    """

    kind: CandidateKind
    id: str
    session_id: str
    score: float
    final_score: float = 0.0
    timestamp: str = ""
    phase: Optional[int] = None
    project_path: Optional[str] = None
    knowledge_id: Optional[str] = None
    part_id: Optional[str] = None

    @classmethod
    def from_semantic(cls, hit: SemanticHit) -> "ScoredResult":
        """Convert a semantic hit at the source boundary."""
        return cls(
            kind=hit.kind,
            id=hit.candidate_id,
            session_id=hit.session_id,
            score=hit.score,
            final_score=hit.score,
            timestamp=hit.timestamp or "",
            phase=hit.phase,
            project_path=hit.project_path,
            knowledge_id=hit.knowledge_id,
            part_id=hit.part_id,
        )

    @classmethod
    def from_lexical(cls, hit: LexicalHit, score: float) -> "ScoredResult":
        """Synthesize a minimal record from a lexical hit with the given score."""
        return cls(
            kind=hit.kind,
            id=hit.id,
            session_id=hit.owner_session_id,
            score=score,
            final_score=0.0,
            timestamp=hit.timestamp or "",
            phase=hit.phase,
            project_path=hit.project_path,
            knowledge_id=hit.knowledge_id,
            part_id=hit.part_id,
        )
