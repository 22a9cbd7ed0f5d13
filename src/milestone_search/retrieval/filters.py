# Copyright 2024-2025 Amiable Development
# SPDX-License-Identifier: Apache-2.0

"""Scope, project and directory filters for milestone search."""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Iterable, Optional

from milestone_search.retrieval.boosts import TimestampLike, parse_timestamp
from milestone_search.schemas import Milestone, SessionRecord


class SearchScope(str, Enum):
    """Time window a search is restricted to."""

    DAY = "24h"
    THREE_DAYS = "3d"
    WEEK = "7d"
    MONTH = "30d"
    ALL = "all"

    @property
    def window(self) -> Optional[timedelta]:
        """Window length, None for ALL."""
        return SCOPE_WINDOWS[self]

    @classmethod
    def parse(
        cls, value: Optional[str], default: Optional["SearchScope"] = None
    ) -> "SearchScope":
        """Parse a scope name, falling back to ``default`` (ALL if unset)."""
        fallback = default or cls.ALL
        if not value:
            return fallback
        try:
            return cls(value)
        except ValueError:
            return fallback


SCOPE_WINDOWS: dict[SearchScope, Optional[timedelta]] = {
    SearchScope.DAY: timedelta(hours=24),
    SearchScope.THREE_DAYS: timedelta(days=3),
    SearchScope.WEEK: timedelta(days=7),
    SearchScope.MONTH: timedelta(days=30),
    SearchScope.ALL: None,
}


def is_within_scope(
    timestamp: TimestampLike,
    scope: SearchScope,
    now: Optional[datetime] = None,
) -> bool:
    """Check a timestamp falls inside the scope window.

    Outside ALL, a missing or unparseable timestamp is out of scope.
    """
    window = scope.window
    if window is None:
        return True
    parsed = parse_timestamp(timestamp)
    if parsed is None:
        return False
    now = now or datetime.now(timezone.utc)
    return now - parsed <= window


def sessions_in_project(sessions: Iterable[SessionRecord], project_path: str) -> set[str]:
    """Session IDs whose cwd is exactly ``project_path``."""
    return {s.session_id for s in sessions if s.cwd == project_path}


def files_match_directory(
    files: Optional[Iterable[str]],
    directory: str,
    project_path: Optional[str] = None,
) -> bool:
    """Check any file path lies in ``directory``.

    Matches the directory itself or anything under it, given either as
    a project-relative path or, when project_path is set, as an
    absolute path under the project.
    """
    if not files:
        return False

    relative_prefix = directory if directory.endswith("/") else directory + "/"
    absolute_prefix = None
    if project_path:
        root = project_path if project_path.endswith("/") else project_path + "/"
        absolute_prefix = root + relative_prefix

    for path in files:
        if path == directory or path.startswith(relative_prefix):
            return True
        if absolute_prefix and (
            path == absolute_prefix[:-1] or path.startswith(absolute_prefix)
        ):
            return True
    return False


@dataclass(frozen=True)
class SearchFilters:
    """Filters applied to the keyword corpus before scoring.

    Attributes:
        scope: Time window.
        allowed_sessions: If set, only these sessions are kept (project filter).
        directory: If set, only milestones touching this directory are kept.
        project_path: Project root for absolute directory matching.
    """

    scope: SearchScope = SearchScope.ALL
    allowed_sessions: Optional[frozenset[str]] = None
    directory: Optional[str] = None
    project_path: Optional[str] = None

    def matches_location(self, milestone: Milestone) -> bool:
        """Apply the project and directory filters."""
        if self.allowed_sessions is not None and milestone.session_id not in self.allowed_sessions:
            return False
        if self.directory:
            return files_match_directory(
                milestone.files_modified, self.directory, self.project_path
            ) or files_match_directory(milestone.files_read, self.directory, self.project_path)
        return True

    def in_scope(self, milestone: Milestone, now: Optional[datetime] = None) -> bool:
        """Apply the time window."""
        return is_within_scope(milestone.timestamp, self.scope, now)
