# Copyright 2024-2025 Amiable Development
# SPDX-License-Identifier: Apache-2.0

"""Local JSON-file implementations of the store and registry protocols.

Reads the on-disk layout written by the extraction pipeline:

    <data_dir>/index.json         {"lastUpdated": ..., "sessions": {...}}
    <data_dir>/<session_id>.json  [milestone, ...] or {"milestones": [...]}

Suitable for the CLI, development and tests. Files are read, never
written.
"""

import json
import logging
import threading
from pathlib import Path
from typing import Any, Iterable, List, Optional, Union

from pydantic import ValidationError

from milestone_search.schemas import Milestone, MilestoneIndex, SessionRecord

logger = logging.getLogger(__name__)

INDEX_FILENAME = "index.json"


def _mtime_ns(path: Optional[Path]) -> Optional[int]:
    if path is None:
        return None
    try:
        return path.stat().st_mtime_ns
    except FileNotFoundError:
        return None


class JsonMilestoneStore:
    """Read-only milestone store over a directory of JSON files.

    Per-session milestone lists are cached and reloaded when the
    index reports a newer update time for that session or the session
    file itself changes on disk.

    Attributes:
        data_dir: Directory holding index.json and per-session files.
    """

    def __init__(self, data_dir: Union[str, Path]):
        self.data_dir = Path(data_dir)
        self._cache: dict[str, tuple[tuple[float, Optional[int]], List[Milestone]]] = {}
        self._index: Optional[MilestoneIndex] = None
        self._lock = threading.Lock()

    def get_index(self) -> MilestoneIndex:
        """Read index.json; a missing or unreadable index is empty."""
        data = self._read_json(self.data_dir / INDEX_FILENAME)
        if not isinstance(data, dict):
            return MilestoneIndex()
        try:
            index = MilestoneIndex.model_validate(data)
        except ValidationError as e:
            logger.warning(f"Invalid milestone index in {self.data_dir}: {e}")
            return MilestoneIndex()
        self._index = index
        return index

    def get_milestones(self, session_id: str) -> List[Milestone]:
        """Return a session's milestones; malformed records are skipped."""
        # The file mtime catches rewrites the last index read has not seen yet
        index = self._index or self.get_index()
        entry = index.sessions.get(session_id)
        path = self._session_path(session_id)
        version = (entry.last_updated if entry is not None else 0, _mtime_ns(path))

        with self._lock:
            cached = self._cache.get(session_id)
            if cached is not None and cached[0] == version:
                return list(cached[1])

        milestones = self._load_session(session_id, path)

        with self._lock:
            self._cache[session_id] = (version, milestones)
        return list(milestones)

    def get_milestone_by_id(self, milestone_id: str) -> Optional[Milestone]:
        """Find a milestone by "<session_id>:<index>"."""
        session_id, sep, _ = milestone_id.rpartition(":")
        if not sep:
            return None
        for milestone in self.get_milestones(session_id):
            if milestone.id == milestone_id:
                return milestone
        return None

    def _session_path(self, session_id: str) -> Optional[Path]:
        # Session IDs come from the index; refuse anything path-like
        if not session_id or "/" in session_id or "\\" in session_id or session_id.startswith("."):
            return None
        return self.data_dir / f"{session_id}.json"

    def _load_session(self, session_id: str, path: Optional[Path]) -> List[Milestone]:
        if path is None:
            return []

        data = self._read_json(path)
        if isinstance(data, dict):
            data = data.get("milestones", [])
        if not isinstance(data, list):
            return []

        milestones: List[Milestone] = []
        for record in data:
            try:
                milestones.append(Milestone.model_validate(record))
            except ValidationError as e:
                logger.warning(f"Skipping malformed milestone in session {session_id}: {e}")
        return milestones

    def _read_json(self, path: Path) -> Any:
        if not path.exists():
            return None
        try:
            with open(path, "r", encoding="utf-8") as f:
                return json.load(f)
        except (json.JSONDecodeError, OSError) as e:
            logger.warning(f"Could not read {path}: {e}")
            return None


class StaticSessionRegistry:
    """Session registry backed by a fixed list of sessions."""

    def __init__(self, sessions: Optional[Iterable[SessionRecord]] = None):
        self._sessions: List[SessionRecord] = list(sessions or [])

    def list_sessions(self) -> List[SessionRecord]:
        return list(self._sessions)

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "StaticSessionRegistry":
        """Load sessions from a JSON list of {sessionId, filePath, cwd}.

        Raises:
            FileNotFoundError: If the file does not exist.
            ValueError: If the file is not a JSON list of session records.
        """
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        if not isinstance(data, list):
            raise ValueError(f"{path} must contain a JSON list of sessions")
        return cls(SessionRecord.model_validate(item) for item in data)
