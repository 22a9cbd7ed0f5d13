# Copyright 2024-2025 Amiable Development
# SPDX-License-Identifier: Apache-2.0

"""
Search settings parsing.

This module provides:
- SearchSettings dataclass for tunable search behaviour
- load_settings() to parse a settings.yaml file
- is_project_excluded() to test a project path against excluded paths
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Union

import yaml

from milestone_search.constants import (
    DEFAULT_CACHE_TTL_SECONDS,
    DEFAULT_HYBRID_CANDIDATE_LIMIT,
    DEFAULT_LEXICAL_WEIGHT,
    DEFAULT_RRF_K,
    DEFAULT_SEMANTIC_WEIGHT,
)
from milestone_search.errors import SettingsError

logger = logging.getLogger(__name__)

SETTINGS_FILENAME = "settings.yaml"

# The milestone data directory itself is always excluded
DEFAULT_EXCLUDED_PATHS = [
    "~/.milestone",
]

VALID_SCOPES = ("24h", "3d", "7d", "30d", "all")

# Hard limits; config files cannot go past these
MAX_CACHE_TTL_SECONDS = 3600.0
MAX_HYBRID_CANDIDATE_LIMIT = 5000


@dataclass
class SearchSettings:
    """Settings for milestone search.

    Attributes:
        excluded_paths: Project paths whose sessions are hidden from search.
            A trailing ``*`` makes the entry a prefix pattern.
        cache_ttl_seconds: Maximum age of the corpus cache.
        rrf_k: Reciprocal Rank Fusion constant.
        semantic_weight: RRF weight of the semantic list.
        lexical_weight: RRF weight of the lexical list.
        hybrid_candidate_limit: Candidates fetched per source when the
            request has no limit.
        default_scope: Scope used when a request does not name one.
    """

    excluded_paths: List[str] = field(
        default_factory=lambda: [os.path.expanduser(p) for p in DEFAULT_EXCLUDED_PATHS]
    )
    cache_ttl_seconds: float = DEFAULT_CACHE_TTL_SECONDS
    rrf_k: int = DEFAULT_RRF_K
    semantic_weight: float = DEFAULT_SEMANTIC_WEIGHT
    lexical_weight: float = DEFAULT_LEXICAL_WEIGHT
    hybrid_candidate_limit: int = DEFAULT_HYBRID_CANDIDATE_LIMIT
    default_scope: str = "all"

    def __post_init__(self) -> None:
        if not 0 < self.cache_ttl_seconds <= MAX_CACHE_TTL_SECONDS:
            raise SettingsError(
                f"cache_ttl_seconds must be in (0, {MAX_CACHE_TTL_SECONDS}]"
            )
        if self.rrf_k < 0:
            raise SettingsError("rrf_k must be non-negative")
        if self.semantic_weight < 0 or self.lexical_weight < 0:
            raise SettingsError("fusion weights must be non-negative")
        if not 0 < self.hybrid_candidate_limit <= MAX_HYBRID_CANDIDATE_LIMIT:
            raise SettingsError(
                f"hybrid_candidate_limit must be in (0, {MAX_HYBRID_CANDIDATE_LIMIT}]"
            )
        if self.default_scope not in VALID_SCOPES:
            raise SettingsError(f"default_scope must be one of {VALID_SCOPES}")

    def is_excluded(self, project_path_or_cwd: str) -> bool:
        """Check a cwd or session file path against the excluded paths."""
        return is_project_excluded(project_path_or_cwd, self.excluded_paths)


def load_settings(
    data_dir: Optional[Union[str, Path]] = None,
    path: Optional[Union[str, Path]] = None,
) -> SearchSettings:
    """Load search settings from YAML.

    Args:
        data_dir: Milestone data directory; ``settings.yaml`` inside it is read.
        path: Explicit settings file. Takes precedence over data_dir.

    Returns:
        SearchSettings with values from the file, or defaults when the file
        is missing or unreadable.

    Raises:
        SettingsError: If the file parses but holds out-of-range values.
    """
    if path is not None:
        settings_path = Path(path)
    elif data_dir is not None:
        settings_path = Path(data_dir) / SETTINGS_FILENAME
    else:
        return SearchSettings()

    if not settings_path.exists():
        return SearchSettings()

    try:
        with open(settings_path, "r") as f:
            data = yaml.safe_load(f) or {}
    except (yaml.YAMLError, IOError) as e:
        logger.warning(f"Ignoring unreadable settings file {settings_path}: {e}")
        return SearchSettings()

    if not isinstance(data, dict):
        logger.warning(f"Ignoring settings file {settings_path}: expected a mapping")
        return SearchSettings()

    search = data.get("search", {}) or {}

    # The default exclusion is built in; user entries extend it
    excluded = [os.path.expanduser(p) for p in DEFAULT_EXCLUDED_PATHS]
    for entry in data.get("excluded_paths", []) or []:
        expanded = os.path.expanduser(str(entry))
        if expanded not in excluded:
            excluded.append(expanded)

    return SearchSettings(
        excluded_paths=excluded,
        cache_ttl_seconds=float(search.get("cache_ttl_seconds", DEFAULT_CACHE_TTL_SECONDS)),
        rrf_k=int(search.get("rrf_k", DEFAULT_RRF_K)),
        semantic_weight=float(search.get("semantic_weight", DEFAULT_SEMANTIC_WEIGHT)),
        lexical_weight=float(search.get("lexical_weight", DEFAULT_LEXICAL_WEIGHT)),
        hybrid_candidate_limit=int(
            search.get("hybrid_candidate_limit", DEFAULT_HYBRID_CANDIDATE_LIMIT)
        ),
        default_scope=str(search.get("default_scope", "all")),
    )


def is_project_excluded(project_path_or_cwd: str, excluded_paths: List[str]) -> bool:
    """Determine if a project path or session file path is excluded.

    Session files live under a directory named after the project with
    slashes replaced by dashes, so each pattern is also checked in that
    "key" form.

    Args:
        project_path_or_cwd: A project cwd or a session file path.
        excluded_paths: Exact paths, or prefixes ending in ``*``.

    Returns:
        True if any pattern matches.
    """
    if not project_path_or_cwd or not excluded_paths:
        return False

    for pattern in excluded_paths:
        if not pattern:
            continue

        if pattern.endswith("*"):
            prefix = pattern[:-1]
            if project_path_or_cwd.startswith(prefix):
                return True
            if prefix.replace("/", "-") in project_path_or_cwd:
                return True
            continue

        if project_path_or_cwd == pattern:
            return True

        # Key form must end at a path boundary: "-home-dev" must not
        # match a path containing "-home-dev-other"
        pattern_key = pattern.replace("/", "-")
        index = project_path_or_cwd.find(pattern_key)
        if index != -1:
            after = project_path_or_cwd[index + len(pattern_key):index + len(pattern_key) + 1]
            if after in ("", "/"):
                return True

    return False
