# Copyright 2024-2025 Amiable Development
# SPDX-License-Identifier: Apache-2.0

"""Exceptions raised at the edges of milestone search.

Scoring itself never raises on bad data; these only surface where a
caller asked for something that cannot be answered at all.
"""


class MilestoneSearchError(Exception):
    """Base exception for milestone search."""

    pass


class MissingQueryError(MilestoneSearchError):
    """Raised when a search request has an empty or blank query."""

    code = "MISSING_QUERY"


class VectorsNotReadyError(MilestoneSearchError):
    """Raised when hybrid search is requested before vectors are indexed."""

    code = "VECTORS_NOT_READY"

    def __init__(self, total_vectors: int, is_initialized: bool):
        self.total_vectors = total_vectors
        self.is_initialized = is_initialized
        super().__init__(
            f"Vector store has {total_vectors} vectors "
            f"(initialized: {is_initialized}). Run milestone pipeline first."
        )


class SearchUnavailableError(MilestoneSearchError):
    """Raised when neither hybrid source returned any data at all.

    Distinct from a search that ran and matched nothing.
    """

    code = "SEARCH_UNAVAILABLE"


class SettingsError(MilestoneSearchError):
    """Raised when settings values are outside their allowed bounds."""

    code = "INVALID_SETTINGS"
