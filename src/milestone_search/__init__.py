"""Milestone Search - ranking and fusion for session milestone retrieval.

Finds the milestones (summarized units of work from AI pair-programming
sessions) that answer questions like "when did I fix X" or "which session
touched module Y".

Usage:
    # Keyword search over a local milestone store
    milestone-search --data-dir ~/.lm-assist/milestones search "fix login bug"

    # Most recent enriched milestones
    milestone-search --data-dir ~/.lm-assist/milestones recent
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("milestone-search")
except PackageNotFoundError:
    # Package not installed (running from a source checkout)
    __version__ = "0.0.0.dev0"

__all__ = [
    "__version__",
]
