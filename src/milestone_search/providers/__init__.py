# Copyright 2024-2025 Amiable Development
# SPDX-License-Identifier: Apache-2.0

"""Local adapters for the milestone store and session registry."""

from milestone_search.providers.local import JsonMilestoneStore, StaticSessionRegistry

__all__ = [
    "JsonMilestoneStore",
    "StaticSessionRegistry",
]
