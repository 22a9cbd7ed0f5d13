# Copyright 2024-2025 Amiable Development
# SPDX-License-Identifier: Apache-2.0

"""CLI entry point for milestone-search.

Usage:
    milestone-search --data-dir DIR search "fix login bug"    # Keyword search
    milestone-search --data-dir DIR search auth --scope 7d    # Last week only
    milestone-search --data-dir DIR recent                    # Recent milestones
    milestone-search --version                                # Show version
"""

import argparse
import json
import logging
import sys
from dataclasses import asdict
from pathlib import Path
from typing import List, Optional

from milestone_search import __version__
from milestone_search.config import VALID_SCOPES, load_settings
from milestone_search.errors import MilestoneSearchError
from milestone_search.providers import JsonMilestoneStore, StaticSessionRegistry
from milestone_search.schemas import MilestoneSearchResult, SearchRequest
from milestone_search.service import MilestoneSearchService

DEFAULT_DATA_DIR = "~/.lm-assist/milestones"
SESSIONS_FILENAME = "sessions.json"


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        prog="milestone-search",
        description="Milestone Search - find work across AI pair-programming sessions",
    )
    parser.add_argument(
        "--version",
        "-V",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "--data-dir",
        type=str,
        default=DEFAULT_DATA_DIR,
        help=f"Milestone data directory (default: {DEFAULT_DATA_DIR})",
    )
    parser.add_argument(
        "--sessions",
        type=str,
        default=None,
        help=f"Session registry JSON (default: <data-dir>/{SESSIONS_FILENAME} if present)",
    )
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="Settings YAML (default: <data-dir>/settings.yaml if present)",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable debug logging",
    )
    subparsers = parser.add_subparsers(dest="command")

    search_parser = subparsers.add_parser("search", help="Keyword search over milestones")
    search_parser.add_argument("query", type=str, help="Search query")
    search_parser.add_argument("--project", type=str, default=None, help="Project path filter")
    search_parser.add_argument("--directory", type=str, default=None, help="Directory filter")
    search_parser.add_argument(
        "--scope",
        type=str,
        choices=VALID_SCOPES,
        default=None,
        help="Time window (default: from settings)",
    )
    search_parser.add_argument(
        "--limit",
        type=int,
        default=20,
        help="Maximum results, 0 for no limit (default: 20)",
    )
    search_parser.add_argument("--json", action="store_true", help="Output JSON")

    recent_parser = subparsers.add_parser("recent", help="Most recent milestones")
    recent_parser.add_argument("--project", type=str, default=None, help="Project path filter")
    recent_parser.add_argument("--directory", type=str, default=None, help="Directory filter")
    recent_parser.add_argument("--json", action="store_true", help="Output JSON")

    return parser


def build_service(
    data_dir: str,
    sessions: Optional[str] = None,
    config: Optional[str] = None,
) -> MilestoneSearchService:
    """Build a search service over a local milestone directory.

    Args:
        data_dir: Milestone data directory.
        sessions: Session registry JSON file.
        config: Settings YAML file.

    Returns:
        Configured MilestoneSearchService.
    """
    root = Path(data_dir).expanduser()
    settings = load_settings(data_dir=root, path=config)

    sessions_path = Path(sessions).expanduser() if sessions else root / SESSIONS_FILENAME
    if sessions or sessions_path.exists():
        registry = StaticSessionRegistry.from_file(sessions_path)
    else:
        registry = StaticSessionRegistry()

    return MilestoneSearchService(
        store=JsonMilestoneStore(root),
        registry=registry,
        settings=settings,
    )


def format_result(result: MilestoneSearchResult) -> str:
    """Format one result as a human-readable line block."""
    title = result.title or "(untitled)"
    kind = f" [{result.type}]" if result.type else ""
    lines = [
        f"{result.score:8.2f}  {title}{kind}",
        f"          {result.milestone_id}  turns {result.start_turn}-{result.end_turn}"
        f"  {result.timestamp or ''}",
    ]
    if result.outcome:
        lines.append(f"          {result.outcome}")
    return "\n".join(lines)


def print_results(results: List[MilestoneSearchResult], as_json: bool) -> None:
    if as_json:
        print(json.dumps([asdict(r) for r in results], indent=2))
        return
    if not results:
        print("No milestones found.")
        return
    for result in results:
        print(format_result(result))


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command is None:
        parser.print_help()
        return 1

    try:
        service = build_service(args.data_dir, args.sessions, args.config)

        if args.command == "search":
            response = service.search(
                SearchRequest(
                    query=args.query,
                    project_path=args.project,
                    directory=args.directory,
                    scope=args.scope,
                    limit=args.limit,
                )
            )
            if args.json:
                print(json.dumps(response.to_dict(), indent=2))
            else:
                print_results(response.results, as_json=False)
                print(
                    f"\n{response.total} result(s), {response.metrics.milestones_scanned} "
                    f"milestone(s) scanned in {response.metrics.search_time_ms:.1f}ms"
                )
        elif args.command == "recent":
            print_results(service.recent(args.project, args.directory), as_json=args.json)
    except MilestoneSearchError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except (OSError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
