#!/usr/bin/env python3
"""
LilNAS Watch Script.

Watches a single path and logs every change and error until
interrupted with Ctrl-C or SIGTERM.
Requires Python 3.11+.

Usage:
    python scripts/watch_path.py /path/to/folder
"""

import argparse
import sys
from pathlib import Path

# Add backend to path
sys.path.insert(0, str(Path(__file__).parent.parent / "backend"))

from utils.config import get_settings
from utils.logger import configure_logging
from watcher.errors import WatchStartError
from watcher.runner import StopReason, watch


def main() -> None:
    """Main entry point."""
    settings = get_settings()

    parser = argparse.ArgumentParser(
        description="Watch a file or directory and log its changes"
    )
    parser.add_argument(
        "path",
        type=Path,
        nargs="?",
        default=settings.watcher.path,
        help="Path to watch (defaults to WATCHER_PATH)",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Log level override (e.g., DEBUG, INFO)",
    )
    parser.add_argument(
        "--log-format",
        choices=["json", "console"],
        default=None,
        help="Log output format override",
    )

    args = parser.parse_args()

    if args.path is None:
        parser.error("no path given and WATCHER_PATH is not set")

    configure_logging(level=args.log_level, fmt=args.log_format)

    try:
        outcome = watch(args.path, settings=settings)
    except WatchStartError as e:
        print(f"Error: {e}")
        sys.exit(1)

    print(f"\nWatch ended ({outcome.reason.value})")
    print(f"  Events: {outcome.stats.events}")
    print(f"  Errors: {outcome.stats.errors}")

    if outcome.reason is StopReason.FAILED:
        print(f"  Failure: {outcome.failure}")
        sys.exit(1)


if __name__ == "__main__":
    main()
