#!/usr/bin/env python3
"""Show (and optionally drain) a collector's pending generator changes.

Usage
-----
    python scripts/pending_changes.py my-collector
    python scripts/pending_changes.py --drain my-collector other-collector
    python scripts/pending_changes.py --redis-url redis://cache:6379/2 my-collector

Connection settings default to the ``GENTRACK_*`` environment variables.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any

_repo = Path(__file__).resolve().parent.parent
_src = _repo / "src"
if _src.is_dir():
    sys.path.insert(0, str(_src))

from pygentrack import ChangeTracker, GenTrackError, TrackerConfig  # noqa: E402


async def _run(args: argparse.Namespace) -> int:
    overrides: dict[str, Any] = {}
    if args.redis_url:
        overrides["redis_url"] = args.redis_url
    if args.namespace:
        overrides["namespace"] = args.namespace
    config = TrackerConfig.from_env(**overrides)

    report: dict[str, dict[str, list[str]]] = {}
    async with ChangeTracker(config) as tracker:
        for collector in args.collectors:
            if args.drain:
                pending = await tracker.drain(collector)
            else:
                pending = await tracker.read_pending(collector)
            report[collector] = pending.as_heartbeat()

    print(json.dumps(report, indent=2, sort_keys=True))
    return 0


def main() -> None:
    parser = argparse.ArgumentParser(description="Inspect pending generator changes per collector.")
    parser.add_argument("collectors", nargs="+", help="Collector name(s)")
    parser.add_argument("--drain", action="store_true", help="Clear the pending changes after printing them")
    parser.add_argument("--redis-url", default=None, help="Override GENTRACK_REDIS_URL")
    parser.add_argument("--namespace", default=None, help="Override GENTRACK_NAMESPACE")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    args = parser.parse_args()

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING)

    try:
        sys.exit(asyncio.run(_run(args)))
    except GenTrackError as exc:
        print(f"error: {exc}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
