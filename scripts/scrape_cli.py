#!/usr/bin/env python3
# scripts/scrape_cli.py

from __future__ import annotations

import argparse
import logging
from typing import Optional


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Run the event ingestion batch (all sites by default).")
    parser.add_argument(
        "--site",
        action="append",
        default=None,
        help="Limit the run to this site name (repeatable).",
    )
    parser.add_argument(
        "--no-refresh",
        action="store_true",
        help="Do not empty the events table first. Use with --site for diagnostic runs.",
    )
    parser.add_argument("--workers", type=int, default=None, help="Override MACHI_MAX_WORKERS.")
    parser.add_argument("--list-sites", action="store_true", help="Print configured sites and exit.")
    parser.add_argument("--log-level", default="INFO", help="Logging level (default INFO).")

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    # Import here so --help works without the runtime deps
    from machi_events.pipeline import run_from_env
    from machi_events.sources.registry import get_sites

    if args.list_sites:
        for s in get_sites():
            rules = "rules" if s.rules else "generic"
            print(f"{s.kind.value:4}  {rules:7}  {s.region}  {s.name}  {s.url}")
        return 0

    if args.site and not args.no_refresh:
        # A partial run must not wipe the other sites' events
        parser.error("--site requires --no-refresh")

    return run_from_env(args.site, refresh=not args.no_refresh, max_workers=args.workers)


if __name__ == "__main__":
    raise SystemExit(main())
