#!/usr/bin/env python3
"""Analyze a local audio file through the full key/BPM fusion pipeline and print JSON."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

from wavoracle.analysis import settings
from wavoracle.server.lookup_sources import LookupAggregator
from wavoracle.server.processing import TrackAnalyzer


def main() -> int:
    parser = argparse.ArgumentParser(description="Detect key/BPM for a local audio file")
    parser.add_argument("path", type=Path, help="Audio file to analyze")
    parser.add_argument("--title", help="Song title (defaults to the file stem)")
    parser.add_argument("--artist", help="Artist name used for web lookups")
    parser.add_argument(
        "--threshold",
        type=float,
        default=settings.CONFIDENCE_THRESHOLD,
        help="Native confidence required for the high tier (default: %(default)s)",
    )
    parser.add_argument("--no-lookup", action="store_true", help="Skip Tunebat/MusicBrainz lookups")
    parser.add_argument("--verbose", action="store_true", help="Log pipeline progress to stderr")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(asctime)s - %(levelname)s - %(message)s",
    )
    if not args.path.is_file():
        print(f"❌ File not found: {args.path}", file=sys.stderr)
        return 1

    analyzer = TrackAnalyzer(
        lookup_aggregator=LookupAggregator([]) if args.no_lookup else None,
        threshold=args.threshold,
    )
    bundle = analyzer.analyze(args.path.read_bytes(), args.title or args.path.stem, args.artist)
    print(json.dumps(bundle.to_dict(), indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
