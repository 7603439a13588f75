#!/usr/bin/env python3
"""Run one refresh cycle and print the aggregated feed."""

import argparse
import asyncio
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from feed_engine.aggregator import FilterParams
from feed_engine.config.settings import settings
from feed_engine.engine import build_engine
from feed_engine.errors import AggregationError, CacheWriteError
from feed_engine.logging_config import configure_logging


def parse_args():
    parser = argparse.ArgumentParser(description="Fetch all feeds once and show the result")
    parser.add_argument("--feeds", help="Path to feeds.json (defaults to search paths)")
    parser.add_argument("--limit", type=int, default=10, help="Items to print")
    parser.add_argument("--sort", choices=["newest", "score"], default="newest")
    parser.add_argument("--tag", default="", help="Only show items with this tag")
    parser.add_argument("--source-type", default="", help="news or community")
    parser.add_argument("--query", default="", help="Search title and summary")
    parser.add_argument("--timeout", type=float, default=None, help="Refresh deadline in seconds")
    return parser.parse_args()


async def run(args) -> int:
    engine = await build_engine(feeds_path=args.feeds)
    try:
        try:
            result = await engine.aggregator.refresh(timeout=args.timeout)
        except (AggregationError, CacheWriteError) as e:
            print(f"\nREFRESH FAILED: {e}")
            return 1

        response = await engine.aggregator.get_items(FilterParams(
            limit=args.limit,
            sort=args.sort,
            tag=args.tag,
            source_type=args.source_type,
            query=args.query,
        ))
    finally:
        await engine.close()

    print("\n" + "=" * 50)
    print("FEED REFRESH")
    print("=" * 50 + "\n")
    print(f"  Items: {result.item_count} from {result.source_count} sources")
    for name, error in result.failures.items():
        print(f"  FAILED {name}: {error}")

    print(f"\nSHOWING {len(response.items)} OF {response.total_count}:")
    for item in response.items:
        published = item.published_at.strftime("%Y-%m-%d %H:%M") if item.published_at else "-"
        tags = ", ".join(item.tags)
        print(f"  [{published}] {item.source_name}: {item.title}")
        if tags:
            print(f"      tags: {tags}")
    print()
    return 0


def main():
    args = parse_args()
    configure_logging(settings.log_level, settings.log_json)
    sys.exit(asyncio.run(run(args)))


if __name__ == "__main__":
    main()
