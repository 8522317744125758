#!/usr/bin/env python
"""
Live check of the mint statistics sources for one parent name.

Run with: uv run python scripts/check_sources.py
Reads LISTED_NAME, LISTING_TYPE and LISTED_NODE from the environment.
"""

import asyncio

import aiohttp
import structlog

from mintstats.aggregator import MintStatsAggregator
from mintstats.cache import MemoryCacheStore
from mintstats.core.config import settings
from mintstats.core.logging import configure as configure_logging
from mintstats.exceptions import AggregationFailure
from mintstats.listing.types import static_node_hasher

configure_logging()
logger = structlog.get_logger()


async def main():
    """Run one aggregation against the live sources and print the result."""
    listing = settings.listing
    logger.info("Checking sources", parent_name=listing.parent_name)

    hasher = static_node_hasher(settings.LISTED_NODE) if settings.LISTED_NODE else None

    async with aiohttp.ClientSession() as session:
        aggregator = MintStatsAggregator(
            session,
            MemoryCacheStore(),
            hasher=hasher,
            graph_url=settings.GRAPH_URL,
            indexer_url=settings.INDEXER_URL,
            timeout=settings.REQUEST_TIMEOUT,
            limit=settings.RECENT_MINTS_LIMIT,
        )

        try:
            result = await aggregator.aggregate(listing)
        except AggregationFailure as e:
            logger.error(f"Aggregation failed: {e}")
            raise

        print(f"\nSource: {result.source.value}")
        print(f"Total minted: {result.total_minted}")
        if result.is_lower_bound:
            print("(lower bound: registry page size)")

        for name in result.recent_mints[:10]:
            print(f"  - {name}")

        if len(result.recent_mints) > 10:
            print(f"\n... and {len(result.recent_mints) - 10} more names")


if __name__ == "__main__":
    asyncio.run(main())
