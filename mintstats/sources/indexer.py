"""Indexer API source for L2 listings."""

import asyncio
from typing import Any

import aiohttp
import msgspec
import structlog

from mintstats.core.logging import Logger
from mintstats.exceptions import SourceError
from mintstats.listing.types import INDEXER_URL, REQUEST_TIMEOUT
from mintstats.sources.protocol import IndexerPage, convert, decode_json, names_of
from mintstats.sources.types import SourceKind, SourceResult

logger: Logger = structlog.get_logger()


async def fetch_indexer_stats(
    session: aiohttp.ClientSession,
    parent_name: str,
    limit: int,
    *,
    url: str = INDEXER_URL,
    timeout: float = REQUEST_TIMEOUT,
) -> SourceResult:
    """
    Fetch the child node page and total item count from the indexer.

    Raises:
        SourceError: On timeout, network failure or malformed response
    """
    params = {
        "parentName": parent_name,
        "limit": limit,
    }

    try:
        async with session.get(
            url,
            params=params,
            timeout=aiohttp.ClientTimeout(total=timeout),
        ) as response:
            response.raise_for_status()
            body = await response.read()

    except asyncio.TimeoutError as e:
        raise SourceError(
            SourceKind.INDEXER, f"Request timed out after {timeout}s"
        ) from e
    except aiohttp.ClientError as e:
        raise SourceError(SourceKind.INDEXER, f"Request failed: {e}") from e

    try:
        raw: Any = decode_json(body)
        page = convert(raw, IndexerPage)
    except (msgspec.DecodeError, msgspec.ValidationError) as e:
        raise SourceError(SourceKind.INDEXER, f"Malformed response: {e}") from e

    recent_mints = names_of(page.items or [])[:limit]

    logger.debug(
        "Fetched indexer page",
        parent_name=parent_name,
        total_items=page.total_items,
        page_size=len(recent_mints),
    )

    return SourceResult(
        total_minted=max(0, page.total_items or 0),
        recent_mints=recent_mints,
        source=SourceKind.INDEXER,
    )
