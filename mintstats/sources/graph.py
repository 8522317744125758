"""Graph query source for L1 listings."""

import asyncio
from typing import Any, TypeVar

import aiohttp
import msgspec
import structlog

from mintstats.core.logging import Logger
from mintstats.exceptions import SourceError
from mintstats.listing.types import GRAPH_URL, REQUEST_TIMEOUT, NameHasher
from mintstats.sources.protocol import (
    GraphStatsResponse,
    GraphSubdomainsResponse,
    convert,
    decode_json,
    names_of,
)
from mintstats.sources.types import SourceKind, SourceResult

logger: Logger = structlog.get_logger()

T = TypeVar("T", GraphStatsResponse, GraphSubdomainsResponse)

STATS_QUERY = """
query {{
  domain(id: "{node}") {{
    subdomainCount
  }}
  domains(where: {{ parent: "{node}" }}, first: {limit}, orderBy: createdAt, orderDirection: desc) {{
    name
  }}
}}
"""

SUBDOMAINS_QUERY = """
query {{
  domain(id: "{node}") {{
    subdomains(first: {limit}, orderBy: createdAt, orderDirection: desc) {{
      name
    }}
  }}
}}
"""


def build_stats_query(node: str, limit: int) -> str:
    """Count plus newest child names of a parent node in one request."""
    return STATS_QUERY.format(node=node, limit=limit)


def build_subdomains_query(node: str, limit: int) -> str:
    """Newest child names through the nested subdomains relation."""
    return SUBDOMAINS_QUERY.format(node=node, limit=limit)


async def fetch_graph_stats(
    session: aiohttp.ClientSession,
    parent_name: str,
    limit: int,
    *,
    hasher: NameHasher,
    url: str = GRAPH_URL,
    timeout: float = REQUEST_TIMEOUT,
) -> SourceResult:
    """
    Fetch subname count and most recent names from the graph.

    If the graph reports a positive count with an empty name list, one
    corrective query against the nested subdomains relation is issued.

    Raises:
        SourceError: On timeout, network failure or malformed response
    """
    try:
        node = hasher(parent_name)
    except Exception as e:
        raise SourceError(SourceKind.GRAPH, f"Unable to hash {parent_name}: {e}") from e

    response = await _post_query(
        session, url, build_stats_query(node, limit), timeout, GraphStatsResponse
    )
    data = _require_data(response)

    total_minted = 0
    if data.domain and data.domain.subdomain_count:
        total_minted = max(0, data.domain.subdomain_count)

    recent_mints = names_of(data.domains or [])

    if total_minted > 0 and not recent_mints:
        logger.warning(
            "Graph returned count without names, retrying with nested query",
            parent_name=parent_name,
            total_minted=total_minted,
        )
        nested = await _post_query(
            session,
            url,
            build_subdomains_query(node, limit),
            timeout,
            GraphSubdomainsResponse,
        )
        nested_data = _require_data(nested)
        if nested_data.domain:
            nested_mints = names_of(nested_data.domain.subdomains)
            if nested_mints:
                recent_mints = nested_mints

    return SourceResult(
        total_minted=total_minted,
        recent_mints=recent_mints[:limit],
        source=SourceKind.GRAPH,
    )


async def _post_query(
    session: aiohttp.ClientSession,
    url: str,
    query: str,
    timeout: float,
    response_type: type[T],
) -> T:
    """POST a single graph query and validate the response shape."""
    try:
        async with session.post(
            url,
            json={"query": query},
            timeout=aiohttp.ClientTimeout(total=timeout),
        ) as response:
            response.raise_for_status()
            body = await response.read()

    except asyncio.TimeoutError as e:
        raise SourceError(SourceKind.GRAPH, f"Request timed out after {timeout}s") from e
    except aiohttp.ClientError as e:
        raise SourceError(SourceKind.GRAPH, f"Request failed: {e}") from e

    try:
        raw: Any = decode_json(body)
        return convert(raw, response_type)
    except (msgspec.DecodeError, msgspec.ValidationError) as e:
        raise SourceError(SourceKind.GRAPH, f"Malformed response: {e}") from e


def _require_data(response: GraphStatsResponse | GraphSubdomainsResponse) -> Any:
    if response.data is None:
        messages = "; ".join(err.message for err in response.errors or [])
        raise SourceError(
            SourceKind.GRAPH, f"Response carried no data: {messages or 'empty body'}"
        )
    return response.data
