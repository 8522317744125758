"""Direct registry fallback for L1 listings when the graph is unavailable."""

from collections.abc import Sequence
from typing import Any, Protocol

import structlog

from mintstats.core.logging import Logger
from mintstats.exceptions import SourceError
from mintstats.sources.types import SourceKind, SourceResult

logger: Logger = structlog.get_logger()


class SubnameResolver(Protocol):
    """Live registry capability able to list subnames of a parent name."""

    async def get_subnames(
        self,
        *,
        name: str,
        search_string: str,
        order_by: str,
        order_direction: str,
        page_size: int,
    ) -> Sequence[Any]: ...


def _name_of(item: Any) -> str | None:
    if isinstance(item, dict):
        return item.get("name")
    return getattr(item, "name", None)


async def fetch_registry_stats(
    resolver: SubnameResolver | None,
    parent_name: str,
    limit: int,
) -> SourceResult:
    """
    Fetch the newest subnames directly from the registry.

    The registry cannot report a true total, so total_minted is the size of
    the returned page and the result is flagged as a lower bound.

    Raises:
        SourceError: If no resolver is configured or the resolver fails
    """
    if resolver is None:
        raise SourceError(SourceKind.REGISTRY, "No registry resolver configured")

    try:
        subnames = await resolver.get_subnames(
            name=parent_name,
            search_string="",
            order_by="createdAt",
            order_direction="desc",
            page_size=limit,
        )
    except Exception as e:
        raise SourceError(SourceKind.REGISTRY, f"Resolver failed: {e}") from e

    names = tuple(name for item in (subnames or [])[:limit] if (name := _name_of(item)))

    logger.debug(
        "Fetched registry page",
        parent_name=parent_name,
        page_size=len(names),
    )

    return SourceResult(
        total_minted=len(names),
        recent_mints=names,
        source=SourceKind.REGISTRY,
        is_lower_bound=True,
    )
