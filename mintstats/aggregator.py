"""Source selection, fallback and cache persistence for mint statistics."""

from dataclasses import dataclass, field

import aiohttp
import structlog
from codetiming import Timer

from mintstats.cache import CacheEntry, CacheStore, cache_key, now_ms
from mintstats.core.logging import Logger
from mintstats.exceptions import AggregationFailure, SourceError
from mintstats.listing.types import (
    DEFAULT_RECENT_LIMIT,
    GRAPH_URL,
    INDEXER_URL,
    REQUEST_TIMEOUT,
    ListingConfig,
    NameHasher,
)
from mintstats.sources import (
    SourceKind,
    SourceResult,
    SubnameResolver,
    fetch_graph_stats,
    fetch_indexer_stats,
    fetch_registry_stats,
    next_source,
)

logger: Logger = structlog.get_logger()


@dataclass(slots=True)
class AggregatorStats:
    """Aggregation performance metrics."""

    refreshes_attempted: int = 0
    refreshes_succeeded: int = 0
    refreshes_failed: int = 0
    fallbacks_used: int = 0
    cache_writes: int = 0
    total_refresh_ms: float = 0.0
    last_source: str | None = None
    source_failures: dict[str, int] = field(
        default_factory=lambda: {kind.value: 0 for kind in SourceKind}
    )

    @property
    def success_rate(self) -> float:
        """
        Fraction of refreshes that produced a result.

        Returns 1.0 when no refreshes attempted.
        """
        if self.refreshes_attempted > 0:
            return self.refreshes_succeeded / self.refreshes_attempted
        return 1.0

    @property
    def avg_refresh_ms(self) -> float:
        """Average refresh duration, 0.0 if nothing attempted."""
        if self.refreshes_attempted > 0:
            return self.total_refresh_ms / self.refreshes_attempted
        return 0.0


class MintStatsAggregator:
    """
    Reconciles the data sources for a listing into a single result.

    The first source in the listing's fallback chain that succeeds is
    adopted wholesale; results are never merged across sources. Non-zero
    results are persisted to the cache store.
    """

    __slots__ = (
        "_session",
        "_cache",
        "_hasher",
        "_resolver",
        "_graph_url",
        "_indexer_url",
        "_timeout",
        "_limit",
        "_stats",
    )

    def __init__(
        self,
        session: aiohttp.ClientSession,
        cache: CacheStore,
        *,
        hasher: NameHasher | None = None,
        resolver: SubnameResolver | None = None,
        graph_url: str = GRAPH_URL,
        indexer_url: str = INDEXER_URL,
        timeout: float = REQUEST_TIMEOUT,
        limit: int = DEFAULT_RECENT_LIMIT,
    ) -> None:
        """
        Initialize aggregator.

        Args:
            session: Shared HTTP session for the graph and indexer
            cache: Store receiving non-zero results
            hasher: Name to node hash function, required for graph queries
            resolver: Registry capability used when the graph fails
            graph_url: Graph query endpoint
            indexer_url: Indexer nodes endpoint
            timeout: Per-request timeout in seconds
            limit: Maximum number of recent names to report
        """
        if limit < 1:
            raise ValueError("limit must be at least 1")

        self._session = session
        self._cache = cache
        self._hasher = hasher
        self._resolver = resolver
        self._graph_url = graph_url
        self._indexer_url = indexer_url
        self._timeout = timeout
        self._limit = limit
        self._stats = AggregatorStats()

    @property
    def stats(self) -> AggregatorStats:
        return self._stats

    @property
    def limit(self) -> int:
        return self._limit

    async def aggregate(self, listing: ListingConfig) -> SourceResult:
        """
        Run the fallback chain for a listing.

        Raises:
            AggregationFailure: If every applicable source failed
        """
        self._stats.refreshes_attempted += 1

        timer = Timer("aggregate", logger=None)
        timer.start()
        try:
            result = await self._run_chain(listing)
        except AggregationFailure:
            self._stats.refreshes_failed += 1
            raise
        finally:
            self._stats.total_refresh_ms += timer.stop() * 1000

        self._stats.refreshes_succeeded += 1
        self._stats.last_source = result.source.value

        if result.total_minted > 0:
            self._persist(listing.parent_name, result)

        return result

    async def _run_chain(self, listing: ListingConfig) -> SourceResult:
        attempted: list[str] = []
        last_error: SourceError | None = None
        kind = next_source(listing.listing_type)

        while kind is not None:
            attempted.append(kind.value)
            if len(attempted) > 1:
                self._stats.fallbacks_used += 1
                logger.info(
                    f"Falling back to {kind.value} source",
                    parent_name=listing.parent_name,
                )

            try:
                result = await self._fetch(kind, listing.parent_name)
                return result.limited(self._limit)
            except SourceError as e:
                self._stats.source_failures[kind.value] += 1
                logger.warning(
                    f"Failed to fetch from {kind.value} source: {e.message}",
                    parent_name=listing.parent_name,
                )
                last_error = e

            kind = next_source(listing.listing_type, kind)

        logger.error(
            "All sources failed",
            parent_name=listing.parent_name,
            attempted=attempted,
        )
        raise AggregationFailure(listing.parent_name, attempted) from last_error

    async def _fetch(self, kind: SourceKind, parent_name: str) -> SourceResult:
        match kind:
            case SourceKind.GRAPH:
                if self._hasher is None:
                    raise SourceError(kind, "No name hasher configured")
                return await fetch_graph_stats(
                    self._session,
                    parent_name,
                    self._limit,
                    hasher=self._hasher,
                    url=self._graph_url,
                    timeout=self._timeout,
                )
            case SourceKind.INDEXER:
                return await fetch_indexer_stats(
                    self._session,
                    parent_name,
                    self._limit,
                    url=self._indexer_url,
                    timeout=self._timeout,
                )
            case SourceKind.REGISTRY:
                return await fetch_registry_stats(
                    self._resolver,
                    parent_name,
                    self._limit,
                )

    def _persist(self, parent_name: str, result: SourceResult) -> None:
        entry = CacheEntry(
            total_minted=result.total_minted,
            recent_mints=list(result.recent_mints),
            timestamp=now_ms(),
        )
        try:
            self._cache.save(cache_key(parent_name), entry)
        except Exception as e:
            logger.error(f"Failed to save cached stats: {e}", parent_name=parent_name)
            return

        self._stats.cache_writes += 1
