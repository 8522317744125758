import asyncio
import signal
from typing import Any

import aiohttp
import structlog

from mintstats.aggregator import MintStatsAggregator
from mintstats.cache import CacheStore, FileCacheStore
from mintstats.controller import MintStatsController, SnapshotCallback
from mintstats.core.config import Settings
from mintstats.core.logging import Logger
from mintstats.listing.types import ListingType, NameHasher, static_node_hasher
from mintstats.server import HTTPServer
from mintstats.snapshot import MintStats
from mintstats.sources import SubnameResolver

logger: Logger = structlog.getLogger(__name__)


class MintStatsApp:
    """
    Main application orchestrator.

    Owns the shared HTTP session and manages component lifecycle with
    proper startup/shutdown order.
    """

    __slots__ = (
        "_settings",
        "_cache",
        "_hasher",
        "_resolver",
        "_on_change",
        "_session",
        "_aggregator",
        "_controller",
        "_http_server",
        "_running",
        "_shutdown_event",
    )

    def __init__(
        self,
        settings: Settings,
        cache: CacheStore | None = None,
        hasher: NameHasher | None = None,
        resolver: SubnameResolver | None = None,
        on_change: SnapshotCallback | None = None,
    ) -> None:
        """Initialise application

        Args:
            settings: Runtime configuration
            cache: Cache store (default = FileCacheStore under CACHE_DIR)
            hasher: Name to node hash function (default = LISTED_NODE if set)
            resolver: Registry capability for the L1 fallback
            on_change: Optional callback receiving each new snapshot
        """
        self._settings = settings
        self._cache = cache if cache is not None else FileCacheStore(settings.CACHE_DIR)

        if hasher is None and settings.LISTED_NODE:
            hasher = static_node_hasher(settings.LISTED_NODE)
        self._hasher = hasher
        self._resolver = resolver
        self._on_change = on_change

        # Components (initialised on start)
        self._session: aiohttp.ClientSession | None = None
        self._aggregator: MintStatsAggregator | None = None
        self._controller: MintStatsController | None = None
        self._http_server: HTTPServer | None = None

        self._running = False
        self._shutdown_event = asyncio.Event()

    @property
    def is_running(self) -> bool:
        "Whether the application is currently running"
        return self._running

    @property
    def session(self) -> aiohttp.ClientSession | None:
        return self._session

    @property
    def controller(self) -> MintStatsController | None:
        return self._controller

    @property
    def aggregator(self) -> MintStatsAggregator | None:
        return self._aggregator

    @property
    def snapshot(self) -> MintStats:
        if self._controller is None:
            return MintStats()
        return self._controller.snapshot

    async def start(self) -> None:
        """
        Start all components in correct order.

        Stops already-started components if any component fails to start.
        """
        if self._running:
            logger.warning("Application already running")
            return

        listing = self._settings.listing
        logger.info(
            "Starting mintstats application...",
            parent_name=listing.parent_name,
            listing_type=listing.listing_type.value,
        )

        if listing.listing_type == ListingType.L1:
            if self._hasher is None:
                logger.warning("No name hasher configured, graph queries will fail")
            if self._resolver is None:
                logger.warning("No registry resolver configured, L1 has no fallback")

        try:
            # 1. HTTP session
            self._session = aiohttp.ClientSession()
            logger.info("✓ HTTP session created")

            # 2. Aggregator
            self._aggregator = MintStatsAggregator(
                session=self._session,
                cache=self._cache,
                hasher=self._hasher,
                resolver=self._resolver,
                graph_url=self._settings.GRAPH_URL,
                indexer_url=self._settings.INDEXER_URL,
                timeout=self._settings.REQUEST_TIMEOUT,
                limit=self._settings.RECENT_MINTS_LIMIT,
            )
            logger.info("✓ MintStatsAggregator initialised")

            # 3. Controller
            self._controller = MintStatsController(
                listing=listing,
                aggregator=self._aggregator,
                cache=self._cache,
                on_change=self._on_change,
                refresh_interval=self._settings.REFRESH_INTERVAL,
                cache_ttl=self._settings.CACHE_TTL,
                recent_limit=self._settings.RECENT_MINTS_LIMIT,
            )
            await self._controller.start()
            logger.info("✓ MintStatsController started")

            # 4. HTTP Server (if enabled)
            if self._settings.ENABLE_HTTP:
                self._http_server = HTTPServer(
                    app=self,
                    port=self._settings.HTTP_PORT,
                    host=self._settings.HTTP_HOST,
                )
                try:
                    await self._http_server.start()
                except Exception as e:
                    logger.error(f"Failed to start HTTP server: {e}")
                    # Don't fail startup if HTTP server fails
                    self._http_server = None

            self._running = True
            logger.info("✓ mintstats started successfully!")

        except Exception as e:
            logger.error(f"X Application startup failed: {e}")
            await self._cleanup_on_startup_failure()
            raise

    async def stop(self) -> None:
        if not self._running:
            logger.warning("Application not running")
            return

        logger.info("Stopping application...")
        start_time = asyncio.get_running_loop().time()

        await self._stop()

        self._running = False

        elapsed_time = asyncio.get_running_loop().time() - start_time
        logger.info(f"Application stopped - shutdown took {elapsed_time:.1f}s")

    async def _stop(self) -> None:
        # Stop in reverse order
        if self._http_server:
            try:
                await self._http_server.stop()
            except Exception as e:
                logger.error(f"Error stopping HTTP server: {e}")
            self._http_server = None

        if self._controller:
            try:
                await self._controller.stop()
                # Let an in-flight refresh finish before its session closes
                await self._controller.wait_idle()
            except Exception as e:
                logger.error(f"Error stopping controller: {e}")

        if self._session:
            try:
                await self._session.close()
            except Exception as e:
                logger.error(f"Error closing HTTP session: {e}")
            self._session = None

        logger.info("Cleanup completed")

    async def _cleanup_on_startup_failure(self) -> None:
        logger.warning("Cleaning up after startup failure...")

        await self._stop()

    def request_shutdown(self) -> None:
        self._shutdown_event.set()

    async def run(self) -> None:
        """
        Run application with automatic signal handling.

        Blocks until SIGINT or SIGTERM received, then gracefully stops.
        """
        loop = asyncio.get_running_loop()

        def signal_handler(*args, **kwargs) -> None:
            logger.info("Shutdown signal received")
            self.request_shutdown()

        signals = (signal.SIGINT, signal.SIGTERM)
        for sig in signals:
            loop.add_signal_handler(sig, signal_handler)

        try:
            await self.start()

            await self._shutdown_event.wait()
        finally:
            await self.stop()

            for sig in signals:
                try:
                    loop.remove_signal_handler(sig)
                except (NotImplementedError, RuntimeError):
                    pass

    def get_stats(self) -> dict[str, Any]:
        """
        Get comprehensive application statistics.

        Returns:
            dict with keys: running, listing, snapshot, controller, aggregator
        """
        listing = self._settings.listing

        stats: dict[str, Any] = {
            "running": self._running,
            "listing": {
                "parent_name": listing.parent_name,
                "chain_id": listing.chain_id,
                "listing_type": listing.listing_type.value,
            },
            "snapshot": self.snapshot.to_dict(),
            "controller": {},
            "aggregator": {},
        }

        if self._controller:
            controller_stats = self._controller.stats
            stats["controller"] = {
                "state": self._controller.state.name,
                "is_running": self._controller.is_running,
                "is_refreshing": self._controller.is_refreshing,
                "refreshes_started": controller_stats.refreshes_started,
                "refreshes_applied": controller_stats.refreshes_applied,
                "results_discarded": controller_stats.results_discarded,
                "ticks_skipped": controller_stats.ticks_skipped,
            }

        if self._aggregator:
            aggregator_stats = self._aggregator.stats
            stats["aggregator"] = {
                "refreshes_attempted": aggregator_stats.refreshes_attempted,
                "refreshes_succeeded": aggregator_stats.refreshes_succeeded,
                "refreshes_failed": aggregator_stats.refreshes_failed,
                "fallbacks_used": aggregator_stats.fallbacks_used,
                "cache_writes": aggregator_stats.cache_writes,
                "success_rate": aggregator_stats.success_rate,
                "avg_refresh_ms": aggregator_stats.avg_refresh_ms,
                "last_source": aggregator_stats.last_source,
                "source_failures": dict(aggregator_stats.source_failures),
            }

        return stats

    def is_healthy(self) -> bool:
        if not self._running:
            return False

        if self._controller is None or not self._controller.is_running:
            logger.warning("Health check failed: controller not running")
            return False

        return True
