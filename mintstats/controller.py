"""Mint statistics polling controller."""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, replace
from enum import StrEnum

import structlog

from mintstats.aggregator import MintStatsAggregator
from mintstats.cache import CacheStore, cache_key, is_fresh
from mintstats.core.logging import Logger
from mintstats.exceptions import AggregationFailure
from mintstats.listing.types import (
    CACHE_TTL,
    DEFAULT_RECENT_LIMIT,
    REFRESH_INTERVAL,
    ListingConfig,
)
from mintstats.snapshot import ControllerState, MintStats

logger: Logger = structlog.get_logger()

FETCH_ERROR_MESSAGE = "Failed to fetch mint statistics"

# Callback signature: (snapshot: MintStats) -> Awaitable[None]
SnapshotCallback = Callable[[MintStats], Awaitable[None]]


class LoadingPolicy(StrEnum):
    """When a refresh may flip the loading flag back on."""

    WHEN_EMPTY = "when_empty"  # Only while no non-zero data is visible
    ALWAYS = "always"


@dataclass(slots=True)
class ControllerStats:
    """Polling bookkeeping."""

    refreshes_started: int = 0
    refreshes_applied: int = 0
    results_discarded: int = 0
    ticks_skipped: int = 0


class MintStatsController:
    """
    Keeps a best-known mint statistics snapshot up to date.

    Lifecycle:
        1. start() seeds the snapshot from a fresh cache entry, if any
        2. A refresh runs immediately, then every refresh_interval seconds
        3. Every snapshot change is delivered to on_change
        4. stop() cancels polling; an in-flight refresh finishes but its
           result is discarded

    Only one refresh runs at a time. Ticks that fire while a refresh is in
    flight are skipped, and each refresh carries the generation it was
    started under so results from a previous session are never applied.
    """

    __slots__ = (
        "_listing",
        "_aggregator",
        "_cache",
        "_on_change",
        "_refresh_interval",
        "_loading_policy",
        "_cache_ttl",
        "_recent_limit",
        "_snapshot",
        "_state",
        "_poll_task",
        "_inflight",
        "_inflight_generation",
        "_pending",
        "_generation",
        "_running",
        "_stats",
    )

    def __init__(
        self,
        listing: ListingConfig,
        aggregator: MintStatsAggregator,
        cache: CacheStore,
        on_change: SnapshotCallback | None = None,
        refresh_interval: float = REFRESH_INTERVAL,
        loading_policy: LoadingPolicy = LoadingPolicy.WHEN_EMPTY,
        cache_ttl: float = CACHE_TTL,
        recent_limit: int = DEFAULT_RECENT_LIMIT,
    ) -> None:
        """
        Initialize controller.

        Args:
            listing: Parent name and classification to report on
            aggregator: Runs the source fallback chain
            cache: Store used to seed the first snapshot
            on_change: Optional callback receiving each new snapshot
            refresh_interval: Seconds between refreshes
            loading_policy: When background refreshes show loading
            cache_ttl: Freshness window for the seeding cache entry
            recent_limit: Maximum number of recent names exposed
        """
        if refresh_interval <= 0:
            raise ValueError("refresh_interval must be positive")
        if recent_limit < 1:
            raise ValueError("recent_limit must be at least 1")

        self._listing = listing
        self._aggregator = aggregator
        self._cache = cache
        self._on_change = on_change
        self._refresh_interval = refresh_interval
        self._loading_policy = loading_policy
        self._cache_ttl = cache_ttl
        self._recent_limit = recent_limit

        self._snapshot = MintStats()
        self._state = ControllerState.UNINITIALIZED
        self._poll_task: asyncio.Task | None = None
        self._inflight: asyncio.Task[None] | None = None
        self._inflight_generation = 0
        # Every unfinished refresh task, including ones from earlier sessions
        self._pending: set[asyncio.Task[None]] = set()
        self._generation = 0
        self._running = False
        self._stats = ControllerStats()

    @property
    def snapshot(self) -> MintStats:
        return self._snapshot

    @property
    def state(self) -> ControllerState:
        return self._state

    @property
    def stats(self) -> ControllerStats:
        return self._stats

    @property
    def listing(self) -> ListingConfig:
        return self._listing

    @property
    def is_running(self) -> bool:
        """Whether the controller is currently polling."""
        return self._running

    @property
    def is_refreshing(self) -> bool:
        """Whether a refresh started in the current session is in flight."""
        return (
            self._inflight is not None
            and not self._inflight.done()
            and self._inflight_generation == self._generation
        )

    async def start(self) -> None:
        """Seed from cache, refresh immediately and begin polling."""
        if self._running:
            logger.warning("MintStatsController already running")
            return

        self._running = True
        self._generation += 1

        await self._seed_from_cache()

        self._tick()
        self._poll_task = asyncio.create_task(
            self._poll_loop(),
            name=f"mintstats-poll-{self._listing.parent_name}",
        )

        logger.info(
            "MintStatsController started",
            parent_name=self._listing.parent_name,
            listing_type=self._listing.listing_type.value,
            interval=self._refresh_interval,
        )

    async def stop(self) -> None:
        """Stop polling. An in-flight refresh is left to finish unapplied."""
        if not self._running:
            return

        self._running = False
        self._generation += 1

        if self._poll_task:
            self._poll_task.cancel()
            try:
                await self._poll_task
            except asyncio.CancelledError:
                pass
            self._poll_task = None

        logger.info(
            "MintStatsController stopped",
            parent_name=self._listing.parent_name,
            total_minted=self._snapshot.total_minted,
        )

    async def wait_idle(self) -> None:
        """Wait for every in-flight refresh, including discarded ones, to finish."""
        if self._pending:
            await asyncio.wait(set(self._pending))

    async def refresh(self) -> MintStats:
        """
        Refresh now and return the resulting snapshot.

        Joins the in-flight refresh instead of starting a second one.
        """
        if not self._running:
            logger.warning("Refresh requested while controller is stopped")
            return self._snapshot

        if not self.is_refreshing:
            self._start_refresh()

        assert self._inflight is not None
        await asyncio.shield(self._inflight)
        return self._snapshot

    async def _seed_from_cache(self) -> None:
        entry = self._cache.load(cache_key(self._listing.parent_name))

        if entry is not None and is_fresh(entry, ttl=self._cache_ttl):
            logger.info(
                "Seeded mint stats from cache",
                parent_name=self._listing.parent_name,
                total_minted=entry.total_minted,
            )
            await self._publish(
                MintStats(
                    total_minted=entry.total_minted,
                    recent_mints=tuple(entry.recent_mints[: self._recent_limit]),
                    is_loading=False,
                    error=None,
                ),
                ControllerState.SEEDED,
            )
            return

        await self._publish(MintStats(), ControllerState.LOADING)

    async def _poll_loop(self) -> None:
        """Background task: Periodic refresh."""
        while self._running:
            try:
                await asyncio.sleep(self._refresh_interval)

                if not self._running:
                    break

                self._tick()

            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Poll loop error: {e}", exc_info=True)

    def _tick(self) -> None:
        if self.is_refreshing:
            self._stats.ticks_skipped += 1
            logger.debug(
                "Refresh still in flight, skipping tick",
                parent_name=self._listing.parent_name,
            )
            return

        self._start_refresh()

    def _start_refresh(self) -> None:
        task = asyncio.create_task(
            self._refresh(self._generation),
            name=f"mintstats-refresh-{self._listing.parent_name}",
        )
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

        self._inflight = task
        self._inflight_generation = self._generation

    def _should_show_loading(self) -> bool:
        match self._loading_policy:
            case LoadingPolicy.ALWAYS:
                return True
            case LoadingPolicy.WHEN_EMPTY:
                return self._snapshot.total_minted == 0

    def _is_current(self, generation: int) -> bool:
        return self._running and generation == self._generation

    async def _refresh(self, generation: int) -> None:
        # Each refresh task runs in its own context copy, so bindings stay local
        with structlog.contextvars.bound_contextvars(
            parent_name=self._listing.parent_name,
            generation=generation,
        ):
            await self._run_refresh(generation)

    async def _run_refresh(self, generation: int) -> None:
        """Run one aggregation and apply its outcome if still current."""
        if not self._listing.is_complete:
            logger.debug(
                "Listing not fully configured, skipping refresh",
                chain_id=self._listing.chain_id,
            )
            return

        self._stats.refreshes_started += 1

        if self._is_current(generation) and self._should_show_loading():
            await self._publish(
                replace(self._snapshot, is_loading=True, error=None),
                ControllerState.LOADING,
            )

        try:
            result = await self._aggregator.aggregate(self._listing)

        except AggregationFailure as e:
            await self._apply_failure(generation, str(e))
            return

        except Exception as e:
            logger.exception(f"Unexpected error fetching mint stats: {e}")
            await self._apply_failure(generation, str(e))
            return

        if not self._is_current(generation):
            self._discard()
            return

        result = result.limited(self._recent_limit)
        self._stats.refreshes_applied += 1
        await self._publish(
            MintStats(
                total_minted=result.total_minted,
                recent_mints=result.recent_mints,
                is_loading=False,
                error=None,
            ),
            ControllerState.READY,
        )

    async def _apply_failure(self, generation: int, reason: str) -> None:
        if not self._is_current(generation):
            self._discard()
            return

        logger.error(
            "Error fetching mint stats",
            reason=reason,
        )
        self._stats.refreshes_applied += 1
        await self._publish(
            replace(self._snapshot, is_loading=False, error=FETCH_ERROR_MESSAGE),
            ControllerState.ERROR,
        )

    def _discard(self) -> None:
        self._stats.results_discarded += 1
        logger.debug(
            "Discarding refresh result",
            current_generation=self._generation,
        )

    async def _publish(self, snapshot: MintStats, state: ControllerState) -> None:
        changed = snapshot != self._snapshot or state != self._state

        self._snapshot = snapshot
        self._state = state

        if not changed or not self._on_change:
            return

        try:
            await self._on_change(snapshot)
        except Exception as e:
            logger.error(f"on_change callback error: {e}")
