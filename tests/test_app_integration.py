"""End-to-end tests: controller, aggregator and sources against in-process endpoints."""

import aiohttp
import pytest
from aiohttp.test_utils import TestClient, TestServer

from fakes import FakeGraph, FakeResolver, graph_payload
from mintstats.aggregator import MintStatsAggregator
from mintstats.cache import CacheEntry, MemoryCacheStore, cache_key, now_ms
from mintstats.controller import FETCH_ERROR_MESSAGE, MintStatsController
from mintstats.listing.types import ListingConfig, NameHasher
from mintstats.snapshot import ControllerState, MintStats


class TestL1Listing:
    """L1 listing served by the graph, with registry fallback."""

    @pytest.mark.asyncio
    async def test_graph_result_reaches_snapshot_and_cache(
        self,
        alice_listing: ListingConfig,
        hasher: NameHasher,
        memory_cache: MemoryCacheStore,
    ) -> None:
        # Arrange
        graph = FakeGraph([graph_payload(3, ["x.alice.eth", "y.alice.eth"])])

        async with TestClient(TestServer(graph.build_app())) as client:
            aggregator = MintStatsAggregator(
                client.session,
                memory_cache,
                hasher=hasher,
                graph_url=str(client.make_url("/graph")),
            )
            controller = MintStatsController(alice_listing, aggregator, memory_cache)

            # Act
            await controller.start()
            await controller.wait_idle()
            await controller.stop()

        # Assert
        assert controller.snapshot == MintStats(
            total_minted=3,
            recent_mints=("x.alice.eth", "y.alice.eth"),
            is_loading=False,
            error=None,
        )
        entry = memory_cache.load(cache_key("alice.eth"))
        assert entry is not None
        assert entry.total_minted == 3
        assert entry.recent_mints == ["x.alice.eth", "y.alice.eth"]

    @pytest.mark.asyncio
    async def test_graph_outage_falls_back_to_registry(
        self,
        alice_listing: ListingConfig,
        hasher: NameHasher,
        memory_cache: MemoryCacheStore,
    ) -> None:
        # Arrange
        graph = FakeGraph([{"error": "unavailable"}], status=503)
        resolver = FakeResolver([{"name": "x.alice.eth"}, {"name": "y.alice.eth"}])

        async with TestClient(TestServer(graph.build_app())) as client:
            aggregator = MintStatsAggregator(
                client.session,
                memory_cache,
                hasher=hasher,
                resolver=resolver,
                graph_url=str(client.make_url("/graph")),
            )
            controller = MintStatsController(alice_listing, aggregator, memory_cache)

            # Act
            await controller.start()
            await controller.wait_idle()
            await controller.stop()

        # Assert
        assert controller.snapshot.total_minted == 2
        assert controller.snapshot.error is None
        assert len(resolver.calls) == 1
        assert aggregator.stats.fallbacks_used == 1


class TestL2Listing:
    """L2 listing served by the indexer only."""

    @pytest.mark.asyncio
    async def test_unreachable_indexer_keeps_cached_data(
        self, bob_listing: ListingConfig, memory_cache: MemoryCacheStore
    ) -> None:
        # Arrange
        memory_cache.save(
            cache_key("bob.eth"),
            CacheEntry(total_minted=10, recent_mints=["a.bob.eth"], timestamp=now_ms()),
        )

        async with aiohttp.ClientSession() as session:
            # Nothing listens on port 1
            aggregator = MintStatsAggregator(
                session,
                memory_cache,
                indexer_url="http://127.0.0.1:1/api/v1/nodes",
                timeout=0.5,
            )
            controller = MintStatsController(bob_listing, aggregator, memory_cache)

            # Act
            await controller.start()
            seeded = controller.snapshot
            await controller.wait_idle()
            await controller.stop()

        # Assert
        assert seeded == MintStats(
            total_minted=10,
            recent_mints=("a.bob.eth",),
            is_loading=False,
            error=None,
        )
        assert controller.snapshot == MintStats(
            total_minted=10,
            recent_mints=("a.bob.eth",),
            is_loading=False,
            error=FETCH_ERROR_MESSAGE,
        )
        assert controller.state == ControllerState.ERROR
        assert aggregator.stats.fallbacks_used == 0
        assert aggregator.stats.source_failures["indexer"] == 1
