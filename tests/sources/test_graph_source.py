"""Tests for the graph query source."""

from unittest.mock import MagicMock

import aiohttp
import pytest
from aiohttp.test_utils import TestClient, TestServer

from fakes import ALICE_NODE, FakeGraph, graph_payload, nested_payload
from mintstats.exceptions import SourceError
from mintstats.listing.types import NameHasher
from mintstats.sources import SourceKind, fetch_graph_stats
from mintstats.sources.graph import build_stats_query, build_subdomains_query


class TestQueryBuilding:
    """Tests for graph query text."""

    def test_stats_query_requests_count_and_ordered_names(self) -> None:
        # Act
        query = build_stats_query(ALICE_NODE, 100)

        # Assert
        assert f'domain(id: "{ALICE_NODE}")' in query
        assert "subdomainCount" in query
        assert f'parent: "{ALICE_NODE}"' in query
        assert "first: 100" in query
        assert "orderBy: createdAt" in query
        assert "orderDirection: desc" in query

    def test_subdomains_query_uses_nested_relation(self) -> None:
        # Act
        query = build_subdomains_query(ALICE_NODE, 25)

        # Assert
        assert f'domain(id: "{ALICE_NODE}")' in query
        assert "subdomains(first: 25, orderBy: createdAt, orderDirection: desc)" in query
        assert "subdomainCount" not in query


class TestFetchGraphStats:
    """Tests for fetch_graph_stats against an in-process graph."""

    @pytest.mark.asyncio
    async def test_returns_count_and_names(self, hasher: NameHasher) -> None:
        # Arrange
        graph = FakeGraph([graph_payload(3, ["x.alice.eth", "y.alice.eth"])])

        async with TestClient(TestServer(graph.build_app())) as client:
            # Act
            result = await fetch_graph_stats(
                client.session,
                "alice.eth",
                100,
                hasher=hasher,
                url=str(client.make_url("/graph")),
            )

        # Assert
        assert result.total_minted == 3
        assert result.recent_mints == ("x.alice.eth", "y.alice.eth")
        assert result.source == SourceKind.GRAPH
        assert result.is_lower_bound is False
        assert len(graph.queries) == 1

    @pytest.mark.asyncio
    async def test_string_count_is_coerced(self, hasher: NameHasher) -> None:
        # Arrange
        graph = FakeGraph([graph_payload("12", ["a.alice.eth"])])

        async with TestClient(TestServer(graph.build_app())) as client:
            # Act
            result = await fetch_graph_stats(
                client.session,
                "alice.eth",
                100,
                hasher=hasher,
                url=str(client.make_url("/graph")),
            )

        # Assert
        assert result.total_minted == 12

    @pytest.mark.asyncio
    async def test_empty_names_with_positive_count_issues_one_nested_query(
        self, hasher: NameHasher
    ) -> None:
        # Arrange
        graph = FakeGraph(
            [
                graph_payload(2, []),
                nested_payload(["new.alice.eth", "old.alice.eth"]),
            ]
        )

        async with TestClient(TestServer(graph.build_app())) as client:
            # Act
            result = await fetch_graph_stats(
                client.session,
                "alice.eth",
                100,
                hasher=hasher,
                url=str(client.make_url("/graph")),
            )

        # Assert
        assert len(graph.queries) == 2
        assert "subdomains(" in graph.queries[1]
        assert result.total_minted == 2
        assert result.recent_mints == ("new.alice.eth", "old.alice.eth")

    @pytest.mark.asyncio
    async def test_empty_nested_result_keeps_count(self, hasher: NameHasher) -> None:
        # Arrange
        graph = FakeGraph([graph_payload(2, []), nested_payload([])])

        async with TestClient(TestServer(graph.build_app())) as client:
            # Act
            result = await fetch_graph_stats(
                client.session,
                "alice.eth",
                100,
                hasher=hasher,
                url=str(client.make_url("/graph")),
            )

        # Assert
        assert len(graph.queries) == 2
        assert result.total_minted == 2
        assert result.recent_mints == ()

    @pytest.mark.asyncio
    async def test_zero_count_does_not_issue_nested_query(
        self, hasher: NameHasher
    ) -> None:
        # Arrange
        graph = FakeGraph([graph_payload(0, [])])

        async with TestClient(TestServer(graph.build_app())) as client:
            # Act
            result = await fetch_graph_stats(
                client.session,
                "alice.eth",
                100,
                hasher=hasher,
                url=str(client.make_url("/graph")),
            )

        # Assert
        assert len(graph.queries) == 1
        assert result.total_minted == 0
        assert result.recent_mints == ()

    @pytest.mark.asyncio
    async def test_unknown_domain_counts_as_zero(self, hasher: NameHasher) -> None:
        # Arrange
        graph = FakeGraph([{"data": {"domain": None, "domains": []}}])

        async with TestClient(TestServer(graph.build_app())) as client:
            # Act
            result = await fetch_graph_stats(
                client.session,
                "alice.eth",
                100,
                hasher=hasher,
                url=str(client.make_url("/graph")),
            )

        # Assert
        assert result.total_minted == 0

    @pytest.mark.asyncio
    async def test_null_domains_triggers_nested_query(
        self, hasher: NameHasher
    ) -> None:
        # Arrange
        graph = FakeGraph(
            [
                {"data": {"domain": {"subdomainCount": 2}, "domains": None}},
                nested_payload(["new.alice.eth", "old.alice.eth"]),
            ]
        )

        async with TestClient(TestServer(graph.build_app())) as client:
            # Act
            result = await fetch_graph_stats(
                client.session,
                "alice.eth",
                100,
                hasher=hasher,
                url=str(client.make_url("/graph")),
            )

        # Assert
        assert len(graph.queries) == 2
        assert result.total_minted == 2
        assert result.recent_mints == ("new.alice.eth", "old.alice.eth")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("count", [-5, "-5"])
    async def test_negative_count_is_clamped_to_zero(
        self, hasher: NameHasher, count
    ) -> None:
        # Arrange
        graph = FakeGraph([graph_payload(count, [])])

        async with TestClient(TestServer(graph.build_app())) as client:
            # Act
            result = await fetch_graph_stats(
                client.session,
                "alice.eth",
                100,
                hasher=hasher,
                url=str(client.make_url("/graph")),
            )

        # Assert
        assert result.total_minted == 0
        assert len(graph.queries) == 1

    @pytest.mark.asyncio
    async def test_unnamed_domains_are_skipped(self, hasher: NameHasher) -> None:
        # Arrange
        graph = FakeGraph([graph_payload(3, ["x.alice.eth", None, ""])])

        async with TestClient(TestServer(graph.build_app())) as client:
            # Act
            result = await fetch_graph_stats(
                client.session,
                "alice.eth",
                100,
                hasher=hasher,
                url=str(client.make_url("/graph")),
            )

        # Assert
        assert result.recent_mints == ("x.alice.eth",)

    @pytest.mark.asyncio
    async def test_names_are_capped_at_limit(self, hasher: NameHasher) -> None:
        # Arrange
        graph = FakeGraph([graph_payload(3, ["a", "b", "c"])])

        async with TestClient(TestServer(graph.build_app())) as client:
            # Act
            result = await fetch_graph_stats(
                client.session,
                "alice.eth",
                2,
                hasher=hasher,
                url=str(client.make_url("/graph")),
            )

        # Assert
        assert result.recent_mints == ("a", "b")
        assert "first: 2" in graph.queries[0]

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "payload",
        [
            {"errors": [{"message": "indexing error"}]},
            {"data": {"domain": {"subdomainCount": 1}, "domains": "oops"}},
            {"data": {"domain": {"subdomainCount": "lots"}, "domains": []}},
            b"<html>bad gateway</html>",
        ],
    )
    async def test_malformed_response_raises_source_error(
        self, hasher: NameHasher, payload
    ) -> None:
        # Arrange
        graph = FakeGraph([payload])

        async with TestClient(TestServer(graph.build_app())) as client:
            # Act & Assert
            with pytest.raises(SourceError) as exc_info:
                await fetch_graph_stats(
                    client.session,
                    "alice.eth",
                    100,
                    hasher=hasher,
                    url=str(client.make_url("/graph")),
                )

        assert exc_info.value.source == SourceKind.GRAPH

    @pytest.mark.asyncio
    async def test_failed_nested_query_raises_source_error(
        self, hasher: NameHasher
    ) -> None:
        # Arrange
        graph = FakeGraph([graph_payload(2, []), b"not json"])

        async with TestClient(TestServer(graph.build_app())) as client:
            # Act & Assert
            with pytest.raises(SourceError):
                await fetch_graph_stats(
                    client.session,
                    "alice.eth",
                    100,
                    hasher=hasher,
                    url=str(client.make_url("/graph")),
                )

    @pytest.mark.asyncio
    async def test_http_error_raises_source_error(self, hasher: NameHasher) -> None:
        # Arrange
        graph = FakeGraph([{"error": "unavailable"}], status=503)

        async with TestClient(TestServer(graph.build_app())) as client:
            # Act & Assert
            with pytest.raises(SourceError, match="Request failed"):
                await fetch_graph_stats(
                    client.session,
                    "alice.eth",
                    100,
                    hasher=hasher,
                    url=str(client.make_url("/graph")),
                )

    @pytest.mark.asyncio
    async def test_timeout_raises_source_error(self, hasher: NameHasher) -> None:
        # Arrange
        graph = FakeGraph([graph_payload(1, ["a"])], delay=0.5)

        async with TestClient(TestServer(graph.build_app())) as client:
            # Act & Assert
            with pytest.raises(SourceError, match="timed out"):
                await fetch_graph_stats(
                    client.session,
                    "alice.eth",
                    100,
                    hasher=hasher,
                    url=str(client.make_url("/graph")),
                    timeout=0.05,
                )

    @pytest.mark.asyncio
    async def test_connection_error_raises_source_error(
        self, hasher: NameHasher
    ) -> None:
        # Arrange
        session = MagicMock()
        session.post = MagicMock(
            side_effect=aiohttp.ClientConnectionError("connection refused")
        )

        # Act & Assert
        with pytest.raises(SourceError, match="connection refused"):
            await fetch_graph_stats(session, "alice.eth", 100, hasher=hasher)

    @pytest.mark.asyncio
    async def test_hasher_failure_raises_source_error(self) -> None:
        # Arrange
        def broken_hasher(name: str) -> str:
            raise ValueError("invalid label")

        session = MagicMock()

        # Act & Assert
        with pytest.raises(SourceError, match="Unable to hash"):
            await fetch_graph_stats(
                session, "alice.eth", 100, hasher=broken_hasher
            )

        session.post.assert_not_called()
