"""Prometheus metrics collector for mint statistics.

Note on Summaries:
------------------
The refresh duration Summary is populated from aggregate statistics
(average * count) rather than individual observations, so only _sum and
_count are exported. Use rate(_sum) / rate(_count) in PromQL for averages:

- Average refresh time: rate(mintstats_refresh_seconds_sum[5m]) / rate(mintstats_refresh_seconds_count[5m])
"""

from typing import TYPE_CHECKING, Any

from prometheus_client import (
    CollectorRegistry,
    Counter,
    Gauge,
    Summary,
    generate_latest,
)

if TYPE_CHECKING:
    from mintstats.app import MintStatsApp


class MetricsCollector:
    """
    Collects application statistics and exposes them as Prometheus metrics.

    Generates fresh metrics on each collection by calling app.get_stats()
    and transforming the results into Prometheus format.
    """

    def __init__(self, app: "MintStatsApp") -> None:
        """Initialize metrics collector.

        Args:
            app: Application instance to collect stats from
        """
        self._app = app

    def collect_metrics(self) -> bytes:
        """
        Collect current stats and return Prometheus text format.

        Returns:
            Prometheus text exposition format bytes
        """
        registry = CollectorRegistry()

        stats = self._app.get_stats()
        parent_name = stats.get("listing", {}).get("parent_name", "")

        self._collect_application_metrics(registry, stats)
        self._collect_snapshot_metrics(registry, stats, parent_name)
        self._collect_controller_metrics(registry, stats, parent_name)
        self._collect_aggregator_metrics(registry, stats, parent_name)

        return generate_latest(registry)

    def _collect_application_metrics(
        self, registry: CollectorRegistry, stats: dict[str, Any]
    ) -> None:
        running = Gauge(
            "mintstats_application_running",
            "Whether the application is running (1) or stopped (0)",
            registry=registry,
        )
        running.set(1 if stats.get("running") else 0)

    def _collect_snapshot_metrics(
        self, registry: CollectorRegistry, stats: dict[str, Any], parent_name: str
    ) -> None:
        """Collect the currently exposed snapshot."""
        snapshot = stats.get("snapshot", {})
        if not snapshot:
            return

        total_minted = Gauge(
            "mintstats_total_minted",
            "Best-known number of subnames issued under the parent name",
            ["parent_name"],
            registry=registry,
        )
        total_minted.labels(parent_name=parent_name).set(
            snapshot.get("totalMinted", 0)
        )

        recent = Gauge(
            "mintstats_recent_mints",
            "Number of recent subnames currently reported",
            ["parent_name"],
            registry=registry,
        )
        recent.labels(parent_name=parent_name).set(
            len(snapshot.get("recentMints", []))
        )

        loading = Gauge(
            "mintstats_snapshot_loading",
            "Whether the snapshot is loading (1) or not (0)",
            ["parent_name"],
            registry=registry,
        )
        loading.labels(parent_name=parent_name).set(
            1 if snapshot.get("isLoading") else 0
        )

        error = Gauge(
            "mintstats_snapshot_error",
            "Whether the latest refresh failed (1) or not (0)",
            ["parent_name"],
            registry=registry,
        )
        error.labels(parent_name=parent_name).set(1 if snapshot.get("error") else 0)

    def _collect_controller_metrics(
        self, registry: CollectorRegistry, stats: dict[str, Any], parent_name: str
    ) -> None:
        """Collect polling controller metrics."""
        controller_stats = stats.get("controller", {})
        if not controller_stats:
            return

        ticks_skipped = Counter(
            "mintstats_controller_ticks_skipped_total",
            "Polling ticks skipped because a refresh was still in flight",
            ["parent_name"],
            registry=registry,
        )
        ticks_skipped.labels(parent_name=parent_name)._value.set(
            controller_stats.get("ticks_skipped", 0)
        )

        discarded = Counter(
            "mintstats_controller_results_discarded_total",
            "Refresh results discarded after the controller stopped",
            ["parent_name"],
            registry=registry,
        )
        discarded.labels(parent_name=parent_name)._value.set(
            controller_stats.get("results_discarded", 0)
        )

    def _collect_aggregator_metrics(
        self, registry: CollectorRegistry, stats: dict[str, Any], parent_name: str
    ) -> None:
        """Collect source aggregation metrics."""
        aggregator_stats = stats.get("aggregator", {})
        if not aggregator_stats:
            return

        refreshes = Counter(
            "mintstats_refreshes_total",
            "Aggregation attempts by result",
            ["parent_name", "result"],
            registry=registry,
        )
        refreshes.labels(parent_name=parent_name, result="success")._value.set(
            aggregator_stats.get("refreshes_succeeded", 0)
        )
        refreshes.labels(parent_name=parent_name, result="failure")._value.set(
            aggregator_stats.get("refreshes_failed", 0)
        )

        fallbacks = Counter(
            "mintstats_fallbacks_total",
            "Times a secondary source was tried after a failure",
            ["parent_name"],
            registry=registry,
        )
        fallbacks.labels(parent_name=parent_name)._value.set(
            aggregator_stats.get("fallbacks_used", 0)
        )

        cache_writes = Counter(
            "mintstats_cache_writes_total",
            "Cache entries written after successful refreshes",
            ["parent_name"],
            registry=registry,
        )
        cache_writes.labels(parent_name=parent_name)._value.set(
            aggregator_stats.get("cache_writes", 0)
        )

        source_failures = aggregator_stats.get("source_failures", {})
        if source_failures:
            failures = Counter(
                "mintstats_source_failures_total",
                "Failures per data source",
                ["parent_name", "source"],
                registry=registry,
            )
            for source, count in source_failures.items():
                failures.labels(parent_name=parent_name, source=source)._value.set(
                    count
                )

        success_rate = Gauge(
            "mintstats_refresh_success_rate",
            "Fraction of refreshes that produced a result",
            ["parent_name"],
            registry=registry,
        )
        success_rate.labels(parent_name=parent_name).set(
            aggregator_stats.get("success_rate", 1.0)
        )

        refresh_seconds = Summary(
            "mintstats_refresh_seconds",
            "Aggregation duration in seconds",
            registry=registry,
        )

        attempted = aggregator_stats.get("refreshes_attempted", 0)
        avg_refresh_ms = aggregator_stats.get("avg_refresh_ms", 0.0)

        if attempted > 0 and avg_refresh_ms > 0:
            refresh_seconds._sum.set((avg_refresh_ms / 1000.0) * attempted)
            refresh_seconds._count.set(attempted)
