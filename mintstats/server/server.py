from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING

import structlog
from aiohttp import web
from aiohttp.hdrs import CONTENT_TYPE
from prometheus_client import CONTENT_TYPE_LATEST

from mintstats.core.logging import Logger
from mintstats.metrics.prometheus import MetricsCollector

if TYPE_CHECKING:
    from mintstats.app import MintStatsApp

logger: Logger = structlog.getLogger(__name__)


class HTTPServer:
    """
    HTTP server exposing the current snapshot, health and stats endpoints.

    Follows the async component lifecycle pattern of MintStatsController.
    """

    __slots__ = (
        "_app",
        "_port",
        "_host",
        "_runner",
        "_site",
        "_running",
    )

    def __init__(
        self,
        app: "MintStatsApp",
        port: int = 8080,
        host: str = "0.0.0.0",
    ) -> None:
        """Initialize HTTP server.

        Args:
            app: Application instance to query for snapshot/health/stats
            port: Port to bind to (default: 8080)
            host: Host to bind to (default: 0.0.0.0 for container compatibility)
        """
        self._app = app
        self._port = port
        self._host = host
        self._runner: web.AppRunner | None = None
        self._site: web.TCPSite | None = None
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    def build_app(self) -> web.Application:
        web_app = web.Application()
        web_app.router.add_get("/health", self._handle_health)
        web_app.router.add_get("/stats", self._handle_stats)
        web_app.router.add_get("/snapshot", self._handle_snapshot)
        web_app.router.add_get("/metrics", self._handle_metrics)
        return web_app

    async def start(self) -> None:
        """Start HTTP server.

        Raises:
            Exception: If server fails to start (port conflict, etc.)
        """
        if self._running:
            logger.warning("HTTP server already running")
            return

        logger.info(f"Starting HTTP server on {self._host}:{self._port}")

        self._runner = web.AppRunner(self.build_app())
        await self._runner.setup()

        self._site = web.TCPSite(
            self._runner,
            self._host,
            self._port,
        )
        await self._site.start()

        self._running = True
        logger.info(f"✓ HTTP server started on {self._host}:{self._port}")

    async def stop(self) -> None:
        """Stop HTTP server gracefully."""
        if not self._running:
            logger.warning("HTTP server not running")
            return

        logger.info("Stopping HTTP server...")

        self._running = False

        if self._site:
            await self._site.stop()
            self._site = None

        if self._runner:
            await self._runner.cleanup()
            self._runner = None

        logger.info("✓ HTTP server stopped")

    async def _handle_health(self, request: web.Request) -> web.Response:
        """Handle GET /health endpoint.

        Returns:
            200 OK while the application is running
            503 Service Unavailable otherwise
        """
        logger.debug("GET /health")

        is_healthy = self._app.is_healthy()
        controller = self._app.controller

        response_data = {
            "healthy": is_healthy,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "components": {
                "controller": controller is not None and controller.is_running,
                "session": self._app.session is not None
                and not self._app.session.closed,
            },
        }

        status = 200 if is_healthy else 503
        return web.json_response(response_data, status=status)

    async def _handle_stats(self, request: web.Request) -> web.Response:
        """Handle GET /stats endpoint."""
        logger.debug("GET /stats")

        return web.json_response(self._app.get_stats(), status=200)

    async def _handle_snapshot(self, request: web.Request) -> web.Response:
        """Handle GET /snapshot endpoint.

        Returns:
            200 OK with {totalMinted, recentMints, isLoading, error}
            503 Service Unavailable when the controller is not available
        """
        logger.debug("GET /snapshot")

        controller = self._app.controller
        if controller is None:
            return web.json_response(
                {"error": "Controller not available"}, status=503
            )

        return web.json_response(controller.snapshot.to_dict(), status=200)

    async def _handle_metrics(self, request: web.Request) -> web.Response:
        """Handle GET /metrics endpoint.

        Returns:
            200 OK with Prometheus text exposition format
        """
        try:
            metrics_bytes = MetricsCollector(self._app).collect_metrics()
        except Exception as e:
            logger.exception(f"Error getting metrics: {e}")
            return web.json_response({"error": str(e)}, status=500)

        return web.Response(
            body=metrics_bytes,
            headers={CONTENT_TYPE: CONTENT_TYPE_LATEST},
        )
