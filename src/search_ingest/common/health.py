"""
Health check endpoints for the ingestion worker.

Provides Kubernetes-compatible health check endpoints:
- /health/live - Liveness probe (is the worker process responsive?)
- /health/ready - Readiness probe (is the index present and the stream subscribed?)

Usage:
    health_server = HealthCheckServer(port=8080, worker_name="search-indexer")
    await health_server.start()
    health_server.set_ready(index_ready=True, stream_connected=True)
    await health_server.stop()
"""

import logging
from datetime import UTC, datetime

from aiohttp import web

logger = logging.getLogger(__name__)


class HealthCheckServer:
    """
    HTTP server for liveness and readiness probes.

    Liveness always returns 200 while the server runs. Readiness returns 200
    only after the destination index has been confirmed and the stream
    consumer has started; 503 otherwise. A fatal startup error is reported in
    the readiness body with status 200 so the pod stays inspectable.
    """

    def __init__(
        self,
        port: int | None = 8080,
        worker_name: str = "worker",
        enabled: bool = True,
    ):
        """
        Args:
            port: HTTP port to listen on. 0 picks a free port; None disables the server.
            worker_name: Name of the worker for logging and response bodies
            enabled: If False, start() and stop() become no-ops.
        """
        self.port = port
        self.worker_name = worker_name
        self._enabled = enabled and port is not None
        self._index_ready = False
        self._stream_connected = False
        self._error_message: str | None = None
        self._started_at = datetime.now(UTC)
        self._actual_port: int | None = None
        self._runner: web.AppRunner | None = None

    def set_ready(
        self,
        index_ready: bool | None = None,
        stream_connected: bool | None = None,
    ) -> None:
        """Update readiness inputs; arguments left as None keep their value."""
        old_ready = self.is_ready
        if index_ready is not None:
            self._index_ready = index_ready
        if stream_connected is not None:
            self._stream_connected = stream_connected

        if old_ready != self.is_ready:
            logger.info(
                f"Readiness status changed: {old_ready} -> {self.is_ready}",
                extra={"worker_name": self.worker_name},
            )

    def set_error(self, error_message: str) -> None:
        """Enter error state: alive, never ready, error visible in /health/ready."""
        self._error_message = error_message
        logger.error(
            f"Health check error state set: {error_message}",
            extra={"error": error_message},
        )

    @property
    def error_message(self) -> str | None:
        return self._error_message

    @property
    def is_ready(self) -> bool:
        return self._index_ready and self._stream_connected and self._error_message is None

    @property
    def actual_port(self) -> int | None:
        """Port the server is listening on, None when not running or disabled."""
        return self._actual_port

    @property
    def is_enabled(self) -> bool:
        return self._enabled

    def _checks(self) -> dict:
        return {
            "index_ready": self._index_ready,
            "stream_connected": self._stream_connected,
        }

    async def handle_liveness(self, request: web.Request) -> web.Response:
        uptime_seconds = (datetime.now(UTC) - self._started_at).total_seconds()
        return web.json_response(
            {
                "status": "alive",
                "worker": self.worker_name,
                "uptime_seconds": int(uptime_seconds),
                "timestamp": datetime.now(UTC).isoformat(),
            },
            status=200,
        )

    async def handle_readiness(self, request: web.Request) -> web.Response:
        if self._error_message:
            return web.json_response(
                {
                    "status": "error",
                    "worker": self.worker_name,
                    "error": self._error_message,
                    "timestamp": datetime.now(UTC).isoformat(),
                },
                status=200,
            )

        if self.is_ready:
            return web.json_response(
                {
                    "status": "ready",
                    "worker": self.worker_name,
                    "checks": self._checks(),
                    "timestamp": datetime.now(UTC).isoformat(),
                },
                status=200,
            )

        reasons = []
        if not self._index_ready:
            reasons.append("index_not_ready")
        if not self._stream_connected:
            reasons.append("stream_disconnected")

        return web.json_response(
            {
                "status": "not_ready",
                "worker": self.worker_name,
                "reasons": reasons,
                "checks": self._checks(),
                "timestamp": datetime.now(UTC).isoformat(),
            },
            status=503,
        )

    def create_app(self) -> web.Application:
        """Create aiohttp application with health endpoints."""
        app = web.Application()
        app.router.add_get("/health/live", self.handle_liveness)
        app.router.add_get("/health/ready", self.handle_readiness)
        return app

    async def start(self) -> None:
        """
        Start listening on the configured port.

        A port already in use is logged and the worker continues without
        health checks rather than failing startup.
        """
        if not self._enabled or self._runner is not None:
            return

        runner = web.AppRunner(self.create_app())
        await runner.setup()
        site = web.TCPSite(runner, "0.0.0.0", self.port, reuse_address=True)
        try:
            await site.start()
        except OSError as e:
            await runner.cleanup()
            logger.warning(
                "Could not start health check server, continuing without it",
                extra={"error": str(e)},
            )
            return

        self._runner = runner
        server = site._server
        if server is not None and server.sockets:
            self._actual_port = server.sockets[0].getsockname()[1]
        else:
            self._actual_port = self.port

        logger.info(
            f"Health check server listening on port {self._actual_port}",
            extra={"worker_name": self.worker_name},
        )

    async def stop(self) -> None:
        if self._runner is None:
            return

        await self._runner.cleanup()
        self._runner = None
        self._actual_port = None
        logger.info("Health check server stopped")


__all__ = ["HealthCheckServer"]
