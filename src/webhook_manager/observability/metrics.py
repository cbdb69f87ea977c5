"""
Prometheus metrics for the webhook manager.

This module provides metrics for webhook registration, teardown, the
dynamic update loop and the readiness gate, plus a small HTTP server
exposing them alongside health endpoints.
"""

import logging
import time
from collections.abc import Awaitable, Callable
from contextlib import contextmanager

from aiohttp.web import (
    AppRunner,
    Application,
    Request,
    Response,
    TCPSite,
    json_response,
)
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)

logger = logging.getLogger(__name__)

_metrics_registry: CollectorRegistry | None = None

WEBHOOK_OPERATIONS_TOTAL = Counter(
    "webhook_manager_operations_total",
    "Webhook configuration operations by role and result",
    ["role", "operation", "result"],
    registry=None,
)

RECONCILIATION_DURATION = Histogram(
    "webhook_manager_reconciliation_duration_seconds",
    "Time spent on full reconciliation and teardown passes",
    ["operation"],
    buckets=[0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0],
    registry=None,
)

UPDATE_RESUBMISSIONS_TOTAL = Counter(
    "webhook_manager_update_resubmissions_total",
    "Update notifications resubmitted after a failed patch",
    ["role"],
    registry=None,
)

ENDPOINT_CHECKS_TOTAL = Counter(
    "webhook_manager_endpoint_checks_total",
    "Readiness gate evaluations by result",
    ["result"],
    registry=None,
)


def get_metrics_registry() -> CollectorRegistry:
    """Get or create the global metrics registry."""
    global _metrics_registry

    if _metrics_registry is None:
        _metrics_registry = CollectorRegistry()
        for metric in [
            WEBHOOK_OPERATIONS_TOTAL,
            RECONCILIATION_DURATION,
            UPDATE_RESUBMISSIONS_TOTAL,
            ENDPOINT_CHECKS_TOTAL,
        ]:
            _metrics_registry.register(metric)

    return _metrics_registry


class MetricsCollector:
    """Records metrics for the webhook manager."""

    def __init__(self):
        self.registry = get_metrics_registry()

    @contextmanager
    def track_pass(self, operation: str):
        """Time a reconciliation or teardown pass."""
        start_time = time.time()
        try:
            yield
        finally:
            RECONCILIATION_DURATION.labels(operation=operation).observe(
                time.time() - start_time
            )

    def record_operation(self, role: str, operation: str, result: str) -> None:
        WEBHOOK_OPERATIONS_TOTAL.labels(
            role=role, operation=operation, result=result
        ).inc()

    def record_resubmission(self, role: str) -> None:
        UPDATE_RESUBMISSIONS_TOTAL.labels(role=role).inc()

    def record_endpoint_check(self, ready: bool) -> None:
        ENDPOINT_CHECKS_TOTAL.labels(result="ready" if ready else "not_ready").inc()


metrics_collector = MetricsCollector()


class MetricsServer:
    """HTTP server for exposing Prometheus metrics and health endpoints."""

    def __init__(
        self,
        port: int = 8000,
        host: str = "0.0.0.0",
        readiness_check: Callable[[], Awaitable[None]] | None = None,
    ):
        """
        Initialize metrics server.

        Args:
            port: Port to serve metrics on
            host: Host interface to bind to
            readiness_check: Coroutine raising when the webhooks are not registered
        """
        self.port = port
        self.host = host
        self.readiness_check = readiness_check
        self.app = Application()
        self.runner: AppRunner | None = None
        self.site: TCPSite | None = None
        self._setup_routes()

    def _setup_routes(self) -> None:
        self.app.router.add_get("/metrics", self._metrics_handler)
        self.app.router.add_get("/ready", self._ready_handler)
        self.app.router.add_get("/healthz", self._healthz_handler)

    async def _metrics_handler(self, request: Request) -> Response:
        """Handle /metrics endpoint for Prometheus scraping."""
        try:
            metrics_data = generate_latest(get_metrics_registry())
            return Response(
                body=metrics_data,
                headers={"Content-Type": CONTENT_TYPE_LATEST},
            )
        except Exception as e:
            logger.error(f"Failed to generate metrics: {e}")
            return Response(
                text=f"Error generating metrics: {type(e).__name__}. Check logs for details.",
                status=500,
            )

    async def _ready_handler(self, request: Request) -> Response:
        """Report whether all webhook configurations are registered."""
        if self.readiness_check is None:
            return json_response({"status": "ready", "timestamp": time.time()})
        try:
            await self.readiness_check()
        except Exception as e:
            return json_response(
                {"status": "not_ready", "error": str(e), "timestamp": time.time()},
                status=503,
            )
        return json_response({"status": "ready", "timestamp": time.time()})

    async def _healthz_handler(self, request: Request) -> Response:
        return Response(text="ok")

    async def start(self) -> None:
        """Start the metrics server."""
        self.runner = AppRunner(self.app)
        await self.runner.setup()

        self.site = TCPSite(self.runner, self.host, self.port)
        await self.site.start()

        logger.info(f"Metrics server started on {self.host}:{self.port}")

    async def stop(self) -> None:
        """Stop the metrics server."""
        if self.site:
            await self.site.stop()
            self.site = None

        if self.runner:
            await self.runner.cleanup()
            self.runner = None

        logger.info("Metrics server stopped")
