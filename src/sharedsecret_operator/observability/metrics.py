"""
Prometheus metrics for the shared secret operator.

This module provides metrics collection for reconciliation outcomes,
status and local secret writes, cross-resource triggers and the HTTP
endpoint that exposes them together with health and readiness checks.
"""

import logging
import time
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any

from aiohttp.web import (
    Application,
    AppRunner,
    Request,
    Response,
    TCPSite,
    json_response,
)
from kubernetes import client
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)

if TYPE_CHECKING:
    from .health import HealthChecker

logger = logging.getLogger(__name__)

# Global metrics registry
_metrics_registry: CollectorRegistry | None = None

# Metrics definitions
RECONCILIATION_TOTAL = Counter(
    "sharedsecret_operator_reconciliation_total",
    "Total number of reconciliation attempts",
    ["resource_type", "namespace", "result"],
    registry=None,  # Will be set during initialization
)

RECONCILIATION_DURATION = Histogram(
    "sharedsecret_operator_reconciliation_duration_seconds",
    "Time spent on reconciliation operations",
    ["resource_type", "operation"],
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0],
    registry=None,
)

RECONCILIATION_ERRORS = Counter(
    "sharedsecret_operator_reconciliation_errors_total",
    "Total number of reconciliation errors",
    ["resource_type", "namespace", "error_type"],
    registry=None,
)

STATUS_WRITES = Counter(
    "sharedsecret_operator_status_writes_total",
    "Total number of status sub-resource patches sent",
    ["resource_type", "state"],
    registry=None,
)

LOCAL_SECRET_WRITES = Counter(
    "sharedsecret_operator_local_secret_writes_total",
    "Total number of local secret copies created or updated",
    ["namespace", "action"],
    registry=None,
)

TRIGGERS_TOTAL = Counter(
    "sharedsecret_operator_triggers_total",
    "Total number of request reconciles triggered by related changes",
    ["source_kind"],
    registry=None,
)


def get_metrics_registry() -> CollectorRegistry:
    """Get or create the global metrics registry."""
    global _metrics_registry

    if _metrics_registry is None:
        _metrics_registry = CollectorRegistry()

        for metric in [
            RECONCILIATION_TOTAL,
            RECONCILIATION_DURATION,
            RECONCILIATION_ERRORS,
            STATUS_WRITES,
            LOCAL_SECRET_WRITES,
            TRIGGERS_TOTAL,
        ]:
            _metrics_registry.register(metric)

    return _metrics_registry


class MetricsCollector:
    """Collects and manages metrics for the shared secret operator."""

    def __init__(self):
        self.registry = get_metrics_registry()

    @asynccontextmanager
    async def track_reconciliation(
        self,
        resource_type: str,
        namespace: str,
        operation: str = "reconcile",
    ):
        """
        Context manager to track reconciliation operations.

        Args:
            resource_type: Type of resource being reconciled
            namespace: Namespace of the resource
            operation: Type of operation being performed (apply, cleanup)
        """
        start_time = time.time()
        result = "unknown"

        try:
            yield
            result = "success"
        except Exception as e:
            result = "error"
            self.record_error(resource_type, namespace, e)
            raise
        finally:
            duration = time.time() - start_time

            RECONCILIATION_TOTAL.labels(
                resource_type=resource_type,
                namespace=namespace,
                result=result,
            ).inc()

            RECONCILIATION_DURATION.labels(
                resource_type=resource_type, operation=operation
            ).observe(duration)

    def record_error(
        self, resource_type: str, namespace: str, error: BaseException
    ) -> None:
        RECONCILIATION_ERRORS.labels(
            resource_type=resource_type,
            namespace=namespace,
            error_type=type(error).__name__,
        ).inc()

    def record_status_write(self, resource_type: str, state: str) -> None:
        STATUS_WRITES.labels(resource_type=resource_type, state=state).inc()

    def record_local_secret_write(self, namespace: str, action: str) -> None:
        """
        Record a write to a local secret copy.

        Args:
            namespace: Namespace of the local secret
            action: ``create`` or ``update``
        """
        LOCAL_SECRET_WRITES.labels(namespace=namespace, action=action).inc()

    def record_trigger(self, source_kind: str, count: int = 1) -> None:
        if count:
            TRIGGERS_TOTAL.labels(source_kind=source_kind).inc(count)


class MetricsServer:
    """HTTP server for exposing Prometheus metrics."""

    def __init__(
        self,
        port: int = 8081,
        host: str = "0.0.0.0",
        k8s_client: client.ApiClient | None = None,
    ):
        """
        Initialize metrics server.

        Args:
            port: Port to serve metrics on
            host: Host interface to bind to
            k8s_client: API client for readiness checks, shared with the operator
        """
        self.port = port
        self.host = host
        self.k8s_client = k8s_client
        self._health_checker: "HealthChecker | None" = None
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
            return Response(body=metrics_data, content_type=CONTENT_TYPE_LATEST)
        except Exception as e:
            logger.error(f"Failed to generate metrics: {e}")
            return Response(
                text=f"Error generating metrics: {type(e).__name__}. Check logs for details.",
                status=500,
            )

    def _get_health_checker(self) -> "HealthChecker":
        if self._health_checker is None:
            from .health import HealthChecker

            self._health_checker = HealthChecker(self.k8s_client)
        return self._health_checker

    async def _ready_handler(self, request: Request) -> Response:
        """Handle /ready endpoint for readiness probes."""
        try:
            health_checker = self._get_health_checker()
            results: dict[str, Any] = {
                "kubernetes_api": await health_checker._check_kubernetes_api(),
                "crds_installed": await health_checker._check_crds_installed(),
            }
            ready = all(r.status == "healthy" for r in results.values())

            return json_response(
                {
                    "status": "ready" if ready else "not_ready",
                    "timestamp": time.time(),
                    "checks": {name: r.status for name, r in results.items()},
                },
                status=200 if ready else 503,
            )

        except Exception as e:
            logger.error(f"Readiness check failed: {e}")
            return json_response(
                {
                    "status": "not_ready",
                    "error": f"{type(e).__name__}. Check logs for details.",
                    "timestamp": time.time(),
                },
                status=503,
            )

    async def _healthz_handler(self, request: Request) -> Response:
        # Liveness only: the server answering is enough
        return Response(text="ok")

    async def start(self) -> None:
        """Start the metrics server."""
        try:
            self.runner = AppRunner(self.app)
            await self.runner.setup()

            self.site = TCPSite(self.runner, self.host, self.port)
            await self.site.start()

            logger.info(f"Metrics server started on {self.host}:{self.port}")
        except Exception as e:
            logger.error(f"Failed to start metrics server: {e}")
            raise

    async def stop(self) -> None:
        """Stop the metrics server."""
        try:
            if self.site:
                await self.site.stop()
                self.site = None

            if self.runner:
                await self.runner.cleanup()
                self.runner = None

            logger.info("Metrics server stopped")
        except Exception as e:
            logger.error(f"Error stopping metrics server: {e}")


# Global metrics collector instance
metrics_collector = MetricsCollector()
