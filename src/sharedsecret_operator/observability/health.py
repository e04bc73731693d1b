"""
Health check utilities for the shared secret operator.

This module provides the checks behind the readiness endpoint and the
kopf liveness probe.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any

from kubernetes import client
from kubernetes.client.rest import ApiException

from ..constants import (
    API_GROUP,
    API_VERSION,
    SHARED_SECRET_PLURAL,
    SHARED_SECRET_REQUEST_PLURAL,
)

logger = logging.getLogger(__name__)


@dataclass
class HealthCheckResult:
    """Result of a health check operation."""

    name: str
    status: str  # "healthy", "unhealthy", "unknown"
    message: str
    details: dict[str, Any] | None = None
    duration: float = 0.0
    timestamp: float = 0.0


class HealthChecker:
    """Performs health checks for the operator."""

    def __init__(self, k8s_client: client.ApiClient | None = None):
        self.k8s_client = k8s_client

    def _api_client(self) -> client.ApiClient:
        if not self.k8s_client:
            from ..utils.kubernetes import get_kubernetes_client

            self.k8s_client = get_kubernetes_client()
        return self.k8s_client

    async def check_all(self) -> dict[str, HealthCheckResult]:
        """
        Run all health checks.

        Returns:
            Dictionary of health check results
        """
        checks = {
            "kubernetes_api": self._check_kubernetes_api,
            "crds_installed": self._check_crds_installed,
        }

        results = {}
        for name, check in checks.items():
            try:
                results[name] = await check()
            except Exception as e:
                results[name] = HealthCheckResult(
                    name=name,
                    status="unhealthy",
                    message=f"Health check failed: {str(e)}",
                    timestamp=time.time(),
                )

        return results

    async def _check_kubernetes_api(self) -> HealthCheckResult:
        """Check Kubernetes API connectivity."""
        start_time = time.time()

        try:
            core_api = client.CoreV1Api(self._api_client())
            await asyncio.to_thread(core_api.list_namespace, limit=1, timeout_seconds=5)

            duration = time.time() - start_time
            return HealthCheckResult(
                name="kubernetes_api",
                status="healthy",
                message="Kubernetes API is accessible",
                details={"response_time_ms": round(duration * 1000, 2)},
                duration=duration,
                timestamp=time.time(),
            )

        except ApiException as e:
            duration = time.time() - start_time
            return HealthCheckResult(
                name="kubernetes_api",
                status="unhealthy",
                message=f"Kubernetes API error: {e.reason}",
                details={"status_code": e.status},
                duration=duration,
                timestamp=time.time(),
            )

        except Exception as e:
            duration = time.time() - start_time
            return HealthCheckResult(
                name="kubernetes_api",
                status="unhealthy",
                message=f"Failed to connect to Kubernetes API: {str(e)}",
                duration=duration,
                timestamp=time.time(),
            )

    async def _check_crds_installed(self) -> HealthCheckResult:
        """Check that both custom resource types can be listed."""
        start_time = time.time()
        custom_api = client.CustomObjectsApi(self._api_client())

        listable = []
        failing = []
        for plural in (SHARED_SECRET_PLURAL, SHARED_SECRET_REQUEST_PLURAL):
            try:
                await asyncio.to_thread(
                    custom_api.list_cluster_custom_object,
                    API_GROUP,
                    API_VERSION,
                    plural,
                    limit=1,
                )
                listable.append(plural)
            except ApiException as e:
                logger.debug(f"Listing {plural} failed: {e.status} {e.reason}")
                failing.append(plural)

        duration = time.time() - start_time

        if failing:
            return HealthCheckResult(
                name="crds_installed",
                status="unhealthy",
                message=f"Custom resources not listable: {', '.join(failing)}",
                details={"listable": listable, "failing": failing},
                duration=duration,
                timestamp=time.time(),
            )
        return HealthCheckResult(
            name="crds_installed",
            status="healthy",
            message="All required CRDs are installed",
            details={"listable": listable},
            duration=duration,
            timestamp=time.time(),
        )

    def get_overall_health(self, results: dict[str, HealthCheckResult]) -> str:
        if not results:
            return "unknown"

        statuses = [result.status for result in results.values()]
        if "unhealthy" in statuses:
            return "unhealthy"
        elif "unknown" in statuses:
            return "degraded"
        return "healthy"

    def to_dict(self, results: dict[str, HealthCheckResult]) -> dict[str, Any]:
        """Convert health check results to dictionary format."""
        return {
            "status": self.get_overall_health(results),
            "timestamp": time.time(),
            "checks": {
                name: {
                    "status": result.status,
                    "message": result.message,
                    "details": result.details,
                    "duration": result.duration,
                }
                for name, result in results.items()
            },
        }
