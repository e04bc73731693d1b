#!/usr/bin/env python3
"""
Shared Secret Operator - Main entry point for the kopf-based operator.

The operator mirrors secrets published by SharedSecrets into the namespaces
of the SharedSecretRequests that ask for them.

Usage:
    python -m sharedsecret_operator.operator
    # Or with kopf directly:
    kopf run -m sharedsecret_operator.operator --all-namespaces

Environment Variables:
    SHAREDSECRET_OPERATOR_NAMESPACES: Comma-separated list of namespaces to watch
    CONTROLLER_POD_NAME: Instance identifier attached to emitted events
    LOG_LEVEL: Logging level (DEBUG, INFO, WARNING, ERROR)
    REQUEUE_INTERVAL_SECONDS: Fallback re-evaluation interval
"""

import asyncio
import logging
import sys

import kopf

from sharedsecret_operator.errors import ConfigurationError

# Import all handler modules to register them with kopf
from sharedsecret_operator.handlers import (  # noqa: F401
    shared_secret,
    shared_secret_request,
    triggers,
)
from sharedsecret_operator.observability.health import HealthChecker
from sharedsecret_operator.observability.logging import setup_structured_logging
from sharedsecret_operator.observability.metrics import MetricsServer
from sharedsecret_operator.settings import settings as operator_settings
from sharedsecret_operator.utils.kubernetes import (
    get_kubernetes_client,
    verify_crds_installed,
)

# Global reference to metrics server for cleanup
_global_metrics_server: MetricsServer | None = None


def configure_logging() -> None:
    """Configure structured logging for the operator based on operator_settings."""
    setup_structured_logging(
        log_level=operator_settings.log_level.upper(),
        enable_json_formatting=operator_settings.json_logs,
        correlation_id_enabled=operator_settings.correlation_ids,
    )


def get_watched_namespaces() -> list[str] | None:
    return operator_settings.watched_namespaces


@kopf.on.startup()
async def startup_handler(
    settings: kopf.OperatorSettings, memo: kopf.Memo, **_
) -> None:
    """
    Operator startup configuration.

    Configures kopf, loads the Kubernetes configuration, refuses to start
    when the custom resource types cannot be listed and starts the metrics
    server.
    """
    logging.info("Starting Shared Secret Operator...")
    settings.watching.reconnect_backoff = 1.0
    settings.execution.max_workers = operator_settings.max_workers

    watched_namespaces = get_watched_namespaces()
    if watched_namespaces:
        logging.info(f"Watching namespaces: {', '.join(watched_namespaces)}")
    else:
        logging.info("Watching all namespaces (cluster-wide mode)")

    memo.k8s_client = get_kubernetes_client()
    memo.reconcile_locks = {}

    try:
        await asyncio.to_thread(verify_crds_installed, memo.k8s_client)
    except ConfigurationError as e:
        raise e.as_kopf_error() from e

    instance = operator_settings.controller_pod_name
    if instance:
        logging.info(f"Reporting events as instance {instance}")
    else:
        logging.warning("CONTROLLER_POD_NAME is not set; events carry no instance")

    if operator_settings.metrics_enabled:
        try:
            metrics_server = MetricsServer(
                port=operator_settings.metrics_port,
                host=operator_settings.metrics_host,
                k8s_client=memo.k8s_client,
            )
            await metrics_server.start()

            global _global_metrics_server
            _global_metrics_server = metrics_server
        except Exception as e:
            # Don't fail operator startup if metrics server fails
            logging.warning(f"Continuing without metrics server: {e}")


@kopf.on.cleanup()
async def cleanup_handler(**_) -> None:
    """Stop the metrics server when the operator shuts down."""
    logging.info("Shutting down Shared Secret Operator...")

    global _global_metrics_server
    if _global_metrics_server:
        await _global_metrics_server.stop()
        _global_metrics_server = None


@kopf.on.probe(id="healthz")
async def health_check(memo: kopf.Memo, **_) -> dict[str, str]:
    """
    Health check probe for Kubernetes liveness checks.

    Returns:
        Dictionary indicating operator health status
    """
    try:
        health_checker = HealthChecker(getattr(memo, "k8s_client", None))
        health_results = await health_checker.check_all()
        return {
            "status": health_checker.get_overall_health(health_results),
            "operator": "sharedsecret-operator",
        }
    except Exception as e:
        logging.error(f"Health check failed: {e}")
        return {
            "status": "unhealthy",
            "operator": "sharedsecret-operator",
            "error": str(e),
        }


def main() -> None:
    """
    Main entry point for the operator.

    Configures logging, determines the namespace scope and runs kopf until
    it is stopped. Exits non-zero when kopf fails, including when a startup
    precondition is not met.
    """
    configure_logging()

    watched_namespaces = get_watched_namespaces()

    try:
        if watched_namespaces:
            kopf.run(
                namespaces=watched_namespaces,
                standalone=True,
                liveness_endpoint="http://0.0.0.0:8080/healthz",
            )
        else:
            kopf.run(
                clusterwide=True,
                standalone=True,
                liveness_endpoint="http://0.0.0.0:8080/healthz",
            )
    except KeyboardInterrupt:
        logging.info("Received shutdown signal")
        sys.exit(0)
    except Exception as e:
        logging.error(f"Operator failed with error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
