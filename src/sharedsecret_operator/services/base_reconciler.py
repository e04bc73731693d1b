"""
Base reconciler class providing common patterns for resource reconciliation.

This module defines the BaseReconciler class: the entry point that runs a
resource handler under the finalizer protocol with logging and metrics, the
Kubernetes API clients the handlers use, and the error policy applied when a
reconcile fails.
"""

import time
from abc import ABC, abstractmethod
from collections.abc import MutableMapping
from typing import Any, Generic, TypeVar

from kubernetes import client

from ..models.common import NamespacedResource
from ..observability.logging import OperatorLogger
from ..observability.metrics import metrics_collector
from ..settings import settings
from .action import Action
from .finalizer import Apply, Cleanup, FinalizerEvent, finalizer

T = TypeVar("T", bound=NamespacedResource)


class BaseReconciler(ABC, Generic[T]):
    """
    Base class for the SharedSecret and SharedSecretRequest reconcilers.

    Subclasses name the resource they drive and implement ``apply`` and
    ``cleanup``; everything else is shared.
    """

    resource_type: str
    plural: str
    finalizer_name: str

    def __init__(
        self,
        k8s_client: client.ApiClient | None = None,
        requeue_interval: float | None = None,
    ):
        """
        Initialize base reconciler.

        Args:
            k8s_client: Kubernetes API client, will be created if not provided
            requeue_interval: Fallback re-evaluation interval in seconds
        """
        self.k8s_client = k8s_client
        self.requeue_interval = (
            requeue_interval
            if requeue_interval is not None
            else settings.requeue_interval_seconds
        )
        self.logger = OperatorLogger(self.__class__.__name__)
        self._core_api: client.CoreV1Api | None = None
        self._custom_api: client.CustomObjectsApi | None = None

    @property
    def kubernetes_client(self) -> client.ApiClient:
        """Get or create Kubernetes API client."""
        if self.k8s_client is None:
            from ..utils.kubernetes import get_kubernetes_client

            self.k8s_client = get_kubernetes_client()
        return self.k8s_client

    @property
    def core_api(self) -> client.CoreV1Api:
        if self._core_api is None:
            self._core_api = client.CoreV1Api(self.kubernetes_client)
        return self._core_api

    @property
    def custom_api(self) -> client.CustomObjectsApi:
        if self._custom_api is None:
            self._custom_api = client.CustomObjectsApi(self.kubernetes_client)
        return self._custom_api

    def requeue(self) -> Action:
        return Action.requeue(self.requeue_interval)

    async def reconcile(
        self, obj: T, patch: MutableMapping[str, Any] | None = None
    ) -> Action:
        """
        Main reconciliation entry point with metrics tracking.

        Args:
            obj: Parsed resource as last observed
            patch: The kopf handler patch, carrying finalizer changes

        Returns:
            What to do with the object next

        Raises:
            FinalizerError: Wrapping whatever made the reconcile fail
        """
        namespace = obj.namespace or ""
        start_time = time.time()

        self.logger.log_reconciliation_start(
            resource_type=self.resource_type,
            resource_name=obj.name or "",
            namespace=namespace,
        )

        operation = "cleanup" if obj.metadata.is_being_deleted else "apply"
        async with metrics_collector.track_reconciliation(
            resource_type=self.resource_type,
            namespace=namespace,
            operation=operation,
        ):
            action = await finalizer(
                self.custom_api,
                self.plural,
                self.finalizer_name,
                obj,
                self._dispatch,
                patch=patch,
            )

        self.logger.log_reconciliation_success(
            resource_type=self.resource_type,
            resource_name=obj.name or "",
            namespace=namespace,
            duration=time.time() - start_time,
        )
        self.logger.debug(f"{self.resource_type} {obj.key}: {action}")
        return action

    async def _dispatch(self, event: FinalizerEvent[T]) -> Action:
        if isinstance(event, Apply):
            return await self.apply(event.obj)
        if isinstance(event, Cleanup):
            return await self.cleanup(event.obj)
        raise TypeError(f"Unexpected finalizer event: {event!r}")

    @abstractmethod
    async def apply(self, obj: T) -> Action:
        """Drive the object towards its desired state."""
        raise NotImplementedError

    @abstractmethod
    async def cleanup(self, obj: T) -> Action:
        """Release what the object owns before it is deleted."""
        raise NotImplementedError

    def error_policy(self, obj: T, error: Exception, duration: float = 0.0) -> Action:
        """
        Decide what happens after a failed reconcile.

        Every failure is logged and retried after the regular requeue
        interval; there is no backoff and no giving up.
        """
        self.logger.log_reconciliation_error(
            resource_type=self.resource_type,
            resource_name=obj.name or "",
            namespace=obj.namespace or "",
            error=error,
            duration=duration,
        )
        return self.requeue()
