"""
Change-detecting writer for the status sub-resource.

Status writes show up as watch events themselves, so an unconditional write
on every reconcile would keep the object reconciling forever. The writer
asks the current status whether ``update_required`` before sending anything.
"""

import asyncio
import logging
from typing import Any, Protocol

from kubernetes import client
from kubernetes.client.rest import ApiException

from ..constants import API_GROUP, API_GROUP_VERSION, API_VERSION, CONTROLLER_NAME
from ..errors import KubernetesAPIError
from ..observability.metrics import metrics_collector

logger = logging.getLogger(__name__)


class ResourceStatus(Protocol):
    state: Any

    def update_required(self, other: Any) -> bool: ...

    def to_patch(self) -> dict[str, Any]: ...


class StatusWriter:
    """Server-side applies the status of one custom resource type."""

    def __init__(
        self,
        custom_api: client.CustomObjectsApi,
        plural: str,
        kind: str,
        field_manager: str = CONTROLLER_NAME,
    ):
        self.custom_api = custom_api
        self.plural = plural
        self.kind = kind
        self.field_manager = field_manager

    def needs_write(self, current: ResourceStatus | None, new: ResourceStatus) -> bool:
        # An object without status has never been written by us
        return current is None or current.update_required(new)

    async def write(
        self, obj: Any, new_status: ResourceStatus, force: bool = False
    ) -> bool:
        """
        Apply ``new_status`` to ``obj`` if it differs from the observed one.

        On success the in-memory ``obj.status`` is replaced, so repeating the
        same write within one reconcile is a no-op.

        Args:
            obj: Parsed resource whose status is written
            new_status: Desired status
            force: Skip the change check; only for writes caused by a change
                elsewhere, never for writes that would repeat on every pass

        Returns:
            True if a patch was sent, False if the status was unchanged

        Raises:
            KubernetesAPIError: If the patch call fails
        """
        if not force and not self.needs_write(obj.status, new_status):
            logger.debug(
                f"Not updating status of {self.kind} {obj.key} because it is unchanged",
                extra={"state": new_status.state.value},
            )
            return False

        body = {
            "apiVersion": API_GROUP_VERSION,
            "kind": self.kind,
            "status": new_status.to_patch(),
        }
        try:
            await asyncio.to_thread(
                self.custom_api.patch_namespaced_custom_object_status,
                API_GROUP,
                API_VERSION,
                obj.namespace,
                self.plural,
                obj.name,
                body,
                field_manager=self.field_manager,
                force=True,
                _content_type="application/apply-patch+yaml",
            )
        except ApiException as e:
            raise KubernetesAPIError(
                f"Failed to update status of {self.kind} {obj.key}",
                reason=e.reason,
                status=e.status,
                cause=e,
            ) from e

        obj.status = new_status
        metrics_collector.record_status_write(self.kind.lower(), new_status.state.value)
        logger.info(
            f"{self.kind} {obj.key} is now {new_status.state.value}",
            extra={
                "resource_type": self.kind.lower(),
                "resource_name": obj.name,
                "namespace": obj.namespace,
                "state": new_status.state.value,
            },
        )
        return True
