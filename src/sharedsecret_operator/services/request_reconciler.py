"""
SharedSecretRequest reconciler.

Resolves the requested SharedSecret, checks that it is valid and keeps a
local copy of its secret in the request's namespace. The copy is owned by
the request, so deleting the request lets garbage collection remove it.

The steps run in a fixed order and every upstream problem stops the
reconcile before anything is written to the request's namespace:

1. the SharedSecret must exist (else ``SharedSecretMissing``)
2. it must be ``Valid`` (else ``SharedSecretInvalid``)
3. its source secret must still exist (else ``SharedSecretInvalid``)
4. the local copy is created, or merge-patched when its data differs
5. the request is marked ``Synchronized``
"""

import asyncio
from datetime import UTC, datetime
from typing import Any

from kubernetes import client
from kubernetes.client.rest import ApiException

from ..constants import (
    API_GROUP_VERSION,
    CONTROLLER_NAME,
    EVENT_ACTION_CREATING,
    EVENT_ACTION_UPDATING,
    EVENT_REASON_LOCAL_SECRET_MISSING,
    EVENT_REASON_LOCAL_SECRET_OUTDATED,
    MANAGED_BY_LABEL_KEY,
    MANAGED_BY_LABEL_VALUE,
    SHARED_SECRET_PLURAL,
    SHARED_SECRET_REQUEST_FINALIZER,
    SHARED_SECRET_REQUEST_KIND,
    SHARED_SECRET_REQUEST_PLURAL,
)
from ..errors import ConfigurationError, KubernetesAPIError
from ..models import (
    SharedSecret,
    SharedSecretRequest,
    SharedSecretRequestState,
    SharedSecretRequestStatus,
    SharedSecretState,
)
from ..observability.metrics import metrics_collector
from ..settings import settings
from ..utils.kubernetes import (
    object_reference,
    publish_event,
    read_custom_object,
    read_secret,
)
from .action import Action
from .base_reconciler import BaseReconciler
from .status_writer import StatusWriter


def data_patch(
    local: dict[str, str] | None, source: dict[str, str] | None
) -> dict[str, str | None]:
    """Merge-patch ``data`` turning ``local`` into an exact copy of ``source``.

    Keys that only exist locally are set to null, which deletes them.
    """
    patch: dict[str, str | None] = dict(source or {})
    for key in local or {}:
        if key not in patch:
            patch[key] = None
    return patch


def is_owned_by(secret: client.V1Secret, request: SharedSecretRequest) -> bool:
    for ref in secret.metadata.owner_references or []:
        if ref.kind != SHARED_SECRET_REQUEST_KIND:
            continue
        if request.metadata.uid and ref.uid == request.metadata.uid:
            return True
    return False


class SharedSecretRequestReconciler(BaseReconciler[SharedSecretRequest]):
    """Drives SharedSecretRequests and their local secret copies."""

    resource_type = "sharedsecretrequest"
    plural = SHARED_SECRET_REQUEST_PLURAL
    finalizer_name = SHARED_SECRET_REQUEST_FINALIZER

    def __init__(
        self,
        k8s_client: client.ApiClient | None = None,
        requeue_interval: float | None = None,
        reporting_instance: str | None = None,
    ):
        super().__init__(k8s_client=k8s_client, requeue_interval=requeue_interval)
        self.reporting_instance = (
            reporting_instance
            if reporting_instance is not None
            else settings.controller_pod_name
        )

    @property
    def status_writer(self) -> StatusWriter:
        return StatusWriter(
            self.custom_api, SHARED_SECRET_REQUEST_PLURAL, SHARED_SECRET_REQUEST_KIND
        )

    async def _set_state(
        self,
        request: SharedSecretRequest,
        state: SharedSecretRequestState,
        force: bool = False,
    ) -> bool:
        status = SharedSecretRequestStatus(
            state=state, last_updated_at=datetime.now(UTC)
        )
        return await self.status_writer.write(request, status, force=force)

    async def resolve_shared_secret(
        self, request: SharedSecretRequest
    ) -> SharedSecret | None:
        ref = request.spec.shared_secret_ref
        body = await read_custom_object(
            self.custom_api, SHARED_SECRET_PLURAL, ref.name, ref.namespace
        )
        if body is None:
            return None
        return SharedSecret.from_body(body)

    async def apply(self, request: SharedSecretRequest) -> Action:
        ref = request.spec.shared_secret_ref
        local_ns = request.namespace or ""

        shared_secret = await self.resolve_shared_secret(request)
        if shared_secret is None:
            self.logger.debug(f'SharedSecret "{ref.name}" in {ref.namespace} is missing')
            await self._set_state(request, SharedSecretRequestState.SHARED_SECRET_MISSING)
            return self.requeue()

        if shared_secret.state != SharedSecretState.VALID:
            self.logger.debug(
                f'SharedSecret "{ref.name}" in {ref.namespace} is in state '
                f"{shared_secret.state.value}, expecting {SharedSecretState.VALID.value}"
            )
            await self._set_state(request, SharedSecretRequestState.SHARED_SECRET_INVALID)
            return self.requeue()

        # Read the source again: the SharedSecret status may be outdated
        source = await read_secret(
            self.core_api, shared_secret.spec.secret_name, ref.namespace
        )
        if source is None:
            self.logger.debug(
                f'Secret "{shared_secret.spec.secret_name}" in {ref.namespace} '
                "is missing although its SharedSecret is Valid"
            )
            await self._set_state(request, SharedSecretRequestState.SHARED_SECRET_INVALID)
            return self.requeue()

        local_name = request.local_secret_name
        local = await read_secret(self.core_api, local_name, local_ns)

        if local is None:
            self.logger.info(
                f'Local secret "{local_name}" for SharedSecretRequest "{request.name}" '
                f"in {local_ns} does not exist. Creating...",
                local_secret_name=local_name,
            )
            created = await self._create_local_secret(request, local_name, source)
            await self._publish(
                request,
                created,
                EVENT_ACTION_CREATING,
                EVENT_REASON_LOCAL_SECRET_MISSING,
                f"Created secret {local_name} from SharedSecret {ref.namespace}/{ref.name}",
            )
            copied = True
        elif (local.data or {}) != (source.data or {}):
            if not is_owned_by(local, request):
                raise ConfigurationError(
                    f"Secret {local_ns}/{local_name} exists and is not owned by "
                    f"SharedSecretRequest {request.key}",
                    retryable=True,
                    user_action="Remove the existing secret or set spec.localSecretName",
                )
            self.logger.info(
                f'Local secret "{local_name}" for SharedSecretRequest "{request.name}" '
                f"in {local_ns} is out of sync. Updating...",
                local_secret_name=local_name,
            )
            updated = await self._update_local_secret(local_name, local_ns, local, source)
            await self._publish(
                request,
                updated,
                EVENT_ACTION_UPDATING,
                EVENT_REASON_LOCAL_SECRET_OUTDATED,
                f"Updated secret {local_name} from SharedSecret {ref.namespace}/{ref.name}",
            )
            copied = True
        else:
            self.logger.info(
                f'SharedSecretRequest "{request.name}" in {local_ns} is still '
                "synchronized. Nothing to do."
            )
            copied = False

        # A fresh copy moves lastUpdatedAt even when the state stays the same
        if copied or request.state != SharedSecretRequestState.SYNCHRONIZED:
            await self._set_state(
                request, SharedSecretRequestState.SYNCHRONIZED, force=copied
            )

        return self.requeue()

    async def cleanup(self, request: SharedSecretRequest) -> Action:
        # The local copy is owned by the request and garbage collected with it
        return self.requeue()

    async def _create_local_secret(
        self, request: SharedSecretRequest, name: str, source: client.V1Secret
    ) -> client.V1Secret:
        namespace = request.namespace or ""
        body = client.V1Secret(
            api_version="v1",
            kind="Secret",
            metadata=client.V1ObjectMeta(
                name=name,
                namespace=namespace,
                labels={MANAGED_BY_LABEL_KEY: MANAGED_BY_LABEL_VALUE},
                owner_references=[
                    client.V1OwnerReference(
                        api_version=API_GROUP_VERSION,
                        kind=SHARED_SECRET_REQUEST_KIND,
                        name=request.name,
                        uid=request.metadata.uid,
                        controller=True,
                    )
                ],
            ),
            type="Opaque",
            data=dict(source.data or {}),
        )
        try:
            created = await asyncio.to_thread(
                self.core_api.create_namespaced_secret,
                namespace,
                body,
                field_manager=CONTROLLER_NAME,
            )
        except ApiException as e:
            raise KubernetesAPIError(
                f"Failed to create local secret {namespace}/{name}",
                reason=e.reason,
                status=e.status,
                cause=e,
            ) from e

        metrics_collector.record_local_secret_write(namespace, "create")
        return created

    async def _update_local_secret(
        self,
        name: str,
        namespace: str,
        local: client.V1Secret,
        source: client.V1Secret,
    ) -> client.V1Secret:
        body = {"data": data_patch(local.data, source.data)}
        try:
            updated = await asyncio.to_thread(
                self.core_api.patch_namespaced_secret,
                name,
                namespace,
                body,
                field_manager=CONTROLLER_NAME,
                _content_type="application/merge-patch+json",
            )
        except ApiException as e:
            raise KubernetesAPIError(
                f"Failed to update local secret {namespace}/{name}",
                reason=e.reason,
                status=e.status,
                cause=e,
            ) from e

        metrics_collector.record_local_secret_write(namespace, "update")
        return updated

    async def _publish(
        self,
        request: SharedSecretRequest,
        secret: Any,
        action: str,
        reason: str,
        message: str,
    ) -> None:
        regarding = object_reference(
            API_GROUP_VERSION,
            SHARED_SECRET_REQUEST_KIND,
            request.name or "",
            request.namespace or "",
            request.metadata.uid,
        )
        related = object_reference(
            "v1",
            "Secret",
            secret.metadata.name,
            secret.metadata.namespace,
            secret.metadata.uid,
        )
        await publish_event(
            self.core_api,
            regarding,
            related,
            action,
            reason,
            message,
            reporting_instance=self.reporting_instance,
        )
