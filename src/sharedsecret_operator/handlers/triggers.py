"""
Cross-resource triggers.

kopf only runs a request's handlers when the request itself changes. When a
SharedSecret or a secret changes, the watchers below look up the affected
SharedSecretRequests in the kopf indices and touch their trigger annotation,
which kopf then delivers to the request handlers as an update.

The annotation value names the triggering object and the revision of it that
matters: a secret's resourceVersion, or a SharedSecret's published secret name
and state. The same change delivered twice writes the same value and is a
no-op, and requests already carrying the value are not patched again.
Delivery failures are only logged: the periodic re-evaluation of every
request catches up with whatever was missed.
"""

import logging
from collections.abc import Iterable
from typing import Any

import kopf
from kubernetes import client
from pydantic import ValidationError

from sharedsecret_operator.constants import (
    API_GROUP,
    API_VERSION,
    SHARED_SECRET_KIND,
    SHARED_SECRET_PLURAL,
    SHARED_SECRET_REQUEST_PLURAL,
    TRIGGER_ANNOTATION,
)
from sharedsecret_operator.errors import KubernetesAPIError
from sharedsecret_operator.models import ObjectKey, SharedSecret, SharedSecretRequest
from sharedsecret_operator.models.common import ObjectMeta, to_plain
from sharedsecret_operator.observability.metrics import metrics_collector
from sharedsecret_operator.services.trigger_mapper import (
    requests_for_owned_secret,
    requests_for_secret,
    requests_for_shared_secret,
)
from sharedsecret_operator.utils.kubernetes import (
    get_kubernetes_client,
    touch_trigger_annotation,
    trigger_value,
)
from sharedsecret_operator.utils.store import IndexedStore

logger = logging.getLogger(__name__)


@kopf.index(SHARED_SECRET_PLURAL, group=API_GROUP, version=API_VERSION)
def shared_secret_index(
    body: kopf.Body, **_: Any
) -> dict[ObjectKey, SharedSecret] | None:
    try:
        shared_secret = SharedSecret.from_body(body)
    except ValidationError as e:
        logger.warning(f"Not indexing malformed SharedSecret: {e}")
        return None
    return {shared_secret.key: shared_secret}


@kopf.index(SHARED_SECRET_REQUEST_PLURAL, group=API_GROUP, version=API_VERSION)
def shared_secret_request_index(
    body: kopf.Body, **_: Any
) -> dict[ObjectKey, SharedSecretRequest] | None:
    try:
        request = SharedSecretRequest.from_body(body)
    except ValidationError as e:
        logger.warning(f"Not indexing malformed SharedSecretRequest: {e}")
        return None
    return {request.key: request}


async def deliver_triggers(
    custom_api: client.CustomObjectsApi,
    request_keys: Iterable[ObjectKey],
    value: str,
    source_kind: str,
) -> int:
    """
    Touch the trigger annotation of every request in ``request_keys``.

    Returns:
        Number of requests that were patched
    """
    delivered = 0
    for key in request_keys:
        try:
            if await touch_trigger_annotation(custom_api, key, value):
                delivered += 1
        except KubernetesAPIError as e:
            logger.warning(
                f"Could not trigger SharedSecretRequest {key}: {e}",
                extra={"trigger_source": value, "error_type": type(e).__name__},
            )
        else:
            logger.debug(
                f"Triggered SharedSecretRequest {key} from {value}",
                extra={"trigger_source": value},
            )

    metrics_collector.record_trigger(source_kind, delivered)
    return delivered


def _already_triggered(request: SharedSecretRequest | None, value: str) -> bool:
    return (
        request is not None
        and request.metadata.annotations.get(TRIGGER_ANNOTATION) == value
    )


def _custom_api(memo: Any) -> client.CustomObjectsApi:
    k8s_client = getattr(memo, "k8s_client", None) or get_kubernetes_client()
    return client.CustomObjectsApi(k8s_client)


@kopf.on.event(SHARED_SECRET_PLURAL, group=API_GROUP, version=API_VERSION)
async def shared_secret_changed(
    body: kopf.Body,
    memo: kopf.Memo,
    shared_secret_request_index: kopf.Index,
    **_: Any,
) -> None:
    """Re-reconcile the requests of a SharedSecret when what they see changes.

    Only the published secret name and the state matter to a request; a
    SharedSecret turning Valid is what lets its requests synchronize. Other
    writes, such as kopf's own bookkeeping, produce the same trigger value.
    """
    try:
        shared_secret = SharedSecret.from_body(body)
    except ValidationError:
        return

    requests = IndexedStore(shared_secret_request_index)
    value = trigger_value(
        SHARED_SECRET_KIND,
        shared_secret.key,
        f"{shared_secret.spec.secret_name}/{shared_secret.state.value}",
    )
    keys = [
        key
        for key in requests_for_shared_secret(shared_secret, requests)
        if not _already_triggered(requests.get(key), value)
    ]
    if not keys:
        return

    await deliver_triggers(_custom_api(memo), keys, value, SHARED_SECRET_KIND)


@kopf.on.event("v1", "secrets")
async def secret_changed(
    meta: kopf.Meta,
    memo: kopf.Memo,
    shared_secret_index: kopf.Index,
    shared_secret_request_index: kopf.Index,
    **_: Any,
) -> None:
    """
    Re-reconcile the requests affected by a secret change.

    Two kinds of secrets matter: sources published by a SharedSecret, whose
    consumers must copy the new data, and local copies owned by a request,
    which the owner repairs after manual edits or deletion.
    """
    secret = ObjectMeta.model_validate(to_plain(meta))
    key = ObjectKey(secret.namespace or "", secret.name or "")
    value = trigger_value("Secret", key, secret.resource_version)

    consumers = requests_for_secret(
        secret,
        IndexedStore(shared_secret_index),
        IndexedStore(shared_secret_request_index),
    )
    owners = requests_for_owned_secret(secret)
    if not consumers and not owners:
        return

    custom_api = _custom_api(memo)
    if consumers:
        await deliver_triggers(custom_api, consumers, value, "Secret")
    if owners:
        await deliver_triggers(custom_api, owners, value, "OwnedSecret")
