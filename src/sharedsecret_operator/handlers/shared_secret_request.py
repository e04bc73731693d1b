"""
SharedSecretRequest handlers.

Besides its own changes, a request is re-reconciled when the trigger
annotation is touched by the watchers in :mod:`.triggers`; that arrives here
as an ordinary update.
"""

from typing import Any

import kopf

from sharedsecret_operator.constants import (
    API_GROUP,
    API_VERSION,
    SHARED_SECRET_REQUEST_FINALIZER,
    SHARED_SECRET_REQUEST_PLURAL,
)
from sharedsecret_operator.handlers.common import (
    parse_body,
    parse_deleted_body,
    release_reconcile_lock,
    run_reconcile,
)
from sharedsecret_operator.models import SharedSecretRequest
from sharedsecret_operator.services import SharedSecretRequestReconciler
from sharedsecret_operator.settings import settings
from sharedsecret_operator.utils.handler_logging import log_handler_entry

RESOURCE_TYPE = "sharedsecretrequest"


def _reconciler(memo: Any) -> SharedSecretRequestReconciler:
    return SharedSecretRequestReconciler(k8s_client=getattr(memo, "k8s_client", None))


async def _reconcile(body: Any, memo: Any, patch: kopf.Patch) -> None:
    request = parse_body(SharedSecretRequest, body)
    await run_reconcile(_reconciler(memo), request, memo, patch=patch)


@kopf.on.create(SHARED_SECRET_REQUEST_PLURAL, group=API_GROUP, version=API_VERSION)
@kopf.on.resume(SHARED_SECRET_REQUEST_PLURAL, group=API_GROUP, version=API_VERSION)
async def ensure_shared_secret_request(
    body: kopf.Body,
    name: str,
    namespace: str,
    memo: kopf.Memo,
    patch: kopf.Patch,
    **kwargs: Any,
) -> None:
    log_handler_entry("create/resume", RESOURCE_TYPE, name, namespace)
    await _reconcile(body, memo, patch)


@kopf.on.update(SHARED_SECRET_REQUEST_PLURAL, group=API_GROUP, version=API_VERSION)
async def update_shared_secret_request(
    body: kopf.Body,
    name: str,
    namespace: str,
    memo: kopf.Memo,
    patch: kopf.Patch,
    diff: kopf.Diff,
    **kwargs: Any,
) -> None:
    log_handler_entry(
        "update",
        RESOURCE_TYPE,
        name,
        namespace,
        extra={"changed_fields": [".".join(map(str, d[1])) for d in diff or ()]},
    )
    await _reconcile(body, memo, patch)


@kopf.on.delete(SHARED_SECRET_REQUEST_PLURAL, group=API_GROUP, version=API_VERSION)
async def delete_shared_secret_request(
    body: kopf.Body,
    name: str,
    namespace: str,
    memo: kopf.Memo,
    patch: kopf.Patch,
    **kwargs: Any,
) -> None:
    """
    Handle SharedSecretRequest deletion.

    The local secret copy is not touched here: it carries an owner reference
    to the request and is removed by garbage collection once the request is
    gone. Only our finalizer is removed, after the cleanup hook succeeded,
    as part of the patch kopf writes when it releases its own.
    """
    log_handler_entry("delete", RESOURCE_TYPE, name, namespace)
    request = parse_deleted_body(
        SharedSecretRequest, body, patch, SHARED_SECRET_REQUEST_FINALIZER
    )
    if request is None:
        return
    await run_reconcile(_reconciler(memo), request, memo, patch=patch)
    release_reconcile_lock(memo, RESOURCE_TYPE, request.key)


@kopf.timer(
    SHARED_SECRET_REQUEST_PLURAL,
    group=API_GROUP,
    version=API_VERSION,
    interval=float(settings.requeue_interval_seconds),
    initial_delay=float(settings.requeue_interval_seconds),
)
async def requeue_shared_secret_request(
    body: kopf.Body,
    name: str,
    namespace: str,
    memo: kopf.Memo,
    patch: kopf.Patch,
    **kwargs: Any,
) -> None:
    """Periodic re-evaluation catching changes no watch event told us about."""
    log_handler_entry("timer", RESOURCE_TYPE, name, namespace)
    await _reconcile(body, memo, patch)
