"""
SharedSecret handlers.

Every trigger (creation, resume after a restart, spec or annotation changes,
deletion and the periodic timer) runs the same reconcile; the finalizer
protocol decides between applying and cleaning up.
"""

from typing import Any

import kopf

from sharedsecret_operator.constants import (
    API_GROUP,
    API_VERSION,
    SHARED_SECRET_FINALIZER,
    SHARED_SECRET_PLURAL,
)
from sharedsecret_operator.handlers.common import (
    parse_body,
    parse_deleted_body,
    release_reconcile_lock,
    run_reconcile,
)
from sharedsecret_operator.models import SharedSecret
from sharedsecret_operator.services import SharedSecretReconciler
from sharedsecret_operator.settings import settings
from sharedsecret_operator.utils.handler_logging import log_handler_entry

RESOURCE_TYPE = "sharedsecret"


def _reconciler(memo: Any) -> SharedSecretReconciler:
    return SharedSecretReconciler(k8s_client=getattr(memo, "k8s_client", None))


async def _reconcile(body: Any, memo: Any, patch: kopf.Patch) -> None:
    shared_secret = parse_body(SharedSecret, body)
    await run_reconcile(_reconciler(memo), shared_secret, memo, patch=patch)


@kopf.on.create(SHARED_SECRET_PLURAL, group=API_GROUP, version=API_VERSION)
@kopf.on.resume(SHARED_SECRET_PLURAL, group=API_GROUP, version=API_VERSION)
async def ensure_shared_secret(
    body: kopf.Body,
    name: str,
    namespace: str,
    memo: kopf.Memo,
    patch: kopf.Patch,
    **kwargs: Any,
) -> None:
    log_handler_entry("create/resume", RESOURCE_TYPE, name, namespace)
    await _reconcile(body, memo, patch)


@kopf.on.update(SHARED_SECRET_PLURAL, group=API_GROUP, version=API_VERSION)
async def update_shared_secret(
    body: kopf.Body,
    name: str,
    namespace: str,
    memo: kopf.Memo,
    patch: kopf.Patch,
    **kwargs: Any,
) -> None:
    log_handler_entry("update", RESOURCE_TYPE, name, namespace)
    await _reconcile(body, memo, patch)


@kopf.on.delete(SHARED_SECRET_PLURAL, group=API_GROUP, version=API_VERSION)
async def delete_shared_secret(
    body: kopf.Body,
    name: str,
    namespace: str,
    memo: kopf.Memo,
    patch: kopf.Patch,
    **kwargs: Any,
) -> None:
    """
    Handle SharedSecret deletion.

    Runs the cleanup hook and releases our finalizer through ``patch``; a
    failure leaves the finalizer in place and kopf retries the deletion.
    """
    log_handler_entry("delete", RESOURCE_TYPE, name, namespace)
    shared_secret = parse_deleted_body(
        SharedSecret, body, patch, SHARED_SECRET_FINALIZER
    )
    if shared_secret is None:
        return
    await run_reconcile(_reconciler(memo), shared_secret, memo, patch=patch)
    release_reconcile_lock(memo, RESOURCE_TYPE, shared_secret.key)


@kopf.timer(
    SHARED_SECRET_PLURAL,
    group=API_GROUP,
    version=API_VERSION,
    interval=float(settings.requeue_interval_seconds),
    initial_delay=float(settings.requeue_interval_seconds),
)
async def requeue_shared_secret(
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
