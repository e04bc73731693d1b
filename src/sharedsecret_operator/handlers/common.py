"""
Glue between kopf handlers and the reconcilers.

kopf runs change handlers and timers of the same object concurrently, so
every reconcile takes a per-object lock first. The lock registry lives in
the operator memo created at startup; kopf hands every object a shallow
copy of that memo, so all handlers share the same registry.
"""

import asyncio
import logging
import time
from collections.abc import MutableMapping
from typing import Any

import kopf
from pydantic import ValidationError

from ..models.common import NamespacedResource, ObjectKey
from ..services.action import Action
from ..services.base_reconciler import BaseReconciler
from ..services.finalizer import release_marker

logger = logging.getLogger(__name__)


def reconcile_locks(memo: Any) -> dict[tuple[str, ObjectKey], asyncio.Lock]:
    locks = getattr(memo, "reconcile_locks", None)
    if locks is None:
        locks = {}
        memo.reconcile_locks = locks
    return locks


def get_reconcile_lock(memo: Any, resource_type: str, key: ObjectKey) -> asyncio.Lock:
    locks = reconcile_locks(memo)
    lock = locks.get((resource_type, key))
    if lock is None:
        lock = locks[(resource_type, key)] = asyncio.Lock()
    return lock


def release_reconcile_lock(memo: Any, resource_type: str, key: ObjectKey) -> None:
    """Drop the lock of a deleted object unless someone is still waiting on it."""
    locks = reconcile_locks(memo)
    lock = locks.get((resource_type, key))
    if lock is not None and not lock.locked():
        del locks[(resource_type, key)]


def parse_body(model: type[NamespacedResource], body: Any) -> Any:
    """
    Parse a kopf body into ``model``.

    Raises:
        kopf.PermanentError: If the object does not match the schema; retrying
            the same object cannot succeed, the next change will be looked at
    """
    try:
        return model.from_body(body)
    except ValidationError as e:
        metadata = body.get("metadata", {}) if hasattr(body, "get") else {}
        logger.warning(
            f"Ignoring malformed {model.__name__} "
            f"{metadata.get('namespace')}/{metadata.get('name')}: {e}"
        )
        raise kopf.PermanentError(f"Invalid {model.__name__}: {e}") from e


def parse_deleted_body(
    model: type[NamespacedResource],
    body: Any,
    patch: MutableMapping[str, Any],
    finalizer_name: str,
) -> Any | None:
    """
    Parse the body of an object being deleted.

    A malformed object has nothing to clean up: its marker is released
    through ``patch`` and ``None`` is returned.
    """
    try:
        return parse_body(model, body)
    except kopf.PermanentError:
        finalizers = list(body.get("metadata", {}).get("finalizers") or [])
        if finalizer_name in finalizers:
            release_marker(patch, finalizers, finalizer_name)
        return None


async def run_reconcile(
    reconciler: BaseReconciler,
    obj: NamespacedResource,
    memo: Any,
    patch: MutableMapping[str, Any] | None = None,
) -> Action:
    """
    Reconcile ``obj`` while holding its lock, applying the error policy.

    Raises:
        kopf.TemporaryError: When the reconcile failed, delayed by the
            reconciler's requeue interval
    """
    lock = get_reconcile_lock(memo, reconciler.resource_type, obj.key)
    async with lock:
        start_time = time.time()
        try:
            return await reconciler.reconcile(obj, patch=patch)
        except Exception as e:
            action = reconciler.error_policy(obj, e, time.time() - start_time)
            raise kopf.TemporaryError(
                f"{reconciler.resource_type} {obj.key}: {e}",
                delay=action.requeue_after,
            ) from e
