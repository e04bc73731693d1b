"""
Finalizer protocol shared by both reconcilers.

Every reconcile goes through :func:`finalizer`, which makes sure the
controller's marker is on the object before any side effect happens and only
takes it off again once the cleanup hook has succeeded. The resource handler
receives either an :class:`Apply` or a :class:`Cleanup` event.

Adding the marker is a JSON patch guarded by a ``test`` operation, so a write
based on a stale view of the finalizer list fails instead of clobbering
finalizers added by someone else in the meantime.

Under kopf the object also carries kopf's own marker, which kopf adds and
releases with a merge patch of the whole finalizer list, starting from the
handler's ``patch`` if that already sets one. Marker changes are therefore
recorded in the handler's kopf patch: the removal happens only there, in the
same write that releases kopf's marker, and an added marker is mirrored there
so kopf does not write back a list without it.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable, MutableMapping
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from kubernetes import client
from kubernetes.client.rest import ApiException

from ..constants import API_GROUP, API_VERSION
from ..errors import FinalizerError, KubernetesAPIError
from ..models.common import NamespacedResource
from .action import Action

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=NamespacedResource)


@dataclass(frozen=True)
class Apply(Generic[T]):
    """The object exists and should be driven towards its desired state."""

    obj: T


@dataclass(frozen=True)
class Cleanup(Generic[T]):
    """The object is being deleted and still carries the marker."""

    obj: T


FinalizerEvent = Apply[T] | Cleanup[T]


def add_finalizer_patch(
    finalizers: list[str], finalizer_name: str
) -> list[dict[str, Any]]:
    if not finalizers:
        # The API server omits an empty finalizer list entirely
        return [
            {"op": "test", "path": "/metadata/finalizers", "value": None},
            {"op": "add", "path": "/metadata/finalizers", "value": [finalizer_name]},
        ]
    return [
        {"op": "test", "path": "/metadata/finalizers", "value": list(finalizers)},
        {"op": "add", "path": "/metadata/finalizers/-", "value": finalizer_name},
    ]


def remove_finalizer_patch(index: int, finalizer_name: str) -> list[dict[str, Any]]:
    path = f"/metadata/finalizers/{index}"
    return [
        {"op": "test", "path": path, "value": finalizer_name},
        {"op": "remove", "path": path},
    ]


def release_marker(
    patch: MutableMapping[str, Any], finalizers: list[str], finalizer_name: str
) -> None:
    """Drop ``finalizer_name`` from the finalizer list of a kopf handler patch."""
    metadata = patch.setdefault("metadata", {})
    current = metadata.get("finalizers")
    if current is None:
        current = list(finalizers)
    metadata["finalizers"] = [f for f in current if f != finalizer_name]


async def _patch_finalizers(
    custom_api: client.CustomObjectsApi,
    plural: str,
    obj: NamespacedResource,
    patch: list[dict[str, Any]],
) -> None:
    try:
        await asyncio.to_thread(
            custom_api.patch_namespaced_custom_object,
            API_GROUP,
            API_VERSION,
            obj.namespace,
            plural,
            obj.name,
            patch,
            _content_type="application/json-patch+json",
        )
    except ApiException as e:
        raise KubernetesAPIError(
            f"Failed to patch finalizers of {plural} {obj.key}",
            reason=e.reason,
            status=e.status,
            cause=e,
        ) from e


async def finalizer(
    custom_api: client.CustomObjectsApi,
    plural: str,
    finalizer_name: str,
    obj: T,
    reconcile: Callable[[FinalizerEvent[T]], Awaitable[Action]],
    patch: MutableMapping[str, Any] | None = None,
) -> Action:
    """
    Run ``reconcile`` for ``obj`` under the finalizer protocol.

    * not deleting, marker present: ``Apply``
    * deleting, marker present: ``Cleanup``, then remove the marker
    * not deleting, marker missing: add the marker, then ``Apply``
    * deleting, marker missing: nothing left to do

    Adding the marker does not produce a change kopf reacts to, so the apply
    step runs in the same call instead of waiting for the next event.

    Args:
        patch: The kopf handler patch, if kopf is driving the reconcile.
            Without one the marker is removed with a guarded JSON patch.

    Raises:
        FinalizerError: for every failure, with the stage it happened in
    """
    resource = f"{plural} {obj.key}"
    if not obj.name:
        raise FinalizerError("unnamed_object", resource)

    finalizers = obj.metadata.finalizers
    has_marker = finalizer_name in finalizers

    if obj.metadata.is_being_deleted:
        if not has_marker:
            # Already cleaned up; deletion is only waiting on other finalizers
            return Action.await_change()

        try:
            action = await reconcile(Cleanup(obj))
        except Exception as e:
            raise FinalizerError("cleanup", resource, cause=e) from e

        if patch is not None:
            release_marker(patch, finalizers, finalizer_name)
            logger.debug(f"Releasing finalizer {finalizer_name} of {resource}")
            return action

        try:
            await _patch_finalizers(
                custom_api,
                plural,
                obj,
                remove_finalizer_patch(finalizers.index(finalizer_name), finalizer_name),
            )
        except Exception as e:
            raise FinalizerError("remove_finalizer", resource, cause=e) from e

        logger.debug(f"Removed finalizer {finalizer_name} from {resource}")
        return action

    if not has_marker:
        try:
            await _patch_finalizers(
                custom_api,
                plural,
                obj,
                add_finalizer_patch(finalizers, finalizer_name),
            )
        except Exception as e:
            raise FinalizerError("add_finalizer", resource, cause=e) from e

        finalizers.append(finalizer_name)
        if patch is not None:
            patch.setdefault("metadata", {})["finalizers"] = list(finalizers)
        logger.debug(f"Added finalizer {finalizer_name} to {resource}")

    try:
        return await reconcile(Apply(obj))
    except Exception as e:
        raise FinalizerError("apply", resource, cause=e) from e
