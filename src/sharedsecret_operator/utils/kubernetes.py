"""
Kubernetes utilities for the shared secret operator.

This module provides helper functions for interacting with the Kubernetes API:

- Kubernetes client management and configuration
- Optional reads of secrets and custom objects (404 means absent)
- The startup check that both custom resource types are installed
- Trigger annotations and event records

The kubernetes client is synchronous; every call made from a handler is run
in a worker thread so that one slow request never blocks the event loop.
"""

import asyncio
import logging
from datetime import UTC, datetime
from typing import Any

from kubernetes import client, config
from kubernetes.client.rest import ApiException

from sharedsecret_operator.constants import (
    API_GROUP,
    API_VERSION,
    CONTROLLER_NAME,
    ERROR_CRD_NOT_QUERYABLE,
    EVENT_TYPE_NORMAL,
    SHARED_SECRET_KIND,
    SHARED_SECRET_PLURAL,
    SHARED_SECRET_REQUEST_KIND,
    SHARED_SECRET_REQUEST_PLURAL,
    TRIGGER_ANNOTATION,
)
from sharedsecret_operator.errors import ConfigurationError, KubernetesAPIError
from sharedsecret_operator.models.common import ObjectKey

logger = logging.getLogger(__name__)


def get_kubernetes_client() -> client.ApiClient:
    """
    Get configured Kubernetes API client.

    Loads the in-cluster configuration when running in a pod and falls back
    to the local kubeconfig for development.

    Returns:
        Configured Kubernetes API client
    """
    try:
        config.load_incluster_config()
        logger.debug("Loaded in-cluster Kubernetes configuration")
    except config.ConfigException:
        try:
            config.load_kube_config()
            logger.debug("Loaded kubeconfig from local environment")
        except config.ConfigException as e:
            logger.error(f"Failed to load Kubernetes configuration: {e}")
            raise

    return client.ApiClient()


async def read_secret(
    core_api: client.CoreV1Api, name: str, namespace: str
) -> client.V1Secret | None:
    """
    Read a secret.

    Returns:
        Secret object if found, None if not found

    Raises:
        KubernetesAPIError: If read fails for reasons other than 404
    """
    try:
        return await asyncio.to_thread(
            core_api.read_namespaced_secret, name=name, namespace=namespace
        )
    except ApiException as e:
        if e.status == 404:
            return None
        raise KubernetesAPIError(
            f"Failed to read secret {namespace}/{name}",
            reason=e.reason,
            status=e.status,
            cause=e,
        ) from e


async def read_custom_object(
    custom_api: client.CustomObjectsApi, plural: str, name: str, namespace: str
) -> dict[str, Any] | None:
    """
    Read one of the operator's custom objects.

    Returns:
        Object body if found, None if not found

    Raises:
        KubernetesAPIError: If read fails for reasons other than 404
    """
    try:
        return await asyncio.to_thread(
            custom_api.get_namespaced_custom_object,
            API_GROUP,
            API_VERSION,
            namespace,
            plural,
            name,
        )
    except ApiException as e:
        if e.status == 404:
            return None
        raise KubernetesAPIError(
            f"Failed to read {plural} {namespace}/{name}",
            reason=e.reason,
            status=e.status,
            cause=e,
        ) from e


def verify_crds_installed(k8s_client: client.ApiClient) -> None:
    """
    Make sure both custom resource types can be listed.

    A type that cannot be listed usually means its CRD is not installed
    (or the operator lacks permission to read it); there is nothing useful
    the operator can do in that case.

    Raises:
        ConfigurationError: Naming the first type that could not be listed
    """
    custom_api = client.CustomObjectsApi(k8s_client)

    for kind, plural in (
        (SHARED_SECRET_KIND, SHARED_SECRET_PLURAL),
        (SHARED_SECRET_REQUEST_KIND, SHARED_SECRET_REQUEST_PLURAL),
    ):
        try:
            custom_api.list_cluster_custom_object(API_GROUP, API_VERSION, plural, limit=1)
        except ApiException as e:
            message = ERROR_CRD_NOT_QUERYABLE.format(kind, f"{e.status} {e.reason}")
            logger.error(message)
            raise ConfigurationError(
                message,
                user_action=f"Install the {plural}.{API_GROUP} CRD and check RBAC",
            ) from e

        logger.debug(f"CRD {kind} is queryable")


def trigger_value(kind: str, key: ObjectKey, revision: str | None) -> str:
    """Annotation value identifying the change that triggered a reconcile."""
    return f"{kind}:{key}:{revision or ''}"


async def touch_trigger_annotation(
    custom_api: client.CustomObjectsApi, request_key: ObjectKey, value: str
) -> bool:
    """
    Set the trigger annotation on a SharedSecretRequest.

    The annotation change is what makes kopf run the request's update
    handler. Writing the same value twice changes nothing on the server.

    Returns:
        True if the request was patched, False if it no longer exists

    Raises:
        KubernetesAPIError: If the patch fails for reasons other than 404
    """
    body = {"metadata": {"annotations": {TRIGGER_ANNOTATION: value}}}
    try:
        await asyncio.to_thread(
            custom_api.patch_namespaced_custom_object,
            API_GROUP,
            API_VERSION,
            request_key.namespace,
            SHARED_SECRET_REQUEST_PLURAL,
            request_key.name,
            body,
            _content_type="application/merge-patch+json",
        )
    except ApiException as e:
        if e.status == 404:
            logger.debug(f"Triggered request {request_key} is gone")
            return False
        raise KubernetesAPIError(
            f"Failed to trigger {SHARED_SECRET_REQUEST_KIND} {request_key}",
            reason=e.reason,
            status=e.status,
            cause=e,
        ) from e
    return True


def object_reference(
    api_version: str, kind: str, name: str, namespace: str, uid: str | None
) -> dict[str, Any]:
    ref = {"apiVersion": api_version, "kind": kind, "name": name, "namespace": namespace}
    if uid:
        ref["uid"] = uid
    return ref


async def publish_event(
    core_api: client.CoreV1Api,
    regarding: dict[str, Any],
    related: dict[str, Any] | None,
    action: str,
    reason: str,
    message: str,
    reporting_instance: str = "",
    event_type: str = EVENT_TYPE_NORMAL,
) -> None:
    """
    Record a core/v1 event on ``regarding``.

    Raises:
        KubernetesAPIError: If the event cannot be created
    """
    namespace = regarding["namespace"]
    now = datetime.now(UTC).strftime("%Y-%m-%dT%H:%M:%SZ")
    body: dict[str, Any] = {
        "metadata": {"generateName": f"{regarding['name']}.", "namespace": namespace},
        "involvedObject": regarding,
        "action": action,
        "reason": reason,
        "message": message,
        "type": event_type,
        "source": {"component": CONTROLLER_NAME},
        "reportingComponent": CONTROLLER_NAME,
        "reportingInstance": reporting_instance,
        "firstTimestamp": now,
        "lastTimestamp": now,
        "count": 1,
    }
    if related:
        body["related"] = related

    try:
        await asyncio.to_thread(
            core_api.create_namespaced_event, namespace=namespace, body=body
        )
    except ApiException as e:
        raise KubernetesAPIError(
            f"Failed to publish {action}/{reason} event for {namespace}/{regarding['name']}",
            reason=e.reason,
            status=e.status,
            cause=e,
        ) from e
