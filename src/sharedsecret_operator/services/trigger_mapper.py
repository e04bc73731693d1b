"""
Maps changes of related objects to the SharedSecretRequests they affect.

All functions here are pure: they only read the stores they are given and
return the keys of requests to re-reconcile. The stores may lag behind the
cluster; a missed or duplicate trigger is repaired by the periodic
re-evaluation every request gets anyway.
"""

from ..constants import API_GROUP, SHARED_SECRET_REQUEST_KIND
from ..models import ObjectKey, ObjectMeta, SharedSecret, SharedSecretRequest
from ..utils.store import ObjectStore


def requests_for_shared_secret(
    shared_secret: SharedSecret, requests: ObjectStore[SharedSecretRequest]
) -> list[ObjectKey]:
    """Requests whose ``sharedSecretRef`` names ``shared_secret``."""
    key = shared_secret.key
    return sorted({request.key for request in requests.find(lambda r: r.references(key))})


def shared_secrets_for_secret(
    secret: ObjectMeta, shared_secrets: ObjectStore[SharedSecret]
) -> list[SharedSecret]:
    """SharedSecrets in the secret's namespace that publish it."""
    return shared_secrets.find(
        lambda s: s.namespace == secret.namespace
        and s.spec.secret_name == secret.name
    )


def requests_for_secret(
    secret: ObjectMeta,
    shared_secrets: ObjectStore[SharedSecret],
    requests: ObjectStore[SharedSecretRequest],
) -> list[ObjectKey]:
    """
    Requests consuming the data of ``secret``.

    Goes through the SharedSecrets that publish the secret; a secret no
    SharedSecret claims produces no triggers.
    """
    keys: set[ObjectKey] = set()
    for shared_secret in shared_secrets_for_secret(secret, shared_secrets):
        keys.update(requests_for_shared_secret(shared_secret, requests))
    return sorted(keys)


def requests_for_owned_secret(secret: ObjectMeta) -> list[ObjectKey]:
    """Requests that own ``secret``, i.e. whose local copy it is."""
    keys = {
        ObjectKey(secret.namespace or "", ref.name)
        for ref in secret.owner_references
        if ref.kind == SHARED_SECRET_REQUEST_KIND
        and ref.api_version.split("/")[0] == API_GROUP
    }
    return sorted(keys)
