"""
Unit tests for SharedSecretRequestReconciler.

The reconciler runs against an in-memory cluster; each test seeds the
SharedSecret, its source secret and possibly an existing local copy, then
checks the resulting secrets, status writes and events.
"""

from unittest.mock import MagicMock

import kopf
import pytest
from kubernetes.client.rest import ApiException

from sharedsecret_operator.constants import (
    API_GROUP_VERSION,
    CONTROLLER_NAME,
    MANAGED_BY_LABEL_KEY,
    MANAGED_BY_LABEL_VALUE,
    SHARED_SECRET_PLURAL,
    SHARED_SECRET_REQUEST_FINALIZER,
    SHARED_SECRET_REQUEST_KIND,
)
from sharedsecret_operator.errors import (
    ConfigurationError,
    FinalizerError,
    KubernetesAPIError,
)
from sharedsecret_operator.models import SharedSecretRequestState
from sharedsecret_operator.services import Action, SharedSecretRequestReconciler
from sharedsecret_operator.services.request_reconciler import data_patch, is_owned_by

from .factories import (
    KOPF_FINALIZER,
    attach,
    make_request,
    make_secret,
    release_kopf_marker,
)

SOURCE_DATA = {"username": "YWRtaW4=", "password": "czNjcjN0"}
REQUEST_UID = "uid-team-b-r1"


@pytest.fixture
def reconciler(cluster):
    return attach(
        SharedSecretRequestReconciler(
            k8s_client=MagicMock(), requeue_interval=300, reporting_instance="pod-0"
        ),
        cluster,
    )


@pytest.fixture
def published(cluster):
    """A Valid SharedSecret team-a/db publishing secret team-a/creds."""
    cluster.add_shared_secret(state="Valid")
    cluster.add_secret(make_secret("creds", "team-a", dict(SOURCE_DATA)))
    return cluster


def last_state(cluster) -> str:
    return cluster.status_patches[-1]["status"]["state"]


class TestDataPatch:
    def test_copies_source(self):
        assert data_patch(None, {"a": "1"}) == {"a": "1"}

    def test_removes_keys_missing_from_source(self):
        assert data_patch({"a": "0", "old": "x"}, {"a": "1"}) == {
            "a": "1",
            "old": None,
        }

    def test_empty_source_clears_everything(self):
        assert data_patch({"a": "0"}, None) == {"a": None}


class TestOwnership:
    def test_owned_by_request_uid(self):
        secret = make_secret("r1", "team-b", {}, owner_uid=REQUEST_UID)

        assert is_owned_by(secret, make_request())

    def test_other_owner_uid(self):
        secret = make_secret("r1", "team-b", {}, owner_uid="someone-else")

        assert not is_owned_by(secret, make_request())

    def test_other_owner_kind(self):
        secret = make_secret(
            "r1", "team-b", {}, owner_uid=REQUEST_UID, owner_kind="Deployment"
        )

        assert not is_owned_by(secret, make_request())

    def test_no_owner_references(self):
        assert not is_owned_by(make_secret("r1", "team-b", {}), make_request())


class TestUpstreamProblems:
    @pytest.mark.asyncio
    async def test_missing_declaration(self, reconciler, cluster):
        request = make_request()

        action = await reconciler.apply(request)

        assert action == Action.requeue(300)
        assert last_state(cluster) == "SharedSecretMissing"
        assert cluster.status_patches[-1]["status"]["lastUpdatedAt"]
        cluster.core_api.create_namespaced_secret.assert_not_called()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("state", [None, "SecretMissing", "SecretInvalid"])
    async def test_declaration_not_valid(self, reconciler, cluster, state):
        cluster.add_shared_secret(state=state)
        cluster.add_secret(make_secret("creds", "team-a", dict(SOURCE_DATA)))

        await reconciler.apply(make_request())

        assert last_state(cluster) == "SharedSecretInvalid"
        assert ("team-b", "r1") not in cluster.secrets
        assert cluster.events == []

    @pytest.mark.asyncio
    async def test_source_secret_gone_behind_valid_declaration(
        self, reconciler, cluster
    ):
        cluster.add_shared_secret(state="Valid")

        await reconciler.apply(make_request())

        assert last_state(cluster) == "SharedSecretInvalid"
        cluster.core_api.create_namespaced_secret.assert_not_called()

    @pytest.mark.asyncio
    async def test_reference_to_other_namespace_is_missing(self, reconciler, published):
        await reconciler.apply(make_request(ref_namespace="team-c"))

        assert last_state(published) == "SharedSecretMissing"

    @pytest.mark.asyncio
    async def test_missing_state_is_not_rewritten(self, reconciler, cluster):
        request = make_request(state="SharedSecretMissing")

        await reconciler.apply(request)

        assert cluster.status_patches == []

    @pytest.mark.asyncio
    async def test_declaration_read_failure_propagates(self, reconciler, cluster):
        cluster.custom_api.get_namespaced_custom_object.side_effect = ApiException(
            status=500, reason="Internal Server Error"
        )

        with pytest.raises(KubernetesAPIError):
            await reconciler.apply(make_request())

        assert cluster.status_patches == []


class TestLocalSecretCreation:
    @pytest.mark.asyncio
    async def test_creates_owned_copy(self, reconciler, published):
        request = make_request()

        action = await reconciler.apply(request)

        assert action == Action.requeue(300)
        local = published.secrets[("team-b", "r1")]
        assert local.data == SOURCE_DATA
        assert local.type == "Opaque"
        assert local.metadata.labels == {MANAGED_BY_LABEL_KEY: MANAGED_BY_LABEL_VALUE}
        (owner,) = local.metadata.owner_references
        assert owner.api_version == API_GROUP_VERSION
        assert owner.kind == SHARED_SECRET_REQUEST_KIND
        assert owner.name == "r1"
        assert owner.uid == REQUEST_UID
        assert owner.controller is True

        call = published.core_api.create_namespaced_secret.call_args
        assert call.kwargs["field_manager"] == CONTROLLER_NAME
        assert last_state(published) == "Synchronized"
        assert request.state == SharedSecretRequestState.SYNCHRONIZED

    @pytest.mark.asyncio
    async def test_local_secret_name_override(self, reconciler, published):
        await reconciler.apply(make_request(local_secret_name="db-creds"))

        assert published.secret_data("team-b", "db-creds") == SOURCE_DATA
        assert ("team-b", "r1") not in published.secrets

    @pytest.mark.asyncio
    async def test_creation_event(self, reconciler, published):
        await reconciler.apply(make_request())

        (event,) = published.events
        assert event["action"] == "Creating"
        assert event["reason"] == "LocalSecretMissing"
        assert event["type"] == "Normal"
        assert event["reportingComponent"] == CONTROLLER_NAME
        assert event["reportingInstance"] == "pod-0"
        assert event["involvedObject"] == {
            "apiVersion": API_GROUP_VERSION,
            "kind": SHARED_SECRET_REQUEST_KIND,
            "name": "r1",
            "namespace": "team-b",
            "uid": REQUEST_UID,
        }
        assert event["related"]["kind"] == "Secret"
        assert event["related"]["name"] == "r1"
        assert event["metadata"]["namespace"] == "team-b"

    @pytest.mark.asyncio
    async def test_create_failure_leaves_status_alone(self, reconciler, published):
        published.core_api.create_namespaced_secret.side_effect = ApiException(
            status=403, reason="Forbidden"
        )

        with pytest.raises(KubernetesAPIError):
            await reconciler.apply(make_request())

        assert published.status_patches == []
        assert published.events == []


class TestLocalSecretUpdate:
    @pytest.mark.asyncio
    async def test_outdated_copy_is_patched(self, reconciler, published):
        published.add_secret(
            make_secret("r1", "team-b", {"username": "b2xk"}, owner_uid=REQUEST_UID)
        )
        request = make_request(state="Synchronized")

        await reconciler.apply(request)

        assert published.secret_data("team-b", "r1") == SOURCE_DATA
        call = published.core_api.patch_namespaced_secret.call_args
        assert call.kwargs["_content_type"] == "application/merge-patch+json"
        assert call.kwargs["field_manager"] == CONTROLLER_NAME

        (event,) = published.events
        assert event["action"] == "Updating"
        assert event["reason"] == "LocalSecretOutdated"

    @pytest.mark.asyncio
    async def test_update_moves_last_updated_at(self, reconciler, published):
        published.add_secret(
            make_secret("r1", "team-b", {"username": "b2xk"}, owner_uid=REQUEST_UID)
        )
        request = make_request(state="Synchronized")

        await reconciler.apply(request)

        (patch,) = published.status_patches
        assert patch["status"]["state"] == "Synchronized"
        assert not patch["status"]["lastUpdatedAt"].startswith("2026-01-01T00:00:00")

    @pytest.mark.asyncio
    async def test_removed_source_key_is_removed_locally(self, reconciler, published):
        stale = dict(SOURCE_DATA, legacy="eA==")
        published.add_secret(make_secret("r1", "team-b", stale, owner_uid=REQUEST_UID))

        await reconciler.apply(make_request(state="Synchronized"))

        body = published.core_api.patch_namespaced_secret.call_args.args[2]
        assert body["data"]["legacy"] is None
        assert published.secret_data("team-b", "r1") == SOURCE_DATA

    @pytest.mark.asyncio
    async def test_foreign_secret_is_never_overwritten(self, reconciler, published):
        published.add_secret(make_secret("r1", "team-b", {"mine": "eA=="}))

        with pytest.raises(ConfigurationError) as exc_info:
            await reconciler.apply(make_request())

        assert exc_info.value.retryable
        published.core_api.patch_namespaced_secret.assert_not_called()
        assert published.secret_data("team-b", "r1") == {"mine": "eA=="}
        assert published.status_patches == []

    @pytest.mark.asyncio
    async def test_foreign_secret_with_same_data_counts_as_synchronized(
        self, reconciler, published
    ):
        published.add_secret(make_secret("r1", "team-b", dict(SOURCE_DATA)))

        await reconciler.apply(make_request())

        published.core_api.patch_namespaced_secret.assert_not_called()
        assert last_state(published) == "Synchronized"


class TestSteadyState:
    @pytest.mark.asyncio
    async def test_second_pass_writes_nothing(self, reconciler, published):
        request = make_request()

        await reconciler.apply(request)
        writes = (
            len(published.status_patches),
            published.core_api.create_namespaced_secret.call_count,
            len(published.events),
        )
        await reconciler.apply(request)

        assert writes == (1, 1, 1)
        assert len(published.status_patches) == 1
        assert published.core_api.create_namespaced_secret.call_count == 1
        published.core_api.patch_namespaced_secret.assert_not_called()
        assert len(published.events) == 1

    @pytest.mark.asyncio
    async def test_upstream_problem_after_sync(self, reconciler, published):
        request = make_request()
        await reconciler.apply(request)

        published.objects.clear()
        await reconciler.apply(request)

        assert last_state(published) == "SharedSecretMissing"
        assert published.secret_data("team-b", "r1") == SOURCE_DATA

    @pytest.mark.asyncio
    @pytest.mark.parametrize("regressed", ["SecretMissing", "SecretInvalid"])
    async def test_declaration_regression_keeps_local_copy(
        self, reconciler, published, regressed
    ):
        request = make_request()
        await reconciler.apply(request)
        assert last_state(published) == "Synchronized"
        core_api = published.core_api
        writes = (
            core_api.create_namespaced_secret.call_count,
            core_api.patch_namespaced_secret.call_count,
        )

        declaration = published.objects[(SHARED_SECRET_PLURAL, "team-a", "db")]
        declaration["status"]["state"] = regressed
        await reconciler.apply(request)

        assert last_state(published) == "SharedSecretInvalid"
        assert published.secret_data("team-b", "r1") == SOURCE_DATA
        assert (
            core_api.create_namespaced_secret.call_count,
            core_api.patch_namespaced_secret.call_count,
        ) == writes
        core_api.delete_namespaced_secret.assert_not_called()
        assert len(published.events) == 1

    @pytest.mark.asyncio
    async def test_cleanup_touches_nothing(self, reconciler, published):
        request = make_request(state="Synchronized", deleting=True)

        action = await reconciler.reconcile(request)

        assert action == Action.requeue(300)
        published.core_api.read_namespaced_secret.assert_not_called()
        assert published.status_patches == []

    @pytest.mark.asyncio
    async def test_reconcile_wraps_failures(self, reconciler, published):
        published.add_secret(make_secret("r1", "team-b", {"mine": "eA=="}))

        with pytest.raises(FinalizerError) as exc_info:
            await reconciler.reconcile(make_request())

        assert exc_info.value.stage == "apply"
        assert isinstance(exc_info.value.cause, ConfigurationError)

    @pytest.mark.asyncio
    async def test_deletion_completes_alongside_kopf(self, reconciler, published):
        body_finalizers = [KOPF_FINALIZER, SHARED_SECRET_REQUEST_FINALIZER]
        request = make_request(
            state="Synchronized", finalizers=list(body_finalizers), deleting=True
        )
        patch = kopf.Patch()

        await reconciler.reconcile(request, patch=patch)
        release_kopf_marker(body_finalizers, patch)

        assert patch["metadata"]["finalizers"] == []
        published.custom_api.patch_namespaced_custom_object.assert_not_called()
