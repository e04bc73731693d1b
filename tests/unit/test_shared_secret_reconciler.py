"""Unit tests for SharedSecretReconciler."""

from unittest.mock import MagicMock

import pytest
from kubernetes.client.rest import ApiException

from sharedsecret_operator.errors import FinalizerError, KubernetesAPIError
from sharedsecret_operator.models import SharedSecretState
from sharedsecret_operator.services import Action, SharedSecretReconciler

from .factories import attach, make_secret, make_shared_secret


@pytest.fixture
def reconciler(cluster):
    return attach(
        SharedSecretReconciler(k8s_client=MagicMock(), requeue_interval=300), cluster
    )


class TestObserveState:
    @pytest.mark.asyncio
    async def test_existing_secret_with_data_is_valid(self, reconciler, cluster):
        cluster.add_secret(make_secret("creds", "team-a", {"password": "cw=="}))

        state = await reconciler.observe_state(make_shared_secret())

        assert state == SharedSecretState.VALID

    @pytest.mark.asyncio
    async def test_missing_secret(self, reconciler):
        state = await reconciler.observe_state(make_shared_secret())

        assert state == SharedSecretState.SECRET_MISSING

    @pytest.mark.asyncio
    @pytest.mark.parametrize("data", [None, {}])
    async def test_secret_without_data_is_invalid(self, reconciler, cluster, data):
        cluster.add_secret(make_secret("creds", "team-a", data))

        state = await reconciler.observe_state(make_shared_secret())

        assert state == SharedSecretState.SECRET_INVALID

    @pytest.mark.asyncio
    async def test_secret_in_other_namespace_does_not_count(self, reconciler, cluster):
        cluster.add_secret(make_secret("creds", "team-b", {"password": "cw=="}))

        state = await reconciler.observe_state(make_shared_secret())

        assert state == SharedSecretState.SECRET_MISSING

    @pytest.mark.asyncio
    async def test_read_failure_propagates(self, reconciler, cluster):
        cluster.core_api.read_namespaced_secret.side_effect = ApiException(
            status=403, reason="Forbidden"
        )

        with pytest.raises(KubernetesAPIError):
            await reconciler.observe_state(make_shared_secret())


class TestReconcile:
    @pytest.mark.asyncio
    async def test_valid_secret_marks_declaration_valid(self, reconciler, cluster):
        cluster.add_secret(make_secret("creds", "team-a", {"password": "cw=="}))
        shared = make_shared_secret()

        action = await reconciler.reconcile(shared)

        assert action == Action.requeue(300)
        assert cluster.status_patches[-1]["status"] == {"state": "Valid"}
        assert shared.state == SharedSecretState.VALID

    @pytest.mark.asyncio
    async def test_missing_secret_marks_declaration_missing(self, reconciler, cluster):
        shared = make_shared_secret()

        await reconciler.reconcile(shared)

        assert cluster.status_patches[-1]["status"] == {"state": "SecretMissing"}

    @pytest.mark.asyncio
    async def test_deleted_secret_flips_valid_to_missing(self, reconciler, cluster):
        shared = make_shared_secret(state="Valid")

        await reconciler.reconcile(shared)

        assert shared.state == SharedSecretState.SECRET_MISSING
        assert len(cluster.status_patches) == 1

    @pytest.mark.asyncio
    async def test_unchanged_state_writes_nothing(self, reconciler, cluster):
        cluster.add_secret(make_secret("creds", "team-a", {"password": "cw=="}))
        shared = make_shared_secret(state="Valid")

        await reconciler.reconcile(shared)
        await reconciler.reconcile(shared)

        assert cluster.status_patches == []
        cluster.custom_api.patch_namespaced_custom_object.assert_not_called()

    @pytest.mark.asyncio
    async def test_cleanup_only_removes_the_marker(self, reconciler, cluster):
        shared = make_shared_secret(state="Valid", deleting=True)

        action = await reconciler.reconcile(shared)

        assert action == Action.requeue(300)
        assert cluster.status_patches == []
        cluster.core_api.read_namespaced_secret.assert_not_called()
        cluster.custom_api.patch_namespaced_custom_object.assert_called_once()

    @pytest.mark.asyncio
    async def test_status_failure_surfaces_as_finalizer_error(
        self, reconciler, cluster
    ):
        cluster.custom_api.patch_namespaced_custom_object_status.side_effect = (
            ApiException(status=500, reason="Internal Server Error")
        )

        with pytest.raises(FinalizerError) as exc_info:
            await reconciler.reconcile(make_shared_secret())

        assert exc_info.value.stage == "apply"
        assert isinstance(exc_info.value.cause, KubernetesAPIError)

    def test_error_policy_requeues_after_interval(self, reconciler):
        action = reconciler.error_policy(make_shared_secret(), RuntimeError("boom"))

        assert action == Action.requeue(300)
