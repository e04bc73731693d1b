"""Unit tests for the trigger mapping functions."""

from sharedsecret_operator.constants import API_GROUP_VERSION
from sharedsecret_operator.models import ObjectKey, ObjectMeta
from sharedsecret_operator.services.trigger_mapper import (
    requests_for_owned_secret,
    requests_for_secret,
    requests_for_shared_secret,
    shared_secrets_for_secret,
)
from sharedsecret_operator.utils.store import IndexedStore

from .factories import make_request, make_shared_secret


def store(*objects):
    return IndexedStore({obj.key: [obj] for obj in objects})


def secret_meta(name, namespace, owner_references=None):
    return ObjectMeta.model_validate(
        {
            "name": name,
            "namespace": namespace,
            "ownerReferences": owner_references,
        }
    )


class TestRequestsForSharedSecret:
    def test_returns_every_referencing_request(self):
        requests = store(
            make_request(name="r1", namespace="team-b"),
            make_request(name="r2", namespace="team-c"),
            make_request(name="other", namespace="team-b", ref_name="cache"),
        )

        keys = requests_for_shared_secret(make_shared_secret(), requests)

        assert keys == [ObjectKey("team-b", "r1"), ObjectKey("team-c", "r2")]

    def test_namespace_is_part_of_the_reference(self):
        requests = store(make_request(ref_namespace="team-z"))

        assert requests_for_shared_secret(make_shared_secret(), requests) == []

    def test_empty_store(self):
        assert requests_for_shared_secret(make_shared_secret(), store()) == []


class TestRequestsForSecret:
    def test_secret_published_by_shared_secret(self):
        shared_secrets = store(make_shared_secret())
        requests = store(make_request(name="r1"), make_request(name="r2"))

        keys = requests_for_secret(
            secret_meta("creds", "team-a"), shared_secrets, requests
        )

        assert keys == [ObjectKey("team-b", "r1"), ObjectKey("team-b", "r2")]

    def test_same_secret_name_in_other_namespace_is_ignored(self):
        shared_secrets = store(make_shared_secret())
        requests = store(make_request())

        keys = requests_for_secret(
            secret_meta("creds", "team-x"), shared_secrets, requests
        )

        assert keys == []

    def test_unpublished_secret(self):
        shared_secrets = store(make_shared_secret(secret_name="other"))

        assert shared_secrets_for_secret(
            secret_meta("creds", "team-a"), shared_secrets
        ) == []

    def test_two_declarations_for_one_secret_yield_unique_keys(self):
        shared_secrets = store(
            make_shared_secret(name="db"), make_shared_secret(name="db-alias")
        )
        requests = store(
            make_request(name="r1", ref_name="db"),
            make_request(name="r2", ref_name="db-alias"),
        )

        keys = requests_for_secret(
            secret_meta("creds", "team-a"), shared_secrets, requests
        )

        assert keys == [ObjectKey("team-b", "r1"), ObjectKey("team-b", "r2")]

    def test_stale_store_without_requests(self):
        keys = requests_for_secret(
            secret_meta("creds", "team-a"), store(make_shared_secret()), store()
        )

        assert keys == []


class TestRequestsForOwnedSecret:
    def test_owner_request(self):
        secret = secret_meta(
            "r1",
            "team-b",
            [
                {
                    "apiVersion": API_GROUP_VERSION,
                    "kind": "SharedSecretRequest",
                    "name": "r1",
                    "uid": "uid-team-b-r1",
                    "controller": True,
                }
            ],
        )

        assert requests_for_owned_secret(secret) == [ObjectKey("team-b", "r1")]

    def test_other_owners_are_ignored(self):
        secret = secret_meta(
            "r1",
            "team-b",
            [
                {
                    "apiVersion": "apps/v1",
                    "kind": "Deployment",
                    "name": "web",
                    "uid": "u1",
                },
                {
                    "apiVersion": "example.com/v1",
                    "kind": "SharedSecretRequest",
                    "name": "lookalike",
                    "uid": "u2",
                },
            ],
        )

        assert requests_for_owned_secret(secret) == []

    def test_secret_without_owners(self):
        assert requests_for_owned_secret(secret_meta("r1", "team-b")) == []
