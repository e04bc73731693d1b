"""
Pydantic models for SharedSecret resources.

A SharedSecret publishes a secret of its own namespace so that
SharedSecretRequests in other namespaces can consume it.
"""

from enum import Enum
from typing import Any

from pydantic import AliasChoices, BaseModel, Field

from ..constants import API_GROUP_VERSION, SHARED_SECRET_KIND
from .common import NamespacedResource


class SharedSecretState(str, Enum):
    """Observed state of a SharedSecret."""

    UNINITIALIZED = "Uninitialized"
    SECRET_MISSING = "SecretMissing"
    SECRET_INVALID = "SecretInvalid"
    VALID = "Valid"


class SharedSecretSpec(BaseModel):
    """Specification of a SharedSecret."""

    model_config = {"populate_by_name": True}

    secret_name: str = Field(
        ...,
        alias="secretName",
        validation_alias=AliasChoices("secretName", "secret_name"),
        min_length=1,
        description="Name of the secret in the same namespace to publish",
    )


class SharedSecretStatus(BaseModel):
    """Status of a SharedSecret."""

    model_config = {"populate_by_name": True}

    state: SharedSecretState = Field(
        SharedSecretState.UNINITIALIZED, description="Observed state"
    )

    def update_required(self, other: "SharedSecretStatus") -> bool:
        """Whether writing ``other`` over this status changes anything.

        Only ``state`` takes part in the comparison. Any field added to the
        status later must be added here explicitly to be considered.
        """
        return self.state != other.state

    def to_patch(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")


class SharedSecret(NamespacedResource):
    """Complete SharedSecret custom resource model."""

    api_version: str = Field(API_GROUP_VERSION, alias="apiVersion")
    kind: str = Field(SHARED_SECRET_KIND)
    spec: SharedSecretSpec = Field(..., description="SharedSecret specification")
    status: SharedSecretStatus | None = Field(
        None, description="SharedSecret status (managed by operator)"
    )

    @property
    def state(self) -> SharedSecretState:
        if self.status is None:
            return SharedSecretState.UNINITIALIZED
        return self.status.state
