"""
Pydantic models for SharedSecretRequest resources.

A SharedSecretRequest asks for a local copy of a SharedSecret published in
another namespace. The operator creates the copy, owned by the request, and
keeps its data in sync with the source secret.
"""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import AliasChoices, BaseModel, Field

from ..constants import API_GROUP_VERSION, SHARED_SECRET_REQUEST_KIND
from .common import NamespacedResource, ObjectKey


class SharedSecretReference(BaseModel):
    """Coordinates of the requested SharedSecret."""

    namespace: str = Field(..., min_length=1, description="Namespace of the SharedSecret")
    name: str = Field(..., min_length=1, description="Name of the SharedSecret")

    @property
    def key(self) -> ObjectKey:
        return ObjectKey(self.namespace, self.name)


class SharedSecretRequestState(str, Enum):
    """Observed state of a SharedSecretRequest."""

    UNINITIALIZED = "Uninitialized"
    SHARED_SECRET_MISSING = "SharedSecretMissing"
    SHARED_SECRET_INVALID = "SharedSecretInvalid"
    SYNCHRONIZED = "Synchronized"


class SharedSecretRequestSpec(BaseModel):
    """Specification of a SharedSecretRequest."""

    model_config = {"populate_by_name": True}

    shared_secret_ref: SharedSecretReference = Field(
        ...,
        alias="sharedSecretRef",
        validation_alias=AliasChoices(
            "sharedSecretRef", "shared_secret_ref", "shared_secret"
        ),
    )
    local_secret_name: str | None = Field(
        None,
        alias="localSecretName",
        validation_alias=AliasChoices("localSecretName", "local_secret_name"),
        description="Name of the local copy (defaults to the request name)",
    )


class SharedSecretRequestStatus(BaseModel):
    """Status of a SharedSecretRequest."""

    model_config = {"populate_by_name": True}

    state: SharedSecretRequestState = Field(
        SharedSecretRequestState.UNINITIALIZED, description="Observed state"
    )
    last_updated_at: datetime | None = Field(
        None,
        alias="lastUpdatedAt",
        validation_alias=AliasChoices("lastUpdatedAt", "last_updated_at"),
        description="Time of the last state transition",
    )

    def update_required(self, other: "SharedSecretRequestStatus") -> bool:
        """Whether writing ``other`` over this status changes anything.

        ``last_updated_at`` is not compared: the timestamp only moves on a
        state transition.
        """
        return self.state != other.state

    def to_patch(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")


class SharedSecretRequest(NamespacedResource):
    """Complete SharedSecretRequest custom resource model."""

    api_version: str = Field(API_GROUP_VERSION, alias="apiVersion")
    kind: str = Field(SHARED_SECRET_REQUEST_KIND)
    spec: SharedSecretRequestSpec = Field(
        ..., description="SharedSecretRequest specification"
    )
    status: SharedSecretRequestStatus | None = Field(
        None, description="SharedSecretRequest status (managed by operator)"
    )

    @property
    def state(self) -> SharedSecretRequestState:
        if self.status is None:
            return SharedSecretRequestState.UNINITIALIZED
        return self.status.state

    @property
    def local_secret_name(self) -> str:
        """Name of the local copy: the override if set, else the request name."""
        return self.spec.local_secret_name or self.metadata.name or ""

    def references(self, key: ObjectKey) -> bool:
        """Whether this request asks for the SharedSecret at ``key``."""
        return self.spec.shared_secret_ref.key == key
