"""
Common models shared across different resource types.

This module defines shared data structures used by multiple resource models,
such as object keys, metadata and owner references.
"""

from collections.abc import Mapping
from typing import Any, NamedTuple

from pydantic import BaseModel, Field, field_validator


class ObjectKey(NamedTuple):
    """Namespace and name of a namespaced object."""

    namespace: str
    name: str

    def __str__(self) -> str:
        return f"{self.namespace}/{self.name}"


class OwnerReference(BaseModel):
    """Owner reference as found in object metadata."""

    model_config = {"populate_by_name": True}

    api_version: str = Field(..., alias="apiVersion")
    kind: str = Field(...)
    name: str = Field(...)
    uid: str = Field(...)
    controller: bool | None = Field(None)
    block_owner_deletion: bool | None = Field(None, alias="blockOwnerDeletion")


class ObjectMeta(BaseModel):
    """Subset of Kubernetes object metadata used by the operator."""

    model_config = {"populate_by_name": True}

    name: str | None = Field(None)
    namespace: str | None = Field(None)
    uid: str | None = Field(None)
    resource_version: str | None = Field(None, alias="resourceVersion")
    generation: int | None = Field(None)
    deletion_timestamp: str | None = Field(None, alias="deletionTimestamp")
    finalizers: list[str] = Field(default_factory=list)
    labels: dict[str, str] = Field(default_factory=dict)
    annotations: dict[str, str] = Field(default_factory=dict)
    owner_references: list[OwnerReference] = Field(
        default_factory=list, alias="ownerReferences"
    )

    @field_validator("finalizers", "owner_references", mode="before")
    @classmethod
    def _none_as_empty_list(cls, v):
        return v or []

    @field_validator("labels", "annotations", mode="before")
    @classmethod
    def _none_as_empty_dict(cls, v):
        return v or {}

    @property
    def is_being_deleted(self) -> bool:
        return self.deletion_timestamp is not None


def to_plain(obj: Any) -> Any:
    """Recursively convert mapping views (e.g. kopf bodies) into plain dicts."""
    if isinstance(obj, Mapping):
        return {k: to_plain(v) for k, v in obj.items()}
    if isinstance(obj, list | tuple):
        return [to_plain(v) for v in obj]
    return obj


class NamespacedResource(BaseModel):
    """Base for the operator's namespaced custom resources."""

    model_config = {"populate_by_name": True}

    metadata: ObjectMeta = Field(default_factory=ObjectMeta)

    @classmethod
    def from_body(cls, body: Mapping[str, Any]):
        """Parse a raw object body as delivered by kopf or the API client."""
        return cls.model_validate(to_plain(body))

    @property
    def name(self) -> str | None:
        return self.metadata.name

    @property
    def namespace(self) -> str | None:
        return self.metadata.namespace

    @property
    def key(self) -> ObjectKey:
        return ObjectKey(self.metadata.namespace or "", self.metadata.name or "")
