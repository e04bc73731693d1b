"""
Models package - Pydantic models for type-safe resource handling.

Defines data models for:
- SharedSecret declarations
- SharedSecretRequest consumptions
- Shared metadata structures
"""

from .common import ObjectKey, ObjectMeta, OwnerReference
from .shared_secret import (
    SharedSecret,
    SharedSecretSpec,
    SharedSecretState,
    SharedSecretStatus,
)
from .shared_secret_request import (
    SharedSecretReference,
    SharedSecretRequest,
    SharedSecretRequestSpec,
    SharedSecretRequestState,
    SharedSecretRequestStatus,
)

__all__ = [
    "ObjectKey",
    "ObjectMeta",
    "OwnerReference",
    "SharedSecret",
    "SharedSecretSpec",
    "SharedSecretState",
    "SharedSecretStatus",
    "SharedSecretReference",
    "SharedSecretRequest",
    "SharedSecretRequestSpec",
    "SharedSecretRequestState",
    "SharedSecretRequestStatus",
]
