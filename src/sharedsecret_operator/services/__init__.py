"""
Service layer for the shared secret operator.

This package contains the reconcilers that hold the operator's logic, the
finalizer protocol wrapping them, the status writer and the mapping of
related changes to affected SharedSecretRequests.
"""

from .action import Action
from .base_reconciler import BaseReconciler
from .finalizer import Apply, Cleanup, finalizer
from .request_reconciler import SharedSecretRequestReconciler
from .shared_secret_reconciler import SharedSecretReconciler
from .status_writer import StatusWriter

__all__ = [
    "Action",
    "BaseReconciler",
    "Apply",
    "Cleanup",
    "finalizer",
    "SharedSecretReconciler",
    "SharedSecretRequestReconciler",
    "StatusWriter",
]
