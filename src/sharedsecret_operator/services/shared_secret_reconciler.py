"""
SharedSecret reconciler.

A SharedSecret is Valid while the secret it names exists in its namespace
and carries at least one data entry.
"""

from ..constants import (
    SHARED_SECRET_FINALIZER,
    SHARED_SECRET_KIND,
    SHARED_SECRET_PLURAL,
)
from ..models import SharedSecret, SharedSecretState, SharedSecretStatus
from ..utils.kubernetes import read_secret
from .action import Action
from .base_reconciler import BaseReconciler
from .status_writer import StatusWriter


class SharedSecretReconciler(BaseReconciler[SharedSecret]):
    """Drives the status of SharedSecret declarations."""

    resource_type = "sharedsecret"
    plural = SHARED_SECRET_PLURAL
    finalizer_name = SHARED_SECRET_FINALIZER

    @property
    def status_writer(self) -> StatusWriter:
        return StatusWriter(self.custom_api, SHARED_SECRET_PLURAL, SHARED_SECRET_KIND)

    async def observe_state(self, shared_secret: SharedSecret) -> SharedSecretState:
        secret_name = shared_secret.spec.secret_name
        namespace = shared_secret.namespace or ""

        secret = await read_secret(self.core_api, secret_name, namespace)
        if secret is None:
            self.logger.debug(f'Secret "{secret_name}" in {namespace} is missing')
            return SharedSecretState.SECRET_MISSING

        if not secret.data:
            self.logger.debug(f'Secret "{secret_name}" in {namespace} has no data')
            return SharedSecretState.SECRET_INVALID

        return SharedSecretState.VALID

    async def apply(self, shared_secret: SharedSecret) -> Action:
        state = await self.observe_state(shared_secret)
        await self.status_writer.write(shared_secret, SharedSecretStatus(state=state))
        return self.requeue()

    async def cleanup(self, shared_secret: SharedSecret) -> Action:
        # Nothing is owned by a SharedSecret
        return self.requeue()
