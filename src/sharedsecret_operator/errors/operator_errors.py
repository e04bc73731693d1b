"""
Operator error hierarchy with categorization and retry logic.

This module defines the error types used throughout the shared secret operator,
providing clear categorization and integration with kopf's retry mechanisms.
"""

import kopf


class OperatorError(Exception):
    """
    Base error class for all operator-related exceptions.

    Provides categorization, retry behavior, and user guidance for resolution.
    """

    def __init__(
        self,
        message: str,
        category: str,
        retryable: bool = True,
        delay: int = 300,
        user_action: str | None = None,
        cause: Exception | None = None,
    ):
        """
        Initialize operator error.

        Args:
            message: Human-readable error description
            category: Error category (api, finalizer, configuration, ...)
            retryable: Whether kopf should retry this operation
            delay: Suggested retry delay in seconds
            user_action: What user should do to resolve the issue
            cause: Underlying exception that caused this error
        """
        super().__init__(message)
        self.category = category
        self.retryable = retryable
        self.delay = delay
        self.user_action = user_action
        self.cause = cause

    def as_kopf_error(self):
        """Convert to appropriate kopf exception type."""
        if self.retryable:
            return kopf.TemporaryError(str(self), delay=self.delay)
        else:
            return kopf.PermanentError(str(self))

    def __str__(self) -> str:
        """Enhanced string representation with user guidance."""
        base_msg = super().__str__()
        if self.user_action:
            return f"{base_msg}\nAction required: {self.user_action}"
        return base_msg


class TemporaryError(OperatorError):
    """Temporary error that should be retried."""

    def __init__(self, message: str, delay: int = 300, user_action: str | None = None):
        super().__init__(
            message=message,
            category="temporary",
            retryable=True,
            delay=delay,
            user_action=user_action
            or "Wait for automatic retry or check system status",
        )


class PermanentError(OperatorError):
    """Permanent error that should not be retried."""

    def __init__(self, message: str, user_action: str | None = None):
        super().__init__(
            message=message,
            category="permanent",
            retryable=False,
            user_action=user_action or "Manual intervention required to resolve",
        )


class ConfigurationError(OperatorError):
    """Error in operator or cluster configuration."""

    def __init__(
        self, message: str, retryable: bool = False, user_action: str | None = None
    ):
        super().__init__(
            message=message,
            category="configuration",
            retryable=retryable,
            user_action=user_action or "Review and correct configuration",
        )


class ExternalServiceError(OperatorError):
    """Error communicating with external services."""

    def __init__(
        self,
        service: str,
        message: str,
        retryable: bool = True,
        delay: int = 300,
        user_action: str | None = None,
        cause: Exception | None = None,
    ):
        action = user_action or f"Check {service} connectivity and credentials"
        super().__init__(
            message=f"{service} error: {message}",
            category="external",
            retryable=retryable,
            delay=delay,
            user_action=action,
            cause=cause,
        )


class KubernetesAPIError(ExternalServiceError):
    """Error communicating with the Kubernetes API.

    Always retryable: conflicts, transport failures and unexpected responses
    are all resolved by re-reading state on the next attempt.
    """

    def __init__(
        self,
        message: str,
        reason: str | None = None,
        status: int | None = None,
        cause: Exception | None = None,
    ):
        if reason:
            message = f"{message} (reason: {reason})"
        self.reason = reason
        self.status = status

        super().__init__(
            service="Kubernetes API",
            message=message,
            retryable=True,
            user_action="Check RBAC permissions and cluster connectivity",
            cause=cause,
        )


class FinalizerError(OperatorError):
    """Error raised from within the finalizer protocol.

    The stage tells where in the protocol the failure happened:
    ``apply``/``cleanup`` wrap failures of the resource handlers themselves,
    ``add_finalizer``/``remove_finalizer`` wrap failed marker writes and
    ``unnamed_object`` flags an object without a name.
    """

    STAGES = frozenset(
        {"apply", "cleanup", "add_finalizer", "remove_finalizer", "unnamed_object"}
    )

    def __init__(self, stage: str, resource: str, cause: Exception | None = None):
        if stage not in self.STAGES:
            raise ValueError(f"Unknown finalizer stage: {stage}")
        self.stage = stage
        self.resource = resource

        detail = f": {cause}" if cause is not None else ""
        super().__init__(
            message=f"Finalizer {stage} failed for {resource}{detail}",
            category="finalizer",
            retryable=True,
            cause=cause,
        )
