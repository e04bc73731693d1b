"""
Error handling module for the shared secret operator.

This module provides an error hierarchy that integrates with kopf
and provides clear categorization for different types of failures.
"""

from .operator_errors import (
    ConfigurationError,
    ExternalServiceError,
    FinalizerError,
    KubernetesAPIError,
    OperatorError,
    PermanentError,
    TemporaryError,
)

__all__ = [
    "OperatorError",
    "TemporaryError",
    "PermanentError",
    "ConfigurationError",
    "ExternalServiceError",
    "KubernetesAPIError",
    "FinalizerError",
]
