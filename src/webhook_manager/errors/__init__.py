"""
Error handling module for the webhook manager.

This module provides an error hierarchy that integrates with kopf and
provides clear categorization for the failures seen while registering,
updating and removing admission webhook configurations.
"""

from .operator_errors import (
    AlreadyExistsError,
    ConfigurationError,
    KubernetesAPIError,
    LivenessProbeError,
    NotFoundError,
    NotReadyError,
    OperatorError,
    RegistrationError,
)

__all__ = [
    "OperatorError",
    "KubernetesAPIError",
    "NotFoundError",
    "AlreadyExistsError",
    "ConfigurationError",
    "NotReadyError",
    "LivenessProbeError",
    "RegistrationError",
]
