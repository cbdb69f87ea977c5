"""
Error hierarchy for webhook registration with categorization and retry logic.

This module defines the error types used throughout the webhook manager,
providing clear categorization and integration with kopf's retry mechanisms.
"""

import kopf


class OperatorError(Exception):
    """
    Base error class for all webhook manager exceptions.

    Provides categorization, retry behavior, and user guidance for resolution.
    """

    def __init__(
        self,
        message: str,
        category: str,
        retryable: bool = True,
        delay: int = 30,
        user_action: str | None = None,
        cause: Exception | None = None,
    ):
        """
        Initialize operator error.

        Args:
            message: Human-readable error description
            category: Error category (api, configuration, readiness, registration)
            retryable: Whether kopf should retry this operation
            delay: Suggested retry delay in seconds
            user_action: What user should do to resolve the issue
            cause: Underlying exception that caused this error
        """
        super().__init__(message)
        self.message = message
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


class KubernetesAPIError(OperatorError):
    """Unclassified failure talking to the Kubernetes API."""

    def __init__(
        self,
        message: str,
        reason: str | None = None,
        status: int | None = None,
        retryable: bool = True,
        cause: Exception | None = None,
    ):
        if reason:
            message = f"{message} (reason: {reason})"

        # Some K8s errors are not retryable
        non_retryable_reasons = {"Forbidden", "Unauthorized", "Invalid"}
        if reason in non_retryable_reasons:
            retryable = False

        super().__init__(
            message=f"Kubernetes API error: {message}",
            category="api",
            retryable=retryable,
            delay=10,
            user_action="Check RBAC permissions and cluster connectivity",
            cause=cause,
        )
        self.reason = reason
        self.status = status


class NotFoundError(KubernetesAPIError):
    """The requested object does not exist."""

    def __init__(self, kind: str, name: str, namespace: str | None = None):
        location = f"{namespace}/{name}" if namespace else name
        super().__init__(f"{kind} {location} not found", reason="NotFound", status=404)
        self.kind = kind
        self.name = name
        self.namespace = namespace
        self.user_action = None


class AlreadyExistsError(KubernetesAPIError):
    """The object to be created already exists."""

    def __init__(self, kind: str, name: str, namespace: str | None = None):
        location = f"{namespace}/{name}" if namespace else name
        super().__init__(
            f"{kind} {location} already exists", reason="AlreadyExists", status=409
        )
        self.kind = kind
        self.name = name
        self.namespace = namespace
        self.user_action = None


class ConfigurationError(OperatorError):
    """Error in manager configuration, such as a missing CA bundle."""

    def __init__(
        self, message: str, retryable: bool = False, user_action: str | None = None
    ):
        super().__init__(
            message=message,
            category="configuration",
            retryable=retryable,
            user_action=user_action or "Review and correct configuration",
        )


class NotReadyError(OperatorError):
    """The admission service endpoint has not propagated yet."""

    def __init__(self, message: str, delay: int = 5):
        super().__init__(
            message=message,
            category="readiness",
            retryable=True,
            delay=delay,
            user_action="Wait for the admission pod to become a ready endpoint",
        )


class LivenessProbeError(OperatorError):
    """The owning workload could not be read during shutdown."""

    def __init__(self, message: str, cause: Exception | None = None):
        super().__init__(
            message=message,
            category="liveness",
            retryable=False,
            cause=cause,
        )


class RegistrationError(OperatorError):
    """One or more webhook configurations could not be created."""

    def __init__(self, failures: dict[str, Exception]):
        self.failures = dict(failures)
        message = ",".join(
            f"{role}: {error.message if isinstance(error, OperatorError) else error}"
            for role, error in self.failures.items()
        )
        super().__init__(
            message=message,
            category="registration",
            retryable=True,
            delay=10,
        )

    @property
    def roles(self) -> list[str]:
        """Roles whose registration failed, in creation order."""
        return list(self.failures)
