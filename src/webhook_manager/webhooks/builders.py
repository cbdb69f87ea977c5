"""
Builders for the five admission webhook configurations.

Each role has a standard builder, which points the API server at the
in-cluster Service, and a debug builder, which points it at an external
URL for running the admission server outside the cluster. Builders are
pure: the same inputs always produce the same configuration.
"""

import base64
from dataclasses import dataclass

from webhook_manager.constants import (
    ADMISSION_REVIEW_VERSIONS,
    ALL_RESOURCES,
    DEBUG_NAME_SUFFIX,
    DEFAULT_FAILURE_POLICY,
    KIND_MUTATING,
    KIND_VALIDATING,
    POLICY_API_GROUP,
    POLICY_API_VERSION,
    POLICY_MUTATING_WEBHOOK_CONFIGURATION_NAME,
    POLICY_MUTATING_WEBHOOK_NAME,
    POLICY_MUTATING_WEBHOOK_SERVICE_PATH,
    POLICY_RESOURCES,
    POLICY_VALIDATING_WEBHOOK_CONFIGURATION_NAME,
    POLICY_VALIDATING_WEBHOOK_NAME,
    POLICY_VALIDATING_WEBHOOK_SERVICE_PATH,
    RESOURCE_MUTATING_WEBHOOK_CONFIGURATION_NAME,
    RESOURCE_MUTATING_WEBHOOK_NAME,
    RESOURCE_MUTATING_WEBHOOK_SERVICE_PATH,
    RESOURCE_VALIDATING_WEBHOOK_CONFIGURATION_NAME,
    RESOURCE_VALIDATING_WEBHOOK_NAME,
    RESOURCE_VALIDATING_WEBHOOK_SERVICE_PATH,
    SERVICE_PORT,
    VERIFY_MUTATING_WEBHOOK_CONFIGURATION_NAME,
    VERIFY_MUTATING_WEBHOOK_NAME,
    VERIFY_MUTATING_WEBHOOK_SERVICE_PATH,
)
from webhook_manager.models.webhook import (
    ObjectMeta,
    RuleWithOperations,
    ServiceReference,
    WebhookClientConfig,
    WebhookConfiguration,
    WebhookRule,
)


@dataclass(frozen=True)
class WebhookEndpoint:
    """Where the admission server can be reached."""

    namespace: str
    service_name: str
    server_ip: str = ""

    def service_config(self, path: str) -> WebhookClientConfig:
        return WebhookClientConfig(
            service=ServiceReference(
                namespace=self.namespace,
                name=self.service_name,
                path=path,
                port=SERVICE_PORT,
            )
        )

    def url_config(self, path: str) -> WebhookClientConfig:
        return WebhookClientConfig(url=debug_url(self.server_ip, path))


def debug_url(server_ip: str, path: str) -> str:
    return f"https://{server_ip}{path}"


def debug_name(name: str) -> str:
    return f"{name}{DEBUG_NAME_SUFFIX}"


def generate_webhook(
    name: str,
    client_config: WebhookClientConfig,
    ca_bundle: bytes,
    timeout_seconds: int,
    resources: list[str],
    api_group: str,
    api_version: str,
    operations: list[str],
    side_effects: bool = False,
    failure_policy: str = DEFAULT_FAILURE_POLICY,
) -> WebhookRule:
    """
    Build one webhook entry.

    Args:
        name: Webhook name, unique within its configuration
        client_config: Service reference or URL, without CA
        ca_bundle: PEM encoded CA the API server uses to trust the server
        timeout_seconds: How long the API server waits for a response
        resources: Resources matched by the rule
        api_group: API group matched by the rule
        api_version: API version matched by the rule
        operations: Admission operations matched by the rule
        side_effects: Whether the webhook has side effects outside dry runs
        failure_policy: What the API server does if the call fails
    """
    client_config = client_config.model_copy(
        update={"ca_bundle": base64.b64encode(ca_bundle).decode("ascii")}
    )
    return WebhookRule(
        name=name,
        client_config=client_config,
        rules=[
            RuleWithOperations(
                operations=operations,
                api_groups=[api_group],
                api_versions=[api_version],
                resources=resources,
            )
        ],
        failure_policy=failure_policy,
        side_effects="NoneOnDryRun" if side_effects else "None",
        timeout_seconds=timeout_seconds,
        admission_review_versions=list(ADMISSION_REVIEW_VERSIONS),
    )


def _configuration(kind: str, name: str, webhook: WebhookRule) -> WebhookConfiguration:
    return WebhookConfiguration(
        kind=kind, metadata=ObjectMeta(name=name), webhooks=[webhook]
    )


# Resource mutation


def _resource_mutating_webhook(
    client_config: WebhookClientConfig, ca_bundle: bytes, timeout_seconds: int
) -> WebhookRule:
    return generate_webhook(
        RESOURCE_MUTATING_WEBHOOK_NAME,
        client_config,
        ca_bundle,
        timeout_seconds,
        ALL_RESOURCES,
        "*",
        "*",
        ["CREATE", "UPDATE"],
    )


def resource_mutating_config(
    ca_bundle: bytes, timeout_seconds: int, endpoint: WebhookEndpoint
) -> WebhookConfiguration:
    return _configuration(
        KIND_MUTATING,
        RESOURCE_MUTATING_WEBHOOK_CONFIGURATION_NAME,
        _resource_mutating_webhook(
            endpoint.service_config(RESOURCE_MUTATING_WEBHOOK_SERVICE_PATH),
            ca_bundle,
            timeout_seconds,
        ),
    )


def debug_resource_mutating_config(
    ca_bundle: bytes, timeout_seconds: int, endpoint: WebhookEndpoint
) -> WebhookConfiguration:
    return _configuration(
        KIND_MUTATING,
        debug_name(RESOURCE_MUTATING_WEBHOOK_CONFIGURATION_NAME),
        _resource_mutating_webhook(
            endpoint.url_config(RESOURCE_MUTATING_WEBHOOK_SERVICE_PATH),
            ca_bundle,
            timeout_seconds,
        ),
    )


# Resource validation


def _resource_validating_webhook(
    client_config: WebhookClientConfig, ca_bundle: bytes, timeout_seconds: int
) -> WebhookRule:
    return generate_webhook(
        RESOURCE_VALIDATING_WEBHOOK_NAME,
        client_config,
        ca_bundle,
        timeout_seconds,
        ALL_RESOURCES,
        "*",
        "*",
        ["CREATE", "UPDATE", "DELETE", "CONNECT"],
    )


def resource_validating_config(
    ca_bundle: bytes, timeout_seconds: int, endpoint: WebhookEndpoint
) -> WebhookConfiguration:
    return _configuration(
        KIND_VALIDATING,
        RESOURCE_VALIDATING_WEBHOOK_CONFIGURATION_NAME,
        _resource_validating_webhook(
            endpoint.service_config(RESOURCE_VALIDATING_WEBHOOK_SERVICE_PATH),
            ca_bundle,
            timeout_seconds,
        ),
    )


def debug_resource_validating_config(
    ca_bundle: bytes, timeout_seconds: int, endpoint: WebhookEndpoint
) -> WebhookConfiguration:
    return _configuration(
        KIND_VALIDATING,
        debug_name(RESOURCE_VALIDATING_WEBHOOK_CONFIGURATION_NAME),
        _resource_validating_webhook(
            endpoint.url_config(RESOURCE_VALIDATING_WEBHOOK_SERVICE_PATH),
            ca_bundle,
            timeout_seconds,
        ),
    )


# Policy mutation


def _policy_mutating_webhook(
    client_config: WebhookClientConfig, ca_bundle: bytes, timeout_seconds: int
) -> WebhookRule:
    return generate_webhook(
        POLICY_MUTATING_WEBHOOK_NAME,
        client_config,
        ca_bundle,
        timeout_seconds,
        POLICY_RESOURCES,
        POLICY_API_GROUP,
        POLICY_API_VERSION,
        ["CREATE", "UPDATE"],
    )


def policy_mutating_config(
    ca_bundle: bytes, timeout_seconds: int, endpoint: WebhookEndpoint
) -> WebhookConfiguration:
    return _configuration(
        KIND_MUTATING,
        POLICY_MUTATING_WEBHOOK_CONFIGURATION_NAME,
        _policy_mutating_webhook(
            endpoint.service_config(POLICY_MUTATING_WEBHOOK_SERVICE_PATH),
            ca_bundle,
            timeout_seconds,
        ),
    )


def debug_policy_mutating_config(
    ca_bundle: bytes, timeout_seconds: int, endpoint: WebhookEndpoint
) -> WebhookConfiguration:
    return _configuration(
        KIND_MUTATING,
        debug_name(POLICY_MUTATING_WEBHOOK_CONFIGURATION_NAME),
        _policy_mutating_webhook(
            endpoint.url_config(POLICY_MUTATING_WEBHOOK_SERVICE_PATH),
            ca_bundle,
            timeout_seconds,
        ),
    )


# Policy validation


def _policy_validating_webhook(
    client_config: WebhookClientConfig, ca_bundle: bytes, timeout_seconds: int
) -> WebhookRule:
    return generate_webhook(
        POLICY_VALIDATING_WEBHOOK_NAME,
        client_config,
        ca_bundle,
        timeout_seconds,
        POLICY_RESOURCES,
        POLICY_API_GROUP,
        POLICY_API_VERSION,
        ["CREATE", "UPDATE"],
    )


def policy_validating_config(
    ca_bundle: bytes, timeout_seconds: int, endpoint: WebhookEndpoint
) -> WebhookConfiguration:
    return _configuration(
        KIND_VALIDATING,
        POLICY_VALIDATING_WEBHOOK_CONFIGURATION_NAME,
        _policy_validating_webhook(
            endpoint.service_config(POLICY_VALIDATING_WEBHOOK_SERVICE_PATH),
            ca_bundle,
            timeout_seconds,
        ),
    )


def debug_policy_validating_config(
    ca_bundle: bytes, timeout_seconds: int, endpoint: WebhookEndpoint
) -> WebhookConfiguration:
    return _configuration(
        KIND_VALIDATING,
        debug_name(POLICY_VALIDATING_WEBHOOK_CONFIGURATION_NAME),
        _policy_validating_webhook(
            endpoint.url_config(POLICY_VALIDATING_WEBHOOK_SERVICE_PATH),
            ca_bundle,
            timeout_seconds,
        ),
    )


# Deployment self-check


def _verify_mutating_webhook(
    client_config: WebhookClientConfig, ca_bundle: bytes, timeout_seconds: int
) -> WebhookRule:
    return generate_webhook(
        VERIFY_MUTATING_WEBHOOK_NAME,
        client_config,
        ca_bundle,
        timeout_seconds,
        ["deployments/*"],
        "apps",
        "v1",
        ["UPDATE"],
        side_effects=True,
    )


def verify_mutating_config(
    ca_bundle: bytes, timeout_seconds: int, endpoint: WebhookEndpoint
) -> WebhookConfiguration:
    return _configuration(
        KIND_MUTATING,
        VERIFY_MUTATING_WEBHOOK_CONFIGURATION_NAME,
        _verify_mutating_webhook(
            endpoint.service_config(VERIFY_MUTATING_WEBHOOK_SERVICE_PATH),
            ca_bundle,
            timeout_seconds,
        ),
    )


def debug_verify_mutating_config(
    ca_bundle: bytes, timeout_seconds: int, endpoint: WebhookEndpoint
) -> WebhookConfiguration:
    return _configuration(
        KIND_MUTATING,
        debug_name(VERIFY_MUTATING_WEBHOOK_CONFIGURATION_NAME),
        _verify_mutating_webhook(
            endpoint.url_config(VERIFY_MUTATING_WEBHOOK_SERVICE_PATH),
            ca_bundle,
            timeout_seconds,
        ),
    )
