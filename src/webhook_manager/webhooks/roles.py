"""
Role descriptors for the five webhook configurations.

A role is one logical admission function. Each role maps to exactly one
configuration kind and owns two identities, one per addressing mode. The
manager drives every create, remove and check through the ``ROLES`` table
instead of per-role code paths.
"""

from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

from webhook_manager.constants import (
    KIND_MUTATING,
    KIND_VALIDATING,
    POLICY_MUTATING_WEBHOOK_CONFIGURATION_NAME,
    POLICY_VALIDATING_WEBHOOK_CONFIGURATION_NAME,
    RESOURCE_MUTATING_WEBHOOK_CONFIGURATION_NAME,
    RESOURCE_VALIDATING_WEBHOOK_CONFIGURATION_NAME,
    VERIFY_MUTATING_WEBHOOK_CONFIGURATION_NAME,
)
from webhook_manager.models.webhook import WebhookConfiguration
from webhook_manager.webhooks import builders
from webhook_manager.webhooks.builders import WebhookEndpoint, debug_name

Builder = Callable[[bytes, int, WebhookEndpoint], WebhookConfiguration]


class Role(str, Enum):
    POLICY_VALIDATION = "PolicyValidation"
    POLICY_MUTATION = "PolicyMutation"
    RESOURCE_VALIDATION = "ResourceValidation"
    RESOURCE_MUTATION = "ResourceMutation"
    VERIFICATION_MUTATION = "VerificationMutation"


class AddressingMode(str, Enum):
    """How the API server reaches the admission server."""

    STANDARD = "standard"  # in-cluster Service reference
    DEBUG = "debug"  # external URL

    @classmethod
    def from_server_ip(cls, server_ip: str) -> "AddressingMode":
        return cls.DEBUG if server_ip else cls.STANDARD


@dataclass(frozen=True)
class RoleDescriptor:
    role: Role
    kind: str
    names: dict[AddressingMode, str]
    builders: dict[AddressingMode, Builder]

    def name_for(self, mode: AddressingMode) -> str:
        return self.names[mode]

    def build(
        self,
        mode: AddressingMode,
        ca_bundle: bytes,
        timeout_seconds: int,
        endpoint: WebhookEndpoint,
    ) -> WebhookConfiguration:
        return self.builders[mode](ca_bundle, timeout_seconds, endpoint)


def _descriptor(
    role: Role, kind: str, name: str, standard: Builder, debug: Builder
) -> RoleDescriptor:
    return RoleDescriptor(
        role=role,
        kind=kind,
        names={AddressingMode.STANDARD: name, AddressingMode.DEBUG: debug_name(name)},
        builders={AddressingMode.STANDARD: standard, AddressingMode.DEBUG: debug},
    )


# Ordered as registration creates them
ROLES: tuple[RoleDescriptor, ...] = (
    _descriptor(
        Role.VERIFICATION_MUTATION,
        KIND_MUTATING,
        VERIFY_MUTATING_WEBHOOK_CONFIGURATION_NAME,
        builders.verify_mutating_config,
        builders.debug_verify_mutating_config,
    ),
    _descriptor(
        Role.POLICY_VALIDATION,
        KIND_VALIDATING,
        POLICY_VALIDATING_WEBHOOK_CONFIGURATION_NAME,
        builders.policy_validating_config,
        builders.debug_policy_validating_config,
    ),
    _descriptor(
        Role.POLICY_MUTATION,
        KIND_MUTATING,
        POLICY_MUTATING_WEBHOOK_CONFIGURATION_NAME,
        builders.policy_mutating_config,
        builders.debug_policy_mutating_config,
    ),
    _descriptor(
        Role.RESOURCE_VALIDATION,
        KIND_VALIDATING,
        RESOURCE_VALIDATING_WEBHOOK_CONFIGURATION_NAME,
        builders.resource_validating_config,
        builders.debug_resource_validating_config,
    ),
    _descriptor(
        Role.RESOURCE_MUTATION,
        KIND_MUTATING,
        RESOURCE_MUTATING_WEBHOOK_CONFIGURATION_NAME,
        builders.resource_mutating_config,
        builders.debug_resource_mutating_config,
    ),
)

ROLES_BY_NAME: dict[Role, RoleDescriptor] = {d.role: d for d in ROLES}

# Roles whose first webhook carries the dynamic namespace selector
DYNAMIC_ROLES = (Role.RESOURCE_MUTATION, Role.RESOURCE_VALIDATION)
