"""
Pydantic models for admission webhook configurations.

This module defines typed models for MutatingWebhookConfiguration and
ValidatingWebhookConfiguration objects. Models accept unknown fields so a
live object read from the cluster survives a read-modify-write round trip
unchanged apart from the fields the manager sets. Conversion to and from
plain dicts happens only at the cluster API boundary.
"""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from webhook_manager.constants import ADMISSION_API_VERSION


class _K8sModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")


class LabelSelectorRequirement(_K8sModel):
    """A single set-based label requirement."""

    key: str
    operator: Literal["In", "NotIn", "Exists", "DoesNotExist"]
    values: list[str] | None = None


class LabelSelector(_K8sModel):
    """Label selector restricting which namespaces trigger a webhook."""

    match_labels: dict[str, str] | None = Field(None, alias="matchLabels")
    match_expressions: list[LabelSelectorRequirement] | None = Field(
        None, alias="matchExpressions"
    )

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class ServiceReference(_K8sModel):
    """In-cluster Service the API server calls."""

    namespace: str
    name: str
    path: str | None = None
    port: int | None = None


class WebhookClientConfig(_K8sModel):
    """How the API server reaches the webhook: service reference or URL."""

    url: str | None = None
    service: ServiceReference | None = None
    ca_bundle: str | None = Field(
        None, alias="caBundle", description="Base64 encoded CA bundle"
    )


class RuleWithOperations(_K8sModel):
    """Resources and operations a webhook is called for."""

    operations: list[str]
    api_groups: list[str] = Field(..., alias="apiGroups")
    api_versions: list[str] = Field(..., alias="apiVersions")
    resources: list[str]


class WebhookRule(_K8sModel):
    """One webhook entry of a configuration."""

    name: str
    client_config: WebhookClientConfig = Field(..., alias="clientConfig")
    rules: list[RuleWithOperations] = Field(default_factory=list)
    failure_policy: Literal["Ignore", "Fail"] = Field("Ignore", alias="failurePolicy")
    side_effects: str = Field("None", alias="sideEffects")
    timeout_seconds: int | None = Field(None, alias="timeoutSeconds")
    admission_review_versions: list[str] = Field(
        default_factory=list, alias="admissionReviewVersions"
    )
    namespace_selector: LabelSelector | None = Field(None, alias="namespaceSelector")


class ObjectMeta(_K8sModel):
    """Subset of object metadata the manager cares about."""

    name: str


class WebhookConfiguration(_K8sModel):
    """A mutating or validating webhook configuration."""

    api_version: str = Field(ADMISSION_API_VERSION, alias="apiVersion")
    kind: Literal["MutatingWebhookConfiguration", "ValidatingWebhookConfiguration"]
    metadata: ObjectMeta
    webhooks: list[WebhookRule] = Field(default_factory=list)

    @property
    def name(self) -> str:
        return self.metadata.name

    @classmethod
    def from_manifest(cls, manifest: dict[str, Any]) -> "WebhookConfiguration":
        return cls.model_validate(manifest)

    def to_manifest(self) -> dict[str, Any]:
        """Serialize to the dict shape the Kubernetes API expects."""
        return self.model_dump(by_alias=True, exclude_none=True)

    def with_namespace_selector(
        self, selector: LabelSelector | None
    ) -> "WebhookConfiguration":
        """
        Return a deep copy whose first webhook carries the given selector.

        Only the first webhook of a configuration has a mutable namespace
        selector; every other entry is left untouched.

        Raises:
            ValueError: If the configuration has no webhooks
        """
        if not self.webhooks:
            raise ValueError(f"{self.kind} {self.name} has no webhooks")
        updated = self.model_copy(deep=True)
        updated.webhooks[0].namespace_selector = (
            selector.model_copy(deep=True) if selector is not None else None
        )
        return updated


class WebhookSettings(_K8sModel):
    """Dynamic webhook settings carried by the init ConfigMap."""

    namespace_selector: LabelSelector | None = Field(None, alias="namespaceSelector")


webhook_settings_adapter = TypeAdapter(list[WebhookSettings])
