"""
Kubernetes utilities for the webhook manager.

This module provides the generic resource access client used by the
manager. Every call is keyed by (API version, kind, namespace, name) and
goes through the dynamic client, so the manager never depends on a typed
API class per kind. Objects cross this boundary as plain dicts.

Key functionality:
- Kubernetes client configuration (in-cluster first, kubeconfig fallback)
- Generic get/list/create/update/delete
- Translation of API failures into the manager's error hierarchy
"""

import json
import logging
from typing import Any

from kubernetes import client, config, dynamic
from kubernetes.client.rest import ApiException

from webhook_manager.errors import (
    AlreadyExistsError,
    KubernetesAPIError,
    NotFoundError,
)

logger = logging.getLogger(__name__)


def get_kubernetes_client() -> client.ApiClient:
    """
    Get configured Kubernetes API client.

    Tries the in-cluster configuration first (when running in a pod) and falls
    back to the local kubeconfig for development.

    Returns:
        Configured Kubernetes API client
    """
    try:
        config.load_incluster_config()
        logger.debug("Loaded in-cluster Kubernetes configuration")
    except config.ConfigException:
        try:
            config.load_kube_config()
            logger.debug("Loaded kubeconfig from local environment")
        except config.ConfigException as e:
            logger.error(f"Failed to load Kubernetes configuration: {e}")
            raise

    return client.ApiClient()


def get_label_selector(labels: dict[str, str]) -> str:
    return ",".join(f"{key}={value}" for key, value in labels.items())


def translate_api_exception(
    e: ApiException, kind: str, name: str | None, namespace: str | None
) -> KubernetesAPIError:
    """Map an API failure onto NotFound, AlreadyExists or a generic API error."""
    if e.status == 404:
        return NotFoundError(kind, name or "", namespace)
    # 409 is also returned for resourceVersion conflicts on update
    if e.status == 409 and _status_reason(e) == "AlreadyExists":
        return AlreadyExistsError(kind, name or "", namespace)
    return KubernetesAPIError(
        message=f"{kind} {name or ''}: {e.body or e}",
        reason=_status_reason(e) or e.reason,
        status=e.status,
        retryable=e.status is None or e.status >= 500 or e.status in (409, 429),
        cause=e,
    )


def _status_reason(e: ApiException) -> str | None:
    try:
        return json.loads(e.body).get("reason")
    except (TypeError, ValueError, AttributeError):
        return None


class ClusterClient:
    """
    Generic CRUD against arbitrary cluster resource kinds.

    Wraps :class:`kubernetes.dynamic.DynamicClient`. Cluster-scoped kinds are
    addressed with ``namespace=None``.
    """

    def __init__(self, k8s_client: client.ApiClient | None = None):
        """
        Initialize the cluster client.

        Args:
            k8s_client: Kubernetes API client, will be created if not provided
        """
        self.k8s_client = k8s_client
        self._dynamic: dynamic.DynamicClient | None = None

    @property
    def dynamic_client(self) -> dynamic.DynamicClient:
        if self._dynamic is None:
            if self.k8s_client is None:
                self.k8s_client = get_kubernetes_client()
            self._dynamic = dynamic.DynamicClient(self.k8s_client)
        return self._dynamic

    def _resource(self, api_version: str, kind: str):
        return self.dynamic_client.resources.get(api_version=api_version, kind=kind)

    def get(
        self, api_version: str, kind: str, namespace: str | None, name: str
    ) -> dict[str, Any]:
        try:
            obj = self._resource(api_version, kind).get(name=name, namespace=namespace)
        except ApiException as e:
            raise translate_api_exception(e, kind, name, namespace) from e
        return obj.to_dict()

    def list(
        self,
        api_version: str,
        kind: str,
        namespace: str | None,
        label_selector: dict[str, str] | None = None,
    ) -> list[dict[str, Any]]:
        selector = get_label_selector(label_selector) if label_selector else None
        try:
            result = self._resource(api_version, kind).get(
                namespace=namespace, label_selector=selector
            )
        except ApiException as e:
            raise translate_api_exception(e, kind, None, namespace) from e
        return result.to_dict().get("items") or []

    def create(
        self, api_version: str, kind: str, namespace: str | None, body: dict[str, Any]
    ) -> dict[str, Any]:
        name = body.get("metadata", {}).get("name")
        try:
            obj = self._resource(api_version, kind).create(
                body=body, namespace=namespace
            )
        except ApiException as e:
            raise translate_api_exception(e, kind, name, namespace) from e
        return obj.to_dict()

    def update(
        self, api_version: str, kind: str, namespace: str | None, body: dict[str, Any]
    ) -> dict[str, Any]:
        """Replace the whole object."""
        name = body.get("metadata", {}).get("name")
        try:
            obj = self._resource(api_version, kind).replace(
                body=body, namespace=namespace
            )
        except ApiException as e:
            raise translate_api_exception(e, kind, name, namespace) from e
        return obj.to_dict()

    def delete(
        self, api_version: str, kind: str, namespace: str | None, name: str
    ) -> None:
        try:
            self._resource(api_version, kind).delete(name=name, namespace=namespace)
        except ApiException as e:
            raise translate_api_exception(e, kind, name, namespace) from e
