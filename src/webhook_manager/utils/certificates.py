"""
CA bundle lookup for webhook client configurations.

The CA is issued elsewhere; this module only finds it. Sources are tried
in order: the managed CA secret, the configured file, and the CA file of
the Kubernetes client configuration.
"""

import base64
import logging
from pathlib import Path

from kubernetes import client

from webhook_manager.constants import CA_SECRET_KEY, CA_SECRET_SUFFIX
from webhook_manager.errors import KubernetesAPIError
from webhook_manager.utils.kubernetes import ClusterClient

logger = logging.getLogger(__name__)


def ca_secret_name(service_name: str, namespace: str) -> str:
    return f"{service_name}.{namespace}.svc.{CA_SECRET_SUFFIX}"


def load_ca_bundle(
    cluster: ClusterClient,
    namespace: str,
    service_name: str,
    ca_bundle_path: str = "",
) -> bytes | None:
    """
    Find the CA bundle the API server should trust.

    Returns:
        The PEM encoded CA, or None if no source provides one
    """
    secret_name = ca_secret_name(service_name, namespace)
    try:
        secret = cluster.get("v1", "Secret", namespace, secret_name)
        encoded = (secret.get("data") or {}).get(CA_SECRET_KEY)
        if encoded:
            return base64.b64decode(encoded)
    except KubernetesAPIError as e:
        logger.debug(f"CA secret {namespace}/{secret_name} unavailable: {e.message}")

    for path in (ca_bundle_path, client.Configuration.get_default_copy().ssl_ca_cert):
        if path and Path(path).is_file():
            data = Path(path).read_bytes()
            if data:
                return data

    return None
