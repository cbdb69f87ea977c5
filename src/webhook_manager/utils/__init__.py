"""
Utils package - Boundary helpers for the webhook manager.

Contains helper modules for:
- Generic Kubernetes resource access
- The webhook configuration cache
- Dynamic webhook settings from the init ConfigMap
- CA bundle lookup
"""

from webhook_manager.utils.cache import WebhookConfigurationCache
from webhook_manager.utils.config_provider import ConfigProvider
from webhook_manager.utils.kubernetes import ClusterClient

__all__ = [
    "ClusterClient",
    "ConfigProvider",
    "WebhookConfigurationCache",
]
