"""
Dynamic webhook settings read from the init ConfigMap.

The ConfigMap's ``webhooks`` key holds a JSON list of webhook settings; the
first entry's namespace selector is applied to the resource webhooks. The
provider keeps the last successfully parsed value and reports whether a
refresh changed it, so the caller knows when to notify the update loop.
"""

import logging
import threading
from typing import Any

from pydantic import ValidationError

from webhook_manager.constants import WEBHOOKS_CONFIG_KEY
from webhook_manager.errors import ConfigurationError
from webhook_manager.models.webhook import WebhookSettings, webhook_settings_adapter

logger = logging.getLogger(__name__)


def parse_webhook_settings(raw: str) -> list[WebhookSettings]:
    """
    Parse the ``webhooks`` value of the init ConfigMap.

    Raises:
        ConfigurationError: If the value is not a valid settings list
    """
    try:
        return webhook_settings_adapter.validate_json(raw)
    except ValidationError as e:
        raise ConfigurationError(
            f"Invalid '{WEBHOOKS_CONFIG_KEY}' configuration: {e}",
            user_action=f"Fix the '{WEBHOOKS_CONFIG_KEY}' key of the init ConfigMap",
        ) from e


class ConfigProvider:
    """Holds the current dynamic webhook settings."""

    def __init__(self, webhooks: list[WebhookSettings] | None = None):
        self._lock = threading.Lock()
        self._webhooks = webhooks

    def get_webhooks(self) -> list[WebhookSettings] | None:
        with self._lock:
            return list(self._webhooks) if self._webhooks is not None else None

    def load(self, configmap: dict[str, Any]) -> bool:
        """
        Refresh the settings from a ConfigMap body.

        A missing key clears the settings. An invalid value is logged and the
        previous settings are kept.

        Returns:
            True if the settings changed
        """
        raw = (configmap.get("data") or {}).get(WEBHOOKS_CONFIG_KEY)
        if raw is None:
            webhooks = None
        else:
            try:
                webhooks = parse_webhook_settings(raw)
            except ConfigurationError as e:
                logger.error(f"Ignoring webhook settings update: {e.message}")
                return False

        with self._lock:
            changed = webhooks != self._webhooks
            self._webhooks = webhooks
        return changed
