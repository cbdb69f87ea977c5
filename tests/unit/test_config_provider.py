"""Unit tests for dynamic webhook settings and their validation."""

import pytest

from webhook_manager.errors import ConfigurationError
from webhook_manager.utils.config_provider import ConfigProvider, parse_webhook_settings

VALID = '[{"namespaceSelector": {"matchLabels": {"team": "platform"}}}]'


def configmap(webhooks: str | None) -> dict:
    data = {"resourceFilters": "[Event,*,*]"}
    if webhooks is not None:
        data["webhooks"] = webhooks
    return {"metadata": {"name": "init-config", "namespace": "kyverno"}, "data": data}


class TestParseWebhookSettings:
    """Tests for parse_webhook_settings."""

    def test_valid_settings(self):
        settings = parse_webhook_settings(VALID)

        assert len(settings) == 1
        assert settings[0].namespace_selector.match_labels == {"team": "platform"}

    def test_entry_without_selector(self):
        assert parse_webhook_settings("[{}]")[0].namespace_selector is None

    @pytest.mark.parametrize(
        "raw",
        [
            "not json",
            '{"namespaceSelector": {}}',
            '[{"namespaceSelector": {"matchExpressions": [{"key": "a", "operator": "Maybe"}]}}]',
        ],
    )
    def test_invalid_settings(self, raw):
        with pytest.raises(ConfigurationError) as exc_info:
            parse_webhook_settings(raw)

        assert "webhooks" in exc_info.value.message
        assert not exc_info.value.retryable


class TestConfigProvider:
    """Tests for ConfigProvider.load."""

    def test_first_load_reports_change(self):
        provider = ConfigProvider()

        assert provider.load(configmap(VALID))
        assert provider.get_webhooks()[0].namespace_selector.match_labels == {
            "team": "platform"
        }

    def test_same_settings_report_no_change(self):
        provider = ConfigProvider()
        provider.load(configmap(VALID))

        assert not provider.load(configmap(VALID))

    def test_removed_key_clears_settings(self):
        provider = ConfigProvider()
        provider.load(configmap(VALID))

        assert provider.load(configmap(None))
        assert provider.get_webhooks() is None

    def test_invalid_update_keeps_previous(self):
        provider = ConfigProvider()
        provider.load(configmap(VALID))

        assert not provider.load(configmap("[oops"))
        assert provider.get_webhooks() is not None

    def test_deleted_configmap(self):
        provider = ConfigProvider(parse_webhook_settings(VALID))

        assert provider.load({})
        assert provider.get_webhooks() is None


class TestValidateWebhookConfigurations:
    """Tests for WebhookRegistrar.validate_webhook_configurations."""

    @pytest.mark.asyncio
    async def test_valid_configmap(self, registrar, cluster):
        cluster.add("ConfigMap", "kyverno", configmap(VALID))

        await registrar.validate_webhook_configurations("kyverno", "init-config")

    @pytest.mark.asyncio
    async def test_missing_configmap_is_accepted(self, registrar):
        await registrar.validate_webhook_configurations("kyverno", "init-config")

    @pytest.mark.asyncio
    async def test_missing_key_is_accepted(self, registrar, cluster):
        cluster.add("ConfigMap", "kyverno", configmap(None))

        await registrar.validate_webhook_configurations("kyverno", "init-config")

    @pytest.mark.asyncio
    async def test_invalid_value_raises(self, registrar, cluster):
        cluster.add("ConfigMap", "kyverno", configmap('[{"namespaceSelector": 5}]'))

        with pytest.raises(ConfigurationError):
            await registrar.validate_webhook_configurations("kyverno", "init-config")
