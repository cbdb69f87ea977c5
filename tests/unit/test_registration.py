"""
Unit tests for full webhook registration and the health check.

Runs WebhookRegistrar against the in-memory FakeClusterClient.
"""

import base64

import kopf
import pytest

from webhook_manager.constants import KIND_MUTATING, KIND_VALIDATING
from webhook_manager.errors import (
    ConfigurationError,
    KubernetesAPIError,
    NotFoundError,
    NotReadyError,
    RegistrationError,
)
from webhook_manager.webhooks.roles import ROLES, ROLES_BY_NAME, AddressingMode, Role


def created_names(cluster) -> list[str]:
    return [name for _, _, _, name in cluster.calls_for("create")]


def stored_configuration(cluster, descriptor, mode) -> dict:
    return cluster.objects[(descriptor.kind, None, descriptor.name_for(mode))]


class TestRegisterStandardMode:
    """Tests for registration against the in-cluster Service."""

    @pytest.mark.asyncio
    async def test_creates_five_standard_configurations(self, registrar, cluster):
        await registrar.register()

        assert created_names(cluster) == [
            d.name_for(AddressingMode.STANDARD) for d in ROLES
        ]
        for descriptor in ROLES:
            manifest = stored_configuration(cluster, descriptor, AddressingMode.STANDARD)
            client_config = manifest["webhooks"][0]["clientConfig"]
            assert "url" not in client_config
            assert client_config["service"]["name"] == "kyverno-svc"

    @pytest.mark.asyncio
    async def test_consults_readiness_gate(self, registrar, cluster):
        await registrar.register()

        assert cluster.calls_for("list", "Pod")
        assert cluster.calls_for("get", "Endpoints")

    @pytest.mark.asyncio
    async def test_timeout_written_into_every_webhook(self, make_registrar, cluster):
        registrar = make_registrar(timeout_seconds=12)

        await registrar.register()

        for descriptor in ROLES:
            manifest = stored_configuration(cluster, descriptor, AddressingMode.STANDARD)
            assert manifest["webhooks"][0]["timeoutSeconds"] == 12

    @pytest.mark.asyncio
    async def test_not_ready_creates_nothing(self, registrar, cluster):
        cluster.objects[("Endpoints", "kyverno", "kyverno-svc")]["subsets"] = []

        with pytest.raises(NotReadyError):
            await registrar.register()

        assert created_names(cluster) == []


class TestRegisterDebugMode:
    """Tests for registration against an external server address."""

    @pytest.mark.asyncio
    async def test_creates_five_debug_configurations(self, make_registrar, cluster):
        registrar = make_registrar(server_ip="192.168.1.10")

        await registrar.register()

        assert registrar.debug
        assert created_names(cluster) == [d.name_for(AddressingMode.DEBUG) for d in ROLES]
        for descriptor in ROLES:
            manifest = stored_configuration(cluster, descriptor, AddressingMode.DEBUG)
            client_config = manifest["webhooks"][0]["clientConfig"]
            assert client_config["url"].startswith("https://192.168.1.10/")
            assert "service" not in client_config

    @pytest.mark.asyncio
    async def test_skips_readiness_gate(self, make_registrar, cluster):
        registrar = make_registrar(server_ip="192.168.1.10")
        cluster.objects.clear()

        await registrar.register()

        assert cluster.calls_for("list", "Pod") == []
        assert cluster.calls_for("get", "Endpoints") == []


class TestRegisterFailures:
    """Tests for CA and per-role create failures."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("ca_bundle", [None, b""])
    async def test_missing_ca_creates_nothing(self, make_registrar, cluster, ca_bundle):
        registrar = make_registrar(ca_bundle=ca_bundle)

        with pytest.raises(ConfigurationError) as exc_info:
            await registrar.register()

        assert "CA" in exc_info.value.message
        assert created_names(cluster) == []

    @pytest.mark.asyncio
    async def test_failures_are_aggregated_by_role(self, registrar, cluster):
        failing = [Role.POLICY_MUTATION, Role.RESOURCE_MUTATION]
        for role in failing:
            descriptor = ROLES_BY_NAME[role]
            cluster.fail(
                "create",
                descriptor.kind,
                descriptor.name_for(AddressingMode.STANDARD),
                KubernetesAPIError("boom", reason="InternalError", status=500),
            )

        with pytest.raises(RegistrationError) as exc_info:
            await registrar.register()

        error = exc_info.value
        assert error.roles == ["PolicyMutation", "ResourceMutation"]
        assert "PolicyMutation:" in error.message
        assert "ResourceMutation:" in error.message
        assert "PolicyValidation" not in error.message

        # the remaining roles were still attempted and created
        assert len(cluster.calls_for("create")) == 5
        assert (KIND_VALIDATING, None, "kyverno-policy-validating-webhook-cfg") in (
            cluster.objects
        )

    @pytest.mark.asyncio
    @pytest.mark.parametrize("failed_count", range(len(ROLES) + 1))
    async def test_aggregate_names_exactly_the_failed_roles(
        self, registrar, cluster, failed_count
    ):
        failing = ROLES[:failed_count]
        for descriptor in failing:
            cluster.fail(
                "create",
                descriptor.kind,
                descriptor.name_for(AddressingMode.STANDARD),
                KubernetesAPIError("boom", status=500),
            )

        if failing:
            with pytest.raises(RegistrationError) as exc_info:
                await registrar.register()
            assert exc_info.value.roles == [d.role.value for d in failing]
        else:
            await registrar.register()

        assert len(cluster.calls_for("create")) == 5
        created = {key[2] for key in cluster.objects if key[1] is None}
        assert created == {
            d.name_for(AddressingMode.STANDARD) for d in ROLES[failed_count:]
        }

    @pytest.mark.asyncio
    async def test_aggregate_converts_to_temporary_error(self, registrar, cluster):
        descriptor = ROLES_BY_NAME[Role.VERIFICATION_MUTATION]
        cluster.fail(
            "create",
            KIND_MUTATING,
            descriptor.name_for(AddressingMode.STANDARD),
            KubernetesAPIError("boom", status=500),
        )

        with pytest.raises(RegistrationError) as exc_info:
            await registrar.register()

        assert isinstance(exc_info.value.as_kopf_error(), kopf.TemporaryError)

    @pytest.mark.asyncio
    async def test_already_exists_counts_as_success(self, registrar, cluster):
        existing = ROLES_BY_NAME[Role.RESOURCE_VALIDATION]
        cluster.add(
            existing.kind,
            None,
            {"metadata": {"name": existing.name_for(AddressingMode.STANDARD)}},
        )

        config = await registrar.create_webhook_configuration(
            existing, registrar.ca_provider()
        )

        assert config.name == existing.name_for(AddressingMode.STANDARD)
        assert len(cluster.calls_for("create")) == 1

    @pytest.mark.asyncio
    async def test_unsynced_cache_still_replaces_existing_configurations(
        self, registrar, cluster, cache
    ):
        """Configurations left by a previous run are replaced on startup."""
        for descriptor in ROLES:
            cluster.add(
                descriptor.kind,
                None,
                {
                    "metadata": {"name": descriptor.name_for(AddressingMode.STANDARD)},
                    "webhooks": [{"name": "stale", "clientConfig": {"caBundle": "OLD"}}],
                },
            )
        assert not cache.has_synced(KIND_MUTATING)

        await registrar.register()

        assert len(cluster.calls_for("delete")) == 5
        expected = base64.b64encode(registrar.ca_provider()).decode("ascii")
        for descriptor in ROLES:
            manifest = stored_configuration(cluster, descriptor, AddressingMode.STANDARD)
            assert manifest["webhooks"][0]["clientConfig"]["caBundle"] == expected

    @pytest.mark.asyncio
    async def test_registration_removes_cached_configurations_first(
        self, registrar, cluster, cache
    ):
        descriptor = ROLES_BY_NAME[Role.POLICY_MUTATION]
        name = descriptor.name_for(AddressingMode.STANDARD)
        stale = {"metadata": {"name": name}, "webhooks": []}
        cluster.add(descriptor.kind, None, stale)
        cache.upsert(descriptor.kind, stale)

        await registrar.register()

        operations = [(op, n) for op, _, _, n in cluster.calls if n == name]
        assert operations == [("delete", name), ("create", name)]
        assert stored_configuration(cluster, descriptor, AddressingMode.STANDARD)[
            "webhooks"
        ]


class TestCheck:
    """Tests for the cache-backed health check."""

    @pytest.mark.asyncio
    async def test_passes_when_all_cached(self, registrar, cache):
        for descriptor in ROLES:
            cache.upsert(
                descriptor.kind,
                {"metadata": {"name": descriptor.name_for(AddressingMode.STANDARD)}},
            )

        await registrar.check()

    @pytest.mark.asyncio
    async def test_missing_configuration_raises(self, registrar, cache):
        for descriptor in ROLES[:-1]:
            cache.upsert(
                descriptor.kind,
                {"metadata": {"name": descriptor.name_for(AddressingMode.STANDARD)}},
            )

        with pytest.raises(NotFoundError) as exc_info:
            await registrar.check()

        assert exc_info.value.name == ROLES[-1].name_for(AddressingMode.STANDARD)

    @pytest.mark.asyncio
    async def test_debug_mode_checks_debug_names(self, make_registrar, cache):
        registrar = make_registrar(server_ip="10.0.0.1")
        for descriptor in ROLES:
            cache.upsert(
                descriptor.kind,
                {"metadata": {"name": descriptor.name_for(AddressingMode.STANDARD)}},
            )

        with pytest.raises(NotFoundError):
            await registrar.check()
