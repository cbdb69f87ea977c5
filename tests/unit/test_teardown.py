"""Unit tests for concurrent webhook configuration teardown."""

import asyncio
from unittest.mock import patch

import pytest

from webhook_manager.errors import KubernetesAPIError
from webhook_manager.webhooks.roles import ROLES, AddressingMode


def add_all(cluster, mode=AddressingMode.STANDARD):
    for descriptor in ROLES:
        cluster.add(descriptor.kind, None, {"metadata": {"name": descriptor.name_for(mode)}})


class TestRemoveWebhookConfigurations:
    """Tests for remove_webhook_configurations."""

    @pytest.mark.asyncio
    async def test_deletes_all_five(self, make_registrar, cluster):
        registrar = make_registrar(cache=None)
        add_all(cluster)

        await registrar.remove_webhook_configurations()

        deleted = {name for _, _, _, name in cluster.calls_for("delete")}
        assert deleted == {d.name_for(AddressingMode.STANDARD) for d in ROLES}
        assert not any(key[1] is None for key in cluster.objects)

    @pytest.mark.asyncio
    async def test_every_delete_attempted_when_all_fail(self, make_registrar, cluster):
        registrar = make_registrar(cache=None)
        for descriptor in ROLES:
            cluster.fail(
                "delete",
                descriptor.kind,
                descriptor.name_for(AddressingMode.STANDARD),
                KubernetesAPIError("boom", status=500),
            )

        # never raises
        await registrar.remove_webhook_configurations()

        assert len(cluster.calls_for("delete")) == 5

    @pytest.mark.asyncio
    async def test_unexpected_errors_are_absorbed(self, make_registrar, cluster):
        registrar = make_registrar(cache=None)
        descriptor = ROLES[0]
        cluster.fail(
            "delete",
            descriptor.kind,
            descriptor.name_for(AddressingMode.STANDARD),
            RuntimeError("connection reset"),
        )

        await registrar.remove_webhook_configurations()

        assert len(cluster.calls_for("delete")) == 5

    @pytest.mark.asyncio
    async def test_not_found_is_success(self, make_registrar, cluster):
        """Deleting configurations that do not exist is a no-op."""
        registrar = make_registrar(cache=None)

        await registrar.remove_webhook_configurations()

        assert len(cluster.calls_for("delete")) == 5

    @pytest.mark.asyncio
    async def test_cache_miss_short_circuits_delete(self, registrar, cluster, cache):
        cached = ROLES[1]
        name = cached.name_for(AddressingMode.STANDARD)
        cluster.add(cached.kind, None, {"metadata": {"name": name}})
        for kind in cache.KINDS:
            cache.sync(kind, [])
        cache.upsert(cached.kind, {"metadata": {"name": name}})

        await registrar.remove_webhook_configurations()

        assert [n for _, _, _, n in cluster.calls_for("delete")] == [name]

    @pytest.mark.asyncio
    async def test_unsynced_cache_does_not_short_circuit(
        self, registrar, cluster, cache
    ):
        add_all(cluster)

        await registrar.remove_webhook_configurations()

        deleted = {name for _, _, _, name in cluster.calls_for("delete")}
        assert deleted == {d.name_for(AddressingMode.STANDARD) for d in ROLES}
        assert not any(key[1] is None for key in cluster.objects)

    @pytest.mark.asyncio
    async def test_debug_mode_deletes_debug_names_only(self, make_registrar, cluster):
        registrar = make_registrar(server_ip="10.0.0.1", cache=None)
        add_all(cluster)
        add_all(cluster, AddressingMode.DEBUG)

        await registrar.remove_webhook_configurations()

        deleted = {name for _, _, _, name in cluster.calls_for("delete")}
        assert deleted == {d.name_for(AddressingMode.DEBUG) for d in ROLES}
        remaining = {key[2] for key in cluster.objects if key[1] is None}
        assert remaining == {d.name_for(AddressingMode.STANDARD) for d in ROLES}

    @pytest.mark.asyncio
    async def test_deletes_run_concurrently(self, make_registrar):
        """All five deletes are in flight before any of them completes."""
        registrar = make_registrar(cache=None)
        in_flight = 0
        peak = 0
        release = asyncio.Event()

        async def slow_remove(descriptor):
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            if in_flight == len(ROLES):
                release.set()
            await release.wait()
            in_flight -= 1

        with patch.object(
            registrar, "remove_webhook_configuration", side_effect=slow_remove
        ):
            await asyncio.wait_for(registrar.remove_webhook_configurations(), 1)

        assert peak == 5
