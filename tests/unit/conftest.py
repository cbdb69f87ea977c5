"""Shared pytest fixtures for webhook manager unit tests."""

import copy

import pytest

from webhook_manager.errors import AlreadyExistsError, NotFoundError
from webhook_manager.services.registration import WebhookRegistrar
from webhook_manager.services.update_queue import UpdateQueue
from webhook_manager.utils.cache import WebhookConfigurationCache

NAMESPACE = "kyverno"
SERVICE = "kyverno-svc"
DEPLOYMENT = "kyverno"
POD_IP = "10.0.0.7"
CA_PEM = b"-----BEGIN CERTIFICATE-----\nMIIB\n-----END CERTIFICATE-----\n"


class FakeClusterClient:
    """
    In-memory stand-in for ClusterClient.

    Objects are stored by (kind, namespace, name). Failures are injected per
    (operation, kind, name) through ``fail``; every call is recorded in
    ``calls`` as (operation, kind, namespace, name).
    """

    def __init__(self):
        self.objects: dict[tuple, dict] = {}
        self.errors: dict[tuple, Exception] = {}
        self.remaining: dict[tuple, int] = {}
        self.calls: list[tuple] = []

    def add(self, kind: str, namespace: str | None, obj: dict) -> None:
        self.objects[(kind, namespace, obj["metadata"]["name"])] = copy.deepcopy(obj)

    def fail(
        self,
        operation: str,
        kind: str,
        name: str | None,
        error: Exception,
        times: int | None = None,
    ):
        """Make an operation raise, forever or for the next ``times`` calls."""
        self.errors[(operation, kind, name)] = error
        if times is not None:
            self.remaining[(operation, kind, name)] = times

    def calls_for(self, operation: str, kind: str | None = None) -> list[tuple]:
        return [
            c for c in self.calls if c[0] == operation and (kind is None or c[1] == kind)
        ]

    def _record(self, operation, kind, namespace, name):
        self.calls.append((operation, kind, namespace, name))
        key = (operation, kind, name)
        error = self.errors.get(key)
        if error is None:
            return
        if key in self.remaining:
            self.remaining[key] -= 1
            if self.remaining[key] <= 0:
                del self.errors[key]
                del self.remaining[key]
        raise error

    def get(self, api_version, kind, namespace, name):
        self._record("get", kind, namespace, name)
        try:
            return copy.deepcopy(self.objects[(kind, namespace, name)])
        except KeyError:
            raise NotFoundError(kind, name, namespace) from None

    def list(self, api_version, kind, namespace, label_selector=None):
        self._record("list", kind, namespace, None)
        items = []
        for (obj_kind, obj_namespace, _), obj in self.objects.items():
            if obj_kind != kind or obj_namespace != namespace:
                continue
            labels = obj.get("metadata", {}).get("labels") or {}
            if all(labels.get(k) == v for k, v in (label_selector or {}).items()):
                items.append(copy.deepcopy(obj))
        return items

    def create(self, api_version, kind, namespace, body):
        name = body["metadata"]["name"]
        self._record("create", kind, namespace, name)
        if (kind, namespace, name) in self.objects:
            raise AlreadyExistsError(kind, name, namespace)
        self.objects[(kind, namespace, name)] = copy.deepcopy(body)
        return copy.deepcopy(body)

    def update(self, api_version, kind, namespace, body):
        name = body["metadata"]["name"]
        self._record("update", kind, namespace, name)
        if (kind, namespace, name) not in self.objects:
            raise NotFoundError(kind, name, namespace)
        self.objects[(kind, namespace, name)] = copy.deepcopy(body)
        return copy.deepcopy(body)

    def delete(self, api_version, kind, namespace, name):
        self._record("delete", kind, namespace, name)
        if self.objects.pop((kind, namespace, name), None) is None:
            raise NotFoundError(kind, name, namespace)


def admission_pod(pod_ip: str | None = POD_IP) -> dict:
    status = {"podIP": pod_ip} if pod_ip else {}
    return {
        "metadata": {
            "name": "kyverno-abc",
            "namespace": NAMESPACE,
            "labels": {"app.kubernetes.io/name": "kyverno"},
        },
        "status": status,
    }


def service_endpoints(*ips: str) -> dict:
    return {
        "metadata": {"name": SERVICE, "namespace": NAMESPACE},
        "subsets": [{"addresses": [{"ip": ip} for ip in ips]}],
    }


@pytest.fixture
def cluster():
    """Cluster with a ready admission pod behind the Service endpoint."""
    fake = FakeClusterClient()
    fake.add("Pod", NAMESPACE, admission_pod())
    fake.add("Endpoints", NAMESPACE, service_endpoints(POD_IP))
    return fake


@pytest.fixture
def cache():
    return WebhookConfigurationCache()


@pytest.fixture
def update_queue():
    return UpdateQueue()


@pytest.fixture
def make_registrar(cluster, cache, update_queue):
    """Factory building a registrar against the fake cluster."""

    def _make(server_ip: str = "", ca_bundle: bytes | None = CA_PEM, **kwargs):
        return WebhookRegistrar(
            cluster=kwargs.pop("cluster", cluster),
            cache=kwargs.pop("cache", cache),
            namespace=NAMESPACE,
            service_name=SERVICE,
            deployment_name=DEPLOYMENT,
            server_ip=server_ip,
            ca_provider=lambda: ca_bundle,
            update_queue=update_queue,
            **kwargs,
        )

    return _make


@pytest.fixture
def registrar(make_registrar):
    return make_registrar()
