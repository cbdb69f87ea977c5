"""
Lifecycle management for the admission webhook configurations.

This module defines the WebhookRegistrar, which owns the five webhook
configurations of the policy engine:
- Readiness gate on the admission Service endpoint
- Full reconciliation (remove everything, then create all five)
- Concurrent, idempotent teardown
- The dynamic namespace-selector update loop
- Liveness-gated cleanup on shutdown

Cluster calls go through a synchronous ClusterClient and are moved off the
event loop with ``asyncio.to_thread``.
"""

import asyncio
import time
from collections.abc import Callable

from webhook_manager.constants import (
    ADMISSION_API_VERSION,
    ADMISSION_POD_LABELS,
    DEFAULT_WEBHOOK_TIMEOUT,
    MANAGED_BY_LABEL_KEY,
    MANAGED_BY_LABEL_VALUE,
    WEBHOOKS_CONFIG_KEY,
)
from webhook_manager.errors import (
    AlreadyExistsError,
    ConfigurationError,
    KubernetesAPIError,
    LivenessProbeError,
    NotFoundError,
    NotReadyError,
    OperatorError,
    RegistrationError,
)
from webhook_manager.models.webhook import LabelSelector, WebhookConfiguration
from webhook_manager.observability.logging import OperatorLogger
from webhook_manager.observability.metrics import metrics_collector
from webhook_manager.services.update_queue import UpdateQueue
from webhook_manager.utils.cache import WebhookConfigurationCache
from webhook_manager.utils.certificates import load_ca_bundle
from webhook_manager.utils.config_provider import (
    ConfigProvider,
    parse_webhook_settings,
)
from webhook_manager.utils.kubernetes import ClusterClient
from webhook_manager.webhooks.builders import WebhookEndpoint, debug_url
from webhook_manager.webhooks.roles import (
    DYNAMIC_ROLES,
    ROLES,
    ROLES_BY_NAME,
    AddressingMode,
    Role,
    RoleDescriptor,
)


class WebhookRegistrar:
    """
    Reconciles the desired webhook configurations against the cluster.

    The addressing mode is fixed at construction: a non-empty ``server_ip``
    selects debug mode, and every operation then works on the debug names
    only.
    """

    def __init__(
        self,
        cluster: ClusterClient,
        cache: WebhookConfigurationCache | None,
        namespace: str,
        service_name: str,
        deployment_name: str,
        server_ip: str = "",
        timeout_seconds: int = DEFAULT_WEBHOOK_TIMEOUT,
        ca_provider: Callable[[], bytes | None] | None = None,
        update_queue: UpdateQueue | None = None,
    ):
        """
        Initialize the registrar.

        Args:
            cluster: Generic resource access client
            cache: Webhook configuration cache, used as an existence hint
            namespace: Namespace of the admission Service and its workload
            service_name: Admission Service (and Endpoints) name
            deployment_name: Deployment owning the admission pods
            server_ip: External address; selects debug mode when non-empty
            timeout_seconds: Webhook timeout written into every configuration
            ca_provider: Returns the CA bundle, defaults to the CA secret lookup
            update_queue: Notification channel for the update loop
        """
        self.cluster = cluster
        self.cache = cache
        self.namespace = namespace
        self.service_name = service_name
        self.deployment_name = deployment_name
        self.server_ip = server_ip
        self.timeout_seconds = timeout_seconds
        self.mode = AddressingMode.from_server_ip(server_ip)
        self.endpoint = WebhookEndpoint(namespace, service_name, server_ip)
        self.ca_provider = ca_provider or (
            lambda: load_ca_bundle(cluster, namespace, service_name)
        )
        self.update_queue = update_queue or UpdateQueue()
        self.logger = OperatorLogger(self.__class__.__name__)

    @classmethod
    def from_settings(
        cls,
        settings,
        cluster: ClusterClient,
        cache: WebhookConfigurationCache | None,
        update_queue: UpdateQueue | None = None,
    ) -> "WebhookRegistrar":
        """Build a registrar from the manager Settings."""
        return cls(
            cluster=cluster,
            cache=cache,
            namespace=settings.namespace,
            service_name=settings.service_name,
            deployment_name=settings.deployment_name,
            server_ip=settings.server_ip,
            timeout_seconds=settings.webhook_timeout,
            ca_provider=lambda: load_ca_bundle(
                cluster,
                settings.namespace,
                settings.service_name,
                settings.ca_bundle_path,
            ),
            update_queue=update_queue,
        )

    @property
    def debug(self) -> bool:
        return self.mode is AddressingMode.DEBUG

    @property
    def webhook_timeout(self) -> int:
        """Timeout in seconds written into every webhook."""
        return self.timeout_seconds

    def name_for(self, role: Role) -> str:
        return ROLES_BY_NAME[role].name_for(self.mode)

    # Full reconciliation

    async def register(self) -> None:
        """
        Remove existing webhook configurations and create all five afresh.

        Raises:
            NotReadyError: If the admission endpoint is not ready (standard mode)
            ConfigurationError: If no CA bundle is available; nothing is written
            RegistrationError: If one or more configurations failed to create
        """
        start_time = time.time()
        self.logger.log_operation_start("register", mode=self.mode.value)
        if self.debug:
            self.logger.info(
                "Registering webhook", url=debug_url(self.server_ip, "")
            )

        error: Exception | None = None
        try:
            with metrics_collector.track_pass("register"):
                await self._register()
        except OperatorError as e:
            error = e
            raise
        finally:
            self.logger.log_operation_result(
                "register", time.time() - start_time, error
            )

    async def _register(self) -> None:
        if not self.debug:
            await self.check_endpoint()

        await self.remove_webhook_configurations()

        ca_bundle = await asyncio.to_thread(self.ca_provider)
        if not ca_bundle:
            raise ConfigurationError(
                "Unable to extract CA data from configuration",
                user_action="Make sure the webhook CA secret has been issued",
            )

        failures: dict[str, Exception] = {}
        for descriptor in ROLES:
            try:
                await self.create_webhook_configuration(descriptor, ca_bundle)
            except KubernetesAPIError as e:
                failures[descriptor.role.value] = e
            except Exception as e:
                failures[descriptor.role.value] = KubernetesAPIError(str(e), cause=e)

        if failures:
            raise RegistrationError(failures)

    async def create_webhook_configuration(
        self, descriptor: RoleDescriptor, ca_bundle: bytes
    ) -> WebhookConfiguration:
        """
        Create one role's configuration; an existing one counts as success.

        Raises:
            KubernetesAPIError: If the API rejects the create
        """
        config = descriptor.build(
            self.mode, ca_bundle, self.timeout_seconds, self.endpoint
        )
        log_fields = {
            "kind": descriptor.kind,
            "webhook_name": config.name,
            "role": descriptor.role.value,
        }
        if self.debug:
            self.logger.debug(
                "Debug webhook registered with url",
                url=config.webhooks[0].client_config.url,
                **log_fields,
            )

        try:
            await asyncio.to_thread(
                self.cluster.create,
                ADMISSION_API_VERSION,
                descriptor.kind,
                None,
                config.to_manifest(),
            )
        except AlreadyExistsError:
            self.logger.debug("Webhook configuration already exists", **log_fields)
            metrics_collector.record_operation(
                descriptor.role.value, "create", "exists"
            )
            return config
        except KubernetesAPIError as e:
            self.logger.error(
                f"Failed to create webhook configuration {config.name}: {e.message}",
                error_type=type(e).__name__,
                **log_fields,
            )
            metrics_collector.record_operation(descriptor.role.value, "create", "error")
            raise

        self.logger.info(f"Created webhook configuration {config.name}", **log_fields)
        metrics_collector.record_operation(descriptor.role.value, "create", "success")
        return config

    # Health check

    async def check(self) -> None:
        """
        Verify that every configuration of the current mode is known to the cache.

        Raises:
            NotFoundError: For the first configuration that is missing
        """
        if self.cache is None:
            return
        for descriptor in ROLES:
            lister = self.cache.lister(descriptor.kind)
            if lister is None:
                continue
            lister.get(descriptor.name_for(self.mode))

    # Teardown

    async def remove_webhook_configurations(self) -> None:
        """Delete all five configurations concurrently; never raises."""
        start_time = time.time()
        self.logger.debug("Deleting all webhook configurations", operation="remove")

        with metrics_collector.track_pass("remove"):
            await asyncio.gather(
                *(self.remove_webhook_configuration(d) for d in ROLES)
            )

        self.logger.debug(
            "Removed webhook configurations",
            operation="remove",
            duration=time.time() - start_time,
        )

    async def remove_webhook_configuration(self, descriptor: RoleDescriptor) -> None:
        """Delete one role's configuration, logging and absorbing failures."""
        name = descriptor.name_for(self.mode)
        log_fields = {
            "kind": descriptor.kind,
            "webhook_name": name,
            "role": descriptor.role.value,
        }

        lister = None
        if self.cache is not None and self.cache.has_synced(descriptor.kind):
            lister = self.cache.lister(descriptor.kind)
        if lister is not None:
            try:
                lister.get(name)
            except NotFoundError:
                self.logger.debug("Webhook configuration not cached", **log_fields)
                return

        try:
            await asyncio.to_thread(
                self.cluster.delete, ADMISSION_API_VERSION, descriptor.kind, None, name
            )
        except NotFoundError:
            self.logger.debug("Webhook configuration not found", **log_fields)
            return
        except Exception as e:
            self.logger.error(
                f"Failed to delete webhook configuration {name}: {e}",
                error_type=type(e).__name__,
                **log_fields,
            )
            metrics_collector.record_operation(descriptor.role.value, "delete", "error")
            return

        self.logger.info(f"Deleted webhook configuration {name}", **log_fields)
        metrics_collector.record_operation(descriptor.role.value, "delete", "success")

    # Readiness gate

    async def check_endpoint(self) -> None:
        """
        Confirm the admission pod is an address of the Service endpoint.

        The first pod matching the admission label is taken as the local one,
        which is only accurate with a single replica. On failure every
        existing webhook configuration is removed before the error is raised.

        Raises:
            NotReadyError: If the endpoint has not propagated yet
        """
        try:
            pod_ip = await self._check_endpoint()
        except NotReadyError as e:
            metrics_collector.record_endpoint_check(False)
            self.logger.info(
                e.message, namespace=self.namespace, operation="check_endpoint"
            )
            await self.remove_webhook_configurations()
            raise

        metrics_collector.record_endpoint_check(True)
        self.logger.info(
            f"Endpoint {self.namespace}/{self.service_name} ready",
            namespace=self.namespace,
            pod_ip=pod_ip,
        )

    async def _check_endpoint(self) -> str:
        try:
            pods = await asyncio.to_thread(
                self.cluster.list, "v1", "Pod", self.namespace, ADMISSION_POD_LABELS
            )
        except KubernetesAPIError as e:
            raise NotReadyError(f"Failed to list admission pods: {e.message}") from e
        if not pods:
            raise NotReadyError(f"No admission pod found in {self.namespace}")

        pod_ip = (pods[0].get("status") or {}).get("podIP")
        if not pod_ip:
            raise NotReadyError("Pod is not assigned to any node yet")

        try:
            endpoint = await asyncio.to_thread(
                self.cluster.get, "v1", "Endpoints", self.namespace, self.service_name
            )
        except KubernetesAPIError as e:
            raise NotReadyError(
                f"Failed to get endpoint {self.namespace}/{self.service_name}: {e.message}"
            ) from e

        for subset in endpoint.get("subsets") or []:
            for address in subset.get("addresses") or []:
                if address.get("ip") == pod_ip:
                    return pod_ip

        raise NotReadyError("Endpoint not ready")

    # Dynamic update loop

    async def update_webhook_configurations(
        self, config_provider: ConfigProvider
    ) -> None:
        """
        Apply namespace-selector changes to the resource webhooks forever.

        Each notification resyncs both resource configurations. A failed
        role resubmits a notification so it is retried on a later iteration.
        Runs until cancelled.
        """
        while True:
            reason = await self.update_queue.get()
            self.logger.info(
                "Received the signal to update webhook configurations",
                operation="update",
                role=reason,
            )
            await self.sync_namespace_selectors(config_provider)

    async def sync_namespace_selectors(self, config_provider: ConfigProvider) -> None:
        """Run one update iteration for both resource webhooks."""
        selector = self.current_namespace_selector(config_provider)

        for role in DYNAMIC_ROLES:
            descriptor = ROLES_BY_NAME[role]
            name = descriptor.name_for(self.mode)
            try:
                await self.update_namespace_selector(descriptor, selector)
            except Exception as e:
                self.logger.error(
                    f"Unable to update {descriptor.kind} {name}: {e}",
                    kind=descriptor.kind,
                    webhook_name=name,
                    role=role.value,
                    error_type=type(e).__name__,
                )
                metrics_collector.record_resubmission(role.value)
                self.update_queue.resubmit(role.value)
            else:
                self.logger.info(
                    f"Successfully updated {descriptor.kind} {name}",
                    kind=descriptor.kind,
                    webhook_name=name,
                    role=role.value,
                )

    @staticmethod
    def current_namespace_selector(
        config_provider: ConfigProvider,
    ) -> LabelSelector | None:
        webhooks = config_provider.get_webhooks()
        if not webhooks:
            return None
        return webhooks[0].namespace_selector

    async def update_namespace_selector(
        self, descriptor: RoleDescriptor, selector: LabelSelector | None
    ) -> WebhookConfiguration:
        """Fetch the live configuration, set its first selector and write it back."""
        name = descriptor.name_for(self.mode)
        live = await asyncio.to_thread(
            self.cluster.get, ADMISSION_API_VERSION, descriptor.kind, None, name
        )
        updated = WebhookConfiguration.from_manifest(live).with_namespace_selector(
            selector
        )
        await asyncio.to_thread(
            self.cluster.update,
            updated.api_version,
            updated.kind,
            None,
            updated.to_manifest(),
        )
        metrics_collector.record_operation(descriptor.role.value, "update", "success")
        return updated

    async def validate_webhook_configurations(self, namespace: str, name: str) -> None:
        """
        Validate the dynamic webhook settings held by a ConfigMap.

        A ConfigMap that cannot be fetched or has no settings is accepted.

        Raises:
            ConfigurationError: If the settings do not parse
        """
        try:
            configmap = await asyncio.to_thread(
                self.cluster.get, "v1", "ConfigMap", namespace, name
            )
        except KubernetesAPIError as e:
            self.logger.error(
                f"Unable to fetch ConfigMap {namespace}/{name}: {e.message}",
                namespace=namespace,
            )
            return

        raw = (configmap.get("data") or {}).get(WEBHOOKS_CONFIG_KEY)
        if raw is None:
            self.logger.debug("Webhook configurations not defined", namespace=namespace)
            return

        parse_webhook_settings(raw)

    # Shutdown

    async def remove(self, done: asyncio.Event) -> None:
        """
        Remove webhook configurations and managed secrets if the workload is going away.

        ``done`` is set exactly once when this returns, whatever path was taken.
        """
        try:
            if not await self.cleanup_allowed():
                return
            await self.remove_webhook_configurations()
            await self.remove_secrets()
        finally:
            done.set()

    async def cleanup_allowed(self) -> bool:
        """
        Decide whether shutdown should tear down the webhook resources.

        True when the owning Deployment is terminating or scaled to zero, or
        when it cannot be read at all.
        """
        try:
            deployment = await asyncio.to_thread(
                self.cluster.get,
                "apps/v1",
                "Deployment",
                self.namespace,
                self.deployment_name,
            )
        except KubernetesAPIError as e:
            error = LivenessProbeError(
                f"Failed to get deployment {self.namespace}/{self.deployment_name}",
                cause=e,
            )
            self.logger.error(
                f"{error.message}, cleaning up webhook resources anyway: {e.message}",
                namespace=self.namespace,
            )
            return True

        if (deployment.get("metadata") or {}).get("deletionTimestamp"):
            self.logger.info("Workload is terminating, cleaning up webhook resources")
            return True

        replicas = (deployment.get("spec") or {}).get("replicas") or 0
        if not isinstance(replicas, int):
            self.logger.error(f"Unable to read spec.replicas: {replicas!r}")
            replicas = 0

        if replicas == 0:
            self.logger.info("Workload is scaled to zero, cleaning up webhook resources")
            return True

        self.logger.info("Workload is updating, keeping webhook resources")
        return False

    async def remove_secrets(self) -> None:
        """Delete every secret carrying the managed-by label; never raises."""
        try:
            secrets = await asyncio.to_thread(
                self.cluster.list,
                "v1",
                "Secret",
                self.namespace,
                {MANAGED_BY_LABEL_KEY: MANAGED_BY_LABEL_VALUE},
            )
        except KubernetesAPIError as e:
            self.logger.error(
                f"Failed to clean up managed secrets: {e.message}",
                namespace=self.namespace,
            )
            return

        for secret in secrets:
            metadata = secret.get("metadata") or {}
            secret_namespace = metadata.get("namespace", self.namespace)
            secret_name = metadata.get("name")
            try:
                await asyncio.to_thread(
                    self.cluster.delete, "v1", "Secret", secret_namespace, secret_name
                )
            except NotFoundError:
                continue
            except KubernetesAPIError as e:
                self.logger.error(
                    f"Failed to delete secret {secret_namespace}/{secret_name}: {e.message}",
                    namespace=secret_namespace,
                )
