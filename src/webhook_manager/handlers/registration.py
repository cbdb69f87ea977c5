"""
Kopf handlers wiring the WebhookRegistrar into the operator runtime.

Startup builds the registrar and its collaborators, runs one full
registration (retried by kopf while the endpoint is not ready) and starts
the update loop. Watch events keep the webhook configuration cache and the
dynamic settings current. Cleanup runs the liveness-gated teardown.
"""

import asyncio
import contextlib
import logging

import kopf

from webhook_manager.constants import (
    ADMISSION_API_VERSION,
    KIND_MUTATING,
    KIND_VALIDATING,
)
from webhook_manager.errors import ConfigurationError, NotFoundError, OperatorError
from webhook_manager.observability.metrics import MetricsServer
from webhook_manager.services.registration import WebhookRegistrar
from webhook_manager.services.update_queue import UpdateQueue
from webhook_manager.settings import settings as manager_settings
from webhook_manager.utils.cache import WebhookConfigurationCache
from webhook_manager.utils.config_provider import ConfigProvider
from webhook_manager.utils.kubernetes import ClusterClient, get_kubernetes_client

logger = logging.getLogger(__name__)


def _is_init_config(name: str, namespace: str, **_) -> bool:
    return (
        name == manager_settings.init_config_name
        and namespace == manager_settings.namespace
    )


def _log_update_loop_exit(task: asyncio.Task) -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.error(f"Webhook update loop stopped: {exc}", exc_info=exc)


async def _sync_cache(memo: kopf.Memo) -> None:
    """Fill the cache from a full listing of both configuration kinds."""
    for kind in memo.cache.KINDS:
        objects = await asyncio.to_thread(
            memo.cluster.list, ADMISSION_API_VERSION, kind, None
        )
        memo.cache.sync(kind, objects)
        logger.debug(f"Synced {len(objects)} cached {kind} objects")


@kopf.on.startup()
async def configure_webhook_manager(
    settings: kopf.OperatorSettings, memo: kopf.Memo, **_
) -> None:
    """Create the registrar, its cache, settings provider and update queue."""
    settings.peering.standalone = True
    settings.posting.enabled = False

    if "registrar" in memo:
        return

    memo.cluster = ClusterClient(get_kubernetes_client())
    memo.cache = WebhookConfigurationCache()
    memo.config_provider = ConfigProvider()
    memo.update_queue = UpdateQueue()
    memo.registrar = WebhookRegistrar.from_settings(
        manager_settings, memo.cluster, memo.cache, memo.update_queue
    )
    logger.info(
        f"Webhook manager configured in {memo.registrar.mode.value} mode "
        f"(timeout {memo.registrar.webhook_timeout}s)"
    )

    try:
        await memo.registrar.validate_webhook_configurations(
            manager_settings.namespace, manager_settings.init_config_name
        )
    except ConfigurationError as e:
        logger.warning(f"Init ConfigMap holds invalid webhook settings: {e.message}")


@kopf.on.startup()
async def register_webhooks(memo: kopf.Memo, **_) -> None:
    """
    Sync the cache, run one full registration, then start the update loop
    and metrics server.

    Not-ready and partial failures are raised as kopf temporary errors so the
    startup handler is retried.
    """
    if "registrar" not in memo:
        raise kopf.TemporaryError("Webhook manager is not configured yet", delay=5)

    registrar: WebhookRegistrar = memo.registrar
    try:
        await _sync_cache(memo)
        await registrar.register()
    except OperatorError as e:
        raise e.as_kopf_error() from e

    memo.update_task = asyncio.create_task(
        registrar.update_webhook_configurations(memo.config_provider)
    )
    memo.update_task.add_done_callback(_log_update_loop_exit)

    metrics_server = MetricsServer(
        port=manager_settings.metrics_port,
        host=manager_settings.metrics_host,
        readiness_check=registrar.check,
    )
    try:
        await metrics_server.start()
        memo.metrics_server = metrics_server
    except OSError as e:
        logger.error(f"Failed to start metrics server: {e}")
        logger.warning("Continuing without metrics server")


@kopf.on.cleanup()
async def remove_webhooks(memo: kopf.Memo, **_) -> None:
    """Stop the update loop and run the liveness-gated teardown."""
    update_task: asyncio.Task | None = memo.get("update_task")
    if update_task is not None:
        update_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await update_task
    if "update_queue" in memo:
        memo.update_queue.cancel_pending()

    if "registrar" in memo:
        done = asyncio.Event()
        removal = asyncio.create_task(memo.registrar.remove(done))
        await done.wait()
        await removal

    metrics_server: MetricsServer | None = memo.get("metrics_server")
    if metrics_server is not None:
        await metrics_server.stop()


@kopf.on.probe(id="webhooks")
async def webhooks_registered(memo: kopf.Memo, **_) -> str:
    """Report whether all webhook configurations are registered."""
    if "registrar" not in memo:
        return "starting"
    try:
        await memo.registrar.check()
    except NotFoundError as e:
        return f"missing {e.kind} {e.name}"
    return "registered"


@kopf.on.event("admissionregistration.k8s.io", "v1", "mutatingwebhookconfigurations")
def mutating_webhook_configuration_event(event, memo: kopf.Memo, **_) -> None:
    memo.cache.apply_event(KIND_MUTATING, event.get("type"), event["object"])


@kopf.on.event(
    "admissionregistration.k8s.io", "v1", "validatingwebhookconfigurations"
)
def validating_webhook_configuration_event(event, memo: kopf.Memo, **_) -> None:
    memo.cache.apply_event(KIND_VALIDATING, event.get("type"), event["object"])


@kopf.on.event("v1", "configmaps", when=_is_init_config)
async def init_config_event(event, memo: kopf.Memo, **_) -> None:
    """Refresh dynamic webhook settings and notify the update loop on change."""
    body = {} if event.get("type") == "DELETED" else event["object"]
    if memo.config_provider.load(body):
        logger.info("Webhook settings changed, scheduling webhook update")
        await memo.update_queue.notify("configmap")
