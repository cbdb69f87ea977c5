#!/usr/bin/env python3
"""
Kyverno Webhook Manager - Main entry point for the Kopf-based webhook manager.

The manager registers the admission webhook configurations of the policy
engine once its admission endpoint is ready, keeps the resource webhooks'
namespace selector in line with the init ConfigMap, and removes everything
when the workload is scaled to zero or deleted.

Usage:
    python -m webhook_manager.operator
    # Or with kopf directly:
    kopf run -m webhook_manager.operator --all-namespaces

Environment Variables:
    KYVERNO_NAMESPACE: Namespace of the admission service
    SERVER_IP: External address of the admission server (debug mode)
    WEBHOOK_TIMEOUT: Webhook timeout in seconds, clamped to 1..30
    LOG_LEVEL: Logging level (DEBUG, INFO, WARNING, ERROR)
"""

import logging
import sys

import kopf

# Importing the handler module registers its decorators with kopf
from webhook_manager.handlers import registration  # noqa: F401
from webhook_manager.observability.logging import setup_structured_logging
from webhook_manager.settings import settings as manager_settings


def configure_logging() -> None:
    """Configure structured logging based on manager_settings."""
    setup_structured_logging(
        log_level=manager_settings.log_level.upper(),
        enable_json_formatting=manager_settings.json_logs,
        correlation_id_enabled=manager_settings.correlation_ids,
    )


def main() -> None:
    """
    Main entry point for the webhook manager.

    Configures logging, disables kopf's own admission server and runs the
    operator cluster-wide.
    """
    configure_logging()

    settings_obj = kopf.OperatorSettings()
    settings_obj.admission.server = None
    settings_obj.admission.managed = None

    if manager_settings.debug:
        logging.info(f"Debug mode: webhooks point at {manager_settings.server_ip}")

    try:
        kopf.run(
            clusterwide=True,
            liveness_endpoint="http://0.0.0.0:8080/healthz",
            settings=settings_obj,
        )
    except KeyboardInterrupt:
        logging.info("Received shutdown signal")
        sys.exit(0)
    except Exception as e:
        logging.error(f"Webhook manager failed with error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
