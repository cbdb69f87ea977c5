"""
Service layer for the webhook manager.

This module provides the lifecycle manager that registers, checks, updates
and removes admission webhook configurations, separated from the kopf
handler layer.
"""

from .registration import WebhookRegistrar
from .update_queue import UpdateQueue

__all__ = [
    "WebhookRegistrar",
    "UpdateQueue",
]
