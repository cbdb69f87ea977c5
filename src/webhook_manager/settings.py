"""Centralized manager settings using pydantic-settings.

This module provides a single source of truth for all webhook manager
configuration loaded from environment variables. Uses pydantic for automatic
validation, type coercion, and documentation.
"""

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from webhook_manager.constants import (
    DEFAULT_WEBHOOK_TIMEOUT,
    MAX_WEBHOOK_TIMEOUT,
    MIN_WEBHOOK_TIMEOUT,
)


class Settings(BaseSettings):
    """Webhook manager configuration loaded from environment variables.

    All settings have sensible defaults for an in-cluster deployment. Override
    via environment variables as documented per field.
    """

    model_config = SettingsConfigDict(
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Admission service identification
    namespace: str = Field(
        default="kyverno",
        description="Namespace of the admission service and its workload",
        validation_alias="KYVERNO_NAMESPACE",
    )
    service_name: str = Field(
        default="kyverno-svc",
        description="Name of the admission Service and its Endpoints",
        validation_alias="KYVERNO_SVC",
    )
    deployment_name: str = Field(
        default="kyverno",
        description="Name of the Deployment owning the admission pods",
        validation_alias="KYVERNO_DEPLOYMENT",
    )
    init_config_name: str = Field(
        default="init-config",
        description="ConfigMap carrying dynamic webhook settings",
        validation_alias="INIT_CONFIG",
    )

    # Webhook registration
    server_ip: str = Field(
        default="",
        description="External address of the admission server (enables debug mode)",
        validation_alias="SERVER_IP",
    )
    webhook_timeout: int = Field(
        default=DEFAULT_WEBHOOK_TIMEOUT,
        description="Timeout in seconds the API server waits for a webhook",
        validation_alias="WEBHOOK_TIMEOUT",
    )
    ca_bundle_path: str = Field(
        default="",
        description="File holding the CA bundle when no CA secret is present",
        validation_alias="CA_BUNDLE_PATH",
    )

    # Logging configuration
    log_level: str = Field(
        default="INFO",
        validation_alias="LOG_LEVEL",
        description="Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )
    json_logs: bool = Field(
        default=True,
        validation_alias="JSON_LOGS",
        description="Enable JSON formatted logging for structured log aggregation",
    )
    correlation_ids: bool = Field(
        default=True,
        validation_alias="CORRELATION_IDS",
        description="Enable correlation IDs in logs for request tracing",
    )

    # Metrics and observability
    metrics_port: int = Field(
        default=8000,
        validation_alias="METRICS_PORT",
        description="Port for Prometheus metrics endpoint",
    )
    metrics_host: str = Field(
        default="0.0.0.0",
        validation_alias="METRICS_HOST",
        description="Host address to bind metrics server",
    )

    @field_validator("webhook_timeout")
    @classmethod
    def clamp_webhook_timeout(cls, v: int) -> int:
        # the API server rejects values outside this range
        return max(MIN_WEBHOOK_TIMEOUT, min(MAX_WEBHOOK_TIMEOUT, v))

    @property
    def debug(self) -> bool:
        """Whether webhooks are addressed by external URL instead of the Service."""
        return bool(self.server_ip)


# Global settings instance - initialized once at module import
settings = Settings()
