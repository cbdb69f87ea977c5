"""
Structured logging utilities for the webhook manager.

This module provides correlation ID tracking and structured log formatting
so that every registration pass, teardown and update-loop iteration can be
followed across its concurrent tasks.
"""

import json
import logging
import uuid
from contextvars import ContextVar
from datetime import UTC, datetime

# Context variable for tracking correlation IDs across async operations
correlation_id: ContextVar[str] = ContextVar("correlation_id", default="")

# Paths that should be filtered from access logs (health probes)
HEALTH_PROBE_PATHS = frozenset({"/healthz", "/ready", "/metrics"})

# Extra attributes copied into JSON log records when present
STRUCTURED_FIELDS = (
    "kind",
    "webhook_name",
    "role",
    "namespace",
    "operation",
    "duration",
    "error_type",
    "url",
    "mode",
    "pod_ip",
)


class HealthProbeFilter(logging.Filter):
    """Logging filter that suppresses health probe and metrics endpoint logs."""

    def __init__(self, suppress_health_logs: bool = True):
        super().__init__()
        self.suppress_health_logs = suppress_health_logs

    def filter(self, record: logging.LogRecord) -> bool:
        if not self.suppress_health_logs:
            return True

        message = record.getMessage()
        return all(path not in message for path in HEALTH_PROBE_PATHS)


class CorrelationIDFilter(logging.Filter):
    """Logging filter that adds correlation ID to log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        """
        Add correlation ID to the log record.

        Args:
            record: The log record to process

        Returns:
            True to allow the record to be processed
        """
        current_correlation_id = correlation_id.get()
        if not current_correlation_id:
            current_correlation_id = generate_correlation_id()
            correlation_id.set(current_correlation_id)

        record.correlation_id = current_correlation_id
        return True


class StructuredFormatter(logging.Formatter):
    """
    Structured JSON formatter for logs with correlation ID support.

    Formats log records as structured JSON for better parsing and analysis
    in production monitoring systems.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "correlation_id": getattr(record, "correlation_id", ""),
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        for field in STRUCTURED_FIELDS:
            if hasattr(record, field):
                log_data[field] = getattr(record, field)

        return json.dumps(log_data, default=str)


def generate_correlation_id() -> str:
    """Generate a short correlation ID."""
    return str(uuid.uuid4())[:8]


def set_correlation_id(corr_id: str) -> str:
    """
    Set the correlation ID for the current context.

    Args:
        corr_id: Correlation ID to set

    Returns:
        The correlation ID that was set
    """
    correlation_id.set(corr_id)
    return corr_id


def get_correlation_id() -> str:
    return correlation_id.get("")


def setup_structured_logging(
    log_level: str = "INFO",
    enable_json_formatting: bool = True,
    correlation_id_enabled: bool = True,
    log_health_probes: bool = False,
) -> None:
    """
    Set up structured logging for the webhook manager.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        enable_json_formatting: Whether to use JSON formatting
        correlation_id_enabled: Whether to enable correlation ID tracking
        log_health_probes: Whether to log health probe requests (default: False)
    """
    root_logger = logging.getLogger()

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler()

    if enable_json_formatting:
        formatter: logging.Formatter = StructuredFormatter()
    elif correlation_id_enabled:
        formatter = logging.Formatter(
            "%(asctime)s - %(correlation_id)s - %(name)s - %(levelname)s - %(message)s"
        )
    else:
        formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        )

    handler.setFormatter(formatter)

    if correlation_id_enabled:
        handler.addFilter(CorrelationIDFilter())

    if not log_health_probes:
        handler.addFilter(HealthProbeFilter(suppress_health_logs=True))

    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    # Set specific logger levels for third-party libraries
    logging.getLogger("kopf").setLevel(logging.WARNING)
    logging.getLogger("kubernetes").setLevel(logging.WARNING)
    logging.getLogger("aiohttp.access").setLevel(logging.WARNING)
    logging.getLogger("aiohttp.server").setLevel(logging.WARNING)
    logging.getLogger("aiohttp.web").setLevel(logging.WARNING)


class OperatorLogger:
    """
    Logger wrapper for webhook manager operations.

    Passes keyword arguments through as structured ``extra`` fields so the
    JSON formatter can pick them up.
    """

    def __init__(self, name: str):
        self.logger = logging.getLogger(name)

    def log_operation_start(self, operation: str, **kwargs) -> str:
        """
        Log the start of a manager operation under a fresh correlation ID.

        Returns:
            The correlation ID used for this operation
        """
        corr_id = set_correlation_id(generate_correlation_id())
        self.logger.info(
            f"Starting {operation}", extra={"operation": operation, **kwargs}
        )
        return corr_id

    def log_operation_result(
        self, operation: str, duration: float, error: Exception | None = None
    ) -> None:
        """Log the outcome of a manager operation with its duration."""
        if error is None:
            self.logger.info(
                f"Completed {operation}",
                extra={"operation": operation, "duration": duration},
            )
        else:
            self.logger.error(
                f"{operation} failed: {error}",
                extra={
                    "operation": operation,
                    "duration": duration,
                    "error_type": type(error).__name__,
                },
            )

    def debug(self, message: str, **kwargs) -> None:
        """Log debug message with extra data."""
        self.logger.debug(message, extra=kwargs)

    def info(self, message: str, **kwargs) -> None:
        """Log info message with extra data."""
        self.logger.info(message, extra=kwargs)

    def warning(self, message: str, **kwargs) -> None:
        """Log warning message with extra data."""
        self.logger.warning(message, extra=kwargs)

    def error(self, message: str, exc_info: bool = False, **kwargs) -> None:
        """Log error message with extra data."""
        self.logger.error(message, exc_info=exc_info, extra=kwargs)
