"""Logging configuration and setup.

Centralized configuration for console logging with optional OTLP export.
"""

import logging
import os
import sys
from typing import Optional

from opentelemetry._logs import set_logger_provider
from opentelemetry.exporter.otlp.proto.grpc._log_exporter import OTLPLogExporter
from opentelemetry.sdk._logs import LoggerProvider
from opentelemetry.sdk._logs.export import BatchLogRecordProcessor
from opentelemetry.sdk.resources import Resource

from rmqrpc.logging.context import LogContext, set_context
from rmqrpc.logging.formatters import ConsoleFormatter, StructuredFormatter
from rmqrpc.logging.otel_handler import OTELContextHandler

# Global configuration state
_configured = False
_global_context: Optional[LogContext] = None


def configure_logging(
    app_name: Optional[str] = None,
    environment: Optional[str] = None,
    version: Optional[str] = None,
    log_level: str = "INFO",
    enable_otlp: bool = False,
    otlp_endpoint: Optional[str] = None,
    json_format: bool = False,
    force_reconfigure: bool = False,
    **context_kwargs,
) -> LogContext:
    """Configure logging for the process.

    This should be called once at application startup. It sets up:
    - Console output on stdout (plain text, or JSON with ``json_format``)
    - Optional OTLP export with the context as resource and log attributes
    - Global context auto-detected from environment variables

    Environment variables used when arguments are omitted:
    - APP_NAME, APP_VERSION, APP_ENV / ENVIRONMENT
    - POD_NAME, NAMESPACE, HOSTNAME
    - OTEL_EXPORTER_OTLP_LOGS_ENDPOINT / OTEL_EXPORTER_OTLP_ENDPOINT

    Args:
        app_name: Service name (auto-detected from APP_NAME if not provided)
        environment: Environment (auto-detected from APP_ENV if not provided)
        version: Service version (auto-detected from APP_VERSION if not provided)
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        enable_otlp: Enable OpenTelemetry Protocol (OTLP) export
        otlp_endpoint: OTLP collector endpoint (defaults to env or http://localhost:4317)
        json_format: Use JSON formatting for console output
        force_reconfigure: Force reconfiguration even if already configured
        **context_kwargs: Additional context attributes

    Returns:
        LogContext: The configured global log context

    Example:
        >>> configure_logging(app_name="billing-rpc", log_level="DEBUG")
    """
    global _configured, _global_context

    if _configured and not force_reconfigure:
        return _global_context

    root_logger = logging.getLogger()
    if force_reconfigure:
        root_logger.handlers.clear()

    context = LogContext.from_environment()

    if app_name:
        context.app_name = app_name
    if environment:
        context.environment = environment
    if version:
        context.version = version

    for key, value in context_kwargs.items():
        if hasattr(context, key):
            setattr(context, key, value)
        else:
            context.custom[key] = value

    if not context.app_name:
        context.app_name = "rmqrpc"
    if not context.environment:
        context.environment = "development"
    if not context.version:
        context.version = "latest"

    set_context(context)
    _global_context = context

    root_logger.setLevel(getattr(logging, log_level.upper()))

    if enable_otlp:
        _setup_otlp(context, otlp_endpoint)

    _setup_console(context, json_format)

    # amqpstorm logs every frame-level hiccup at INFO
    logging.getLogger("amqpstorm").setLevel(logging.WARNING)

    _configured = True

    logging.getLogger(__name__).info(
        "Logging configured for %s",
        context.app_name,
        extra={
            "environment": context.environment,
            "version": context.version,
            "otlp_enabled": enable_otlp,
        },
    )

    return context


def _setup_otlp(context: LogContext, otlp_endpoint: Optional[str]) -> None:
    """Setup OTLP logging export.

    Args:
        context: Global log context
        otlp_endpoint: OTLP collector endpoint
    """
    resource_attrs = {
        "service.name": context.app_name,
        "service.version": context.version or "unknown",
        "deployment.environment": context.environment or "unknown",
    }
    if context.pod_name:
        resource_attrs["k8s.pod.name"] = context.pod_name
    if context.namespace:
        resource_attrs["k8s.namespace.name"] = context.namespace
    if context.hostname:
        resource_attrs["host.name"] = context.hostname

    logger_provider = LoggerProvider(resource=Resource.create(resource_attrs))
    set_logger_provider(logger_provider)

    endpoint = (
        otlp_endpoint
        or os.getenv("OTEL_EXPORTER_OTLP_LOGS_ENDPOINT")
        or os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT")
        or "http://localhost:4317"
    )

    logger_provider.add_log_record_processor(
        BatchLogRecordProcessor(OTLPLogExporter(endpoint=endpoint, insecure=True))
    )

    handler = OTELContextHandler(level=logging.NOTSET, logger_provider=logger_provider)
    logging.getLogger().addHandler(handler)

    logging.getLogger(__name__).debug("OTLP logging enabled: %s", endpoint)


def _setup_console(context: LogContext, json_format: bool) -> None:
    """Setup console logging output.

    Args:
        context: Global log context
        json_format: Whether to use JSON formatting
    """
    handler = logging.StreamHandler(sys.stdout)

    if json_format:
        handler.setFormatter(StructuredFormatter(context))
    else:
        handler.setFormatter(ConsoleFormatter(context))

    logging.getLogger().addHandler(handler)


def get_global_context() -> Optional[LogContext]:
    """Get the global log context set during configuration."""
    return _global_context


def is_configured() -> bool:
    """Check if logging has been configured."""
    return _configured
