"""Structured logging with message context.

Standard library logging plus a small layer that tags records with the
correlation id and routing key of the message being handled, with optional
OpenTelemetry export.

Example:
    ```python
    from rmqrpc.logging import configure_logging, get_logger

    # Configure once at app startup
    configure_logging(app_name="billing-rpc", log_level="DEBUG")

    # Use throughout your app; inside a route handler the records carry
    # the correlation id of the request being served
    logger = get_logger(__name__)
    logger.info("Invoice created")
    ```
"""

from rmqrpc.logging.config import configure_logging, get_global_context, is_configured
from rmqrpc.logging.factory import get_logger
from rmqrpc.logging.context import (
    LogContext,
    set_context,
    get_context,
    clear_context,
    update_context,
)

__all__ = [
    "configure_logging",
    "is_configured",
    "get_global_context",
    "get_logger",
    "LogContext",
    "set_context",
    "get_context",
    "clear_context",
    "update_context",
]
