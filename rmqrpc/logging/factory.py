"""Logger factory.

Provides loggers with automatic context injection.
"""

import logging

from rmqrpc.logging.context import get_context


class ContextLogger(logging.LoggerAdapter):
    """Logger adapter that automatically includes context in all log records."""

    def process(self, msg, kwargs):
        """Process log call to inject context.

        Args:
            msg: Log message
            kwargs: Log call keyword arguments

        Returns:
            Tuple of (msg, kwargs) with context injected
        """
        context = get_context()
        extra = kwargs.get("extra", {})

        if context:
            # Don't override explicit extra values
            for key, value in context.to_dict().items():
                if key not in extra:
                    extra[key] = value

        kwargs["extra"] = extra

        return msg, kwargs


def get_logger(name: str) -> ContextLogger:
    """Get a logger with automatic context injection.

    Args:
        name: Logger name (typically __name__)

    Returns:
        ContextLogger that includes context in all records

    Example:
        >>> logger = get_logger(__name__)
        >>> logger.info("Handling message")  # includes correlation_id when set
    """
    return ContextLogger(logging.getLogger(name), {})
