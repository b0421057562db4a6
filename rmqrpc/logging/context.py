"""Context management for structured logging.

Provides contextvars-based context storage for log attributes that should
be automatically included in all log records. The inbound dispatcher uses
it to tag every log line emitted while a handler runs with the request's
correlation id and routing key.
"""

import contextvars
import os
from dataclasses import dataclass, field, asdict
from typing import Optional, Dict, Any

_log_context: contextvars.ContextVar[Optional["LogContext"]] = contextvars.ContextVar(
    "log_context", default=None
)


@dataclass
class LogContext:
    """Standard attributes for structured logging.

    These attributes are automatically included in all log records when set.
    Apps set the metadata once at startup; the messaging layer sets the
    operation fields per handled message.
    """

    # Application metadata (set at startup)
    environment: Optional[str] = None  # dev, staging, prod
    app_name: Optional[str] = None
    version: Optional[str] = None

    # Kubernetes context (auto-detected)
    pod_name: Optional[str] = None
    namespace: Optional[str] = None
    hostname: Optional[str] = None

    # Message/operation context (set per handled message)
    correlation_id: Optional[str] = None
    operation: Optional[str] = None  # routing key being handled
    reply_to: Optional[str] = None
    worker_id: Optional[str] = None

    custom: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary, excluding None values and empty custom dict."""
        result = {}
        data = asdict(self)
        custom = data.pop("custom", {})

        for key, value in data.items():
            if value is not None:
                result[key] = value

        result.update(custom)

        return result

    @classmethod
    def from_environment(cls) -> "LogContext":
        """Create LogContext from environment variables."""
        return cls(
            environment=os.getenv("APP_ENV") or os.getenv("ENVIRONMENT"),
            app_name=os.getenv("APP_NAME"),
            version=os.getenv("APP_VERSION"),
            pod_name=os.getenv("POD_NAME") or os.getenv("HOSTNAME"),
            namespace=os.getenv("NAMESPACE") or os.getenv("POD_NAMESPACE"),
            hostname=os.getenv("HOSTNAME"),
        )


def set_context(context: LogContext) -> None:
    """Set the current log context.

    Args:
        context: LogContext to set as current
    """
    _log_context.set(context)


def get_context() -> Optional[LogContext]:
    """Get the current log context.

    Returns:
        Current LogContext or None if not set
    """
    return _log_context.get()


def clear_context() -> None:
    """Clear the current log context."""
    _log_context.set(None)


def update_context(**kwargs) -> None:
    """Update the current context with new values.

    Unknown keys are stored under ``custom``.

    Args:
        **kwargs: Attributes to update in the current context
    """
    current = get_context()
    if current is None:
        current = LogContext()
        set_context(current)

    for key, value in kwargs.items():
        if key == "custom":
            current.custom.update(value)
        elif hasattr(current, key):
            setattr(current, key, value)
        else:
            current.custom[key] = value
