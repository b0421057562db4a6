"""Custom log formatters for structured logging.

Provides a JSON formatter for log aggregation and a plain-text console
formatter that surfaces the message correlation id.
"""

import json
import logging
from typing import Optional, Dict, Any

from opentelemetry import trace

from rmqrpc.logging.context import LogContext, get_context

# LogRecord attributes that are never copied into the JSON payload
_STANDARD_FIELDS = {
    "name", "msg", "args", "created", "filename", "funcName", "levelname",
    "levelno", "lineno", "module", "msecs", "message", "pathname", "process",
    "processName", "relativeCreated", "thread", "threadName", "exc_info",
    "exc_text", "stack_info", "getMessage", "taskName", "otel_attributes",
}


class StructuredFormatter(logging.Formatter):
    """JSON formatter that includes context attributes.

    Automatically includes:
    - All LogContext attributes
    - OpenTelemetry trace/span IDs of the active span
    - Source location (module, function, line)
    - Timestamp and log level
    """

    def __init__(
        self,
        global_context: Optional[LogContext] = None,
        include_trace: bool = True,
        include_source: bool = True,
    ):
        """Initialize structured formatter.

        Args:
            global_context: Global context set at startup
            include_trace: Include OpenTelemetry trace/span IDs
            include_source: Include source location (module, function, line)
        """
        super().__init__()
        self.global_context = global_context
        self.include_trace = include_trace
        self.include_source = include_source

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON with context.

        Args:
            record: Log record to format

        Returns:
            JSON string with all context and log data
        """
        log_data: Dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "severity": record.levelname,
            "severity_number": record.levelno,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if self.include_source:
            log_data["source"] = {
                "module": record.module,
                "function": record.funcName,
                "line": record.lineno,
                "file": record.pathname,
            }

        if self.global_context:
            log_data.update(self.global_context.to_dict())

        current_context = get_context()
        if current_context and current_context is not self.global_context:
            log_data.update(current_context.to_dict())

        if self.include_trace:
            span = trace.get_current_span()
            if span.is_recording():
                span_context = span.get_span_context()
                log_data["trace_id"] = format(span_context.trace_id, "032x")
                log_data["span_id"] = format(span_context.span_id, "016x")
                log_data["trace_flags"] = format(span_context.trace_flags, "02x")

        if record.exc_info:
            log_data["exception"] = {
                "type": record.exc_info[0].__name__ if record.exc_info[0] else None,
                "message": str(record.exc_info[1]) if record.exc_info[1] else None,
                "stacktrace": self.formatException(record.exc_info),
            }

        for key, value in record.__dict__.items():
            if key not in _STANDARD_FIELDS and not key.startswith("_"):
                log_data[key] = value

        return json.dumps(log_data, default=str)


class ConsoleFormatter(logging.Formatter):
    """Plain text formatter for development console output.

    Format: ``timestamp - [app] logger - LEVEL - [cid=xxxxxxxx] message``
    """

    def __init__(self, global_context: Optional[LogContext] = None):
        super().__init__()
        self.global_context = global_context

    def format(self, record: logging.LogRecord) -> str:
        timestamp = self.formatTime(record, self.datefmt)
        app_name = self.global_context.app_name if self.global_context else None

        parts = [timestamp]
        if app_name:
            parts.append(f"[{app_name}] {record.name}")
        else:
            parts.append(record.name)
        parts.append(record.levelname)

        message = record.getMessage()
        correlation_id = getattr(record, "correlation_id", None)
        if correlation_id is None:
            current_context = get_context()
            if current_context:
                correlation_id = current_context.correlation_id
        if correlation_id:
            message = f"[cid={correlation_id[:8]}] {message}"
        parts.append(message)

        formatted = " - ".join(parts)
        if record.exc_info:
            formatted += "\n" + self.formatException(record.exc_info)

        return formatted
