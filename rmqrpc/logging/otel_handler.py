"""OpenTelemetry logging handler with context injection.

Extends the standard OTEL LoggingHandler to attach the current LogContext
as log record attributes, using the messaging semantic conventions for the
fields the RPC layer sets.
"""

import logging

from opentelemetry import trace
from opentelemetry.sdk._logs import LoggingHandler

from rmqrpc.logging.context import get_context


class OTELContextHandler(LoggingHandler):
    """OTEL logging handler that injects context as log record attributes.

    Attributes added (when set):
    - messaging.message.conversation_id: correlation id of the message
    - messaging.destination.name: routing key being handled
    - messaging.reply_to: reply queue of the handled request
    - worker.id and ``app.*`` custom attributes
    - trace_id / span_id of the active span
    """

    def emit(self, record: logging.LogRecord) -> None:
        """Emit a log record with context attributes.

        The OTEL SDK copies non-standard record attributes into the exported
        log record, so attributes are set directly on ``record``.

        Args:
            record: Python logging record
        """
        context = get_context()

        if context:
            attributes = {}
            if context.correlation_id:
                attributes["messaging.message.conversation_id"] = context.correlation_id
            if context.operation:
                attributes["messaging.destination.name"] = context.operation
            if context.reply_to:
                attributes["messaging.reply_to"] = context.reply_to
            if context.worker_id:
                attributes["worker.id"] = context.worker_id
            for key, value in context.custom.items():
                attributes[f"app.{key}"] = value

            for key, value in attributes.items():
                setattr(record, key, value)

        span = trace.get_current_span()
        if span.is_recording():
            span_context = span.get_span_context()
            record.trace_id = format(span_context.trace_id, "032x")
            record.span_id = format(span_context.span_id, "016x")

        super().emit(record)
