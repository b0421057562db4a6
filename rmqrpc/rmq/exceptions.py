"""Exceptions raised by the RPC service or delivered through its futures."""


class RMQServiceError(Exception):
    """Base class for all RPC service errors."""


class NotConnectedError(RMQServiceError):
    """The broker transport is not ready to accept a message."""


class InitFailureError(NotConnectedError):
    """Initializing the broker transport failed.

    The underlying transport error is chained as ``__cause__``.
    """


class ServiceClosedError(RMQServiceError):
    """The service was closed; pending and new calls fail with this."""


class NoReplyContentError(RMQServiceError):
    """A reply arrived with an empty body."""

    def __init__(self, correlation_id: str):
        super().__init__("No RPC result")
        self.correlation_id = correlation_id


class MalformedReplyError(RMQServiceError):
    """A reply body could not be decoded as JSON."""

    def __init__(self, correlation_id: str, reason: str):
        super().__init__(f"Malformed RPC result: {reason}")
        self.correlation_id = correlation_id


class RPCTimeoutError(RMQServiceError, TimeoutError):
    """No reply arrived before the call's timeout expired."""

    def __init__(self, correlation_id: str, timeout: float):
        super().__init__(f"No reply within {timeout:.2f}s")
        self.correlation_id = correlation_id
        self.timeout = timeout


class DuplicateCorrelationIdError(RMQServiceError, ValueError):
    """A correlation id was registered while already pending."""
