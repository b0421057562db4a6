"""
Lazy, single-flight initialization of the broker transport.

The first send/notify on a disconnected service initializes the transport;
concurrent callers wait on the same lock and find it ready. Transport
lifecycle events keep the state current afterwards:

    uninitialized -> connecting -> ready
    ready -> reconnecting -> ready             (transport reconnected)
    ready -> reconnecting -> disconnected      (reconnect cycle gave up)
    disconnected -> connecting -> ready        (next call re-initializes)
    any -> closed
"""

import logging
import threading
from enum import StrEnum

from rmqrpc.rmq.config import ConnectionEvent, LogMessage
from rmqrpc.rmq.connection import BrokerTransport, ChannelSetup
from rmqrpc.rmq.exceptions import InitFailureError, NotConnectedError, ServiceClosedError

logger = logging.getLogger(__name__)


class ConnectionState(StrEnum):
    UNINITIALIZED = "uninitialized"
    CONNECTING = "connecting"
    READY = "ready"
    DISCONNECTED = "disconnected"
    RECONNECTING = "reconnecting"
    CLOSED = "closed"


class ConnectionGuard:
    """Serializes transport initialization and tracks connection state."""

    def __init__(self, transport: BrokerTransport, setup: ChannelSetup) -> None:
        self._transport = transport
        self._setup = setup
        self._state = ConnectionState.UNINITIALIZED
        self._lock = threading.RLock()

        transport.on(ConnectionEvent.CONNECT, self._on_connect)
        transport.on(ConnectionEvent.DISCONNECT, self._on_disconnect)
        transport.on(ConnectionEvent.FAILED, self._on_failed)

    @property
    def state(self) -> ConnectionState:
        return self._state

    def ensure_ready(self) -> None:
        """
        Make sure the transport is connected, initializing it if needed.

        Raises:
            InitFailureError: Initialization was attempted and failed
            NotConnectedError: The transport is reconnecting
            ServiceClosedError: The guard was closed
        """
        if self._state is ConnectionState.READY:
            return

        with self._lock:
            state = self._state
            if state is ConnectionState.READY:
                return
            if state is ConnectionState.CLOSED:
                raise ServiceClosedError("service is closed")
            if state is ConnectionState.RECONNECTING:
                raise NotConnectedError("reconnecting to RabbitMQ")

            self._state = ConnectionState.CONNECTING
            logger.info(LogMessage.CONNECTING)
            try:
                self._transport.connect(self._setup)
            except ServiceClosedError:
                self._state = ConnectionState.CLOSED
                raise
            except Exception as e:
                self._state = ConnectionState.DISCONNECTED
                logger.error("Failed to initialize RabbitMQ transport: %s", e)
                raise InitFailureError(f"failed to initialize RabbitMQ transport: {e}") from e

    def close(self) -> None:
        with self._lock:
            self._state = ConnectionState.CLOSED
        self._transport.close()

    def _on_connect(self) -> None:
        with self._lock:
            if self._state is ConnectionState.CLOSED:
                return
            self._state = ConnectionState.READY
        logger.info(LogMessage.CONNECTED)

    def _on_disconnect(self, error: Exception) -> None:
        with self._lock:
            if self._state is ConnectionState.CLOSED:
                return
            self._state = ConnectionState.RECONNECTING
        logger.error("%s: %s", LogMessage.DISCONNECTED, error)

    def _on_failed(self, error: Exception) -> None:
        with self._lock:
            if self._state is ConnectionState.CLOSED:
                return
            self._state = ConnectionState.DISCONNECTED
