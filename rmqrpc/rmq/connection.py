"""
Broker transport built on AMQPStorm.

Owns the single connection and channel of an RPC service instance:
- Connects to the first reachable broker URI out of a list
- Runs a setup callback on every fresh channel (declarations, consumers)
- Consumes on a daemon thread
- Reconnects with a fixed interval when the connection drops, re-running
  the setup callback, and reports lifecycle events to listeners
"""

import logging
import threading
from collections import defaultdict
from typing import Callable, Optional
from urllib.parse import urlsplit

import amqpstorm
from amqpstorm import Channel, Connection
from amqpstorm.exception import AMQPConnectionError, AMQPError

from rmqrpc.retry import RetryConfig, is_transient_rmq_error, retry
from rmqrpc.rmq.config import RECONNECT_TIME, ConnectionEvent
from rmqrpc.rmq.exceptions import NotConnectedError, ServiceClosedError

logger = logging.getLogger(__name__)

ChannelSetup = Callable[[Channel], None]
ConnectionFactory = Callable[[str], Connection]


def redact_url(url: str) -> str:
    """Strip credentials from an AMQP URI for logging."""
    parts = urlsplit(url)
    netloc = parts.hostname or ""
    if parts.port:
        netloc = f"{netloc}:{parts.port}"
    return parts._replace(netloc=netloc).geturl()


class BrokerTransport:
    """
    One AMQP connection and channel with automatic reconnection.

    Listeners registered with :meth:`on` are called with no argument for
    ``ConnectionEvent.CONNECT`` and with the error for
    ``ConnectionEvent.DISCONNECT`` and ``ConnectionEvent.FAILED`` (a
    reconnect cycle gave up; the transport stays down until the next
    :meth:`connect`).
    """

    def __init__(
        self,
        urls: list[str],
        reconnect_interval: float = RECONNECT_TIME,
        max_reconnect_attempts: int = 10,
        connection_factory: Optional[ConnectionFactory] = None,
    ) -> None:
        """
        Initialize the transport. Nothing is opened until connect().

        Args:
            urls: Broker URIs, tried in order
            reconnect_interval: Seconds between reconnection attempts
            max_reconnect_attempts: Attempts per reconnect cycle
            connection_factory: Callable returning a Connection for a URI.
                Defaults to amqpstorm.UriConnection.
        """
        if not urls:
            raise ValueError("at least one broker URI is required")
        self._urls = list(urls)
        self._reconnect_interval = reconnect_interval
        self._max_reconnect_attempts = max_reconnect_attempts
        self._connection_factory = connection_factory or amqpstorm.UriConnection

        self._connection: Optional[Connection] = None
        self._channel: Optional[Channel] = None
        self._setup: Optional[ChannelSetup] = None
        self._consumer_thread: Optional[threading.Thread] = None

        self._lock = threading.RLock()
        self._connected = threading.Event()
        self._closed = threading.Event()
        self._listeners: dict[ConnectionEvent, list[Callable]] = defaultdict(list)

    def on(self, event: ConnectionEvent, listener: Callable) -> None:
        """Register a lifecycle listener."""
        self._listeners[event].append(listener)

    @property
    def is_connected(self) -> bool:
        return self._connected.is_set() and not self._closed.is_set()

    @property
    def is_closed(self) -> bool:
        return self._closed.is_set()

    def connect(self, setup: ChannelSetup) -> None:
        """
        Open the connection and channel, run ``setup`` and start consuming.

        Raises:
            ServiceClosedError: If the transport was closed
            Exception: The last connection error when no URI is reachable,
                or the error raised by ``setup``
        """
        with self._lock:
            if self._closed.is_set():
                raise ServiceClosedError("transport is closed")
            if self._connected.is_set():
                return
            self._setup = setup
            self._open()

            self._consumer_thread = threading.Thread(
                target=self._consume_loop,
                name="rmq-rpc-consumer",
                daemon=True,
            )
            self._consumer_thread.start()

        self._emit(ConnectionEvent.CONNECT)

    def publish(
        self,
        exchange: str,
        routing_key: str,
        body: bytes,
        properties: Optional[dict] = None,
    ) -> None:
        """
        Publish a message on the shared channel.

        Raises:
            NotConnectedError: If the transport is not connected
        """
        channel = self._channel
        if channel is None or not self.is_connected:
            raise NotConnectedError("not connected to RabbitMQ")

        channel.basic.publish(
            body=body,
            routing_key=routing_key,
            exchange=exchange,
            properties=properties,
        )
        logger.debug(
            "Message published to exchange '%s' with routing key '%s'",
            exchange,
            routing_key,
        )

    def send_to_queue(self, queue: str, body: bytes, properties: Optional[dict] = None) -> None:
        """Publish straight to a queue through the default exchange."""
        self.publish("", queue, body, properties)

    def close(self) -> None:
        """Stop consuming and close the channel and connection. Idempotent."""
        if self._closed.is_set():
            return
        self._closed.set()
        self._connected.clear()

        with self._lock:
            self._teardown()

        thread = self._consumer_thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=max(self._reconnect_interval, 1.0) + 5.0)
        logger.info("Broker transport closed")

    def _open(self) -> None:
        """Connect, open a channel and run setup on it. Caller holds the lock."""
        connection = self._connect_any()
        try:
            channel = connection.channel()
            self._setup(channel)
        except Exception:
            self._close_quietly(connection)
            raise

        self._connection = connection
        self._channel = channel
        self._connected.set()

    def _connect_any(self) -> Connection:
        last_error: Optional[Exception] = None
        for url in self._urls:
            try:
                connection = self._connection_factory(url)
                logger.info("Connected to %s", redact_url(url))
                return connection
            except Exception as e:
                logger.warning("Failed to connect to %s: %s", redact_url(url), e)
                last_error = e
        raise last_error

    def _consume_loop(self) -> None:
        while not self._closed.is_set():
            channel = self._channel
            if channel is None:
                return
            try:
                channel.start_consuming()
                if self._closed.is_set():
                    return
                error: Exception = AMQPConnectionError("consumer stopped unexpectedly")
            except AMQPError as e:
                if self._closed.is_set():
                    return
                error = e

            self._connected.clear()
            self._emit(ConnectionEvent.DISCONNECT, error)

            if not self._reconnect():
                return
            self._emit(ConnectionEvent.CONNECT)

    def _reconnect(self) -> bool:
        config = RetryConfig(
            max_attempts=self._max_reconnect_attempts,
            initial_delay=self._reconnect_interval,
            max_delay=self._reconnect_interval,
            exponential_base=1.0,
            exception_filter=is_transient_rmq_error,
            sleep=self._closed.wait,
        )

        if self._closed.wait(self._reconnect_interval):
            return False

        try:
            retry(config)(self._reopen)()
        except Exception as e:
            if self._closed.is_set():
                return False
            logger.error("Giving up reconnecting to RabbitMQ: %s", e)
            self._emit(ConnectionEvent.FAILED, e)
            return False
        return True

    def _reopen(self) -> None:
        with self._lock:
            if self._closed.is_set():
                raise ServiceClosedError("transport is closed")
            self._teardown()
            self._open()

    def _teardown(self) -> None:
        channel, connection = self._channel, self._connection
        self._channel = None
        self._connection = None
        if channel is not None:
            try:
                if channel.is_open:
                    channel.close()
            except Exception as e:
                logger.warning("Error closing channel: %s", e)
        if connection is not None:
            self._close_quietly(connection)

    @staticmethod
    def _close_quietly(connection: Connection) -> None:
        try:
            if connection.is_open:
                connection.close()
        except Exception as e:
            logger.warning("Error closing connection: %s", e)

    def _emit(self, event: ConnectionEvent, *args) -> None:
        for listener in list(self._listeners[event]):
            try:
                listener(*args)
            except Exception:
                logger.exception("Error in %s listener", event)
