"""
RabbitMQ configuration dataclasses.

This module provides configuration objects for broker endpoints and for the
RPC service (exchange, service queue, bindings, prefetch, reconnects).
"""

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Optional
from urllib.parse import quote

RECONNECT_TIME = 5
DEFAULT_PORT = 5672

# RabbitMQ pseudo-queue for direct reply-to; it is consumed, never declared
DIRECT_REPLY_QUEUE = "amq.rabbitmq.reply-to"


class ExchangeType(StrEnum):
    """Exchange kinds used by the service. All exchanges are durable."""
    TOPIC = "topic"


class ConnectionEvent(StrEnum):
    """Lifecycle events reported by the broker transport."""
    CONNECT = "connect"
    DISCONNECT = "disconnect"
    FAILED = "failed"


class LogMessage(StrEnum):
    """Lifecycle log lines."""
    CONNECTING = "Connecting to RabbitMQ server"
    CONNECTED = "Successfully connected to RabbitMQ"
    DISCONNECTED = "Disconnected from RabbitMQ server"


@dataclass
class RMQConnection:
    """
    One broker endpoint.

    Attributes:
        host: Broker hostname
        login: Username
        password: Password
        port: AMQP port (5671 is customary with SSL)
        vhost: Virtual host
        ssl: Connect with amqps://
    """
    host: str
    login: str = "guest"
    password: str = "guest"
    port: int = DEFAULT_PORT
    vhost: str = "/"
    ssl: bool = False

    def build_url(self) -> str:
        """Build the AMQP URI, percent-encoding credentials and vhost."""
        scheme = "amqps" if self.ssl else "amqp"
        login = quote(self.login, safe="")
        password = quote(self.password, safe="")
        vhost = quote(self.vhost, safe="")
        return f"{scheme}://{login}:{password}@{self.host}:{self.port}/{vhost}"

    def __str__(self) -> str:
        # Never render the password
        return f"{self.host}:{self.port}/{self.vhost}"


@dataclass
class RMQServiceOptions:
    """
    Configuration for an RPC service instance.

    Attributes:
        exchange_name: Durable topic exchange every message is published to
        connections: Broker endpoints, tried in order on (re)connect
        queue_name: Service queue to consume requests from (None: client only)
        subscriptions: Binding keys for the service queue
        prefetch_count: Channel prefetch (0 means unlimited)
        is_global_prefetch_count: Apply the prefetch to the whole connection
        reconnect_time_in_seconds: Delay between reconnection attempts
        max_reconnect_attempts: Attempts per reconnect cycle before giving up
        reply_queue: Queue replies are consumed from. Direct reply-to by
            default; any other name is declared exclusive and auto-delete
            (an empty name lets the broker pick one)
        handler_workers: Threads running route handlers. With one worker,
            messages are handled in delivery order
        default_timeout: Seconds before a pending send fails, None waits forever
    """
    exchange_name: str
    connections: list[RMQConnection]
    queue_name: Optional[str] = None
    subscriptions: list[str] = field(default_factory=list)
    prefetch_count: int = 0
    is_global_prefetch_count: bool = False
    reconnect_time_in_seconds: float = RECONNECT_TIME
    max_reconnect_attempts: int = 10
    reply_queue: str = DIRECT_REPLY_QUEUE
    handler_workers: int = 1
    default_timeout: Optional[float] = None

    def __post_init__(self) -> None:
        if not self.exchange_name:
            raise ValueError("exchange_name is required")
        if not self.connections:
            raise ValueError("at least one broker connection is required")
        if self.handler_workers < 1:
            raise ValueError("handler_workers must be at least 1")

    def connection_urls(self) -> list[str]:
        """Broker URIs in configuration order."""
        return [connection.build_url() for connection in self.connections]

    @property
    def uses_direct_reply_to(self) -> bool:
        return self.reply_queue == DIRECT_REPLY_QUEUE
