"""
In-memory stand-in for a RabbitMQ broker, for tests.

FakeBroker implements the part of the AMQPStorm connection/channel API the
broker transport uses. Like AMQPStorm, deliveries are made on the thread
that runs ``channel.start_consuming()``.

Example:
    ```python
    broker = FakeBroker()
    service = RMQService(options, connection_factory=broker.connect)
    ...
    broker.drop_connections()  # simulate a broker restart
    ```
"""

import itertools
import queue
import threading
from dataclasses import dataclass, field
from typing import Callable, Optional

from amqpstorm.exception import AMQPChannelError, AMQPConnectionError

from rmqrpc.rmq.config import DIRECT_REPLY_QUEUE

_STOP = object()


def topic_matches(pattern: str, routing_key: str) -> bool:
    """AMQP topic matching: ``*`` is one word, ``#`` is zero or more."""
    def match(p: list[str], k: list[str]) -> bool:
        if not p:
            return not k
        head, rest = p[0], p[1:]
        if head == "#":
            return any(match(rest, k[i:]) for i in range(len(k) + 1))
        if not k:
            return False
        return (head == "*" or head == k[0]) and match(rest, k[1:])

    return match(pattern.split("."), routing_key.split("."))


@dataclass
class FakeMessage:
    """Subset of amqpstorm.Message seen by consumer callbacks."""
    body: str
    properties: dict
    method: dict

    @property
    def correlation_id(self) -> Optional[str]:
        return self.properties.get("correlation_id")

    @property
    def reply_to(self) -> Optional[str]:
        return self.properties.get("reply_to")


@dataclass
class Published:
    """A publish call recorded by the broker."""
    exchange: str
    routing_key: str
    body: bytes
    properties: dict


@dataclass
class _Queue:
    name: str
    durable: bool = False
    exclusive: bool = False
    auto_delete: bool = False
    backlog: list = field(default_factory=list)


class FakeBroker:
    """A single in-process broker shared by any number of connections."""

    def __init__(self) -> None:
        self.exchanges: dict[str, dict] = {}
        self.queues: dict[str, _Queue] = {}
        self.bindings: list[tuple[str, str, str]] = []
        self.published: list[Published] = []
        self.connect_attempts: list[str] = []
        self.unreachable: set[str] = set()
        self.refuse_connections = False

        self._consumers: dict[str, tuple["FakeChannel", Callable]] = {}
        self._connections: list["FakeConnection"] = []
        self._lock = threading.RLock()
        self._names = itertools.count(1)
        self._delivery_tags = itertools.count(1)

    def connect(self, url: str) -> "FakeConnection":
        """Connection factory: ``RMQService(..., connection_factory=broker.connect)``."""
        with self._lock:
            self.connect_attempts.append(url)
            if self.refuse_connections or url in self.unreachable:
                raise AMQPConnectionError(f"connection refused: {url}")
            connection = FakeConnection(self, url)
            self._connections.append(connection)
            return connection

    @property
    def open_connections(self) -> list["FakeConnection"]:
        with self._lock:
            return [c for c in self._connections if c.is_open]

    def drop_connections(self, error: Optional[Exception] = None) -> None:
        """Kill every open connection, as a broker restart would."""
        error = error or AMQPConnectionError("connection reset by broker")
        for connection in self.open_connections:
            connection.kill(error)

    def bindings_for(self, queue_name: str) -> list[str]:
        with self._lock:
            return [key for _, key, name in self.bindings if name == queue_name]

    def consumer_count(self, queue_name: str) -> int:
        with self._lock:
            return 1 if queue_name in self._consumers else 0

    # -- channel operations ------------------------------------------------

    def _declare_exchange(self, name: str, exchange_type: str, durable: bool) -> None:
        with self._lock:
            self.exchanges[name] = {"type": str(exchange_type), "durable": durable}

    def _declare_queue(self, name: str, durable: bool, exclusive: bool, auto_delete: bool) -> dict:
        with self._lock:
            if not name:
                name = f"amq.gen-{next(self._names)}"
            if name not in self.queues:
                self.queues[name] = _Queue(name, durable, exclusive, auto_delete)
            return {"queue": name, "message_count": 0, "consumer_count": 0}

    def _bind(self, queue_name: str, exchange: str, routing_key: str) -> None:
        with self._lock:
            if exchange not in self.exchanges:
                raise AMQPChannelError(f"NOT_FOUND - no exchange '{exchange}'")
            if queue_name not in self.queues:
                raise AMQPChannelError(f"NOT_FOUND - no queue '{queue_name}'")
            self.bindings.append((exchange, routing_key, queue_name))

    def _consume(self, channel: "FakeChannel", queue_name: str, callback: Callable) -> str:
        with self._lock:
            if queue_name == DIRECT_REPLY_QUEUE:
                channel.direct_reply_callback = callback
                return f"ctag-{next(self._names)}"
            q = self.queues.get(queue_name)
            if q is None:
                raise AMQPChannelError(f"NOT_FOUND - no queue '{queue_name}'")
            self._consumers[queue_name] = (channel, callback)
            backlog, q.backlog = q.backlog, []
        for message in backlog:
            channel.deliver(callback, message)
        return f"ctag-{next(self._names)}"

    def _publish(self, channel: "FakeChannel", body, routing_key: str, exchange: str,
                 properties: Optional[dict]) -> None:
        properties = dict(properties or {})
        if isinstance(body, str):
            body = body.encode("utf-8")

        with self._lock:
            self.published.append(Published(exchange, routing_key, body, dict(properties)))

            if properties.get("reply_to") == DIRECT_REPLY_QUEUE:
                if channel.direct_reply_callback is None:
                    raise AMQPChannelError(
                        "PRECONDITION_FAILED - fast reply consumer does not exist"
                    )
                properties["reply_to"] = f"{DIRECT_REPLY_QUEUE}.{channel.channel_id}"

            message = FakeMessage(
                body=body.decode("utf-8"),
                properties=properties,
                method={
                    "exchange": exchange,
                    "routing_key": routing_key,
                    "delivery_tag": next(self._delivery_tags),
                },
            )

            if exchange == "":
                targets = [routing_key]
            else:
                if exchange not in self.exchanges:
                    raise AMQPChannelError(f"NOT_FOUND - no exchange '{exchange}'")
                targets = []
                for bound_exchange, pattern, queue_name in self.bindings:
                    if bound_exchange == exchange and topic_matches(pattern, routing_key):
                        if queue_name not in targets:
                            targets.append(queue_name)

            deliveries = []
            for target in targets:
                if target.startswith(f"{DIRECT_REPLY_QUEUE}."):
                    deliveries.extend(self._direct_reply_target(target, message))
                elif target in self._consumers:
                    consumer_channel, callback = self._consumers[target]
                    deliveries.append((consumer_channel, callback, message))
                elif target in self.queues:
                    self.queues[target].backlog.append(message)

        for consumer_channel, callback, delivered in deliveries:
            consumer_channel.deliver(callback, delivered)

    def _direct_reply_target(self, target: str, message: FakeMessage) -> list:
        channel_id = target.rsplit(".", 1)[-1]
        for connection in self._connections:
            for channel in connection.channels:
                if (
                    str(channel.channel_id) == channel_id
                    and channel.is_open
                    and channel.direct_reply_callback is not None
                ):
                    return [(channel, channel.direct_reply_callback, message)]
        return []

    def _forget_channel(self, channel: "FakeChannel") -> None:
        with self._lock:
            for name, (consumer_channel, _) in list(self._consumers.items()):
                if consumer_channel is channel:
                    del self._consumers[name]
                    q = self.queues.get(name)
                    if q is not None and q.auto_delete:
                        del self.queues[name]
                        self.bindings = [b for b in self.bindings if b[2] != name]


class FakeConnection:
    """Subset of amqpstorm.Connection."""

    _channel_ids = itertools.count(1)

    def __init__(self, broker: FakeBroker, url: str) -> None:
        self.broker = broker
        self.url = url
        self.is_open = True
        self.channels: list[FakeChannel] = []

    def channel(self) -> "FakeChannel":
        if not self.is_open:
            raise AMQPConnectionError("connection is closed")
        channel = FakeChannel(self.broker, self, next(self._channel_ids))
        self.channels.append(channel)
        return channel

    def close(self) -> None:
        self.is_open = False
        for channel in self.channels:
            channel.close()

    def kill(self, error: Exception) -> None:
        self.is_open = False
        for channel in self.channels:
            channel.kill(error)


class _ExchangeOps:
    def __init__(self, channel: "FakeChannel") -> None:
        self._channel = channel

    def declare(self, exchange="", exchange_type="direct", passive=False,
                durable=False, auto_delete=False, arguments=None):
        self._channel.check_open()
        self._channel.broker._declare_exchange(exchange, exchange_type, durable)
        return {}


class _QueueOps:
    def __init__(self, channel: "FakeChannel") -> None:
        self._channel = channel

    def declare(self, queue="", passive=False, durable=False, exclusive=False,
                auto_delete=False, arguments=None):
        self._channel.check_open()
        return self._channel.broker._declare_queue(queue, durable, exclusive, auto_delete)

    def bind(self, queue="", exchange="", routing_key="", arguments=None):
        self._channel.check_open()
        self._channel.broker._bind(queue, exchange, routing_key)
        return {}


class _BasicOps:
    def __init__(self, channel: "FakeChannel") -> None:
        self._channel = channel

    def qos(self, prefetch_count=0, prefetch_size=0, global_=False):
        self._channel.check_open()
        self._channel.qos = {"prefetch_count": prefetch_count, "global_": global_}
        return {}

    def consume(self, callback=None, queue="", consumer_tag="", exclusive=False,
                no_ack=False, no_local=False, arguments=None):
        self._channel.check_open()
        self._channel.consumed.append((queue, no_ack))
        return self._channel.broker._consume(self._channel, queue, callback)

    def publish(self, body, routing_key, exchange="", properties=None,
                mandatory=False, immediate=False):
        self._channel.check_open()
        self._channel.broker._publish(self._channel, body, routing_key, exchange, properties)


class FakeChannel:
    """Subset of amqpstorm.Channel."""

    def __init__(self, broker: FakeBroker, connection: FakeConnection, channel_id: int) -> None:
        self.broker = broker
        self.connection = connection
        self.channel_id = channel_id
        self.is_open = True
        self.qos: dict = {}
        self.consumed: list[tuple[str, bool]] = []
        self.direct_reply_callback: Optional[Callable] = None

        self.exchange = _ExchangeOps(self)
        self.queue = _QueueOps(self)
        self.basic = _BasicOps(self)

        self._inbox: queue.Queue = queue.Queue()

    def check_open(self) -> None:
        if not self.is_open:
            raise AMQPChannelError("channel is closed")

    def deliver(self, callback: Callable, message: FakeMessage) -> None:
        self._inbox.put((callback, message))

    def start_consuming(self, to_tuple=False, auto_decode=True) -> None:
        while True:
            item = self._inbox.get()
            if item is _STOP:
                return
            if isinstance(item, Exception):
                raise item
            callback, message = item
            callback(message)

    def stop_consuming(self) -> None:
        self._inbox.put(_STOP)

    def close(self) -> None:
        if not self.is_open:
            return
        self.is_open = False
        self.broker._forget_channel(self)
        self._inbox.put(_STOP)

    def kill(self, error: Exception) -> None:
        if not self.is_open:
            return
        self.is_open = False
        self.broker._forget_channel(self)
        self._inbox.put(error)
