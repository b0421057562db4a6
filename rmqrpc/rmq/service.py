"""
RPC service over a RabbitMQ topic exchange.

RMQService is the public entry point:
- ``send`` publishes a request and returns a Future for the correlated reply
- ``notify`` publishes a one-way message
- ``route`` / ``register_route`` declare handlers for the service queue

Example:
    ```python
    options = RMQServiceOptions(
        exchange_name="billing",
        connections=[RMQConnection(host="localhost")],
        queue_name="billing.invoices",
        subscriptions=["invoice.create"],
    )
    service = RMQService(options)

    @service.route("invoice.create")
    def create_invoice(body):
        return {"id": 42, **body}

    reply = service.send("invoice.create", {"amount": 10}).result()
    ```
"""

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable, Optional

from amqpstorm import Channel

from rmqrpc.rmq.config import ExchangeType, RMQServiceOptions
from rmqrpc.rmq.connection import BrokerTransport, ConnectionFactory
from rmqrpc.rmq.dispatcher import InboundDispatcher, ReplyDispatcher
from rmqrpc.rmq.envelope import Envelope, encode_payload
from rmqrpc.rmq.exceptions import RPCTimeoutError, ServiceClosedError
from rmqrpc.rmq.guard import ConnectionGuard, ConnectionState
from rmqrpc.rmq.guid import generate_correlation_id
from rmqrpc.rmq.registry import CorrelationRegistry
from rmqrpc.rmq.routes import Handler, Route, RouteTable

logger = logging.getLogger(__name__)


class RMQService:
    """Request/reply and fire-and-forget messaging over one shared channel."""

    def __init__(
        self,
        options: RMQServiceOptions,
        connection_factory: Optional[ConnectionFactory] = None,
    ) -> None:
        """
        Initialize the service. No connection is made until the first
        send/notify or an explicit init().

        Args:
            options: Service configuration
            connection_factory: Callable returning an amqpstorm Connection for
                a broker URI (defaults to amqpstorm.UriConnection)
        """
        self._options = options
        self._routes = RouteTable()
        self._registry = CorrelationRegistry()
        self._reply_queue = options.reply_queue
        self._executor = ThreadPoolExecutor(
            max_workers=options.handler_workers,
            thread_name_prefix="rmq-rpc-handler",
        )

        self._transport = BrokerTransport(
            options.connection_urls(),
            reconnect_interval=options.reconnect_time_in_seconds,
            max_reconnect_attempts=options.max_reconnect_attempts,
            connection_factory=connection_factory,
        )
        self._reply_dispatcher = ReplyDispatcher(self._registry)
        self._inbound_dispatcher = InboundDispatcher(
            self._routes,
            self._publish_reply,
            self._executor,
        )
        self._guard = ConnectionGuard(self._transport, self._setup_channel)

    @property
    def state(self) -> ConnectionState:
        return self._guard.state

    @property
    def pending_count(self) -> int:
        """Number of send calls still waiting for a reply."""
        return len(self._registry)

    @property
    def reply_queue(self) -> str:
        return self._reply_queue

    @property
    def routes(self) -> RouteTable:
        return self._routes

    def register_route(self, topic: str, handler: Handler, notification: bool = False) -> Route:
        """
        Serve ``topic`` with ``handler``.

        The handler receives the decoded JSON body. Its return value is sent
        back to the requester unless it is None or ``notification`` is set.
        The first handler registered for a topic wins.
        """
        return self._routes.register(topic, handler, notification)

    def route(self, topic: str, notification: bool = False) -> Callable[[Handler], Handler]:
        """Decorator form of :meth:`register_route`."""
        def decorator(handler: Handler) -> Handler:
            self.register_route(topic, handler, notification)
            return handler
        return decorator

    def init(self) -> None:
        """Connect eagerly instead of on the first send/notify."""
        self._guard.ensure_ready()

    def send(self, topic: str, message: Any, timeout: Optional[float] = None) -> Future:
        """
        Publish a request and return a Future for its reply.

        The Future resolves with the decoded reply, or fails with
        NoReplyContentError for an empty reply, RPCTimeoutError when a
        timeout is set and expires, ServiceClosedError on close().
        Without a timeout it waits until a reply arrives.

        Args:
            topic: Routing key of the request
            message: JSON-representable request body
            timeout: Seconds to wait for the reply (defaults to
                options.default_timeout)

        Raises:
            InitFailureError: Connecting to the broker failed
            NotConnectedError: The transport is reconnecting
            ServiceClosedError: The service was closed
        """
        body = encode_payload(message)
        self._guard.ensure_ready()

        correlation_id = generate_correlation_id()
        future = self._registry.register(correlation_id)
        envelope = Envelope(
            routing_key=topic,
            payload=body,
            reply_to=self._reply_queue,
            correlation_id=correlation_id,
        )
        try:
            self._transport.publish(
                self._options.exchange_name,
                topic,
                body,
                envelope.properties(),
            )
        except Exception:
            self._registry.discard(correlation_id)
            raise

        if timeout is None:
            timeout = self._options.default_timeout
        if timeout is not None:
            self._expire_after(correlation_id, future, timeout)

        logger.debug("Request %s sent to '%s'", correlation_id, topic)
        return future

    def call(self, topic: str, message: Any, timeout: Optional[float] = None) -> Any:
        """Blocking form of :meth:`send`: return the reply or raise its error."""
        return self.send(topic, message, timeout).result()

    def notify(self, topic: str, message: Any) -> None:
        """
        Publish a one-way message. Never waits for a reply.

        Raises:
            InitFailureError: Connecting to the broker failed
            NotConnectedError: The transport is reconnecting
            ServiceClosedError: The service was closed
        """
        body = encode_payload(message)
        self._guard.ensure_ready()

        envelope = Envelope(routing_key=topic, payload=body)
        self._transport.publish(
            self._options.exchange_name,
            topic,
            body,
            envelope.properties(),
        )
        logger.debug("Notification sent to '%s'", topic)

    def close(self) -> None:
        """
        Close the connection and fail every pending call with
        ServiceClosedError. A closed service cannot be reused.
        """
        logger.info("Shutting down RMQService...")
        self._guard.close()
        failed = self._registry.fail_all(ServiceClosedError("service closed"))
        if failed:
            logger.warning("%d pending call(s) failed on close", failed)
        self._executor.shutdown(wait=False)

    def __enter__(self) -> "RMQService":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    def _setup_channel(self, channel: Channel) -> None:
        """Declare topology and start both consumers on a fresh channel."""
        options = self._options

        channel.exchange.declare(
            exchange=options.exchange_name,
            exchange_type=ExchangeType.TOPIC,
            durable=True,
        )
        channel.basic.qos(
            prefetch_count=options.prefetch_count,
            global_=options.is_global_prefetch_count,
        )

        if options.queue_name:
            channel.queue.declare(queue=options.queue_name, durable=True)
            for binding_key in options.subscriptions:
                channel.queue.bind(
                    queue=options.queue_name,
                    exchange=options.exchange_name,
                    routing_key=binding_key,
                )
                logger.info(
                    "Queue %s bound to exchange %s with routing key '%s'",
                    options.queue_name,
                    options.exchange_name,
                    binding_key,
                )
            channel.basic.consume(
                callback=self._inbound_dispatcher,
                queue=options.queue_name,
                no_ack=True,
            )

        self._reply_queue = self._declare_reply_queue(channel)
        channel.basic.consume(
            callback=self._reply_dispatcher,
            queue=self._reply_queue,
            no_ack=True,
        )
        logger.info("Consuming replies on %s", self._reply_queue)

    def _declare_reply_queue(self, channel: Channel) -> str:
        name = self._options.reply_queue
        if self._options.uses_direct_reply_to:
            return name
        result = channel.queue.declare(queue=name, exclusive=True, auto_delete=True)
        return result.get("queue", name) or name

    def _publish_reply(self, reply_to: str, body: bytes, correlation_id: Optional[str]) -> None:
        envelope = Envelope(routing_key=reply_to, payload=body, correlation_id=correlation_id)
        self._transport.send_to_queue(reply_to, body, envelope.properties())

    def _expire_after(self, correlation_id: str, future: Future, timeout: float) -> None:
        timer = threading.Timer(
            timeout,
            self._registry.expire,
            args=(correlation_id, RPCTimeoutError(correlation_id, timeout)),
        )
        timer.daemon = True
        timer.start()
        future.add_done_callback(lambda _: timer.cancel())
