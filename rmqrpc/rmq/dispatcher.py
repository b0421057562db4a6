"""
Message dispatchers.

ReplyDispatcher consumes the private reply queue and hands each reply to the
correlation registry. InboundDispatcher consumes the service queue, runs the
route handler for the message's routing key and publishes the handler's
result back to the requester when one was asked for.

Both are amqpstorm consumer callbacks and run on the consumer thread.
"""

import asyncio
import inspect
from concurrent.futures import Executor
from dataclasses import replace
from typing import Any, Awaitable, Callable, Optional

from rmqrpc.logging import (
    LogContext,
    get_context,
    get_global_context,
    get_logger,
    set_context,
)
from rmqrpc.rmq.envelope import Envelope, encode_payload
from rmqrpc.rmq.registry import CorrelationRegistry
from rmqrpc.rmq.routes import Route, RouteTable

logger = get_logger(__name__)

# publish_reply(reply_to, body, correlation_id)
ReplyPublisher = Callable[[str, bytes, Optional[str]], None]


class ReplyDispatcher:
    """Forward every reply to the registry, keyed by its correlation id."""

    def __init__(self, registry: CorrelationRegistry) -> None:
        self._registry = registry

    def __call__(self, message) -> None:
        try:
            self.dispatch(Envelope.from_message(message))
        except Exception:
            logger.exception("Dropping reply that could not be dispatched")

    def dispatch(self, envelope: Envelope) -> bool:
        if not envelope.correlation_id:
            logger.warning("Dropping reply without correlation id")
            return False
        return self._registry.fulfil(envelope.correlation_id, envelope.payload)


async def _await(awaitable: Awaitable) -> Any:
    return await awaitable


class InboundDispatcher:
    """
    Route inbound messages to their handlers.

    Messages without a route are dropped. Handlers run on ``executor`` when
    one is given, inline otherwise. A handler that raises is logged and
    produces no reply.
    """

    def __init__(
        self,
        routes: RouteTable,
        publish_reply: ReplyPublisher,
        executor: Optional[Executor] = None,
    ) -> None:
        self._routes = routes
        self._publish_reply = publish_reply
        self._executor = executor

    def __call__(self, message) -> None:
        try:
            self.dispatch(Envelope.from_message(message))
        except Exception:
            logger.exception("Dropping inbound message that could not be dispatched")

    def dispatch(self, envelope: Envelope) -> None:
        route = self._routes.resolve(envelope.routing_key)
        if route is None:
            logger.debug("No route for routing key '%s', dropping message", envelope.routing_key)
            return

        if self._executor is None:
            self.handle(route, envelope)
            return

        try:
            self._executor.submit(self.handle, route, envelope)
        except RuntimeError:
            # executor already shut down by close()
            logger.warning("Handler pool is shut down, dropping '%s'", envelope.routing_key)

    def handle(self, route: Route, envelope: Envelope) -> None:
        """Run the handler for one message and publish its reply."""
        previous = get_context()
        base = previous or get_global_context() or LogContext()
        set_context(replace(
            base,
            correlation_id=envelope.correlation_id,
            operation=envelope.routing_key,
            reply_to=envelope.reply_to,
            custom=dict(base.custom),
        ))
        try:
            try:
                result = self._invoke(route, envelope)
            except Exception:
                logger.exception("Handler for '%s' failed", route.topic)
                return

            if route.notification or not envelope.reply_to or result is None:
                return

            try:
                self._publish_reply(
                    envelope.reply_to,
                    encode_payload(result),
                    envelope.correlation_id,
                )
            except Exception:
                logger.exception("Failed to publish reply to '%s'", envelope.reply_to)
        finally:
            set_context(previous)

    @staticmethod
    def _invoke(route: Route, envelope: Envelope) -> Any:
        body = envelope.decode()
        result = route.handler(body)
        if inspect.isawaitable(result):
            result = asyncio.run(_await(result))
        return result
