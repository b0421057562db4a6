"""
Topic routing table.

Maps a routing key to the handler that serves it. Lookups are exact string
matches; wildcard patterns only apply broker-side, in queue bindings.
"""

import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)

Handler = Callable[[Any], Any]


@dataclass(frozen=True)
class Route:
    """
    A topic handler.

    Attributes:
        topic: Routing key served by the handler
        handler: Callable receiving the decoded message body
        notification: Never publish a reply, even when the request asks for one
    """
    topic: str
    handler: Handler
    notification: bool = False


class RouteTable:
    """
    Append-only mapping from topic to Route.

    If several handlers are registered for the same topic, the first one
    wins and later registrations are ignored with a warning.
    """

    def __init__(self) -> None:
        self._routes: dict[str, Route] = {}
        self._lock = threading.Lock()

    def register(self, topic: str, handler: Handler, notification: bool = False) -> Route:
        """
        Register a handler for a topic.

        Args:
            topic: Routing key to serve
            handler: Callable receiving the decoded message body
            notification: Never reply to messages on this topic

        Returns:
            The route that serves the topic (the existing one on duplicates)
        """
        if not topic:
            raise ValueError("topic must be a non-empty string")
        if not callable(handler):
            raise TypeError(f"handler for {topic!r} is not callable")

        with self._lock:
            existing = self._routes.get(topic)
            if existing is not None:
                logger.warning(
                    "Route for topic '%s' already registered (%s), ignoring %s",
                    topic,
                    getattr(existing.handler, "__qualname__", existing.handler),
                    getattr(handler, "__qualname__", handler),
                )
                return existing

            route = Route(topic=topic, handler=handler, notification=notification)
            self._routes[topic] = route
            logger.debug("Route registered for topic '%s'", topic)
            return route

    def resolve(self, routing_key: str) -> Optional[Route]:
        """Return the route for an exact routing key, or None."""
        return self._routes.get(routing_key)

    @property
    def topics(self) -> list[str]:
        return list(self._routes)

    def __contains__(self, topic: str) -> bool:
        return topic in self._routes

    def __len__(self) -> int:
        return len(self._routes)
