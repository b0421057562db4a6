"""
Correlation registry.

Pairs asynchronous replies with the call that is waiting for them. Each
pending call is a ``concurrent.futures.Future`` keyed by its correlation id;
the first fulfilment for an id completes the future and removes the entry,
so duplicate and unknown replies are discarded.
"""

import logging
import threading
from concurrent.futures import Future
from typing import Callable, Optional, Union

from rmqrpc.rmq.envelope import decode_payload
from rmqrpc.rmq.exceptions import (
    DuplicateCorrelationIdError,
    MalformedReplyError,
    NoReplyContentError,
)

logger = logging.getLogger(__name__)


class CorrelationRegistry:
    """Thread-safe mapping from correlation id to a single-use Future."""

    def __init__(self) -> None:
        self._pending: dict[str, Future] = {}
        self._lock = threading.Lock()

    def register(self, correlation_id: str) -> Future:
        """
        Register a waiter for ``correlation_id``.

        Cancelling the returned future removes the entry.

        Raises:
            DuplicateCorrelationIdError: If the id is already pending
        """
        future: Future = Future()
        with self._lock:
            if correlation_id in self._pending:
                raise DuplicateCorrelationIdError(correlation_id)
            self._pending[correlation_id] = future

        future.add_done_callback(self._forget_if_cancelled(correlation_id))
        return future

    def fulfil(self, correlation_id: str, payload: Union[bytes, str]) -> bool:
        """
        Complete the waiter for ``correlation_id`` with a reply body.

        An empty body fails the waiter with NoReplyContentError; otherwise
        it resolves with the decoded JSON value.

        Returns:
            True if a waiter was completed, False if the reply was discarded
        """
        future = self._take(correlation_id)
        if future is None:
            logger.debug("Discarding reply for unknown correlation id %s", correlation_id)
            return False

        if not payload:
            return self._settle(future, error=NoReplyContentError(correlation_id))

        try:
            value = decode_payload(payload)
        except ValueError as e:
            return self._settle(future, error=MalformedReplyError(correlation_id, str(e)))

        return self._settle(future, result=value)

    def expire(self, correlation_id: str, error: Exception) -> bool:
        """
        Fail the waiter for ``correlation_id`` and drop its entry.

        Returns:
            True if a waiter was still pending
        """
        future = self._take(correlation_id)
        if future is None:
            return False
        logger.debug("Expiring pending call %s: %s", correlation_id, error)
        return self._settle(future, error=error)

    def discard(self, correlation_id: str) -> None:
        """Drop an entry without completing its future."""
        self._take(correlation_id)

    def fail_all(self, error: Exception) -> int:
        """Fail every pending waiter, returning how many were failed."""
        with self._lock:
            pending = list(self._pending.values())
            self._pending.clear()

        failed = 0
        for future in pending:
            if self._settle(future, error=error):
                failed += 1
        return failed

    def _take(self, correlation_id: str) -> Optional[Future]:
        with self._lock:
            return self._pending.pop(correlation_id, None)

    @staticmethod
    def _settle(future: Future, result=None, error: Optional[Exception] = None) -> bool:
        # A future moved to RUNNING can no longer be cancelled by its caller
        if not future.set_running_or_notify_cancel():
            return False
        if error is not None:
            future.set_exception(error)
        else:
            future.set_result(result)
        return True

    def _forget_if_cancelled(self, correlation_id: str) -> Callable[[Future], None]:
        def callback(future: Future) -> None:
            if not future.cancelled():
                return
            with self._lock:
                if self._pending.get(correlation_id) is future:
                    del self._pending[correlation_id]
            logger.debug("Pending call %s cancelled", correlation_id)
        return callback

    def __contains__(self, correlation_id: str) -> bool:
        with self._lock:
            return correlation_id in self._pending

    def __len__(self) -> int:
        with self._lock:
            return len(self._pending)
