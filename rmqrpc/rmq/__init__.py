"""
Request/reply and fire-and-forget messaging over RabbitMQ.

This package provides:
- RMQService: send (RPC with a Future reply), notify, topic routes
- Configuration dataclasses for broker endpoints and the service
- The correlation registry, route table and dispatchers it is built from
- A broker transport on AMQPStorm with reconnection
"""

from rmqrpc.rmq.config import (
    DIRECT_REPLY_QUEUE,
    RECONNECT_TIME,
    ConnectionEvent,
    ExchangeType,
    RMQConnection,
    RMQServiceOptions,
)
from rmqrpc.rmq.connection import BrokerTransport
from rmqrpc.rmq.dispatcher import InboundDispatcher, ReplyDispatcher
from rmqrpc.rmq.envelope import Envelope, decode_payload, encode_payload
from rmqrpc.rmq.exceptions import (
    DuplicateCorrelationIdError,
    InitFailureError,
    MalformedReplyError,
    NoReplyContentError,
    NotConnectedError,
    RMQServiceError,
    RPCTimeoutError,
    ServiceClosedError,
)
from rmqrpc.rmq.guard import ConnectionGuard, ConnectionState
from rmqrpc.rmq.guid import generate_correlation_id
from rmqrpc.rmq.registry import CorrelationRegistry
from rmqrpc.rmq.routes import Route, RouteTable
from rmqrpc.rmq.service import RMQService

__all__ = [
    # Config
    "DIRECT_REPLY_QUEUE",
    "RECONNECT_TIME",
    "ConnectionEvent",
    "ExchangeType",
    "RMQConnection",
    "RMQServiceOptions",
    # Service
    "RMQService",
    # Building blocks
    "BrokerTransport",
    "ConnectionGuard",
    "ConnectionState",
    "CorrelationRegistry",
    "Envelope",
    "InboundDispatcher",
    "ReplyDispatcher",
    "Route",
    "RouteTable",
    "decode_payload",
    "encode_payload",
    "generate_correlation_id",
    # Errors
    "DuplicateCorrelationIdError",
    "InitFailureError",
    "MalformedReplyError",
    "NoReplyContentError",
    "NotConnectedError",
    "RMQServiceError",
    "RPCTimeoutError",
    "ServiceClosedError",
]
