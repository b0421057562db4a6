"""RPC and notifications over a RabbitMQ topic exchange."""

from rmqrpc.rmq import RMQConnection, RMQService, RMQServiceOptions

__version__ = "0.1.0"

__all__ = ["RMQConnection", "RMQService", "RMQServiceOptions"]
