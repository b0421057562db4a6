"""RabbitMQ provider with SSL support.

Provides the broker endpoint for CLI commands.

Example:
    ```python
    from rmqrpc.cli.providers.rabbitmq import RabbitMQContext, rmq_params

    app = typer.Typer()

    @app.callback()
    @rmq_params
    def setup(ctx: typer.Context):
        rmq = RabbitMQContext(**ctx.obj['rabbitmq'])
        connection = rmq.to_connection()
    ```
"""

import inspect
import logging
from dataclasses import dataclass
from typing import Annotated, Callable, Optional

import typer

from rmqrpc.cli.params_base import _create_param_decorator
from rmqrpc.rmq import RMQConnection

logger = logging.getLogger(__name__)


# Type aliases for CLI parameters
RabbitMQHost = Annotated[str, typer.Option(envvar="RABBITMQ_HOST")]
RabbitMQPort = Annotated[int, typer.Option(envvar="RABBITMQ_PORT")]
RabbitMQUser = Annotated[Optional[str], typer.Option(envvar="RABBITMQ_USER")]
RabbitMQPassword = Annotated[Optional[str], typer.Option(envvar="RABBITMQ_PASSWORD")]
RabbitMQVHost = Annotated[Optional[str], typer.Option(envvar="RABBITMQ_VHOST")]
RabbitMQEnableSSL = Annotated[bool, typer.Option(envvar="RABBITMQ_ENABLE_SSL")]


@dataclass
class RabbitMQContext:
    """Typed RabbitMQ context with connection configuration.

    Attributes:
        host: RabbitMQ host
        port: RabbitMQ port
        user: Optional username
        password: Optional password
        vhost: Virtual host (defaults to "/")
        enable_ssl: Whether SSL is enabled
    """

    host: str
    port: int
    user: Optional[str] = None
    password: Optional[str] = None
    vhost: str = "/"
    enable_ssl: bool = False

    def to_connection(self) -> RMQConnection:
        """Broker endpoint for RMQServiceOptions."""
        logger.debug("Using RabbitMQ at %s:%s", self.host, self.port)
        return RMQConnection(
            host=self.host,
            login=self.user or "guest",
            password=self.password or "guest",
            port=self.port,
            vhost=self.vhost or "/",
            ssl=self.enable_ssl,
        )


# ==============================================================================
# Decorator for injecting RabbitMQ parameters
# ==============================================================================

def rmq_params(func: Callable) -> Callable:
    """
    Decorator that injects RabbitMQ parameters into the callback.

    Keeps the six RabbitMQ options visible in CLI help without listing them
    in the callback signature.

    Usage:
        @app.callback()
        @rmq_params
        def callback(ctx: typer.Context, ...):
            rmq = ctx.obj['rabbitmq']
            # rmq = {'host': ..., 'port': ..., 'user': ..., ...}
    """
    param_specs = [
        ('rabbitmq_host', inspect.Parameter(
            'rabbitmq_host', inspect.Parameter.KEYWORD_ONLY,
            default="localhost", annotation=RabbitMQHost
        )),
        ('rabbitmq_port', inspect.Parameter(
            'rabbitmq_port', inspect.Parameter.KEYWORD_ONLY,
            default=5672, annotation=RabbitMQPort
        )),
        ('rabbitmq_user', inspect.Parameter(
            'rabbitmq_user', inspect.Parameter.KEYWORD_ONLY,
            default="guest", annotation=RabbitMQUser
        )),
        ('rabbitmq_password', inspect.Parameter(
            'rabbitmq_password', inspect.Parameter.KEYWORD_ONLY,
            default="guest", annotation=RabbitMQPassword
        )),
        ('rabbitmq_vhost', inspect.Parameter(
            'rabbitmq_vhost', inspect.Parameter.KEYWORD_ONLY,
            default="/", annotation=RabbitMQVHost
        )),
        ('rabbitmq_enable_ssl', inspect.Parameter(
            'rabbitmq_enable_ssl', inspect.Parameter.KEYWORD_ONLY,
            default=False, annotation=RabbitMQEnableSSL
        )),
    ]

    def extractor(kwargs):
        return {
            'host': kwargs.pop('rabbitmq_host', 'localhost'),
            'port': kwargs.pop('rabbitmq_port', 5672),
            'user': kwargs.pop('rabbitmq_user', 'guest'),
            'password': kwargs.pop('rabbitmq_password', 'guest'),
            'vhost': kwargs.pop('rabbitmq_vhost', '/'),
            'enable_ssl': kwargs.pop('rabbitmq_enable_ssl', False),
        }

    return _create_param_decorator(param_specs, 'rabbitmq', extractor)(func)
