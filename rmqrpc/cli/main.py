import json
import signal
import threading
from typing import Annotated, Any, Optional

import typer

from rmqrpc.cli.providers.rabbitmq import RabbitMQContext, rmq_params
from rmqrpc.cli.types import AppEnv, ExchangeName, JsonLogs, LogLevel
from rmqrpc.logging import configure_logging, get_logger
from rmqrpc.rmq import RMQService, RMQServiceError, RMQServiceOptions

app = typer.Typer(help="Send, notify and serve RPC messages over RabbitMQ.")
logger = get_logger(__name__)


def _parse_json(value: str) -> Any:
    try:
        return json.loads(value)
    except ValueError as e:
        raise typer.BadParameter(f"not valid JSON: {e}") from e


def _create_service(ctx: typer.Context, **options) -> RMQService:
    rmq = RabbitMQContext(**ctx.obj['rabbitmq'])
    return RMQService(RMQServiceOptions(
        exchange_name=ctx.obj['exchange'],
        connections=[rmq.to_connection()],
        **options,
    ))


def _wait_for_shutdown() -> None:
    stop = threading.Event()
    signal.signal(signal.SIGTERM, lambda *_: stop.set())
    try:
        while not stop.wait(timeout=1.0):
            pass
    except KeyboardInterrupt:
        pass


def echo(body: Any) -> Any:
    logger.info("Echoing request")
    return body


@app.command()
def send(
    ctx: typer.Context,
    topic: str,
    message: str,
    timeout: Annotated[
        Optional[float], typer.Option(help="Seconds to wait for the reply")
    ] = None,
):
    """Send MESSAGE (JSON) to TOPIC and print the reply."""
    body = _parse_json(message)
    service = _create_service(ctx)
    try:
        reply = service.call(topic, body, timeout=timeout)
    except RMQServiceError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1)
    finally:
        service.close()

    typer.echo(json.dumps(reply))


@app.command()
def notify(ctx: typer.Context, topic: str, message: str):
    """Publish MESSAGE (JSON) to TOPIC without waiting for a reply."""
    body = _parse_json(message)
    service = _create_service(ctx)
    try:
        service.notify(topic, body)
    except RMQServiceError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1)
    finally:
        service.close()


@app.command()
def serve(
    ctx: typer.Context,
    topics: list[str],
    queue: Annotated[
        str, typer.Option(envvar="RMQRPC_QUEUE", help="Service queue to consume")
    ] = "rmqrpc.echo",
    prefetch: Annotated[int, typer.Option(help="Channel prefetch count")] = 0,
    workers: Annotated[int, typer.Option(help="Handler threads")] = 1,
):
    """Answer requests on TOPICS by echoing their body back."""
    service = _create_service(
        ctx,
        queue_name=queue,
        subscriptions=list(topics),
        prefetch_count=prefetch,
        handler_workers=workers,
    )
    for topic in topics:
        service.register_route(topic, echo)

    try:
        service.init()
    except RMQServiceError as e:
        service.close()
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1)

    logger.info("Serving %s on queue %s", ", ".join(topics), queue)
    try:
        _wait_for_shutdown()
    finally:
        service.close()


@app.callback()
@rmq_params
def callback(
    ctx: typer.Context,
    exchange: ExchangeName = "rmqrpc",
    app_env: AppEnv = None,
    log_level: LogLevel = "INFO",
    json_logs: JsonLogs = False,
):
    configure_logging(
        app_name="rmqrpc",
        environment=app_env or "development",
        log_level=log_level,
        json_format=json_logs,
    )
    ctx.obj['exchange'] = exchange
    ctx.obj['app_env'] = app_env


if __name__ == "__main__":
    app()
