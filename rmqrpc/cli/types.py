"""Common CLI parameter types."""

from typing import Annotated, Optional

import typer

# Application environment (dev, staging, prod, etc.)
AppEnv = Annotated[Optional[str], typer.Option(envvar="APP_ENV")]

LogLevel = Annotated[str, typer.Option(envvar="LOG_LEVEL", help="Root log level")]

JsonLogs = Annotated[
    bool, typer.Option(envvar="RMQRPC_JSON_LOGS", help="Emit JSON log lines")
]

ExchangeName = Annotated[
    str, typer.Option(envvar="RMQRPC_EXCHANGE", help="Topic exchange to publish to")
]
