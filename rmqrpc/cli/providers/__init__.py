"""CLI providers for service dependencies.

Each provider module exports:
- Type aliases: Annotated types for Typer CLI parameters
- Context class: Dataclass holding the provider's configuration
- Decorator: Injects the provider's options into a Typer callback

Available providers:
- rabbitmq: RabbitMQ broker endpoint
"""
