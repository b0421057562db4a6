"""Command line interface: send, notify and serve over RabbitMQ."""
