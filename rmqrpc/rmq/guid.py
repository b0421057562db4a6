"""Correlation id generation."""

import uuid


def generate_correlation_id() -> str:
    """Return a new random correlation id (UUID4, canonical hex form)."""
    return str(uuid.uuid4())
