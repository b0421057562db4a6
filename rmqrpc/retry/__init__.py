"""
Retry utilities for handling transient failures.

This module provides a decorator and helpers for retrying operations
that may fail due to transient issues like broker restarts or
network errors.
"""

from rmqrpc.retry.retry import (
    RetryConfig,
    retry,
    is_transient_rmq_error,
)

__all__ = [
    "RetryConfig",
    "retry",
    "is_transient_rmq_error",
]
