"""Utility module for logging, retries and text normalization."""

from .logger import configure_logging, get_logger, setup_logger
from .retry import RetryPolicy, linear_backoff

__all__ = [
    "RetryPolicy",
    "configure_logging",
    "get_logger",
    "linear_backoff",
    "setup_logger",
]
