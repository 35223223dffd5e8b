"""Utility functions for the harvester."""
from .logging_config import configure_logging
from .retry import get_with_retry, retry_call

__all__ = [
    # Logging
    'configure_logging',
    # Retry utilities
    'get_with_retry',
    'retry_call',
]
