"""
Utilities for MySQL CDC sessions
"""

from .retry import retry, RetryConfig
from .logger import setup_logging, setup_logging_from_config, get_logger
from .cancellation import CancellationToken

__all__ = [
    'retry',
    'RetryConfig',
    'setup_logging',
    'setup_logging_from_config',
    'get_logger',
    'CancellationToken'
]
