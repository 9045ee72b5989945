"""
Retry utilities for MySQL CDC sessions
"""

import time
import random
from typing import Callable, Any, Type, Tuple
from functools import wraps
from dataclasses import dataclass

import structlog

from ..exceptions import ConnectionFault


@dataclass
class RetryConfig:
    """Configuration for retry mechanism"""
    max_attempts: int = 3
    base_delay: float = 1.0
    max_delay: float = 30.0
    exponential_base: float = 2.0
    jitter: bool = True
    retryable_exceptions: Tuple[Type[Exception], ...] = (ConnectionFault,)

    def delay_for(self, attempt: int) -> float:
        """Backoff before the attempt following the given zero-based one"""
        delay = min(self.base_delay * (self.exponential_base ** attempt), self.max_delay)
        if self.jitter:
            # spread reconnects of replicas restarted together
            delay *= (0.5 + random.random() * 0.5)
        return delay


def retry(config: RetryConfig = None):
    """
    Decorator for retrying function calls with exponential backoff

    Only config.retryable_exceptions are retried; anything else, and the
    last retryable failure, propagates to the caller.

    Args:
        config: Retry configuration. If None, uses default config.
    """
    if config is None:
        config = RetryConfig()

    def decorator(func: Callable) -> Callable:
        logger = structlog.get_logger()

        @wraps(func)
        def wrapper(*args, **kwargs) -> Any:
            for attempt in range(config.max_attempts):
                try:
                    return func(*args, **kwargs)
                except config.retryable_exceptions as e:
                    if attempt == config.max_attempts - 1:
                        raise

                    delay = config.delay_for(attempt)
                    logger.warning("Retrying after failure",
                                   function=getattr(func, "__name__", repr(func)),
                                   attempt=attempt + 1,
                                   max_attempts=config.max_attempts,
                                   delay=round(delay, 3),
                                   error=str(e))
                    time.sleep(delay)

        return wrapper
    return decorator

