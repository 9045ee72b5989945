"""
Logging utilities for MySQL CDC sessions
"""

import logging
import sys
from typing import List

import structlog

from ..models.config import LoggingConfig

# Third-party loggers that are chatty at INFO while a stream is running
NOISY_LOGGERS = ("pymysqlreplication", "pymysql")


def _processors(format_type: str) -> List:
    processors = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.CallsiteParameterAdder(
            parameters=[
                structlog.processors.CallsiteParameter.THREAD_NAME,
                structlog.processors.CallsiteParameter.FUNC_NAME,
            ]
        ),
    ]

    if format_type == "json":
        # decoded events carry bytes, datetimes and Decimals
        processors.append(structlog.processors.JSONRenderer(default=str))
    else:
        processors.append(structlog.dev.ConsoleRenderer())
    return processors


def setup_logging(level: str = "INFO", format_type: str = "json") -> None:
    """
    Setup structured logging for the application

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        format_type: Output format (json, console)
    """
    structlog.configure(
        processors=_processors(format_type),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    log_level = getattr(logging, level.upper(), logging.INFO)

    logging.basicConfig(
        level=log_level,
        format='%(message)s',
        handlers=[
            logging.StreamHandler(sys.stdout)
        ]
    )

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(log_level, logging.WARNING))


def setup_logging_from_config(config: LoggingConfig) -> None:
    """Apply the logging section of a CDC configuration"""
    setup_logging(level=config.level, format_type=config.format)


def get_logger(name: str = None, **context) -> structlog.BoundLogger:
    """
    Get a structured logger instance

    Args:
        name: Logger name. If None, uses the calling module name.
        **context: Key/value pairs added to every line of this logger,
            e.g. the source host of a session

    Returns:
        Structured logger instance
    """
    logger = structlog.get_logger(name)
    if context:
        logger = logger.bind(**context)
    return logger
