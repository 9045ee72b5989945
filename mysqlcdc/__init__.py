"""
MySQL CDC - binlog session orchestration

Подключение к binlog MySQL с фильтрацией событий и кэшем метаданных таблиц.
"""

__version__ = "1.0.0"
__author__ = "Tumurzakov"
__email__ = "tumurzakov@example.com"

from .services.session import BinlogSession
from .models.config import ConnectionConfig, SessionConfig
from .models.events import Notification, NotificationType, SessionState
from .exceptions import CDCException

__all__ = [
    "BinlogSession",
    "ConnectionConfig",
    "SessionConfig",
    "Notification",
    "NotificationType",
    "SessionState",
    "CDCException",
    "__version__",
    "__author__",
    "__email__",
]
