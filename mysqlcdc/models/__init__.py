"""
Data models for MySQL CDC sessions
"""

from .config import (
    ConnectionConfig,
    SessionConfig,
    LoggingConfig,
    CDCConfig
)
from .filters import (
    SchemaRule,
    SchemaRuleKind,
    FilterPolicy
)
from .events import (
    SessionState,
    BinlogPosition,
    ColumnSchema,
    TableMetadataEntry,
    Notification,
    NotificationType
)

__all__ = [
    'ConnectionConfig',
    'SessionConfig',
    'LoggingConfig',
    'CDCConfig',
    'SchemaRule',
    'SchemaRuleKind',
    'FilterPolicy',
    'SessionState',
    'BinlogPosition',
    'ColumnSchema',
    'TableMetadataEntry',
    'Notification',
    'NotificationType'
]
