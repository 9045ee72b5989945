"""
Session, metadata and notification models for MySQL CDC sessions
"""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class SessionState(Enum):
    """Lifecycle states of a binlog session"""
    CREATED = "created"
    NEGOTIATING = "negotiating"
    STREAMING = "streaming"
    STOPPING = "stopping"
    STOPPED = "stopped"

    @property
    def is_terminal(self) -> bool:
        """Check if the session is stopping or stopped"""
        return self in (SessionState.STOPPING, SessionState.STOPPED)


@dataclass(frozen=True)
class BinlogPosition:
    """Byte offset within a named binlog file"""
    filename: str
    position: int


@dataclass(frozen=True)
class ColumnSchema:
    """Column metadata from INFORMATION_SCHEMA.COLUMNS"""
    name: str
    collation: Optional[str] = None
    character_set: Optional[str] = None
    comment: Optional[str] = None
    type: Optional[str] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> 'ColumnSchema':
        """Build from a catalog row"""
        return cls(
            name=row['COLUMN_NAME'],
            collation=row.get('COLLATION_NAME'),
            character_set=row.get('CHARACTER_SET_NAME'),
            comment=row.get('COLUMN_COMMENT'),
            type=row.get('COLUMN_TYPE')
        )


@dataclass
class TableMetadataEntry:
    """Column layout of the table currently mapped to a table id"""
    schema_name: str
    table_name: str
    column_schemas: List[ColumnSchema] = field(default_factory=list)

    @property
    def column_names(self) -> List[str]:
        return [column.name for column in self.column_schemas]


class NotificationType(Enum):
    """Kinds of notifications a session emits"""
    READY = "ready"
    BINLOG = "binlog"
    ERROR = "error"
    STOPPED = "stopped"


@dataclass
class Notification:
    """Single notification delivered to the session consumer"""
    notification_type: NotificationType
    event: Any = None
    table: Optional[TableMetadataEntry] = None
    error: Optional[Exception] = None
    timestamp: float = None

    def __post_init__(self):
        if self.timestamp is None:
            self.timestamp = time.time()
