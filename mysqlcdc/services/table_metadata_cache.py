"""
Table metadata cache for MySQL CDC sessions
"""

import threading
from typing import Dict, Optional

import structlog

from ..exceptions import MetadataFault
from ..models.events import ColumnSchema, TableMetadataEntry
from .connection_supervisor import SupervisedConnection

TABLE_INFO_SQL = """
    SELECT
        COLUMN_NAME, COLLATION_NAME, CHARACTER_SET_NAME,
        COLUMN_COMMENT, COLUMN_TYPE
    FROM
        INFORMATION_SCHEMA.COLUMNS
    WHERE
        TABLE_SCHEMA = %s AND TABLE_NAME = %s
    ORDER BY ORDINAL_POSITION
"""


class TableMetadataCache:
    """
    Column schemas keyed by the server's numeric table id.

    Table ids are reused by the server after schema changes, so an entry is
    simply overwritten by the next table-map event for the same id. Row
    events always follow their table-map event, which keeps the cache
    current without any eviction.
    """

    def __init__(self):
        self._entries: Dict[int, TableMetadataEntry] = {}
        self._lock = threading.Lock()
        self.logger = structlog.get_logger()

    def resolve(self, table_id: int, schema_name: str, table_name: str,
                control: SupervisedConnection) -> TableMetadataEntry:
        """
        Fetch the column layout of a table and store it under table_id

        Raises:
            MetadataFault: If the catalog returns no columns
        """
        rows = control.query(TABLE_INFO_SQL, (schema_name, table_name))
        if not rows:
            raise MetadataFault(
                f"Insufficient permissions to access [{schema_name}.{table_name}], "
                f"or the table has been dropped.",
                schema_name=schema_name,
                table_name=table_name
            )

        entry = TableMetadataEntry(
            schema_name=schema_name,
            table_name=table_name,
            column_schemas=[ColumnSchema.from_row(row) for row in rows]
        )
        with self._lock:
            previous = self._entries.get(table_id)
            self._entries[table_id] = entry

        if previous is not None and (previous.schema_name, previous.table_name) != (schema_name, table_name):
            self.logger.debug("Table id remapped",
                              table_id=table_id,
                              previous=f"{previous.schema_name}.{previous.table_name}",
                              current=f"{schema_name}.{table_name}")
        return entry

    def get(self, table_id: int) -> Optional[TableMetadataEntry]:
        with self._lock:
            return self._entries.get(table_id)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __contains__(self, table_id: int) -> bool:
        with self._lock:
            return table_id in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
