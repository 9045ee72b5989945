"""
Tail position lookup for MySQL CDC sessions
"""

from typing import Optional

import structlog

from ..exceptions import NegotiationFault
from ..models.events import BinlogPosition
from ..utils.cancellation import CancellationToken
from .connection_supervisor import SupervisedConnection

SHOW_BINARY_LOGS_SQL = "SHOW BINARY LOGS"


class PositionResolver:
    """Finds the current end of the binlog"""

    def __init__(self):
        self.logger = structlog.get_logger()

    def resolve_tail_position(self, control: SupervisedConnection,
                              token: CancellationToken = None) -> Optional[BinlogPosition]:
        """
        Return the last binlog file and its size, or None if the server lists no files

        SHOW BINARY LOGS returns files in creation order, so the last row is the
        file currently being written.
        """
        token = token or CancellationToken()
        if token.cancelled:
            return None

        try:
            rows = control.query(SHOW_BINARY_LOGS_SQL)
        except Exception as e:
            if token.cancelled:
                return None
            raise NegotiationFault(f"Failed to list binary logs: {e}") from e

        if token.cancelled or not rows:
            return None

        last = rows[-1]
        position = BinlogPosition(filename=last['Log_name'], position=int(last['File_size']))
        self.logger.info("Resolved binlog tail position",
                         filename=position.filename, position=position.position,
                         binlog_files=len(rows))
        return position
