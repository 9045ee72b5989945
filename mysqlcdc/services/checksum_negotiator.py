"""
Binlog checksum negotiation for MySQL CDC sessions
"""

import structlog

from ..exceptions import NegotiationFault
from ..utils.cancellation import CancellationToken
from .connection_supervisor import SupervisedConnection, error_code

SELECT_CHECKSUM_SQL = "SELECT @@GLOBAL.binlog_checksum AS checksum"
SET_CHECKSUM_SQL = "SET @master_binlog_checksum = @@global.binlog_checksum"
NOOP_SQL = "SELECT 1"

# ER_UNKNOWN_SYSTEM_VARIABLE, servers older than 5.6.2 have no binlog_checksum
ER_UNKNOWN_SYSTEM_VARIABLE = 1193


class ChecksumNegotiator:
    """Decides whether the stream carries checksummed events and tells the server"""

    def __init__(self):
        self.logger = structlog.get_logger()

    def negotiate(self, control: SupervisedConnection, stream: SupervisedConnection,
                  token: CancellationToken = None) -> bool:
        """
        Query the global checksum setting and configure the stream connection

        Args:
            control: Connection used for the variable lookup
            stream: Connection the replication protocol will run over
            token: Cancellation token checked after every round-trip

        Returns:
            bool: True if the stream must be read checksum-aware

        Raises:
            NegotiationFault: If a query fails for any reason other than the
                server not knowing the checksum variable
        """
        token = token or CancellationToken()
        if token.cancelled:
            return False

        try:
            rows = control.query(SELECT_CHECKSUM_SQL)
            checksum = rows[0]['checksum'] if rows else 'NONE'
        except Exception as e:
            if token.cancelled:
                return False
            if error_code(e) != ER_UNKNOWN_SYSTEM_VARIABLE:
                raise NegotiationFault(f"Failed to query binlog checksum setting: {e}") from e
            self.logger.info("Server has no binlog_checksum variable, checksum disabled")
            checksum = 'NONE'

        if token.cancelled:
            return False

        enabled = checksum != 'NONE'
        try:
            if enabled:
                stream.query(SET_CHECKSUM_SQL)
            else:
                stream.query(NOOP_SQL)
        except Exception as e:
            if token.cancelled:
                return False
            raise NegotiationFault(f"Failed to configure binlog checksum on stream connection: {e}") from e

        self.logger.info("Binlog checksum negotiated", checksum=checksum, enabled=enabled)
        return enabled
