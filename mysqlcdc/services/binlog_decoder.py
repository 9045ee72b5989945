"""
Binlog stream decoder adapters for MySQL CDC sessions
"""

import threading
from abc import ABC, abstractmethod
from typing import Any, Callable, Optional

import pymysql
from pymysqlreplication import BinLogStreamReader
import structlog

from ..exceptions import ConnectionFault, DecoderFault
from ..models.config import ConnectionConfig, SessionConfig
from .connection_supervisor import SupervisedConnection, is_connection_lost

# Receives (error, event); exactly one of them is set
DecoderSink = Callable[[Optional[Exception], Any], None]

# Binlog files start with a 4 byte magic number
BINLOG_START_POSITION = 4


class BinlogDecoder(ABC):
    """Turns the replication protocol on a stream connection into decoded events"""

    def __init__(self, sink: DecoderSink):
        self.sink = sink

    @abstractmethod
    def start(self, stream_connection: SupervisedConnection) -> None:
        """Begin consuming the stream connection"""

    @abstractmethod
    def stop(self) -> None:
        """Stop delivering events. Must not close the stream connection."""


class ReplicationStreamDecoder(BinlogDecoder):
    """
    BinlogDecoder backed by pymysqlreplication's BinLogStreamReader

    use_checksum is the session's negotiated value and is only reported.
    BinLogStreamReader does not take it: before the dump it runs its own
    SHOW GLOBAL VARIABLES LIKE 'BINLOG_CHECKSUM' and sets
    @master_binlog_checksum on the same stream connection.
    """

    def __init__(self, sink: DecoderSink, connection_config: ConnectionConfig,
                 session_config: SessionConfig, use_checksum: bool = False,
                 reader_factory: Callable[..., Any] = BinLogStreamReader,
                 connect: Callable[..., pymysql.Connection] = None,
                 resume_poll_interval: float = 0.5):
        super().__init__(sink)
        self.connection_config = connection_config
        self.session_config = session_config
        self.use_checksum = use_checksum
        self.resume_poll_interval = resume_poll_interval
        self._reader_factory = reader_factory
        self._connect_func = connect or pymysql.connect

        self._stream: Optional[SupervisedConnection] = None
        self._reader = None
        self._stream_handed_over = False
        self._thread: Optional[threading.Thread] = None
        self._stop_requested = threading.Event()
        self.logger = structlog.get_logger()

    def _connect(self, **settings) -> pymysql.Connection:
        """pymysql_wrapper for the reader: reuse the supervised stream connection"""
        if self._stop_requested.is_set():
            raise ConnectionFault("Decoder stopped")
        if settings.get('db') == 'information_schema':
            # the reader's own metadata connection
            return self._connect_func(**settings)
        if self._stream_handed_over:
            # the supervised stream is gone, the session has to decide what to do
            raise ConnectionFault("Stream connection lost")
        self._stream_handed_over = True
        return self._stream.raw

    def _build_reader(self):
        session = self.session_config
        log_pos = session.position
        if log_pos is None and session.filename is not None:
            log_pos = BINLOG_START_POSITION

        return self._reader_factory(
            connection_settings=self.connection_config.to_connection_params(),
            server_id=session.server_id,
            log_file=session.filename,
            log_pos=log_pos,
            resume_stream=True,
            blocking=True,
            pymysql_wrapper=self._connect
        )

    def start(self, stream_connection: SupervisedConnection) -> None:
        if self._thread is not None:
            raise DecoderFault("Decoder already started")
        self._stream = stream_connection
        self._reader = self._build_reader()

        self._thread = threading.Thread(target=self._run, name="binlog_decoder")
        self._thread.daemon = True
        self._thread.start()

        self.logger.info("Binlog decoder started",
                         server_id=self.session_config.server_id,
                         log_file=self.session_config.filename,
                         log_pos=self.session_config.position,
                         use_checksum=self.use_checksum)

    def stop(self) -> None:
        self._stop_requested.set()

    def join(self, timeout: float = 5.0) -> None:
        """Wait for the reader thread, unless called from it"""
        thread = self._thread
        if thread is None or thread is threading.current_thread():
            return
        thread.join(timeout=timeout)
        if thread.is_alive():
            self.logger.warning("Binlog decoder thread did not stop gracefully")

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def _run(self) -> None:
        try:
            while not self._stop_requested.is_set():
                if not self._stream.wait_until_resumed(self.resume_poll_interval):
                    continue
                if self._stop_requested.is_set():
                    break

                try:
                    event = self._reader.fetchone()
                except Exception as e:
                    if self._stop_requested.is_set():
                        self.logger.debug("Stream error during shutdown, ignoring", error=str(e))
                        break
                    if is_connection_lost(e):
                        self._emit(ConnectionFault(f"Binlog stream connection lost: {e}"), None)
                        break
                    self._emit(DecoderFault(f"Failed to decode binlog event: {e}"), None)
                    continue

                if event is None:
                    if not self._stop_requested.is_set():
                        self._emit(ConnectionFault("Binlog stream closed by server"), None)
                    break
                self._emit(None, event)
        finally:
            self._close_reader()

    def _emit(self, error: Optional[Exception], event: Any) -> None:
        if self._stop_requested.is_set():
            return
        try:
            self.sink(error, event)
        except Exception as e:
            self.logger.error("Error in decoder sink", error=str(e))

    def _close_reader(self) -> None:
        try:
            if self._reader is not None:
                self._reader.close()
        except Exception as e:
            self.logger.debug("Error closing binlog reader (expected during cleanup)", error=str(e))
