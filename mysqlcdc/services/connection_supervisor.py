"""
Connection supervisor for MySQL CDC sessions
Owns the control and stream connections of one session
"""

import threading
from typing import Any, Callable, Dict, List, Optional, Tuple

import pymysql
import pymysql.err
from pymysql.cursors import DictCursor
import structlog

from ..exceptions import ConnectionFault
from ..models.config import ConnectionConfig
from ..utils.retry import RetryConfig, retry

# 2003 Can't connect to MySQL server
# 2006 MySQL server has gone away
# 2013 Lost connection to MySQL server during query
# 2055 Lost connection to MySQL server at '...', system error
CONNECTION_LOST_CODES = frozenset([2003, 2006, 2013, 2055])


def error_code(error: Exception) -> Optional[int]:
    """Extract the MySQL error code from a driver exception"""
    if isinstance(error, pymysql.err.MySQLError) and error.args and isinstance(error.args[0], int):
        return error.args[0]
    return None


def is_connection_lost(error: Exception) -> bool:
    """Check if the error means the underlying socket is gone"""
    if isinstance(error, ConnectionFault):
        return True
    if isinstance(error, pymysql.err.InterfaceError):
        return True
    if isinstance(error, (OSError, EOFError)):
        return True
    return error_code(error) in CONNECTION_LOST_CODES


class SupervisedConnection:
    """PyMySQL connection with error forwarding and flow control"""

    def __init__(self, name: str, raw: pymysql.Connection, owned: bool = True,
                 on_error: Callable[[Exception], None] = None):
        self.name = name
        self.raw = raw
        self.owned = owned
        self._on_error = on_error
        self._thread_id = self._read_thread_id(raw)
        self._destroyed = False
        self._failed = False
        self._lock = threading.Lock()
        # one in-flight query per connection
        self._query_lock = threading.Lock()
        # set = flowing, cleared = paused
        self._flowing = threading.Event()
        self._flowing.set()
        self.logger = structlog.get_logger()

    @staticmethod
    def _read_thread_id(raw: pymysql.Connection) -> Optional[int]:
        try:
            return raw.thread_id()
        except Exception:
            return None

    @property
    def thread_id(self) -> Optional[int]:
        """Server-side thread id captured when the connection was opened"""
        return self._thread_id

    @property
    def destroyed(self) -> bool:
        return self._destroyed

    @property
    def failed(self) -> bool:
        """True once a query on this connection hit a transport error"""
        return self._failed

    def query(self, sql: str, args: Any = None, lock_timeout: float = -1) -> List[Dict[str, Any]]:
        """
        Run one statement and return its rows as dictionaries

        Args:
            sql: Statement to execute
            args: Statement parameters
            lock_timeout: Seconds to wait for a concurrent query to finish,
                -1 waits forever
        """
        if self._destroyed:
            raise ConnectionFault(f"{self.name} connection is closed")
        if not self._query_lock.acquire(timeout=lock_timeout):
            raise ConnectionFault(f"{self.name} connection is busy")
        try:
            with self.raw.cursor(DictCursor) as cursor:
                cursor.execute(sql, args)
                return list(cursor.fetchall())
        except Exception as e:
            if not is_connection_lost(e):
                raise
            self._failed = True
            cause = e
        finally:
            self._query_lock.release()

        # reported with the lock released: the handler may stop the session,
        # and teardown queries this connection from the same thread
        fault = ConnectionFault(f"{self.name} connection failed: {cause}")
        self._report(fault)
        raise fault from cause

    def _report(self, error: Exception) -> None:
        if self._on_error is None or self._destroyed:
            return
        try:
            self._on_error(error)
        except Exception as e:
            self.logger.error("Connection error handler failed",
                              connection=self.name, error=str(e))

    def pause(self) -> None:
        """Stop handing events to the stream consumer"""
        self._flowing.clear()

    def resume(self) -> None:
        """Let the stream consumer continue"""
        self._flowing.set()

    @property
    def paused(self) -> bool:
        return not self._flowing.is_set()

    def wait_until_resumed(self, timeout: float = None) -> bool:
        """Block while paused. Returns False if still paused after timeout."""
        return self._flowing.wait(timeout)

    def destroy(self) -> None:
        """Forcibly close the socket. Safe to call more than once."""
        with self._lock:
            if self._destroyed:
                return
            self._destroyed = True
        # unblock anyone waiting on a paused stream
        self._flowing.set()
        try:
            if self.raw.open:
                # no COM_QUIT: another thread may be blocked reading this socket
                self.raw._force_close()
        except Exception as e:
            self.logger.debug("Error destroying connection (expected during cleanup)",
                              connection=self.name, error=str(e))


class ConnectionSupervisor:
    """Creates and tears down the control/stream connection pair"""

    def __init__(self, config: ConnectionConfig, control_connection: pymysql.Connection = None,
                 on_error: Callable[[Exception], None] = None, retry_config: RetryConfig = None,
                 connect: Callable[..., pymysql.Connection] = None):
        self.config = config
        self.on_error = on_error
        self.retry_config = retry_config or RetryConfig(max_attempts=3, base_delay=1.0)
        self._connect_func = connect or pymysql.connect
        self._external_control = control_connection
        self.kill_timeout = 5.0

        self.control: Optional[SupervisedConnection] = None
        self.stream: Optional[SupervisedConnection] = None
        self._closed = False
        self._lock = threading.Lock()
        self.logger = structlog.get_logger()

    def _forward_error(self, error: Exception) -> None:
        if self._closed:
            # teardown noise, e.g. the KILL racing the stream socket
            return
        if self.on_error is not None:
            self.on_error(error)

    def _connect(self, name: str) -> pymysql.Connection:
        """Open a raw connection. PyMySQL negotiates auth plugins on its own."""
        try:
            return self._connect_func(**self.config.to_connection_params())
        except Exception as e:
            self.logger.warning("Failed to open connection",
                                connection=name, host=self.config.host, error=str(e))
            raise ConnectionFault(f"Failed to open {name} connection: {e}") from e

    def open(self) -> Tuple[SupervisedConnection, SupervisedConnection]:
        """Open the control and stream connections"""
        with self._lock:
            if self.control is not None and self.stream is not None:
                return self.control, self.stream
            if self._closed:
                raise ConnectionFault("Connection supervisor already closed")

        connect = retry(self.retry_config)(self._connect)

        if self._external_control is not None:
            control = SupervisedConnection("control", self._external_control, owned=False,
                                           on_error=self._forward_error)
        else:
            control = SupervisedConnection("control", connect("control"),
                                           on_error=self._forward_error)
        try:
            stream = SupervisedConnection("stream", connect("stream"),
                                          on_error=self._forward_error)
        except ConnectionFault:
            if control.owned:
                control.destroy()
            raise

        with self._lock:
            self.control, self.stream = control, stream
            closed = self._closed
        if closed:
            # close() ran while we were connecting
            self._teardown(control, stream)
            raise ConnectionFault("Connection supervisor closed while opening")

        self.logger.info("Connections opened",
                         host=self.config.host,
                         port=self.config.port,
                         control_thread_id=control.thread_id,
                         stream_thread_id=stream.thread_id,
                         control_owned=control.owned)
        return control, stream

    def close(self) -> None:
        """Tear down both connections. Never raises."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            control, stream = self.control, self.stream
        self._teardown(control, stream)

    def _teardown(self, control: Optional[SupervisedConnection],
                  stream: Optional[SupervisedConnection]) -> None:
        if stream is not None:
            stream.destroy()

            if control is not None and not (control.destroyed or control.failed) \
                    and stream.thread_id is not None:
                try:
                    control.query(f"KILL {int(stream.thread_id)}", lock_timeout=self.kill_timeout)
                except Exception as e:
                    # the thread is usually gone already
                    self.logger.debug("Failed to kill stream thread",
                                      thread_id=stream.thread_id, error=str(e))

        if control is not None and control.owned:
            control.destroy()

        self.logger.info("Connections closed")
