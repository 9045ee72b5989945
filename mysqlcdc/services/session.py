"""
Binlog session orchestrator for MySQL CDC
Negotiates with the source, supervises both connections and filters decoded events
"""

import threading
import time
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import replace
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

import pymysql

from ..exceptions import CDCException, ConnectionFault, DecoderFault, MetadataFault, SessionError
from ..models.config import ConnectionConfig, SessionConfig, normalize_options
from ..models.events import BinlogPosition, SessionState, TableMetadataEntry
from ..models.filters import FilterPolicy
from ..utils.cancellation import CancellationToken
from ..utils.logger import get_logger
from ..utils.retry import RetryConfig
from .binlog_decoder import BinlogDecoder, DecoderSink, ReplicationStreamDecoder
from .checksum_negotiator import ChecksumNegotiator
from .connection_supervisor import ConnectionSupervisor, SupervisedConnection, is_connection_lost
from .filter_service import FilterService, event_name
from .metrics_service import MetricsService
from .notification_channel import NotificationChannel
from .position_resolver import PositionResolver
from .table_metadata_cache import TableMetadataCache

TABLE_MAP_EVENT = "TableMap"

DecoderFactory = Callable[[DecoderSink, ConnectionConfig, SessionConfig, bool], BinlogDecoder]


class BinlogSession:
    """
    One replication session against a MySQL source.

    Lifecycle: CREATED -> NEGOTIATING -> STREAMING, and from anywhere
    -> STOPPING -> STOPPED. stop() may be called from any thread at any time;
    operations in flight notice it through the session's cancellation token
    and never move the session back out of STOPPING/STOPPED.
    """

    def __init__(self, connection_config: ConnectionConfig,
                 control_connection: pymysql.Connection = None,
                 decoder_factory: DecoderFactory = None,
                 supervisor: ConnectionSupervisor = None,
                 notifications: NotificationChannel = None,
                 metrics_service: Optional[MetricsService] = None,
                 retry_config: RetryConfig = None):
        self.logger = get_logger(source=f"{connection_config.host}:{connection_config.port}")
        self.connection_config = connection_config

        self.notifications = notifications or NotificationChannel()
        self.metrics_service = metrics_service
        self.table_map = TableMetadataCache()
        self.filters = FilterService()
        self.options = SessionConfig()
        self.use_checksum = False

        self._supervisor = supervisor or ConnectionSupervisor(
            connection_config,
            control_connection=control_connection,
            retry_config=retry_config
        )
        self._supervisor.on_error = self._on_connection_error
        self._negotiator = ChecksumNegotiator()
        self._position_resolver = PositionResolver()
        self._decoder_factory = decoder_factory or ReplicationStreamDecoder
        self._decoder: Optional[BinlogDecoder] = None

        self._token = CancellationToken()
        self._state = SessionState.CREATED
        self._state_lock = threading.RLock()
        self._stopped = threading.Event()

        self._stats = {
            'events_received': 0,
            'events_forwarded': 0,
            'events_skipped': 0,
            'errors_count': 0,
            'last_event_time': None,
        }
        self._stats_lock = threading.Lock()

        if self.metrics_service:
            self.metrics_service.record_state(self._state)

    # === state ===

    @property
    def state(self) -> SessionState:
        with self._state_lock:
            return self._state

    @property
    def stopped(self) -> bool:
        return self.state.is_terminal

    def _set_state(self, state: SessionState) -> bool:
        """Move to a new state; a stopping or stopped session only moves forward"""
        with self._state_lock:
            if not state.is_terminal and (self._state.is_terminal or self._token.cancelled):
                return False
            previous, self._state = self._state, state

        self.logger.debug("Session state changed", previous=previous.value, state=state.value)
        if self.metrics_service:
            self.metrics_service.record_state(state)
        return True

    # === configuration ===

    def get(self, name: Union[str, List[str]]) -> Any:
        """Read one option value, or a dict of values for a list of names"""
        if isinstance(name, str):
            return self.options.get(name)
        if isinstance(name, (list, tuple)):
            return {key: self.options.get(key) for key in name}
        return None

    # === lifecycle ===

    def start(self, **options) -> bool:
        """
        Negotiate with the source and begin streaming

        Accepts server_id, filename, position, start_at_end and the filter
        options include_events, exclude_events, include_schema and
        exclude_schema (camelCase spellings are accepted too).

        Returns:
            bool: True if the session is streaming, False if it was stopped
                before streaming began

        Raises:
            SessionError: If the session was already started
            ConnectionFault: If the connections could not be opened
            NegotiationFault: If checksum or tail position lookup failed
        """
        options = normalize_options(options)
        with self._state_lock:
            if self._state.is_terminal:
                self.logger.warning("Session already stopped, not starting")
                return False
            if self._state is not SessionState.CREATED:
                error = SessionError(f"Session already started (state: {self._state.value})")
                self._report_error(error)
                raise error

            self.options = SessionConfig.from_options(options)
            self.filters = FilterService(FilterPolicy.from_options(**options))
            self._set_state(SessionState.NEGOTIATING)

        self.logger.info("Starting binlog session",
                         server_id=self.options.server_id,
                         filename=self.options.filename,
                         position=self.options.position,
                         start_at_end=self.options.start_at_end)

        started = time.monotonic()
        try:
            control, stream = self._supervisor.open()
            if self._token.cancelled:
                return self._stopped_during_start()

            use_checksum, tail = self._negotiate(control, stream)
            if self._token.cancelled:
                return self._stopped_during_start()
        except Exception as e:
            if self._token.cancelled:
                self.logger.debug("Negotiation error after stop, ignoring", error=str(e))
                return self._stopped_during_start()
            self._report_error(e)
            raise

        if self.metrics_service:
            self.metrics_service.observe_negotiation(time.monotonic() - started)

        self.use_checksum = use_checksum
        if tail is not None:
            self.options = replace(self.options, filename=tail.filename, position=tail.position)

        with self._state_lock:
            if self._token.cancelled:
                return self._stopped_during_start()
            try:
                decoder = self._decoder_factory(self._on_decoded, self.connection_config,
                                                self.options, use_checksum)
                self._decoder = decoder
                decoder.start(stream)
            except Exception as e:
                error = e if isinstance(e, CDCException) else DecoderFault(f"Failed to start decoder: {e}")
                self._report_error(error)
                raise error from e
            self._set_state(SessionState.STREAMING)
            self.notifications.ready()

        self.logger.info("Binlog session streaming",
                         filename=self.options.filename,
                         position=self.options.position,
                         use_checksum=use_checksum)
        return True

    def _negotiate(self, control: SupervisedConnection,
                   stream: SupervisedConnection) -> Tuple[bool, Optional[BinlogPosition]]:
        """Run checksum negotiation and, for tail starts, position lookup concurrently"""
        with ThreadPoolExecutor(max_workers=2, thread_name_prefix="cdc_negotiation") as pool:
            checksum_future = pool.submit(self._negotiator.negotiate, control, stream, self._token)
            tail_future = None
            if self.options.start_at_end:
                tail_future = pool.submit(self._position_resolver.resolve_tail_position,
                                          control, self._token)

            # let every operation settle before looking at failures
            wait([future for future in (checksum_future, tail_future) if future is not None])

        use_checksum = checksum_future.result()
        tail = tail_future.result() if tail_future is not None else None
        return use_checksum, tail

    def _stopped_during_start(self) -> bool:
        self.logger.info("Session stopped before streaming began")
        return False

    def stop(self) -> None:
        """Tear down the session. Idempotent, never raises."""
        with self._state_lock:
            if self._state.is_terminal:
                return
            self._token.cancel()
            self._set_state(SessionState.STOPPING)
            decoder = self._decoder

        self.logger.info("Stopping binlog session")
        try:
            if decoder is not None:
                decoder.stop()
            self._supervisor.close()
            if decoder is not None and hasattr(decoder, 'join'):
                decoder.join()
        except Exception as e:
            self.logger.error("Error during session teardown", error=str(e))
        finally:
            self.table_map.clear()
            if self.metrics_service:
                self.metrics_service.record_table_metadata_entries(0)
            self._set_state(SessionState.STOPPED)
            self.notifications.stopped()
            self._stopped.set()
            self.logger.info("Binlog session stopped", **self.get_stats())

    def wait_stopped(self, timeout: float = None) -> bool:
        """Block until the session is stopped"""
        return self._stopped.wait(timeout)

    def pause(self) -> None:
        """Hold back further events from the stream connection"""
        stream = self._live_stream()
        if stream is not None:
            stream.pause()
            self.logger.info("Binlog session paused")

    def resume(self) -> None:
        """Continue reading from the stream connection"""
        stream = self._live_stream()
        if stream is not None:
            stream.resume()
            self.logger.info("Binlog session resumed")

    def _live_stream(self) -> Optional[SupervisedConnection]:
        with self._state_lock:
            if self._state.is_terminal:
                return None
            return self._supervisor.stream

    # === events ===

    def _on_connection_error(self, error: Exception) -> None:
        """Errors surfaced by either connection outside of a direct caller"""
        with self._state_lock:
            state = self._state
        if state is not SessionState.STREAMING:
            # before streaming start() raises it, after stop() it is expected
            self.logger.debug("Connection error outside streaming", state=state.value, error=str(error))
            return
        self._report_error(error)
        self.stop()

    def _on_decoded(self, error: Optional[Exception], event: Any) -> None:
        """Sink for the binlog decoder"""
        if error is not None:
            if is_connection_lost(error):
                if not isinstance(error, ConnectionFault):
                    error = ConnectionFault(str(error))
                self._on_connection_error(error)
            else:
                self._report_error(error if isinstance(error, CDCException) else DecoderFault(str(error)))
            return

        with self._state_lock:
            if self._state is not SessionState.STREAMING:
                return

        name = event_name(event)
        with self._stats_lock:
            self._stats['events_received'] += 1
            self._stats['last_event_time'] = time.time()
        if self.metrics_service:
            self.metrics_service.record_received(name)

        schema_name, table_name = self._event_table(event)
        if schema_name is not None and self.filters.skip_schema(schema_name, table_name):
            self._record_skipped(name, 'schema')
            return

        table = None
        if name == TABLE_MAP_EVENT:
            # resolved even when TableMap itself is filtered out, row events need it
            table = self._resolve_table(event, schema_name, table_name)
            if table is None:
                return
        elif getattr(event, 'table_id', None) is not None:
            table = self.table_map.get(event.table_id)

        if self.filters.skip_event(name):
            self._record_skipped(name, 'event')
            return

        self.notifications.binlog(event, table)
        with self._stats_lock:
            self._stats['events_forwarded'] += 1
        if self.metrics_service:
            self.metrics_service.record_forwarded(name)

    @staticmethod
    def _event_table(event: Any) -> Tuple[Optional[str], Optional[str]]:
        schema_name = getattr(event, 'schema', None)
        table_name = getattr(event, 'table', None)
        if isinstance(schema_name, str) and isinstance(table_name, str):
            return schema_name, table_name
        return None, None

    def _resolve_table(self, event: Any, schema_name: str, table_name: str) -> Optional[TableMetadataEntry]:
        control = self._supervisor.control
        try:
            entry = self.table_map.resolve(event.table_id, schema_name, table_name, control)
        except ConnectionFault as e:
            # already handled by the connection error path
            self.logger.debug("Metadata lookup lost the control connection", error=str(e))
            return None
        except MetadataFault as e:
            self.logger.warning("Table metadata unavailable",
                                table_id=event.table_id, schema=schema_name, table=table_name)
            self._report_error(e)
            return None
        except Exception as e:
            self._report_error(MetadataFault(
                f"Failed to fetch metadata for [{schema_name}.{table_name}]: {e}",
                schema_name=schema_name,
                table_name=table_name
            ))
            return None

        if self.metrics_service:
            self.metrics_service.record_table_metadata_entries(len(self.table_map))
        return entry

    def _record_skipped(self, name: str, reason: str) -> None:
        with self._stats_lock:
            self._stats['events_skipped'] += 1
        if self.metrics_service:
            self.metrics_service.record_skipped(name, reason)

    def _report_error(self, error: Exception) -> None:
        with self._stats_lock:
            self._stats['errors_count'] += 1
        if self.metrics_service:
            self.metrics_service.record_error(error)
        self.logger.error("Binlog session error", fault=type(error).__name__, error=str(error))
        self.notifications.error(error)

    def get_stats(self) -> Dict[str, Any]:
        """Get session statistics"""
        with self._stats_lock:
            stats = self._stats.copy()
        stats['state'] = self.state.value
        stats['table_map_size'] = len(self.table_map)
        return stats
