"""
Services for MySQL CDC sessions
"""

from .config_service import ConfigService
from .connection_supervisor import ConnectionSupervisor, SupervisedConnection
from .checksum_negotiator import ChecksumNegotiator
from .position_resolver import PositionResolver
from .table_metadata_cache import TableMetadataCache
from .filter_service import FilterService, event_name
from .notification_channel import NotificationChannel
from .binlog_decoder import BinlogDecoder, ReplicationStreamDecoder
from .metrics_service import MetricsService
from .session import BinlogSession

__all__ = [
    'ConfigService',
    'ConnectionSupervisor',
    'SupervisedConnection',
    'ChecksumNegotiator',
    'PositionResolver',
    'TableMetadataCache',
    'FilterService',
    'event_name',
    'NotificationChannel',
    'BinlogDecoder',
    'ReplicationStreamDecoder',
    'MetricsService',
    'BinlogSession'
]
