"""
Custom exceptions for MySQL CDC sessions
"""


class CDCException(Exception):
    """Base exception for CDC operations"""
    pass


class ConfigurationError(CDCException):
    """Configuration related errors"""
    pass


class SessionError(CDCException):
    """Lifecycle misuse, e.g. starting a session twice"""
    pass


class ConnectionFault(CDCException):
    """Transport-level failure on the control or stream connection"""
    pass


class NegotiationFault(CDCException):
    """Checksum negotiation or tail position lookup failed"""
    pass


class MetadataFault(CDCException):
    """Table metadata is unavailable (missing privilege or dropped table)"""

    def __init__(self, message: str, schema_name: str = None, table_name: str = None):
        super().__init__(message)
        self.schema_name = schema_name
        self.table_name = table_name


class DecoderFault(CDCException):
    """Error reported by the binlog stream decoder"""
    pass
