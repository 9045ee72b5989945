"""
Configuration models for MySQL CDC sessions
"""

from dataclasses import dataclass, field, fields
from typing import Dict, Any, Optional

from ..exceptions import ConfigurationError
from .filters import FilterPolicy


# camelCase option names accepted next to the snake_case ones
OPTION_ALIASES = {
    'serverId': 'server_id',
    'startAtEnd': 'start_at_end',
    'includeEvents': 'include_events',
    'excludeEvents': 'exclude_events',
    'includeSchema': 'include_schema',
    'excludeSchema': 'exclude_schema',
}


def normalize_option_name(name: str) -> str:
    """Map a camelCase option name to its snake_case form"""
    return OPTION_ALIASES.get(name, name)


def normalize_options(options: Dict[str, Any]) -> Dict[str, Any]:
    """Return a copy of options with every key in snake_case"""
    return {normalize_option_name(key): value for key, value in options.items()}


@dataclass
class ConnectionConfig:
    """Source database connection configuration"""
    host: str
    port: int = 3306
    user: str = ""
    password: str = ""
    charset: str = "utf8mb4"
    connect_timeout: int = 10
    read_timeout: Optional[int] = None

    def __post_init__(self):
        """Validate configuration after initialization"""
        if not self.host:
            raise ConfigurationError("Host is required")
        if not self.user:
            raise ConfigurationError("User is required")
        if not (1 <= self.port <= 65535):
            raise ConfigurationError("Port must be between 1 and 65535")

    def to_connection_params(self) -> Dict[str, Any]:
        """Convert to pymysql connection parameters"""
        params = {
            'host': self.host,
            'port': self.port,
            'user': self.user,
            'password': self.password,
            'charset': self.charset,
            'connect_timeout': self.connect_timeout,
            'autocommit': True,
        }
        if self.read_timeout is not None:
            params['read_timeout'] = self.read_timeout
        return params


@dataclass
class SessionConfig:
    """Replication registration and resume coordinates"""
    server_id: int = 1
    filename: Optional[str] = None
    position: Optional[int] = None
    start_at_end: bool = False

    def __post_init__(self):
        """Validate configuration after initialization"""
        if self.server_id is None or self.server_id <= 0:
            raise ConfigurationError("Server ID must be positive")
        if self.position is not None and self.position < 0:
            raise ConfigurationError("Position must not be negative")

    @classmethod
    def from_options(cls, options: Dict[str, Any], base: 'SessionConfig' = None) -> 'SessionConfig':
        """Merge session options on top of an optional base config"""
        options = normalize_options(options)
        values = {}
        for f in fields(cls):
            if options.get(f.name) is not None:
                values[f.name] = options[f.name]
            elif base is not None:
                values[f.name] = getattr(base, f.name)
        return cls(**values)

    def get(self, name: str) -> Any:
        """Get option value by snake_case or camelCase name"""
        name = normalize_option_name(name)
        if name not in {f.name for f in fields(self)}:
            return None
        return getattr(self, name)


@dataclass
class LoggingConfig:
    """Logging configuration"""
    level: str = "INFO"
    format: str = "json"

    def __post_init__(self):
        """Validate configuration after initialization"""
        if self.format not in ("json", "console"):
            raise ConfigurationError(f"Unsupported log format: {self.format}")


@dataclass
class CDCConfig:
    """Main CDC configuration"""
    connection: ConnectionConfig
    session: SessionConfig = field(default_factory=SessionConfig)
    filters: FilterPolicy = field(default_factory=FilterPolicy)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_dict(cls, config_dict: Dict[str, Any]) -> 'CDCConfig':
        """Create CDCConfig from dictionary"""
        if not isinstance(config_dict, dict):
            raise ConfigurationError("Configuration must be a dictionary")
        try:
            connection_data = config_dict['connection']
            if not isinstance(connection_data, dict):
                raise ConfigurationError("Connection must be a dictionary")

            return cls(
                connection=ConnectionConfig(**connection_data),
                session=SessionConfig.from_options(config_dict.get('session') or {}),
                filters=FilterPolicy.from_options(**normalize_options(config_dict.get('filters') or {})),
                logging=LoggingConfig(**(config_dict.get('logging') or {}))
            )
        except KeyError as e:
            raise ConfigurationError(f"Missing required configuration key: {e}")
        except TypeError as e:
            raise ConfigurationError(f"Invalid configuration format: {e}")
