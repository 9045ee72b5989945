"""
Unit tests for models
"""

import pytest

from mysqlcdc.models.config import (
    ConnectionConfig, SessionConfig, LoggingConfig, CDCConfig,
    normalize_option_name, normalize_options
)
from mysqlcdc.models.filters import FilterPolicy, SchemaRule, SchemaRuleKind
from mysqlcdc.models.events import (
    SessionState, BinlogPosition, ColumnSchema, TableMetadataEntry,
    Notification, NotificationType
)
from mysqlcdc.exceptions import ConfigurationError


class TestConnectionConfig:
    """Test ConnectionConfig model"""

    def test_valid_config(self):
        """Test valid connection configuration"""
        config = ConnectionConfig(host="localhost", port=3307, user="repl", password="secret")

        assert config.host == "localhost"
        assert config.port == 3307
        assert config.charset == "utf8mb4"
        assert config.read_timeout is None

    def test_missing_host(self):
        """Test empty host is rejected"""
        with pytest.raises(ConfigurationError, match="Host is required"):
            ConnectionConfig(host="", user="repl")

    def test_missing_user(self):
        """Test empty user is rejected"""
        with pytest.raises(ConfigurationError, match="User is required"):
            ConnectionConfig(host="localhost")

    def test_invalid_port(self):
        """Test out of range port"""
        with pytest.raises(ConfigurationError, match="Port must be between"):
            ConnectionConfig(host="localhost", user="repl", port=70000)

    def test_to_connection_params(self):
        """Test conversion to pymysql parameters"""
        config = ConnectionConfig(host="db", user="repl", password="secret", read_timeout=30)
        params = config.to_connection_params()

        assert params == {
            'host': 'db',
            'port': 3306,
            'user': 'repl',
            'password': 'secret',
            'charset': 'utf8mb4',
            'connect_timeout': 10,
            'autocommit': True,
            'read_timeout': 30,
        }

    def test_to_connection_params_without_read_timeout(self):
        """Test read_timeout is left out when unset"""
        params = ConnectionConfig(host="db", user="repl").to_connection_params()
        assert 'read_timeout' not in params


class TestSessionConfig:
    """Test SessionConfig model"""

    def test_defaults(self):
        """Test default session configuration"""
        config = SessionConfig()

        assert config.server_id == 1
        assert config.filename is None
        assert config.position is None
        assert config.start_at_end is False

    def test_invalid_server_id(self):
        """Test non-positive server id"""
        with pytest.raises(ConfigurationError, match="Server ID must be positive"):
            SessionConfig(server_id=0)

    def test_negative_position(self):
        """Test negative position"""
        with pytest.raises(ConfigurationError, match="Position must not be negative"):
            SessionConfig(position=-1)

    def test_from_options_accepts_camel_case(self):
        """Test camelCase option names"""
        config = SessionConfig.from_options({
            'serverId': 42,
            'filename': 'mysql-bin.000002',
            'position': 120,
            'startAtEnd': True,
            'includeEvents': ['WriteRows'],
        })

        assert config.server_id == 42
        assert config.filename == 'mysql-bin.000002'
        assert config.position == 120
        assert config.start_at_end is True

    def test_from_options_merges_over_base(self):
        """Test unset options keep the base values"""
        base = SessionConfig(server_id=7, filename='mysql-bin.000001', position=4)
        config = SessionConfig.from_options({'position': 900}, base=base)

        assert config.server_id == 7
        assert config.filename == 'mysql-bin.000001'
        assert config.position == 900

    def test_get(self):
        """Test reading options by either spelling"""
        config = SessionConfig(server_id=5, start_at_end=True)

        assert config.get('server_id') == 5
        assert config.get('serverId') == 5
        assert config.get('startAtEnd') is True
        assert config.get('unknown') is None


class TestOptionNames:
    """Test option name normalization"""

    def test_normalize_option_name(self):
        """Test camelCase aliases"""
        assert normalize_option_name('excludeSchema') == 'exclude_schema'
        assert normalize_option_name('exclude_schema') == 'exclude_schema'
        assert normalize_option_name('filename') == 'filename'

    def test_normalize_options_copies(self):
        """Test normalization returns a new dict"""
        options = {'serverId': 3}
        normalized = normalize_options(options)

        assert normalized == {'server_id': 3}
        assert options == {'serverId': 3}


class TestSchemaRule:
    """Test SchemaRule tagged variant"""

    def test_from_true(self):
        """Test True means all tables"""
        rule = SchemaRule.from_value(True)

        assert rule.kind is SchemaRuleKind.ALL_TABLES
        assert rule.matches("anything")

    def test_from_list(self):
        """Test list keeps order and drops duplicates"""
        rule = SchemaRule.from_value(["t2", "t1", "t2"])

        assert rule.kind is SchemaRuleKind.TABLE_LIST
        assert rule.tables == ("t2", "t1")
        assert rule.matches("t1")
        assert not rule.matches("t3")

    def test_from_set(self):
        """Test sets become a sorted table list"""
        rule = SchemaRule.from_value({"b", "a"})
        assert rule.tables == ("a", "b")

    def test_from_callable(self):
        """Test callables become predicate rules"""
        rule = SchemaRule.from_value(lambda table: table == "t1")

        assert rule.kind is SchemaRuleKind.PREDICATE
        assert rule.matches("t1")
        assert not rule.matches("t2")

    def test_from_rule(self):
        """Test an existing rule is returned as is"""
        rule = SchemaRule.all_tables()
        assert SchemaRule.from_value(rule) is rule

    @pytest.mark.parametrize("value", [False, None, "t1", 1, {"t1": True}])
    def test_unsupported_values(self, value):
        """Test anything else is a configuration error"""
        with pytest.raises(ConfigurationError):
            SchemaRule.from_value(value)

    def test_list_of_non_strings(self):
        """Test table lists must hold names"""
        with pytest.raises(ConfigurationError, match="table names only"):
            SchemaRule.from_value(["t1", 2])


class TestFilterPolicy:
    """Test FilterPolicy model"""

    def test_defaults_are_absent(self):
        """Test a default policy has no sets or maps"""
        policy = FilterPolicy()

        assert policy.include_events is None
        assert policy.exclude_events is None
        assert policy.include_schema is None
        assert policy.exclude_schema is None

    def test_from_options(self):
        """Test raw options are normalized"""
        policy = FilterPolicy.from_options(
            include_events=["WriteRows", "UpdateRows"],
            include_schema={"db1": ["t1"], "db2": True},
            server_id=10
        )

        assert policy.include_events == frozenset({"WriteRows", "UpdateRows"})
        assert policy.include_schema["db1"] == SchemaRule.table_list(["t1"])
        assert policy.include_schema["db2"].kind is SchemaRuleKind.ALL_TABLES
        assert policy.exclude_schema is None

    def test_event_names_must_be_a_list(self):
        """Test a bare string is rejected"""
        with pytest.raises(ConfigurationError, match="must be a list"):
            FilterPolicy.from_options(exclude_events="Query")

    def test_schema_rules_must_be_a_mapping(self):
        """Test schema rules must be keyed by schema"""
        with pytest.raises(ConfigurationError, match="must map schema names"):
            FilterPolicy.from_options(include_schema=["db1"])


class TestLoggingConfig:
    """Test LoggingConfig model"""

    def test_defaults(self):
        """Test default logging configuration"""
        config = LoggingConfig()
        assert config.level == "INFO"
        assert config.format == "json"

    def test_unsupported_format(self):
        """Test unknown formats are rejected"""
        with pytest.raises(ConfigurationError, match="Unsupported log format"):
            LoggingConfig(format="xml")


class TestCDCConfig:
    """Test CDCConfig model"""

    def test_from_dict(self):
        """Test creating the full configuration"""
        config = CDCConfig.from_dict({
            'connection': {'host': 'db', 'user': 'repl', 'password': 'secret'},
            'session': {'server_id': 100, 'start_at_end': True},
            'filters': {
                'includeEvents': ['WriteRows'],
                'exclude_schema': {'mysql': True},
            },
            'logging': {'level': 'DEBUG', 'format': 'console'},
        })

        assert config.connection.host == 'db'
        assert config.session.server_id == 100
        assert config.session.start_at_end is True
        assert config.filters.include_events == frozenset({'WriteRows'})
        assert config.filters.exclude_schema['mysql'].kind is SchemaRuleKind.ALL_TABLES
        assert config.logging.format == 'console'

    def test_from_dict_defaults(self):
        """Test optional sections fall back to defaults"""
        config = CDCConfig.from_dict({'connection': {'host': 'db', 'user': 'repl'}})

        assert config.session == SessionConfig()
        assert config.filters == FilterPolicy()
        assert config.logging == LoggingConfig()

    def test_missing_connection(self):
        """Test missing connection section"""
        with pytest.raises(ConfigurationError, match="Missing required configuration key"):
            CDCConfig.from_dict({'session': {}})

    def test_unknown_connection_key(self):
        """Test unexpected connection keys"""
        with pytest.raises(ConfigurationError, match="Invalid configuration format"):
            CDCConfig.from_dict({'connection': {'host': 'db', 'user': 'repl', 'database': 'x'}})

    def test_not_a_dict(self):
        """Test non-mapping configuration"""
        with pytest.raises(ConfigurationError, match="must be a dictionary"):
            CDCConfig.from_dict(["connection"])


class TestEventModels:
    """Test session and notification models"""

    def test_terminal_states(self):
        """Test only STOPPING and STOPPED are terminal"""
        assert SessionState.STOPPING.is_terminal
        assert SessionState.STOPPED.is_terminal
        assert not SessionState.CREATED.is_terminal
        assert not SessionState.NEGOTIATING.is_terminal
        assert not SessionState.STREAMING.is_terminal

    def test_binlog_position_is_value_object(self):
        """Test positions compare by value"""
        assert BinlogPosition("log.000005", 1540) == BinlogPosition("log.000005", 1540)

    def test_column_schema_from_row(self):
        """Test building a column from a catalog row"""
        column = ColumnSchema.from_row({
            'COLUMN_NAME': 'name',
            'COLLATION_NAME': 'utf8mb4_general_ci',
            'CHARACTER_SET_NAME': 'utf8mb4',
            'COLUMN_COMMENT': 'user name',
            'COLUMN_TYPE': 'varchar(255)',
        })

        assert column.name == 'name'
        assert column.collation == 'utf8mb4_general_ci'
        assert column.character_set == 'utf8mb4'
        assert column.comment == 'user name'
        assert column.type == 'varchar(255)'

    def test_table_metadata_column_names(self):
        """Test column names keep ordinal order"""
        entry = TableMetadataEntry("db1", "t1", [ColumnSchema("id"), ColumnSchema("name")])
        assert entry.column_names == ["id", "name"]

    def test_notification_timestamp(self):
        """Test notifications are timestamped on creation"""
        notification = Notification(NotificationType.READY)

        assert notification.timestamp is not None
        assert notification.event is None
        assert notification.error is None
