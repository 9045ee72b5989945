"""
Unit tests for the CLI
"""

import pytest
from unittest.mock import Mock, patch

from mysqlcdc.cli import BinlogCLI, main
from mysqlcdc.models.config import CDCConfig
from mysqlcdc.models.events import (
    BinlogPosition, Notification, NotificationType, TableMetadataEntry, ColumnSchema
)
from mysqlcdc.exceptions import ConfigurationError


class WriteRowsEvent:
    schema = "db1"
    table = "users"
    rows = [{"values": {"id": 1}}]


def make_config():
    return CDCConfig.from_dict({
        'connection': {'host': 'db', 'user': 'repl'},
        'session': {'server_id': 5},
        'filters': {'include_events': ['WriteRows']},
    })


class TestBinlogCLI:
    """Test BinlogCLI"""

    def setup_method(self):
        """Set up test fixtures"""
        self.cli = BinlogCLI()

    def test_log_notifications(self):
        """Test every notification kind can be logged"""
        self.cli.session = Mock()
        self.cli.logger = Mock()
        table = TableMetadataEntry("db1", "users", [ColumnSchema("id")])

        self.cli._log_notification(Notification(NotificationType.READY))
        self.cli._log_notification(Notification(NotificationType.BINLOG, event=WriteRowsEvent(), table=table))
        self.cli._log_notification(Notification(NotificationType.ERROR, error=ConfigurationError("x")))
        self.cli._log_notification(Notification(NotificationType.STOPPED))

        assert self.cli.logger.info.call_count == 3
        binlog_call = self.cli.logger.info.call_args_list[1]
        assert binlog_call.kwargs['event_name'] == "WriteRows"
        assert binlog_call.kwargs['columns'] == ["id"]
        self.cli.logger.error.assert_called_once()

    @patch('mysqlcdc.cli.signal.signal')
    @patch('mysqlcdc.cli.BinlogSession')
    def test_run(self, mock_session_class, mock_signal):
        """Test run starts the session with config options and stops it"""
        session = mock_session_class.return_value
        session.notifications = [Notification(NotificationType.READY), Notification(NotificationType.STOPPED)]

        self.cli.run(make_config(), start_at_end=True)

        options = session.start.call_args.kwargs
        assert options['server_id'] == 5
        assert options['start_at_end'] is True
        assert options['include_events'] == frozenset({'WriteRows'})
        session.stop.assert_called_once()
        assert mock_signal.call_count == 2

    @patch('mysqlcdc.cli.PositionResolver')
    @patch('mysqlcdc.cli.ChecksumNegotiator')
    @patch('mysqlcdc.cli.ConnectionSupervisor')
    def test_test_connection(self, mock_supervisor_class, mock_negotiator_class, mock_resolver_class):
        """Test the connection check negotiates and always closes"""
        supervisor = mock_supervisor_class.return_value
        supervisor.open.return_value = (Mock(), Mock())
        mock_negotiator_class.return_value.negotiate.return_value = True
        mock_resolver_class.return_value.resolve_tail_position.return_value = BinlogPosition("log.000005", 1540)

        self.cli.test_connection(make_config())

        supervisor.close.assert_called_once()

    @patch('mysqlcdc.cli.ConnectionSupervisor')
    def test_test_connection_failure_closes(self, mock_supervisor_class):
        """Test connections are closed when the check fails"""
        supervisor = mock_supervisor_class.return_value
        supervisor.open.side_effect = ConfigurationError("bad")

        with pytest.raises(ConfigurationError):
            self.cli.test_connection(make_config())
        supervisor.close.assert_called_once()


class TestMain:
    """Test CLI entry point"""

    @patch('sys.argv', ['mysqlcdc'])
    def test_no_command(self, capsys):
        """Test help is printed without a command"""
        main()
        assert "usage" in capsys.readouterr().out

    @patch('sys.argv', ['mysqlcdc', 'test', '/nonexistent/config.yaml'])
    def test_config_error_exit_code(self):
        """Test CDC errors exit with code 1"""
        with pytest.raises(SystemExit) as exc_info:
            main()
        assert exc_info.value.code == 1
