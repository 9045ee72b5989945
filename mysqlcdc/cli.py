#!/usr/bin/env python3
"""
CLI Tool for MySQL CDC sessions

Connects to a MySQL source as a replica, streams filtered binlog events
and logs every notification the session emits.
"""

import argparse
import logging
import signal
import sys
import threading
from dataclasses import replace
from typing import Optional

from prometheus_client import start_http_server

from .exceptions import CDCException
from .models.config import CDCConfig
from .models.events import Notification, NotificationType
from .services.config_service import ConfigService
from .services.connection_supervisor import ConnectionSupervisor
from .services.checksum_negotiator import ChecksumNegotiator
from .services.filter_service import event_name
from .services.metrics_service import MetricsService
from .services.position_resolver import PositionResolver
from .services.session import BinlogSession
from .utils.logger import setup_logging_from_config, get_logger


class BinlogCLI:
    """CLI для работы с binlog сессией"""

    def __init__(self):
        self.logger = get_logger()
        self.config_service = ConfigService()
        self.session: Optional[BinlogSession] = None

    def _setup_signal_handlers(self) -> None:
        """Настройка обработчиков сигналов для корректного завершения"""
        def signal_handler(signum, frame):
            signal_name = signal.Signals(signum).name
            self.logger.info("Received signal, initiating graceful shutdown", signal=signal_name)
            if self.session is not None:
                # not inline: the main thread may be inside start() holding session locks
                threading.Thread(target=self.session.stop, name="cdc_shutdown", daemon=True).start()

        signal.signal(signal.SIGINT, signal_handler)
        signal.signal(signal.SIGTERM, signal_handler)

    def run(self, config: CDCConfig, start_at_end: bool = False,
            metrics_port: Optional[int] = None) -> None:
        """Запуск сессии и вывод событий"""
        metrics_service = MetricsService()
        if metrics_port:
            start_http_server(metrics_port, registry=metrics_service.registry)
            self.logger.info("Metrics endpoint started", port=metrics_port)

        self.session = BinlogSession(config.connection, metrics_service=metrics_service)
        self._setup_signal_handlers()

        options = {
            'server_id': config.session.server_id,
            'filename': config.session.filename,
            'position': config.session.position,
            'start_at_end': start_at_end or config.session.start_at_end,
            'include_events': config.filters.include_events,
            'exclude_events': config.filters.exclude_events,
            'include_schema': config.filters.include_schema,
            'exclude_schema': config.filters.exclude_schema,
        }
        try:
            self.session.start(**options)
            for notification in self.session.notifications:
                self._log_notification(notification)
        finally:
            self.session.stop()

    def _log_notification(self, notification: Notification) -> None:
        kind = notification.notification_type
        if kind is NotificationType.READY:
            self.logger.info("Session ready",
                             filename=self.session.get('filename'),
                             position=self.session.get('position'))
        elif kind is NotificationType.BINLOG:
            event = notification.event
            table = notification.table
            self.logger.info("Binlog event",
                             event_name=event_name(event),
                             schema=table.schema_name if table else getattr(event, 'schema', None),
                             table=table.table_name if table else getattr(event, 'table', None),
                             columns=table.column_names if table else None,
                             rows=getattr(event, 'rows', None))
        elif kind is NotificationType.ERROR:
            self.logger.error("Session error",
                              fault=type(notification.error).__name__,
                              error=str(notification.error))
        elif kind is NotificationType.STOPPED:
            self.logger.info("Session stopped")

    def test_connection(self, config: CDCConfig) -> None:
        """Тестирование подключения"""
        supervisor = ConnectionSupervisor(config.connection)
        try:
            control, stream = supervisor.open()
            use_checksum = ChecksumNegotiator().negotiate(control, stream)
            tail = PositionResolver().resolve_tail_position(control)
            self.logger.info("Connection test succeeded",
                             use_checksum=use_checksum,
                             tail_filename=tail.filename if tail else None,
                             tail_position=tail.position if tail else None)
        finally:
            supervisor.close()


def main():
    """Основная функция CLI"""
    parser = argparse.ArgumentParser(description='MySQL CDC binlog session CLI')
    subparsers = parser.add_subparsers(dest='command', help='Доступные команды')

    run_parser = subparsers.add_parser('run', help='Запуск binlog сессии')
    run_parser.add_argument('config', help='Путь к конфигурационному файлу')
    run_parser.add_argument('--start-at-end', action='store_true', help='Начать с конца binlog')
    run_parser.add_argument('--metrics-port', type=int, default=None, help='Порт для Prometheus метрик')
    run_parser.add_argument('--log-level', default=None, help='Уровень логирования')
    run_parser.add_argument('--log-format', default=None, choices=['json', 'console'], help='Формат логирования')

    test_parser = subparsers.add_parser('test', help='Тестирование подключения')
    test_parser.add_argument('config', help='Путь к конфигурационному файлу')
    test_parser.add_argument('--log-level', default=None, help='Уровень логирования')
    test_parser.add_argument('--log-format', default=None, choices=['json', 'console'], help='Формат логирования')

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        return

    cli = BinlogCLI()

    try:
        config = cli.config_service.load_config(args.config)
        logging_config = replace(config.logging,
                                 level=args.log_level or config.logging.level,
                                 format=args.log_format or config.logging.format)
        setup_logging_from_config(logging_config)

        for warning in cli.config_service.validate_config(config):
            cli.logger.warning("Suspicious configuration", detail=warning)

        if args.command == 'run':
            cli.run(config, start_at_end=args.start_at_end, metrics_port=args.metrics_port)
        elif args.command == 'test':
            cli.test_connection(config)
        else:
            parser.print_help()
    except KeyboardInterrupt:
        logging.info("Application interrupted by user")
        sys.exit(0)
    except CDCException as e:
        logging.error(f"CDC error: {e}")
        sys.exit(1)
    except Exception as e:
        logging.error(f"Unexpected error: {e}")
        sys.exit(1)


if __name__ == '__main__':
    main()
