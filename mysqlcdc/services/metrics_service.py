"""
Metrics service for Prometheus monitoring
Counts what a binlog session receives, forwards, skips and fails on
"""

from typing import Optional
from prometheus_client import (
    Counter, Histogram, Gauge,
    CollectorRegistry, generate_latest,
    CONTENT_TYPE_LATEST
)
import structlog

from ..models.events import SessionState


class MetricsService:
    """Service for managing Prometheus metrics"""

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        self.logger = structlog.get_logger()
        self.registry = registry or CollectorRegistry()
        self._init_metrics()

    def _init_metrics(self) -> None:
        """Initialize all Prometheus metrics"""
        self.session_state = Gauge(
            'cdc_session_state',
            'Current session state (1 for the active state)',
            ['state'],
            registry=self.registry
        )

        self.events_received_total = Counter(
            'cdc_events_received_total',
            'Total number of decoded events received from the decoder',
            ['event_name'],
            registry=self.registry
        )

        self.events_forwarded_total = Counter(
            'cdc_events_forwarded_total',
            'Total number of events forwarded to the consumer',
            ['event_name'],
            registry=self.registry
        )

        self.events_skipped_total = Counter(
            'cdc_events_skipped_total',
            'Total number of events dropped by the filter policy',
            ['event_name', 'reason'],
            registry=self.registry
        )

        self.session_errors_total = Counter(
            'cdc_session_errors_total',
            'Total number of session errors',
            ['fault'],
            registry=self.registry
        )

        self.table_metadata_entries = Gauge(
            'cdc_table_metadata_entries',
            'Number of table ids in the metadata cache',
            registry=self.registry
        )

        self.negotiation_duration = Histogram(
            'cdc_negotiation_duration_seconds',
            'Time spent negotiating checksum and start position',
            buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0],
            registry=self.registry
        )

    def record_state(self, state: SessionState) -> None:
        for candidate in SessionState:
            self.session_state.labels(state=candidate.value).set(1 if candidate is state else 0)

    def record_received(self, event_name: str) -> None:
        self.events_received_total.labels(event_name=event_name).inc()

    def record_forwarded(self, event_name: str) -> None:
        self.events_forwarded_total.labels(event_name=event_name).inc()

    def record_skipped(self, event_name: str, reason: str) -> None:
        self.events_skipped_total.labels(event_name=event_name, reason=reason).inc()

    def record_error(self, error: Exception) -> None:
        self.session_errors_total.labels(fault=type(error).__name__).inc()

    def record_table_metadata_entries(self, count: int) -> None:
        self.table_metadata_entries.set(count)

    def observe_negotiation(self, seconds: float) -> None:
        self.negotiation_duration.observe(seconds)

    def get_metrics(self) -> str:
        """Render metrics in the Prometheus exposition format"""
        return generate_latest(self.registry).decode('utf-8')

    def get_content_type(self) -> str:
        return CONTENT_TYPE_LATEST
