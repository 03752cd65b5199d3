from __future__ import annotations

from typing import Optional

from prometheus_client import CollectorRegistry, Counter, start_http_server

from branch_testkit.config import MetricsConfig


class MessageMetricsExporter:
    """Counters for the Kafka and SQS consumer apps, labelled by source."""

    def __init__(
        self,
        config: Optional[MetricsConfig] = None,
        registry: Optional[CollectorRegistry] = None,
    ) -> None:
        self._config = config or MetricsConfig()
        self._registry = registry or CollectorRegistry()

        self._received_total = Counter(
            "consumer_messages_received_total",
            "Messages received from the broker or queue",
            labelnames=("source",),
            registry=self._registry,
        )
        self._acknowledged_total = Counter(
            "consumer_messages_acknowledged_total",
            "Messages committed (Kafka) or deleted (SQS)",
            labelnames=("source",),
            registry=self._registry,
        )
        self._errors_total = Counter(
            "consumer_errors_total",
            "Receive, delete and consumer errors",
            labelnames=("source",),
            registry=self._registry,
        )

        if self._config.enabled:
            start_http_server(self._config.port, registry=self._registry)

    def observe_received(self, source: str, count: int = 1) -> None:
        self._received_total.labels(source=source).inc(count)

    def observe_acknowledged(self, source: str) -> None:
        self._acknowledged_total.labels(source=source).inc()

    def observe_error(self, source: str) -> None:
        self._errors_total.labels(source=source).inc()
