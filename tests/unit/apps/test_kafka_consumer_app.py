import asyncio
import logging
from unittest.mock import MagicMock

import pytest
from confluent_kafka import TIMESTAMP_CREATE_TIME, TIMESTAMP_NOT_AVAILABLE, KafkaError
from prometheus_client import CollectorRegistry

from branch_testkit.apps.kafka_consumer import KafkaMessageLogger, format_timestamp
from branch_testkit.config import KafkaAppConfig, MetricsConfig
from branch_testkit.metrics_exporter import MessageMetricsExporter


def _message(error=None, value=b"hello", headers=None):
    msg = MagicMock()
    msg.error.return_value = error
    msg.topic.return_value = "test-topic"
    msg.partition.return_value = 0
    msg.offset.return_value = 42
    msg.key.return_value = b"k1"
    msg.value.return_value = value
    msg.headers.return_value = headers
    msg.timestamp.return_value = (TIMESTAMP_CREATE_TIME, 1_700_000_000_000)
    return msg


@pytest.fixture
def registry():
    return CollectorRegistry()


@pytest.fixture
def consumer():
    consumer = MagicMock()
    consumer.poll.return_value = None
    return consumer


@pytest.fixture
def app(consumer, registry):
    config = KafkaAppConfig(POLL_TIMEOUT_SEC=0.01)
    metrics = MessageMetricsExporter(MetricsConfig(enabled=False), registry=registry)
    return KafkaMessageLogger(config, consumer=consumer, metrics=metrics)


def test_format_timestamp():
    assert format_timestamp(_message()) == "2023-11-14T22:13:20+00:00"

    msg = _message()
    msg.timestamp.return_value = (TIMESTAMP_NOT_AVAILABLE, 0)
    assert format_timestamp(msg) == "unknown"


def test_handle_message_logs_and_stores_offset(app, consumer, registry, caplog):
    caplog.set_level(logging.INFO)
    msg = _message(headers=[("trace-id", b"abc")])

    app.handle_message(msg)

    consumer.store_offsets.assert_called_once_with(message=msg)
    assert "Topic: test-topic" in caplog.text
    assert "Offset: 42" in caplog.text
    assert "Key: k1" in caplog.text
    assert "Value: hello" in caplog.text
    assert "trace-id: abc" in caplog.text
    assert (
        registry.get_sample_value(
            "consumer_messages_acknowledged_total", {"source": "kafka"}
        )
        == 1.0
    )


def test_handle_message_tolerates_null_value(app, caplog):
    caplog.set_level(logging.INFO)

    app.handle_message(_message(value=None))

    assert "Value: " in [record.getMessage() for record in caplog.records]


def test_partition_eof_is_not_an_error(app, consumer, registry):
    app.handle_message(_message(error=KafkaError(KafkaError._PARTITION_EOF)))

    consumer.store_offsets.assert_not_called()
    assert registry.get_sample_value("consumer_errors_total", {"source": "kafka"}) is None


def test_consumer_error_is_logged(app, consumer, registry, caplog):
    app.handle_message(_message(error=KafkaError(KafkaError._TRANSPORT)))

    consumer.store_offsets.assert_not_called()
    assert "Consumer error" in caplog.text
    assert registry.get_sample_value("consumer_errors_total", {"source": "kafka"}) == 1.0


@pytest.mark.asyncio
async def test_ready_after_assignment_and_clean_stop(app, consumer):
    msg = _message()
    pending = [msg]
    consumer.poll.side_effect = lambda timeout: pending.pop() if pending else None

    await app.start()
    subscribe = consumer.subscribe.call_args
    assert subscribe.args == (["test-topic"],)
    assert not app.ready.is_set()

    subscribe.kwargs["on_assign"](consumer, [])
    await asyncio.wait_for(app.ready.wait(), timeout=1)

    await app.stop()

    assert app.stopped.is_set()
    consumer.close.assert_called_once()
    consumer.store_offsets.assert_called_once_with(message=msg)


@pytest.mark.asyncio
async def test_stop_logs_consumer_loop_failure(app, consumer, caplog):
    consumer.poll.side_effect = RuntimeError("broker gone")

    await app.start()
    await asyncio.wait_for(app.stopped.wait(), timeout=1)
    await app.stop()

    assert "Consumer loop failed: broker gone" in caplog.text
    consumer.close.assert_called_once()
