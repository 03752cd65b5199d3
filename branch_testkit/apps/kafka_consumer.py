# -*- coding: utf-8 -*-
"""Kafka consumer app: logs every message of one topic until stopped."""

from __future__ import annotations

import asyncio
import sys
from datetime import datetime, timezone
from typing import Optional

from confluent_kafka import (
    TIMESTAMP_NOT_AVAILABLE,
    Consumer,
    KafkaError,
    KafkaException,
    Message,
)
from confluent_kafka import TopicPartition as KafkaTopicPartition
from pydantic import ValidationError

from ..config import KafkaAppConfig, LogConfig
from ..logger import LogManager
from ..metrics_exporter import MessageMetricsExporter
from .runtime import install_shutdown_handlers, wait_first

logger = LogManager.get_logger(__name__)

SOURCE = "kafka"


def _decode(raw: Optional[bytes]) -> str:
    if raw is None:
        return ""
    return raw.decode("utf-8", errors="replace")


def format_timestamp(msg: Message) -> str:
    ts_type, ts_ms = msg.timestamp()
    if ts_type == TIMESTAMP_NOT_AVAILABLE or ts_ms is None or ts_ms < 0:
        return "unknown"
    return datetime.fromtimestamp(ts_ms / 1000, tz=timezone.utc).isoformat()


class KafkaMessageLogger:
    """
    Consumes one topic in a consumer group and logs each message.

    ``ready`` is set the first time partitions are assigned to this member,
    which is when the group session is actually established.
    """

    def __init__(
        self,
        config: KafkaAppConfig,
        consumer: Optional[Consumer] = None,
        metrics: Optional[MessageMetricsExporter] = None,
    ) -> None:
        self._config = config
        self.consumer: Optional[Consumer] = consumer
        self._metrics = metrics or MessageMetricsExporter(config.metrics)

        self.ready = asyncio.Event()
        self._running = False
        self._shutdown_event = asyncio.Event()
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._task: Optional[asyncio.Task[None]] = None

    # ------------------------------------------------------------------
    def _on_assign(
        self, consumer: Consumer, partitions: list[KafkaTopicPartition]
    ) -> None:
        logger.info("Partitions assigned: %s", partitions)
        if self._loop is not None:
            self._loop.call_soon_threadsafe(self.ready.set)

    def _on_revoke(
        self, consumer: Consumer, partitions: list[KafkaTopicPartition]
    ) -> None:
        logger.warning("Partitions revoked: %s", partitions)

    def handle_message(self, msg: Message) -> None:
        error = msg.error()
        if error is not None:
            if error.code() == KafkaError._PARTITION_EOF:
                logger.debug("Reached end of %s [%s]", msg.topic(), msg.partition())
                return
            logger.error("Consumer error: %s", error)
            self._metrics.observe_error(SOURCE)
            return

        self._metrics.observe_received(SOURCE)
        logger.info("=== Message Received ===")
        logger.info("Topic: %s", msg.topic())
        logger.info("Partition: %d", msg.partition())
        logger.info("Offset: %d", msg.offset())
        logger.info("Key: %s", _decode(msg.key()))
        logger.info("Value: %s", _decode(msg.value()))
        logger.info("Timestamp: %s", format_timestamp(msg))

        headers = msg.headers()
        if headers:
            logger.info("Headers:")
            for key, value in headers:
                logger.info("  %s: %s", key, _decode(value))

        if self.consumer is not None:
            # committed by the auto-commit timer once stored
            self.consumer.store_offsets(message=msg)
            self._metrics.observe_acknowledged(SOURCE)

    async def _run_consumer(self) -> None:
        logger.info("Starting consumer loop")
        if self.consumer is None:
            raise RuntimeError("Kafka consumer must be initialized")

        try:
            while self._running:
                msg = await asyncio.to_thread(
                    self.consumer.poll, self._config.POLL_TIMEOUT_SEC
                )
                if msg is None:
                    continue
                try:
                    self.handle_message(msg)
                except KafkaException as exc:
                    logger.error("Error from consumer: %s", exc)
                    self._metrics.observe_error(SOURCE)
        finally:
            await asyncio.to_thread(self.consumer.close)
            logger.info("Kafka consumer closed.")
            self._shutdown_event.set()

    @property
    def stopped(self) -> asyncio.Event:
        return self._shutdown_event

    async def start(self) -> None:
        self._loop = asyncio.get_running_loop()
        if self.consumer is None:
            self.consumer = Consumer(self._config.get_consumer_config())
        self.consumer.subscribe(
            [self._config.TOPIC_NAME],
            on_assign=self._on_assign,
            on_revoke=self._on_revoke,
        )
        self._running = True
        self._task = asyncio.create_task(self._run_consumer())

    async def stop(self) -> None:
        self._running = False
        if self._task is None:
            return
        (outcome,) = await asyncio.gather(self._task, return_exceptions=True)
        if isinstance(outcome, Exception):
            logger.error("Consumer loop failed: %s", outcome)


async def run(config: KafkaAppConfig) -> None:
    logger.info("Starting Kafka consumer")
    logger.info("Bootstrap servers: %s", ",".join(config.BOOTSTRAP_SERVERS))
    logger.info("Topic: %s", config.TOPIC_NAME)
    logger.info("Group ID: %s", config.GROUP_ID)

    stop_event = install_shutdown_handlers()
    app = KafkaMessageLogger(config)
    await app.start()

    try:
        if await wait_first(app.ready, stop_event, app.stopped) is app.ready:
            logger.info("Kafka consumer is ready and running")
            await wait_first(stop_event, app.stopped)
        logger.info("Shutting down consumer...")
    finally:
        await app.stop()


def main() -> int:
    LogManager.configure(LogConfig())
    try:
        config = KafkaAppConfig()
    except ValidationError as exc:
        logger.critical("Invalid Kafka configuration: %s", exc)
        return 1
    try:
        asyncio.run(run(config))
    except KafkaException as exc:
        logger.critical("Failed to create consumer group: %s", exc)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
