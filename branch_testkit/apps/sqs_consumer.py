# -*- coding: utf-8 -*-
"""SQS consumer app: long-polls one queue, logs and deletes every message."""

from __future__ import annotations

import asyncio
import sys
from typing import Any, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from pydantic import ValidationError

from ..config import LogConfig, SqsAppConfig
from ..errors import ConfigurationError
from ..logger import LogManager
from ..metrics_exporter import MessageMetricsExporter
from .runtime import install_shutdown_handlers

logger = LogManager.get_logger(__name__)

SOURCE = "sqs"
AWS_ERRORS = (BotoCoreError, ClientError)


class SqsMessageLogger:
    def __init__(
        self,
        config: SqsAppConfig,
        client: Any = None,
        metrics: Optional[MessageMetricsExporter] = None,
    ) -> None:
        self._config = config
        # default credential chain: env, shared config, instance role
        self._client = client if client is not None else boto3.client("sqs")
        self._metrics = metrics or MessageMetricsExporter(config.metrics)
        self.queue_url: Optional[str] = None

    def resolve_queue_url(self) -> str:
        try:
            response = self._client.get_queue_url(QueueName=self._config.NAME)
        except AWS_ERRORS as exc:
            raise ConfigurationError("failed to get queue URL", cause=exc) from exc
        self.queue_url = response["QueueUrl"]
        logger.info("Queue URL: %s", self.queue_url)
        return self.queue_url

    def receive_messages(self) -> int:
        """One long-poll round. Returns how many messages were handled."""
        if self.queue_url is None:
            raise RuntimeError("queue URL must be resolved first")

        try:
            response = self._client.receive_message(
                QueueUrl=self.queue_url,
                MaxNumberOfMessages=self._config.max_messages,
                WaitTimeSeconds=self._config.wait_time_seconds,
                MessageAttributeNames=["All"],
            )
        except AWS_ERRORS as exc:
            logger.error("Receive error: %s", exc)
            self._metrics.observe_error(SOURCE)
            return 0

        messages = response.get("Messages", [])
        if messages:
            self._metrics.observe_received(SOURCE, len(messages))
        for msg in messages:
            self._log_message(msg)
            self._delete(msg)
        return len(messages)

    def _log_message(self, msg: dict[str, Any]) -> None:
        logger.info("=== Message Received ===")
        logger.info("ID: %s", msg.get("MessageId"))
        logger.info("Body: %s", msg.get("Body"))

        attributes = msg.get("MessageAttributes") or {}
        if attributes:
            logger.info("Attributes:")
            for name, value in attributes.items():
                logger.info("  %s: %s", name, value.get("StringValue"))

    def _delete(self, msg: dict[str, Any]) -> None:
        try:
            self._client.delete_message(
                QueueUrl=self.queue_url, ReceiptHandle=msg["ReceiptHandle"]
            )
        except AWS_ERRORS as exc:
            logger.error("Delete error: %s", exc)
            self._metrics.observe_error(SOURCE)
            return
        self._metrics.observe_acknowledged(SOURCE)


async def run(config: SqsAppConfig, app: Optional[SqsMessageLogger] = None) -> None:
    logger.info("Starting SQS consumer for queue: %s", config.NAME)
    app = app or SqsMessageLogger(config)
    app.resolve_queue_url()

    stop_event = install_shutdown_handlers()
    while not stop_event.is_set():
        await asyncio.to_thread(app.receive_messages)
    logger.info("Shutting down...")


def main() -> int:
    LogManager.configure(LogConfig())
    try:
        config = SqsAppConfig()
    except ValidationError as exc:
        logger.critical("Invalid SQS configuration: %s", exc)
        return 1
    try:
        asyncio.run(run(config))
    except (ConfigurationError, BotoCoreError, ClientError) as exc:
        logger.critical("Failed to start SQS consumer: %s", exc)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
