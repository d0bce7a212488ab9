"""Fire-and-forget event notifications for book mutations."""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod

from aiokafka import AIOKafkaProducer
from aiokafka.errors import KafkaError
from loguru import logger

from books_api.runtime.config.config_data import KafkaConfig


class EventNotifier(ABC):
    """Sink for textual events.

    ``publish`` never blocks and never raises: delivery is at-most-once,
    unordered with respect to the HTTP response, and failures are only logged.
    """

    @abstractmethod
    def publish(self, topic: str, message: str) -> None:
        """Hand off a message for asynchronous delivery."""

    @property
    def backend(self) -> str:
        return "unknown"

    async def health_check(self) -> bool:
        return True

    async def close(self) -> None:
        """Flush pending messages and release resources."""


class LoggingNotifier(EventNotifier):
    """Writes events to the application log instead of a broker."""

    @property
    def backend(self) -> str:
        return "log"

    def publish(self, topic: str, message: str) -> None:
        logger.bind(topic=topic).info("event.published: {}", message)


class KafkaNotifier(EventNotifier):
    """Publishes events through an aiokafka producer."""

    def __init__(self, producer: AIOKafkaProducer):
        self._producer = producer
        self._pending: set[asyncio.Task] = set()
        self._started = False

    @classmethod
    def create(cls, config: KafkaConfig) -> KafkaNotifier:
        producer = AIOKafkaProducer(
            bootstrap_servers=config.bootstrap_servers,
            client_id=config.client_id,
            acks=config.acks,
            request_timeout_ms=config.request_timeout_ms,
        )
        return cls(producer)

    @property
    def backend(self) -> str:
        return "kafka"

    async def start(self) -> None:
        """Connect the producer to the cluster."""
        try:
            await self._producer.start()
        except Exception:
            await self._producer.stop()
            raise
        self._started = True
        logger.info("Kafka producer started")

    def publish(self, topic: str, message: str) -> None:
        if not self._started:
            logger.bind(topic=topic).warning(
                "Kafka producer not started, dropping event: {}", message
            )
            return
        task = asyncio.get_running_loop().create_task(self._send(topic, message))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _send(self, topic: str, message: str) -> None:
        try:
            # Waits for the broker ack so delivery failures land in this handler
            await self._producer.send_and_wait(topic, value=message.encode("utf-8"))
        except Exception as e:
            logger.bind(
                topic=topic,
                error_type=type(e).__name__,
                error_message=str(e),
            ).warning("Failed to publish event")

    async def health_check(self) -> bool:
        return self._started

    async def close(self) -> None:
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)
        if self._started:
            logger.info("Stopping Kafka producer")
            try:
                await self._producer.stop()
            finally:
                self._started = False


async def start_notifier(config: KafkaConfig, environment: str) -> EventNotifier:
    """Start a Kafka notifier, falling back to the log outside production."""
    if not config.enabled:
        logger.info("Kafka disabled, book events will be logged only")
        return LoggingNotifier()

    notifier = KafkaNotifier.create(config)
    try:
        await notifier.start()
    except KafkaError as e:
        logger.bind(
            bootstrap_servers=config.bootstrap_servers,
            error_type=type(e).__name__,
        ).error("Failed to start Kafka producer")
        if environment == "production":
            raise
        return LoggingNotifier()
    return notifier
