"""
RabbitMQ broker over aio_pika. Topics are routing keys on one topic exchange;
subscriptions are durable queues bound to them.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import aio_pika
from pydantic import BaseModel

from broker.base import MessageBroker, MessageHandler, encode_payload
from broker.setup import declare_exchange, declare_subscription
from common.errors import ProtocolError, TransportError
from common.ids import new_event_id

logger = logging.getLogger(__name__)


class RabbitBroker(MessageBroker):
    def __init__(
        self,
        url: str,
        exchange: str,
        connect_attempts: int = 30,
        retry_delay: float = 2.0,
        prefetch_count: int = 10,
    ) -> None:
        self._url = url
        self._exchange_name = exchange
        self._connect_attempts = connect_attempts
        self._retry_delay = retry_delay
        self._prefetch_count = prefetch_count
        self._connection: aio_pika.abc.AbstractRobustConnection | None = None
        self._channel: aio_pika.abc.AbstractChannel | None = None
        self._exchange: aio_pika.abc.AbstractExchange | None = None

    async def connect(self) -> None:
        if self._exchange is not None:
            return
        for attempt in range(self._connect_attempts):
            try:
                self._connection = await aio_pika.connect_robust(self._url)
                break
            except (aio_pika.exceptions.AMQPConnectionError, OSError) as e:
                logger.warning("RabbitMQ connect attempt %s failed: %s", attempt + 1, e)
                await asyncio.sleep(self._retry_delay)
        else:
            raise RuntimeError("Could not connect to RabbitMQ")
        self._channel = await self._connection.channel()
        await self._channel.set_qos(prefetch_count=self._prefetch_count)
        self._exchange = await declare_exchange(self._channel, self._exchange_name)
        logger.info("Connected to RabbitMQ exchange %s", self._exchange_name)

    async def close(self) -> None:
        if self._connection is not None:
            await self._connection.close()
        self._connection = self._channel = self._exchange = None

    async def publish(self, topic: str, payload: BaseModel | dict[str, Any]) -> str:
        if self._exchange is None:
            raise TransportError(topic, "broker is not connected")
        message_id = new_event_id()
        try:
            await self._exchange.publish(
                aio_pika.Message(
                    body=encode_payload(payload),
                    content_type="application/json",
                    message_id=message_id,
                    delivery_mode=aio_pika.DeliveryMode.PERSISTENT,
                ),
                routing_key=topic,
            )
        except (aio_pika.exceptions.AMQPError, RuntimeError, OSError, asyncio.TimeoutError) as e:
            raise TransportError(topic, e) from e
        logger.info("Message %s published to topic %s", message_id, topic)
        return message_id

    async def subscribe(self, subscription: str, topic: str, handler: MessageHandler) -> None:
        if self._channel is None or self._exchange is None:
            raise TransportError(topic, "broker is not connected")
        queue = await declare_subscription(self._channel, self._exchange, subscription, topic)

        async def on_message(message: aio_pika.abc.AbstractIncomingMessage) -> None:
            async with message.process(ignore_processed=True):
                try:
                    await handler(message.body)
                except ProtocolError as e:
                    # Poison message: nack without requeue -> goes to DLQ
                    logger.warning("Rejecting message %s on %s: %s", message.message_id, subscription, e.message)
                    await message.reject(requeue=False)

        await queue.consume(on_message)
        logger.info("Subscribed to %s", subscription)
