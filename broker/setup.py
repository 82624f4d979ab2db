"""Declare the RabbitMQ exchange, subscription queues, bindings, and DLQs."""

import logging

import aio_pika
from aio_pika import ExchangeType

from broker.config import DEAD_LETTER_SUFFIX

logger = logging.getLogger(__name__)


async def declare_exchange(channel: aio_pika.abc.AbstractChannel, name: str) -> aio_pika.abc.AbstractExchange:
    return await channel.declare_exchange(name, ExchangeType.TOPIC, durable=True)


async def declare_subscription(
    channel: aio_pika.abc.AbstractChannel,
    exchange: aio_pika.abc.AbstractExchange,
    subscription: str,
    topic: str,
) -> aio_pika.abc.AbstractQueue:
    """
    Declare a durable queue for `subscription` bound to `topic`, with a
    dead-letter queue for rejected (poison) messages.
    """
    dlq = subscription + DEAD_LETTER_SUFFIX
    await channel.declare_queue(dlq, durable=True)

    queue = await channel.declare_queue(
        subscription,
        durable=True,
        arguments={"x-dead-letter-exchange": "", "x-dead-letter-routing-key": dlq},
    )
    await queue.bind(exchange, routing_key=topic)

    logger.info("Subscription %s bound to %s (DLQ %s)", subscription, topic, dlq)
    return queue
