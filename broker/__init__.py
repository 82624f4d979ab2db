"""Publish/subscribe transport: RabbitMQ in production, in-memory for local runs."""

from broker.base import MessageBroker, MessageHandler
from broker.config import (
    EXCHANGE,
    RABBIT_URL,
    SUBSCRIPTION_ORDER_REPLIES,
    TOPIC_CLIENT_ACTIONS,
    TOPIC_CLIENT_ORDER_ACTIONS,
    TOPIC_CUSTOMER_EVENTS,
    TOPIC_ORDERS_REPLY,
    TOPIC_ORDERS_REQUEST,
)
from broker.inmemory import InMemoryBroker
from broker.rabbit import RabbitBroker


def create_broker(url: str = RABBIT_URL, exchange: str = EXCHANGE, connect_attempts: int = 30) -> MessageBroker:
    """`memory://` selects the in-process broker; anything else is an AMQP URL."""
    if url.startswith("memory://"):
        return InMemoryBroker()
    return RabbitBroker(url, exchange, connect_attempts=connect_attempts)


__all__ = [
    "MessageBroker",
    "MessageHandler",
    "InMemoryBroker",
    "RabbitBroker",
    "create_broker",
    "EXCHANGE",
    "RABBIT_URL",
    "SUBSCRIPTION_ORDER_REPLIES",
    "TOPIC_CLIENT_ACTIONS",
    "TOPIC_CLIENT_ORDER_ACTIONS",
    "TOPIC_CUSTOMER_EVENTS",
    "TOPIC_ORDERS_REPLY",
    "TOPIC_ORDERS_REQUEST",
]
