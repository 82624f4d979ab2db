"""In-process broker for local runs and tests. Delivery is immediate and in order."""

from __future__ import annotations

import json
import logging
from collections import defaultdict
from typing import Any

from pydantic import BaseModel

from broker.base import MessageBroker, MessageHandler, encode_payload
from common.errors import ProtocolError, TransportError
from common.ids import new_event_id

logger = logging.getLogger(__name__)


class InMemoryBroker(MessageBroker):
    """
    Records every published message in `published` as (topic, decoded JSON)
    and hands the body to every handler subscribed to that topic. Poison
    messages land in `dead_letters` as (subscription, body).
    """

    def __init__(self) -> None:
        self.published: list[tuple[str, dict[str, Any]]] = []
        self.dead_letters: list[tuple[str, bytes]] = []
        self.fail_topics: set[str] = set()
        self._subscriptions: dict[str, list[tuple[str, MessageHandler]]] = defaultdict(list)

    async def connect(self) -> None:
        return None

    async def close(self) -> None:
        self._subscriptions.clear()

    async def publish(self, topic: str, payload: BaseModel | dict[str, Any]) -> str:
        if topic in self.fail_topics:
            raise TransportError(topic, "simulated publish failure")
        body = encode_payload(payload)
        self.published.append((topic, json.loads(body)))
        await self.deliver(topic, body)
        return new_event_id()

    async def subscribe(self, subscription: str, topic: str, handler: MessageHandler) -> None:
        self._subscriptions[topic].append((subscription, handler))
        logger.info("Subscribed to %s", subscription)

    async def deliver(self, topic: str, body: bytes | dict[str, Any]) -> None:
        """Feed a message to the subscribers of `topic` as if it came from another service."""
        if isinstance(body, dict):
            body = json.dumps(body).encode()
        for subscription, handler in list(self._subscriptions.get(topic, ())):
            try:
                await handler(body)
            except ProtocolError as e:
                logger.warning("Rejecting message on %s: %s", subscription, e.message)
                self.dead_letters.append((subscription, body))

    def messages(self, topic: str) -> list[dict[str, Any]]:
        return [data for t, data in self.published if t == topic]

    def subscriptions(self, topic: str) -> list[str]:
        return [subscription for subscription, _ in self._subscriptions.get(topic, ())]
