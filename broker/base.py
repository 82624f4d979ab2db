"""Publish/subscribe primitives shared by the RabbitMQ and in-memory brokers."""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from typing import Any

from pydantic import BaseModel

from common.errors import TransportError

logger = logging.getLogger(__name__)

MessageHandler = Callable[[bytes], Awaitable[None]]


def encode_payload(payload: BaseModel | dict[str, Any]) -> bytes:
    """JSON body of a published message. Wire models are dumped with their aliases."""
    if isinstance(payload, BaseModel):
        return payload.model_dump_json(by_alias=True, exclude_none=True).encode()
    return json.dumps(payload).encode()


class MessageBroker(ABC):
    """
    Topic-based publish/subscribe with at-least-once delivery.

    Handlers receive the raw message body. A handler that raises ProtocolError
    marks the message as poison: it is dead-lettered, never redelivered. A
    handler that returns normally acknowledges the message, whether or not it
    had any use for it.
    """

    @abstractmethod
    async def connect(self) -> None: ...

    @abstractmethod
    async def close(self) -> None: ...

    @abstractmethod
    async def publish(self, topic: str, payload: BaseModel | dict[str, Any]) -> str:
        """Publish and return the message id. Raises TransportError."""

    @abstractmethod
    async def subscribe(self, subscription: str, topic: str, handler: MessageHandler) -> None:
        """Attach `handler` to the named subscription bound to `topic`."""

    async def announce(self, topic: str, payload: BaseModel | dict[str, Any]) -> str | None:
        """
        Best-effort publish: failures are logged, never raised, so the state
        change that triggered the announcement stands.
        """
        try:
            return await self.publish(topic, payload)
        except TransportError as e:
            logger.error("Announcement on %s lost: %s", topic, e.message)
            return None
