"""
Order lookup over the broker: publish a request, wait for the correlated reply.

The orders service answers on one shared reply topic for every lookup, so the
coordinator subscribes once at startup and demultiplexes replies by customer
id (the correlation key). Each HTTP request owns one PendingOrderLookup for
exactly as long as it waits; the entry is removed on every completion path.

All mutation of the pending table happens on the event loop thread (HTTP
handlers and aio_pika consumers share it) and never spans an await, so
register / resolve / remove are atomic relative to reply delivery.
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass, field
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from broker import SUBSCRIPTION_ORDER_REPLIES, TOPIC_ORDERS_REPLY, TOPIC_ORDERS_REQUEST, MessageBroker
from common.errors import ProtocolError, UnknownCustomerError, UpstreamTimeoutError
from common.ids import now_iso
from common.models import OrdersReplyEvent, OrdersRequestEvent
from common.storage import CustomerStore

logger = logging.getLogger(__name__)

ORDERS_BY_CLIENT = "ORDERS_BY_CLIENT"


@dataclass(eq=False)
class PendingOrderLookup:
    """One in-flight order query. `result_slot` is filled at most once."""

    correlation_key: str
    created_at: str = field(default_factory=now_iso)
    result_slot: asyncio.Future = field(default_factory=lambda: asyncio.get_running_loop().create_future())

    def fulfil(self, orders: list[Any]) -> bool:
        if self.result_slot.done():
            return False
        self.result_slot.set_result(orders)
        return True


class OrderLookupCoordinator:
    def __init__(self, store: CustomerStore, broker: MessageBroker, timeout: float = 10.0) -> None:
        self._store = store
        self._broker = broker
        self.timeout = timeout
        self._pending: dict[str, list[PendingOrderLookup]] = {}
        self._started = False

    async def start(self) -> None:
        """Subscribe to the reply topic. Idempotent: one subscription per process."""
        if self._started:
            return
        await self._broker.subscribe(SUBSCRIPTION_ORDER_REPLIES, TOPIC_ORDERS_REPLY, self.handle_reply)
        self._started = True

    def pending_count(self, customer_id: str | None = None) -> int:
        if customer_id is not None:
            return len(self._pending.get(customer_id, ()))
        return sum(len(waiters) for waiters in self._pending.values())

    async def fetch_orders(self, customer_id: str, timeout: float | None = None) -> list[Any]:
        """
        Ask the orders service for the orders of `customer_id`.

        Raises UnknownCustomerError before publishing anything if the customer
        does not exist, UpstreamTimeoutError if no reply arrives within the
        wait bound, and TransportError if the request cannot be published.
        """
        if self._store.get(customer_id) is None:
            raise UnknownCustomerError(customer_id, f"Customer {customer_id} not found")

        wait = self.timeout if timeout is None else timeout
        lookup = self._register(customer_id)
        try:
            await self._broker.publish(TOPIC_ORDERS_REQUEST, OrdersRequestEvent.for_customer(customer_id))
            return await asyncio.wait_for(lookup.result_slot, wait)
        except asyncio.TimeoutError:
            logger.warning("Order lookup for %s timed out after %ss", customer_id, wait)
            raise UpstreamTimeoutError(customer_id, wait) from None
        finally:
            self._remove(lookup)

    async def handle_reply(self, body: bytes) -> None:
        """
        Broker callback for the shared reply topic. Never blocks: it only
        fills result slots. Messages for other actions or for lookups nobody
        is waiting on are acknowledged and dropped; only bodies that are not
        JSON objects, or matching replies whose orders are not a list, are poison.
        """
        try:
            data = json.loads(body)
        except ValueError as e:
            raise ProtocolError("Undecodable reply: not JSON") from e
        if not isinstance(data, dict):
            raise ProtocolError("Undecodable reply: not a JSON object")

        # The channel is shared: filter on the correlation fields before
        # holding the message to the reply schema.
        action = data.get("action")
        client_id = data.get("clientId")
        if action != ORDERS_BY_CLIENT or not isinstance(client_id, str) or not client_id:
            logger.debug("Ignoring %s message on reply topic", action)
            return

        waiters = self._pending.get(client_id)
        if not waiters:
            logger.debug("Dropping reply for %s: no pending lookup", client_id)
            return

        try:
            reply = OrdersReplyEvent.model_validate(data)
        except PydanticValidationError as e:
            raise ProtocolError(f"Malformed reply for {client_id}: {e.error_count()} error(s)") from e
        for lookup in waiters:
            lookup.fulfil(reply.orders)
        logger.info("Orders for %s delivered to %d waiter(s)", reply.client_id, len(waiters))

    def _register(self, customer_id: str) -> PendingOrderLookup:
        lookup = PendingOrderLookup(correlation_key=customer_id)
        self._pending.setdefault(customer_id, []).append(lookup)
        return lookup

    def _remove(self, lookup: PendingOrderLookup) -> None:
        waiters = self._pending.get(lookup.correlation_key)
        if waiters is None:
            return
        if lookup in waiters:
            waiters.remove(lookup)
        if not waiters:
            del self._pending[lookup.correlation_key]
