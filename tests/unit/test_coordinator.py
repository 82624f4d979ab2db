"""Tests for the order lookup request/reply coordinator."""

import asyncio

import pytest

from broker import SUBSCRIPTION_ORDER_REPLIES, TOPIC_ORDERS_REPLY, TOPIC_ORDERS_REQUEST, InMemoryBroker
from common.errors import ProtocolError, TransportError, UnknownCustomerError, UpstreamTimeoutError
from common.storage import CustomerStore
from customer_service.coordinator import OrderLookupCoordinator
from tests.conftest import wait_for_pending

ORDERS_A = [{"id": "o-1", "total": 12.5}]
ORDERS_B = [{"id": "o-2", "total": 3.0}, {"id": "o-3", "total": 7.0}]


def reply(client_id: str, orders: list, action: str = "ORDERS_BY_CLIENT") -> dict:
    return {"action": action, "clientId": client_id, "orders": orders}


@pytest.fixture
def customers(store: CustomerStore) -> tuple[str, str]:
    return store.create({"email": "a@example.com"}), store.create({"email": "b@example.com"})


async def started(store: CustomerStore, broker: InMemoryBroker, timeout: float = 1.0) -> OrderLookupCoordinator:
    coordinator = OrderLookupCoordinator(store, broker, timeout=timeout)
    await coordinator.start()
    return coordinator


@pytest.mark.asyncio
async def test_unknown_customer_fails_without_publishing(store: CustomerStore, broker: InMemoryBroker) -> None:
    coordinator = await started(store, broker)

    with pytest.raises(UnknownCustomerError) as exc_info:
        await coordinator.fetch_orders("missing")

    assert exc_info.value.status_code == 400
    assert broker.published == []
    assert coordinator.pending_count() == 0


@pytest.mark.asyncio
async def test_reply_resolves_pending_lookup(store, broker, customers) -> None:
    customer_a, _ = customers
    coordinator = await started(store, broker)

    task = asyncio.create_task(coordinator.fetch_orders(customer_a))
    await wait_for_pending(coordinator, 1)

    assert broker.messages(TOPIC_ORDERS_REQUEST) == [
        {
            "action": "GET_ORDERS_BY_CLIENT",
            "clientId": customer_a,
            "message": f"Orders requested for customer {customer_a}",
        }
    ]

    await broker.deliver(TOPIC_ORDERS_REPLY, reply(customer_a, ORDERS_A))
    assert await task == ORDERS_A
    assert coordinator.pending_count() == 0


@pytest.mark.asyncio
async def test_replies_do_not_cross_resolve(store, broker, customers) -> None:
    customer_a, customer_b = customers
    coordinator = await started(store, broker)

    task_a = asyncio.create_task(coordinator.fetch_orders(customer_a))
    task_b = asyncio.create_task(coordinator.fetch_orders(customer_b))
    await wait_for_pending(coordinator, 2)

    await broker.deliver(TOPIC_ORDERS_REPLY, reply(customer_b, ORDERS_B))
    assert await task_b == ORDERS_B
    assert not task_a.done()
    assert coordinator.pending_count(customer_a) == 1

    await broker.deliver(TOPIC_ORDERS_REPLY, reply(customer_a, ORDERS_A))
    assert await task_a == ORDERS_A
    assert coordinator.pending_count() == 0


@pytest.mark.asyncio
async def test_same_customer_waiters_share_the_reply(store, broker, customers) -> None:
    customer_a, _ = customers
    coordinator = await started(store, broker)

    first = asyncio.create_task(coordinator.fetch_orders(customer_a))
    second = asyncio.create_task(coordinator.fetch_orders(customer_a))
    await wait_for_pending(coordinator, 2)

    await broker.deliver(TOPIC_ORDERS_REPLY, reply(customer_a, ORDERS_A))
    assert await first == ORDERS_A
    assert await second == ORDERS_A


@pytest.mark.asyncio
async def test_other_actions_on_reply_topic_are_ignored(store, broker, customers) -> None:
    customer_a, _ = customers
    coordinator = await started(store, broker, timeout=0.05)

    task = asyncio.create_task(coordinator.fetch_orders(customer_a))
    await wait_for_pending(coordinator, 1)

    await broker.deliver(TOPIC_ORDERS_REPLY, reply(customer_a, ORDERS_A, action="ORDER_CREATED"))
    await broker.deliver(TOPIC_ORDERS_REPLY, {"action": "ORDERS_BY_CLIENT"})
    assert broker.dead_letters == []

    with pytest.raises(UpstreamTimeoutError):
        await task


@pytest.mark.asyncio
async def test_timeout_removes_pending_lookup(store, broker, customers) -> None:
    customer_a, _ = customers
    coordinator = await started(store, broker)

    with pytest.raises(UpstreamTimeoutError) as exc_info:
        await coordinator.fetch_orders(customer_a, timeout=0.05)

    assert exc_info.value.status_code == 504
    assert coordinator.pending_count() == 0


@pytest.mark.asyncio
async def test_late_and_unsolicited_replies_are_dropped(store, broker, customers) -> None:
    customer_a, customer_b = customers
    coordinator = await started(store, broker)

    with pytest.raises(UpstreamTimeoutError):
        await coordinator.fetch_orders(customer_a, timeout=0.01)

    await broker.deliver(TOPIC_ORDERS_REPLY, reply(customer_a, ORDERS_A))
    await broker.deliver(TOPIC_ORDERS_REPLY, reply(customer_b, ORDERS_B))
    assert broker.dead_letters == []
    assert coordinator.pending_count() == 0


@pytest.mark.asyncio
async def test_duplicate_reply_is_harmless(store, broker, customers) -> None:
    customer_a, _ = customers
    coordinator = await started(store, broker)

    task = asyncio.create_task(coordinator.fetch_orders(customer_a))
    await wait_for_pending(coordinator, 1)

    await broker.deliver(TOPIC_ORDERS_REPLY, reply(customer_a, ORDERS_A))
    await broker.deliver(TOPIC_ORDERS_REPLY, reply(customer_a, ORDERS_B))
    assert await task == ORDERS_A


@pytest.mark.asyncio
async def test_undecodable_reply_is_dead_lettered(store, broker) -> None:
    coordinator = await started(store, broker)

    with pytest.raises(ProtocolError):
        await coordinator.handle_reply(b"not json")

    await broker.deliver(TOPIC_ORDERS_REPLY, b"{\"clientId\": 1")
    assert broker.dead_letters == [(SUBSCRIPTION_ORDER_REPLIES, b"{\"clientId\": 1")]


@pytest.mark.asyncio
async def test_publish_failure_cleans_up(store, broker, customers) -> None:
    customer_a, _ = customers
    coordinator = await started(store, broker)
    broker.fail_topics.add(TOPIC_ORDERS_REQUEST)

    with pytest.raises(TransportError):
        await coordinator.fetch_orders(customer_a)

    assert coordinator.pending_count() == 0


@pytest.mark.asyncio
async def test_cancelled_request_cleans_up(store, broker, customers) -> None:
    customer_a, _ = customers
    coordinator = await started(store, broker)

    task = asyncio.create_task(coordinator.fetch_orders(customer_a))
    await wait_for_pending(coordinator, 1)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert coordinator.pending_count() == 0
    await broker.deliver(TOPIC_ORDERS_REPLY, reply(customer_a, ORDERS_A))


@pytest.mark.asyncio
async def test_start_subscribes_once(store, broker) -> None:
    coordinator = OrderLookupCoordinator(store, broker)
    await coordinator.start()
    await coordinator.start()

    assert broker.subscriptions(TOPIC_ORDERS_REPLY) == [SUBSCRIPTION_ORDER_REPLIES]


@pytest.mark.asyncio
async def test_orders_of_any_shape_are_delivered(store, broker, customers) -> None:
    customer_a, _ = customers
    coordinator = await started(store, broker)

    task = asyncio.create_task(coordinator.fetch_orders(customer_a))
    await wait_for_pending(coordinator, 1)

    await broker.deliver(TOPIC_ORDERS_REPLY, reply(customer_a, ["o-1", "o-2"]))
    assert await task == ["o-1", "o-2"]
    assert broker.dead_letters == []


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "message",
    [
        {"action": "ORDER_SHIPPED", "clientId": 42},
        {"event": "heartbeat"},
        {"action": "ORDERS_BY_CLIENT", "clientId": 42, "orders": "none"},
    ],
)
async def test_foreign_messages_are_acknowledged(store, broker, customers, message) -> None:
    customer_a, _ = customers
    coordinator = await started(store, broker)

    task = asyncio.create_task(coordinator.fetch_orders(customer_a))
    await wait_for_pending(coordinator, 1)

    await broker.deliver(TOPIC_ORDERS_REPLY, message)
    assert broker.dead_letters == []
    assert not task.done()

    await broker.deliver(TOPIC_ORDERS_REPLY, reply(customer_a, ORDERS_A))
    assert await task == ORDERS_A


@pytest.mark.asyncio
async def test_non_object_reply_is_dead_lettered(store, broker) -> None:
    await started(store, broker)

    await broker.deliver(TOPIC_ORDERS_REPLY, b"[1, 2]")
    assert broker.dead_letters == [(SUBSCRIPTION_ORDER_REPLIES, b"[1, 2]")]
