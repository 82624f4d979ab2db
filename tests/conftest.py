"""Shared fixtures: a throwaway SQLite store, the in-memory broker and a test client."""

import asyncio
import base64
import json
from collections.abc import Generator
from pathlib import Path
from typing import Any

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from broker import TOPIC_ORDERS_REPLY, TOPIC_ORDERS_REQUEST, InMemoryBroker
from common.storage import CustomerStore
from customer_service.app import create_app
from customer_service.config import Settings

API_KEY = "test-api-key"


def push_envelope(payload: Any) -> dict[str, Any]:
    """Wrap a payload the way the push subscription delivers it."""
    data = base64.b64encode(json.dumps(payload).encode()).decode()
    return {"message": {"data": data, "messageId": "1"}, "subscription": "customers-verification"}


async def wait_for_pending(coordinator, count: int) -> None:
    """Yield to the loop until `count` lookups are registered."""
    for _ in range(100):
        if coordinator.pending_count() == count:
            return
        await asyncio.sleep(0)
    raise AssertionError(f"expected {count} pending lookups, got {coordinator.pending_count()}")


@pytest.fixture
def store(tmp_path: Path) -> CustomerStore:
    store = CustomerStore(str(tmp_path / "customers.db"))
    store.init()
    return store


@pytest.fixture
def broken_store(tmp_path: Path) -> CustomerStore:
    """A store whose database cannot be opened (the path is a directory)."""
    return CustomerStore(str(tmp_path))


@pytest.fixture
def broker() -> InMemoryBroker:
    return InMemoryBroker()


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        api_key=API_KEY,
        db_path=str(tmp_path / "customers.db"),
        rabbit_url="memory://",
        order_lookup_timeout_s=0.2,
    )


@pytest.fixture
def app(settings: Settings, store: CustomerStore, broker: InMemoryBroker) -> FastAPI:
    return create_app(settings, store=store, broker=broker)


@pytest.fixture
def client(app: FastAPI) -> Generator[TestClient, None, None]:
    with TestClient(app) as client:
        yield client


@pytest.fixture
def orders_service(broker: InMemoryBroker) -> dict[str, list[dict[str, Any]]]:
    """
    Stand-in for the orders service: answers every GET_ORDERS_BY_CLIENT with
    the orders registered in the returned mapping (empty list by default).
    """
    orders_by_client: dict[str, list[dict[str, Any]]] = {}

    async def answer(body: bytes) -> None:
        request = json.loads(body)
        client_id = request["clientId"]
        await broker.deliver(
            TOPIC_ORDERS_REPLY,
            {"action": "ORDERS_BY_CLIENT", "clientId": client_id, "orders": orders_by_client.get(client_id, [])},
        )

    asyncio.run(broker.subscribe("orders-service.requests", TOPIC_ORDERS_REQUEST, answer))
    return orders_by_client
