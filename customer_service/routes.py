"""
HTTP routes for /customers.

Handlers validate, delegate to the store / coordinator / reconciler and
announce lifecycle events. Errors are raised as CustomerServiceError
subclasses and turned into responses by the application's handler.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, PlainTextResponse

from broker import TOPIC_CLIENT_ACTIONS, TOPIC_CUSTOMER_EVENTS
from common.errors import DuplicateEmailError, NotFoundError, ValidationError
from common.models import ClientDeletedEvent, CustomerEvent
from common.validation import validate_for_create, validate_for_update
from customer_service.dependencies import (
    BrokerDep,
    CoordinatorDep,
    ReconcilerDep,
    StoreDep,
    require_api_key,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/customers")


async def _json_body(request: Request) -> Any:
    raw = await request.body()
    if not raw:
        return {}
    try:
        return json.loads(raw)
    except ValueError:
        raise ValidationError("The request body must be valid JSON.") from None


@router.get("", dependencies=[Depends(require_api_key)])
async def list_customers(store: StoreDep):
    return [customer.to_response() for customer in store.list()]


@router.post("/pubsub", response_class=PlainTextResponse)
async def verification_webhook(request: Request, reconciler: ReconcilerDep):
    envelope = await _json_body(request)
    outcome = await reconciler.handle_verification(envelope)
    return outcome.message


@router.get("/{customer_id}")
async def get_customer(customer_id: str, store: StoreDep):
    customer = store.get(customer_id)
    if customer is None:
        raise NotFoundError(customer_id)
    return customer.to_response()


@router.post("", status_code=201, response_class=PlainTextResponse)
async def create_customer(request: Request, store: StoreDep, broker: BrokerDep):
    fields = validate_for_create(await _json_body(request))
    # Read-then-write; the unique index catches what slips through this check.
    if store.find_by_email(fields["email"]):
        raise DuplicateEmailError(fields["email"])
    customer_id = store.create(fields)
    logger.info("Customer %s created", customer_id)

    await broker.announce(TOPIC_CUSTOMER_EVENTS, CustomerEvent(action="create", id=customer_id, data=fields))
    return f"Customer created with ID: {customer_id}"


@router.put("/{customer_id}", response_class=PlainTextResponse)
async def update_customer(customer_id: str, request: Request, store: StoreDep, broker: BrokerDep):
    fields = validate_for_update(await _json_body(request))
    if store.get(customer_id) is None:
        raise NotFoundError(customer_id)
    email = fields.get("email")
    if email is not None and store.find_by_email(email, exclude_id=customer_id):
        raise DuplicateEmailError(email)
    store.merge(customer_id, fields)
    logger.info("Customer %s updated (%s)", customer_id, ", ".join(fields) or "no fields")

    await broker.announce(TOPIC_CUSTOMER_EVENTS, CustomerEvent(action="update", id=customer_id, data=fields))
    return "Customer updated"


@router.delete("/{customer_id}", response_class=PlainTextResponse)
async def delete_customer(customer_id: str, store: StoreDep, broker: BrokerDep):
    store.delete(customer_id)
    logger.info("Customer %s deleted", customer_id)

    await broker.announce(TOPIC_CUSTOMER_EVENTS, CustomerEvent(action="delete", id=customer_id))
    await broker.announce(TOPIC_CLIENT_ACTIONS, ClientDeletedEvent(client_id=customer_id))
    return "Customer deleted"


@router.get("/{customer_id}/orders")
async def get_customer_orders(customer_id: str, coordinator: CoordinatorDep):
    orders = await coordinator.fetch_orders(customer_id)
    return JSONResponse(orders)
