"""
Pydantic v2 data models for customers, broker events and push envelopes.

Framework-agnostic; safe to use from FastAPI (request/response bodies) or
any broker consumer. Outbound models forbid extra fields; inbound models
coming from other services ignore them.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

# Allow-list of mutable customer fields.
CUSTOMER_FIELDS: tuple[str, ...] = ("name", "address", "city", "postal_code", "country", "email")


# -----------------------------------------------------------------------------
# Domain models
# -----------------------------------------------------------------------------


class Customer(BaseModel):
    """Stored customer record. Only `email` is required."""

    model_config = ConfigDict(extra="forbid")

    id: str
    email: str
    name: str | None = None
    address: str | None = None
    city: str | None = None
    postal_code: str | None = None
    country: str | None = None

    def to_response(self) -> dict[str, Any]:
        """JSON body for the HTTP API: id plus the fields actually set."""
        return self.model_dump(exclude_none=True)

    def payload(self) -> dict[str, Any]:
        """Mutable payload without the id."""
        return self.model_dump(exclude={"id"}, exclude_none=True)


class ReconciliationOutcome(str, Enum):
    DELETION_ANNOUNCED = "DELETION_ANNOUNCED"
    VERIFIED = "VERIFIED"

    @property
    def message(self) -> str:
        if self is ReconciliationOutcome.DELETION_ANNOUNCED:
            return "Customer not found, deletion announced"
        return "Customer verified"


# -----------------------------------------------------------------------------
# Events (published on the broker)
# -----------------------------------------------------------------------------


class _WireModel(BaseModel):
    """camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)


class CustomerEvent(_WireModel):
    """Lifecycle announcement for downstream consumers."""

    action: Literal["create", "update", "delete"]
    id: str
    data: dict[str, Any] | None = None


class ClientDeletedEvent(_WireModel):
    action: Literal["DELETE_CLIENT"] = "DELETE_CLIENT"
    client_id: str = Field(alias="clientId")


class ClientExistsEvent(_WireModel):
    action: Literal["CLIENT_EXISTS"] = "CLIENT_EXISTS"
    client_id: str = Field(alias="clientId")


class OrdersRequestEvent(_WireModel):
    """Request for the orders of one customer. The customer id is the correlation key."""

    action: Literal["GET_ORDERS_BY_CLIENT"] = "GET_ORDERS_BY_CLIENT"
    client_id: str = Field(alias="clientId")
    message: str

    @classmethod
    def for_customer(cls, customer_id: str) -> OrdersRequestEvent:
        return cls(client_id=customer_id, message=f"Orders requested for customer {customer_id}")


# -----------------------------------------------------------------------------
# Inbound messages (produced by the orders service)
# -----------------------------------------------------------------------------


class InboundAction(BaseModel):
    """Action-tagged message from another service; unknown keys are ignored."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    action: str
    client_id: str | None = Field(default=None, alias="clientId")


class OrdersReplyEvent(InboundAction):
    orders: list[Any] = Field(default_factory=list)


class VerificationMessage(InboundAction):
    pass


class PushMessage(BaseModel):
    """The `message` member of a push envelope. `data` is base64 JSON."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    data: str | None = None
    message_id: str | None = Field(default=None, alias="messageId")
    publish_time: str | None = Field(default=None, alias="publishTime")


class PushEnvelope(BaseModel):
    model_config = ConfigDict(extra="ignore")

    message: PushMessage | None = None
    subscription: str | None = None
