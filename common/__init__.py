"""
Shared common module for the customer API and its broker consumers.

Framework-agnostic; no FastAPI dependency. Uses Pydantic v2 for schemas.
"""

from common.errors import (
    AuthError,
    CustomerServiceError,
    DuplicateEmailError,
    ImmutableFieldError,
    NotFoundError,
    ProtocolError,
    StorageError,
    TransportError,
    UnknownCustomerError,
    UpstreamTimeoutError,
    ValidationError,
)
from common.ids import new_customer_id, new_event_id, now_iso
from common.logging import setup_logging
from common.models import (
    CUSTOMER_FIELDS,
    ClientDeletedEvent,
    ClientExistsEvent,
    Customer,
    CustomerEvent,
    OrdersReplyEvent,
    OrdersRequestEvent,
    PushEnvelope,
    ReconciliationOutcome,
    VerificationMessage,
)
from common.storage import CustomerStore
from common.validation import validate_for_create, validate_for_update

__all__ = [
    "new_customer_id",
    "new_event_id",
    "now_iso",
    "setup_logging",
    "CUSTOMER_FIELDS",
    "Customer",
    "CustomerEvent",
    "ClientDeletedEvent",
    "ClientExistsEvent",
    "OrdersRequestEvent",
    "OrdersReplyEvent",
    "VerificationMessage",
    "PushEnvelope",
    "ReconciliationOutcome",
    "CustomerStore",
    "validate_for_create",
    "validate_for_update",
    "CustomerServiceError",
    "ValidationError",
    "ImmutableFieldError",
    "DuplicateEmailError",
    "NotFoundError",
    "UnknownCustomerError",
    "AuthError",
    "UpstreamTimeoutError",
    "TransportError",
    "StorageError",
    "ProtocolError",
]
