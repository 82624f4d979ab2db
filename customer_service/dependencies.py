"""FastAPI dependencies: services live on app.state, injected per request."""

from __future__ import annotations

import hmac
from typing import Annotated

from fastapi import Depends, Header, Request

from broker import MessageBroker
from common.errors import AuthError
from common.storage import CustomerStore
from customer_service.config import Settings
from customer_service.coordinator import OrderLookupCoordinator
from customer_service.reconciler import VerificationReconciler


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_store(request: Request) -> CustomerStore:
    return request.app.state.store


def get_broker(request: Request) -> MessageBroker:
    return request.app.state.broker


def get_coordinator(request: Request) -> OrderLookupCoordinator:
    return request.app.state.coordinator


def get_reconciler(request: Request) -> VerificationReconciler:
    return request.app.state.reconciler


def require_api_key(
    settings: Annotated[Settings, Depends(get_settings)],
    x_api_key: Annotated[str | None, Header()] = None,
) -> None:
    """Reject unless X-API-Key matches API_KEY. An unset API_KEY rejects everything."""
    if not settings.api_key or x_api_key is None:
        raise AuthError()
    if not hmac.compare_digest(x_api_key.encode(), settings.api_key.encode()):
        raise AuthError()


StoreDep = Annotated[CustomerStore, Depends(get_store)]
BrokerDep = Annotated[MessageBroker, Depends(get_broker)]
CoordinatorDep = Annotated[OrderLookupCoordinator, Depends(get_coordinator)]
ReconcilerDep = Annotated[VerificationReconciler, Depends(get_reconciler)]
