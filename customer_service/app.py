"""
Customer API: CRUD over the customer store, lifecycle announcements on the
broker, order lookup through the orders service and the verification webhook.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse

from broker import MessageBroker, create_broker
from common import setup_logging
from common.errors import AuthError, CustomerServiceError
from common.storage import CustomerStore
from customer_service.config import Settings
from customer_service.coordinator import OrderLookupCoordinator
from customer_service.reconciler import VerificationReconciler
from customer_service.routes import router

logger = logging.getLogger(__name__)


def create_app(
    settings: Settings | None = None,
    store: CustomerStore | None = None,
    broker: MessageBroker | None = None,
) -> FastAPI:
    """
    Build the application. Services are created here and handed to routes via
    app.state; the lifespan only initializes the store, connects the broker
    and subscribes the coordinator.
    """
    settings = settings or Settings.from_env()
    store = store or CustomerStore(settings.db_path)
    broker = broker or create_broker(
        settings.rabbit_url, settings.broker_exchange, settings.broker_connect_attempts
    )
    coordinator = OrderLookupCoordinator(store, broker, timeout=settings.order_lookup_timeout_s)
    reconciler = VerificationReconciler(store, broker)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        store.init()
        await broker.connect()
        await coordinator.start()
        logger.info("Customer API ready (lookup timeout %ss)", settings.order_lookup_timeout_s)
        yield
        await broker.close()

    app = FastAPI(title="Customer API", lifespan=lifespan)
    app.state.settings = settings
    app.state.store = store
    app.state.broker = broker
    app.state.coordinator = coordinator
    app.state.reconciler = reconciler

    # Browser clients call the API directly
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(CustomerServiceError)
    async def customer_service_error_handler(request: Request, exc: CustomerServiceError):
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        if isinstance(exc, AuthError):
            return JSONResponse(status_code=exc.status_code, content={"message": exc.message})
        return PlainTextResponse(exc.message, status_code=exc.status_code)

    @app.get("/", response_class=PlainTextResponse)
    def index():
        return "Welcome to the Customer API"

    @app.get("/health")
    def health():
        return {"status": "ok"}

    app.include_router(router)
    return app


def build_app() -> FastAPI:
    """Entry point for `uvicorn customer_service.app:build_app --factory`."""
    settings = Settings.from_env()
    setup_logging("customer-service", settings.log_level)
    return create_app(settings)
