"""Customer API service."""

from customer_service.app import build_app, create_app

__all__ = ["build_app", "create_app"]
