"""Service settings, read from the environment."""

from __future__ import annotations

import os

from pydantic import BaseModel, Field

from broker.config import EXCHANGE, RABBIT_URL


def _split_list(value: str) -> list[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


class Settings(BaseModel):
    api_key: str | None = None
    db_path: str = "/data/customers.db"
    rabbit_url: str = RABBIT_URL
    broker_exchange: str = EXCHANGE
    broker_connect_attempts: int = Field(default=30, ge=1)
    order_lookup_timeout_s: float = Field(default=10.0, gt=0)
    port: int = 8081
    log_level: str = "INFO"
    cors_origins: list[str] = Field(default_factory=lambda: ["*"])

    @classmethod
    def from_env(cls) -> Settings:
        return cls(
            api_key=os.getenv("API_KEY") or None,
            db_path=os.getenv("DB_PATH", "/data/customers.db"),
            rabbit_url=os.getenv("RABBIT_URL", RABBIT_URL),
            broker_exchange=os.getenv("BROKER_EXCHANGE", EXCHANGE),
            broker_connect_attempts=int(os.getenv("BROKER_CONNECT_ATTEMPTS", "30")),
            order_lookup_timeout_s=float(os.getenv("ORDER_LOOKUP_TIMEOUT_S", "10")),
            port=int(os.getenv("PORT", "8081")),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            cors_origins=_split_list(os.getenv("CORS_ORIGINS", "*")),
        )
