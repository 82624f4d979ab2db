"""
Logging setup shared by the customer API and its broker consumers.

Configures stdlib logging with timestamps and service name.
Safe for containers (logs to stdout).
"""

from __future__ import annotations

import logging
import sys


class _ServiceFormatter(logging.Formatter):
    """Formatter that injects service_name into the log record."""

    def __init__(self, service_name: str, **kwargs: object) -> None:
        super().__init__(**kwargs)
        self._service_name = service_name

    def format(self, record: logging.LogRecord) -> str:
        record.service_name = getattr(record, "service_name", self._service_name)
        return super().format(record)


def setup_logging(service_name: str, level: str | int = logging.INFO) -> None:
    """
    Configure root logger: timestamp + service name, stdout.
    Idempotent for repeated calls (reconfigures handler/formatter and level).

    `level` accepts a logging constant or a name such as "DEBUG"; unknown
    names fall back to INFO.
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    root = logging.getLogger()
    root.setLevel(level)
    formatter = _ServiceFormatter(
        service_name,
        fmt="%(asctime)s [%(levelname)s] %(service_name)s %(name)s %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
    )
    if not root.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(formatter)
        root.addHandler(handler)
    else:
        for h in root.handlers:
            h.setFormatter(formatter)

    # aio_pika/aiormq are chatty at INFO about reconnects
    logging.getLogger("aiormq").setLevel(max(level, logging.WARNING))
