"""
ID generation and timestamp utilities.

Provides new_customer_id(), new_event_id(), and now_iso() with deterministic
UTC ISO 8601 formatting. Identifiers are ULIDs (lexicographically sortable).
"""

from __future__ import annotations

from datetime import datetime, timezone

from ulid import ULID


def new_customer_id() -> str:
    """
    Generate a new customer ID. Assigned by the store on creation.

    >>> id_ = new_customer_id()
    >>> isinstance(id_, str) and len(id_) == 26
    True
    """
    return str(ULID())


def new_event_id() -> str:
    """
    Generate a new event ID, used as the broker message id of published events.

    >>> new_event_id() != new_event_id()
    True
    """
    return str(ULID())


def now_iso() -> str:
    """
    Return current UTC time as ISO 8601 string with Z suffix.
    Deterministic format: YYYY-MM-DDTHH:MM:SS.ffffffZ

    >>> s = now_iso()
    >>> s.endswith('Z') and 'T' in s
    True
    """
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")
