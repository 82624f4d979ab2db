"""
SQLite-backed customer store.

One JSON document per customer row, keyed by an opaque id assigned on
creation. Uses WAL mode and parameterized queries. Every database failure is
raised as StorageError naming the operation; the email unique index turns
duplicate emails into DuplicateEmailError.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from common.errors import DuplicateEmailError, NotFoundError, StorageError
from common.ids import new_customer_id, now_iso
from common.models import CUSTOMER_FIELDS, Customer

logger = logging.getLogger(__name__)


class CustomerStore:
    """Typed CRUD access to the customers collection."""

    def __init__(self, db_path: str) -> None:
        self.db_path = db_path

    def init(self) -> None:
        """
        Create database and table if they do not exist.
        Enables WAL mode for better concurrency.

        Table:
        - customers(id, email, payload_json, created_at, updated_at)
          with a unique index on email
        """
        path = Path(self.db_path)
        path.parent.mkdir(parents=True, exist_ok=True)

        with self._guard("initializing the customer store"), self._connection() as conn:
            conn.execute("PRAGMA journal_mode=WAL")
            conn.execute("""
                CREATE TABLE IF NOT EXISTS customers (
                    id TEXT PRIMARY KEY,
                    email TEXT NOT NULL,
                    payload_json TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)
            conn.execute("CREATE UNIQUE INDEX IF NOT EXISTS customers_email ON customers (email)")

    @contextmanager
    def _connection(self) -> Iterator[sqlite3.Connection]:
        """Context manager for a SQLite connection (auto-commit on exit, rollback on error)."""
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    @contextmanager
    def _guard(self, operation: str, email: str | None = None) -> Iterator[None]:
        try:
            yield
        except sqlite3.IntegrityError as e:
            if email is not None and "UNIQUE" in str(e) and "email" in str(e):
                raise DuplicateEmailError(email) from e
            raise StorageError(operation, e) from e
        except sqlite3.Error as e:
            logger.error("Store failure while %s: %s", operation, e)
            raise StorageError(operation, e) from e

    @staticmethod
    def _to_customer(row: sqlite3.Row) -> Customer:
        return Customer(id=row["id"], **json.loads(row["payload_json"]))

    def get(self, customer_id: str) -> Customer | None:
        """Return the customer or None if the id is unknown."""
        with self._guard("retrieving the customer by ID"), self._connection() as conn:
            row = conn.execute(
                "SELECT id, payload_json FROM customers WHERE id = ?",
                (customer_id,),
            ).fetchone()
        if row is None:
            return None
        return self._to_customer(row)

    def list(self) -> list[Customer]:
        with self._guard("retrieving customers"), self._connection() as conn:
            rows = conn.execute("SELECT id, payload_json FROM customers ORDER BY id").fetchall()
        return [self._to_customer(row) for row in rows]

    def create(self, fields: dict[str, Any]) -> str:
        """Insert a new customer and return its generated id."""
        payload = _clean(fields)
        customer_id = new_customer_id()
        created_at = now_iso()
        email = payload.get("email")
        with self._guard("creating the customer", email=email), self._connection() as conn:
            conn.execute(
                """
                INSERT INTO customers (id, email, payload_json, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (customer_id, email, json.dumps(payload), created_at, created_at),
            )
        return customer_id

    def merge(self, customer_id: str, fields: dict[str, Any]) -> Customer:
        """
        Partial update: supplied fields replace stored ones, the rest is left
        untouched. Raises NotFoundError for an unknown id.
        """
        changes = _clean(fields)
        email = changes.get("email")
        with self._guard("updating the customer", email=email), self._connection() as conn:
            conn.execute("BEGIN IMMEDIATE")
            row = conn.execute(
                "SELECT id, payload_json FROM customers WHERE id = ?",
                (customer_id,),
            ).fetchone()
            if row is None:
                raise NotFoundError(customer_id)
            payload = json.loads(row["payload_json"])
            payload.update(changes)
            conn.execute(
                "UPDATE customers SET email = ?, payload_json = ?, updated_at = ? WHERE id = ?",
                (payload["email"], json.dumps(payload), now_iso(), customer_id),
            )
        return Customer(id=customer_id, **payload)

    def delete(self, customer_id: str) -> None:
        """Delete a customer. Raises NotFoundError for an unknown id."""
        with self._guard("deleting the customer"), self._connection() as conn:
            cur = conn.execute("DELETE FROM customers WHERE id = ?", (customer_id,))
            deleted = cur.rowcount
        if deleted == 0:
            raise NotFoundError(customer_id)

    def find_by_email(self, email: str, exclude_id: str | None = None) -> bool:
        """True if another customer (other than `exclude_id`) uses this email. Case-sensitive."""
        with self._guard("checking email uniqueness"), self._connection() as conn:
            row = conn.execute(
                "SELECT id FROM customers WHERE email = ? AND id IS NOT ?",
                (email, exclude_id),
            ).fetchone()
        return row is not None


def _clean(fields: dict[str, Any]) -> dict[str, Any]:
    """Keep only allow-listed fields; the id never enters the payload."""
    return {key: value for key, value in fields.items() if key in CUSTOMER_FIELDS}
