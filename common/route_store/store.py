"""SQLite-backed key-value storage for route sheets."""

import json
import logging
import os
import sqlite3
from datetime import datetime
from pathlib import Path
from typing import Any

from .models import AuditAction, RouteStoreError, StoreAuditEntry

logger = logging.getLogger(__name__)


def _contract_of(value: dict[str, Any] | None) -> str | None:
    """Extract the contract id carried by a stored document, if any."""
    if not value:
        return None
    contract_id = value.get("contractId")
    return str(contract_id) if contract_id is not None else None


class RouteSheetStore:
    """SQLite-backed key-value store keyed by ``{doctorId}_{contractId}``.

    Values are JSON documents. Single-key writes commit on their own;
    ``multi_update`` applies a batch of writes and deletes in one transaction.
    """

    def __init__(self, db_path: str | None = None):
        """Initialize route sheet store.

        Args:
            db_path: Path to SQLite database. Defaults to ROUTE_DB_PATH env var
                     or ~/.exam_routing/route_sheets.db
        """
        if db_path:
            self.db_path = os.path.expanduser(db_path)
        else:
            self.db_path = os.path.expanduser(
                os.environ.get("ROUTE_DB_PATH", "~/.exam_routing/route_sheets.db")
            )

        db_dir = os.path.dirname(self.db_path)
        if db_dir:
            os.makedirs(db_dir, exist_ok=True)

        self._init_db()

    def _init_db(self) -> None:
        """Initialize database schema."""
        schema_path = Path(__file__).parent / "schema.sql"
        with open(schema_path, encoding="utf-8") as f:
            schema = f.read()

        with self._connect() as conn:
            conn.executescript(schema)

    def _connect(self) -> sqlite3.Connection:
        """Get database connection with row factory."""
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    @staticmethod
    def _dump(key: str, value: dict[str, Any]) -> str:
        try:
            return json.dumps(value, ensure_ascii=False, sort_keys=True)
        except (TypeError, ValueError) as e:
            raise RouteStoreError(f"Value for {key} is not JSON serializable: {e}") from e

    # Core key-value operations

    def get(self, key: str) -> dict[str, Any] | None:
        """Get the document stored under a key, or None."""
        try:
            with self._connect() as conn:
                row = conn.execute(
                    "SELECT value FROM route_sheets WHERE key = ?", (key,)
                ).fetchone()
        except sqlite3.Error as e:
            raise RouteStoreError(f"Failed to read {key}: {e}") from e

        if row is None:
            return None
        return json.loads(row["value"])

    def set(self, key: str, value: dict[str, Any]) -> None:
        """Write (insert or overwrite) a single document."""
        payload = self._dump(key, value)
        now = datetime.now().isoformat()

        try:
            with self._connect() as conn:
                conn.execute(
                    """
                    INSERT OR REPLACE INTO route_sheets (key, contract_id, value, updated_at)
                    VALUES (?, ?, ?, ?)
                    """,
                    (key, _contract_of(value), payload, now)
                )
                conn.execute(
                    """
                    INSERT INTO route_sheet_audit (key, action, performed_at, details)
                    VALUES (?, ?, ?, ?)
                    """,
                    (key, AuditAction.SET.value, now, None)
                )
                conn.commit()
        except sqlite3.Error as e:
            raise RouteStoreError(f"Failed to write {key}: {e}") from e

        logger.debug(f"Stored {key}")

    def delete(self, key: str) -> bool:
        """Delete a single document. Returns True if a row was removed."""
        now = datetime.now().isoformat()
        try:
            with self._connect() as conn:
                cursor = conn.execute("DELETE FROM route_sheets WHERE key = ?", (key,))
                if cursor.rowcount > 0:
                    conn.execute(
                        """
                        INSERT INTO route_sheet_audit (key, action, performed_at, details)
                        VALUES (?, ?, ?, ?)
                        """,
                        (key, AuditAction.DELETED.value, now, None)
                    )
                conn.commit()
        except sqlite3.Error as e:
            raise RouteStoreError(f"Failed to delete {key}: {e}") from e

        return cursor.rowcount > 0

    def multi_update(
        self,
        updates: dict[str, dict[str, Any] | None],
        details: str | None = None,
    ) -> None:
        """Apply several writes and deletes atomically.

        Args:
            updates: Mapping of key to new document; None deletes the key
            details: Optional note recorded in the audit log for every key

        Raises:
            RouteStoreError: If any part fails. Nothing is applied in that case.
        """
        if not updates:
            return

        # Serialize everything before opening the transaction
        payloads = {
            key: (self._dump(key, value) if value is not None else None)
            for key, value in updates.items()
        }
        now = datetime.now().isoformat()

        conn = self._connect()
        try:
            conn.execute("BEGIN IMMEDIATE")
            for key, payload in payloads.items():
                if payload is None:
                    conn.execute("DELETE FROM route_sheets WHERE key = ?", (key,))
                    action = AuditAction.DELETED
                else:
                    conn.execute(
                        """
                        INSERT OR REPLACE INTO route_sheets (key, contract_id, value, updated_at)
                        VALUES (?, ?, ?, ?)
                        """,
                        (key, _contract_of(updates[key]), payload, now)
                    )
                    action = AuditAction.SET
                conn.execute(
                    """
                    INSERT INTO route_sheet_audit (key, action, performed_at, details)
                    VALUES (?, ?, ?, ?)
                    """,
                    (key, action.value, now, details or AuditAction.MULTI_UPDATE.value)
                )
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            raise RouteStoreError(f"Multi-key update failed, rolled back: {e}") from e
        finally:
            conn.close()

        logger.info(f"Applied multi-key update to {len(payloads)} key(s)")

    # Queries

    def keys(self) -> list[str]:
        """List all stored keys."""
        with self._connect() as conn:
            rows = conn.execute("SELECT key FROM route_sheets ORDER BY key").fetchall()
        return [row["key"] for row in rows]

    def list_by_contract(self, contract_id: str) -> dict[str, dict[str, Any]]:
        """Get all documents for a contract, keyed by store key."""
        try:
            with self._connect() as conn:
                rows = conn.execute(
                    "SELECT key, value FROM route_sheets WHERE contract_id = ? ORDER BY key",
                    (str(contract_id),)
                ).fetchall()
        except sqlite3.Error as e:
            raise RouteStoreError(f"Failed to list contract {contract_id}: {e}") from e

        return {row["key"]: json.loads(row["value"]) for row in rows}

    def get_audit_log(self, key: str) -> list[StoreAuditEntry]:
        """Get audit history for a key, oldest first."""
        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT id, key, action, performed_at, details
                FROM route_sheet_audit WHERE key = ?
                ORDER BY id
                """,
                (key,)
            ).fetchall()

        return [StoreAuditEntry.from_row(tuple(row)) for row in rows]
