"""Data models for the route sheet key-value store."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class AuditAction(Enum):
    """Actions tracked in the store audit log."""
    SET = "set"
    DELETED = "deleted"
    MULTI_UPDATE = "multi_update"


class RouteStoreError(Exception):
    """Raised when a store read or write fails."""


@dataclass
class StoreAuditEntry:
    """Audit log entry for a store write."""
    id: int
    key: str
    action: AuditAction
    performed_at: datetime
    details: str | None = None

    @classmethod
    def from_row(cls, row: tuple) -> "StoreAuditEntry":
        """Create from database row tuple."""
        performed_at = row[3]
        if isinstance(performed_at, str):
            performed_at = datetime.fromisoformat(performed_at)

        return cls(
            id=row[0],
            key=row[1],
            action=AuditAction(row[2]),
            performed_at=performed_at,
            details=row[4],
        )
