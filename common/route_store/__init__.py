"""Route sheet storage module.

Provides SQLite-backed key-value storage for route sheets:
- Single-key get/set/delete keyed by ``{doctorId}_{contractId}``
- Atomic multi-key updates (None value = delete)
- Audit trail of every write
"""

from .models import (
    AuditAction,
    RouteStoreError,
    StoreAuditEntry,
)
from .store import RouteSheetStore

__all__ = [
    "AuditAction",
    "RouteStoreError",
    "StoreAuditEntry",
    "RouteSheetStore",
]
