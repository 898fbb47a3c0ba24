"""Common storage utilities for examination routing."""

from .route_store import (
    AuditAction,
    RouteSheetStore,
    RouteStoreError,
    StoreAuditEntry,
)

__all__ = [
    # Route Store
    "AuditAction",
    "RouteSheetStore",
    "RouteStoreError",
    "StoreAuditEntry",
]
