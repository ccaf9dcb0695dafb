"""
Storage Services Package

Provides abstract interfaces and concrete implementations for data storage.
Google Sheets is the shared backend; the in-memory implementation backs the
test suite and local development. Both are swappable behind the interfaces.
"""

from cashbook.services.storage.interface import (
    SUMMABLE_FIELDS,
    AuditStorageInterface,
    ConnectionError,
    DuplicateError,
    InventoryStorageInterface,
    LedgerStorageInterface,
    NotFoundError,
    StorageError,
)
from cashbook.services.storage.google_sheets import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsInventoryStorage,
    GoogleSheetsLedgerStorage,
)
from cashbook.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryInventoryStorage,
    InMemoryLedgerStorage,
)

__all__ = [
    # Interfaces
    "SUMMABLE_FIELDS",
    "AuditStorageInterface",
    "InventoryStorageInterface",
    "LedgerStorageInterface",
    # Exceptions
    "ConnectionError",
    "DuplicateError",
    "NotFoundError",
    "StorageError",
    # Google Sheets implementation
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsInventoryStorage",
    "GoogleSheetsLedgerStorage",
    # In-memory implementation
    "InMemoryAuditStorage",
    "InMemoryInventoryStorage",
    "InMemoryLedgerStorage",
]
