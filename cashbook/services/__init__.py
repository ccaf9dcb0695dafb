"""Services package."""

from cashbook.services.storage import (
    AuditStorageInterface,
    ConnectionError,
    DuplicateError,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsInventoryStorage,
    GoogleSheetsLedgerStorage,
    InMemoryAuditStorage,
    InMemoryInventoryStorage,
    InMemoryLedgerStorage,
    InventoryStorageInterface,
    LedgerStorageInterface,
    NotFoundError,
    StorageError,
)

__all__ = [
    "AuditStorageInterface",
    "ConnectionError",
    "DuplicateError",
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsInventoryStorage",
    "GoogleSheetsLedgerStorage",
    "InMemoryAuditStorage",
    "InMemoryInventoryStorage",
    "InMemoryLedgerStorage",
    "InventoryStorageInterface",
    "LedgerStorageInterface",
    "NotFoundError",
    "StorageError",
]
