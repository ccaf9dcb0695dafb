"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Swap Google Sheets for a real database later
2. Use in-memory storage for testing
3. Keep balance computation decoupled from storage implementation

The interface is intentionally simple - we're not building a full ORM.
Just the queries the balance engine and reports need: find by month,
find by month and channel, sum a field under a filter, insert, update by
id, delete by id, and list the distinct months.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Iterable, Optional
from uuid import UUID

from cashbook.errors import CashbookError, ErrorKind
from cashbook.models.audit import AuditEvent
from cashbook.models.inventory import ApprovalStatus, InventoryPurchase, InventorySale
from cashbook.models.ledger import Channel, LedgerEntry

# Numeric LedgerEntry fields that get_total_by_field may sum
SUMMABLE_FIELDS = frozenset({
    "total_amount",
    "expense_amount",
    "transaction_charges",
    "salary_amount",
    "advance",
    "salary_balance",
    "allowance",
})


class LedgerStorageInterface(ABC):
    """
    Abstract interface for ledger entry storage.

    Any storage implementation (Google Sheets, PostgreSQL, etc.)
    must implement these methods.
    """

    @abstractmethod
    async def save_entry(self, entry: LedgerEntry) -> LedgerEntry:
        """
        Insert a new entry.

        Returns:
            The stored representation

        Raises:
            StorageError: If save fails
            DuplicateError: If an entry with the same id exists
        """
        pass

    @abstractmethod
    async def get_entry_by_id(self, entry_id: UUID) -> Optional[LedgerEntry]:
        """Return the entry, or None if it doesn't exist."""
        pass

    @abstractmethod
    async def update_entry(self, entry: LedgerEntry) -> LedgerEntry:
        """
        Replace an existing entry (matched by id).

        Raises:
            StorageError: If update fails
            NotFoundError: If entry doesn't exist
        """
        pass

    @abstractmethod
    async def delete_entry(self, entry_id: UUID) -> bool:
        """
        Delete an entry by ID.

        Returns:
            True if a row was deleted, False if there was nothing to delete
        """
        pass

    @abstractmethod
    async def list_entries(
        self,
        month: Optional[str] = None,
        channel: Optional[Channel] = None,
        reference: Optional[str] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
    ) -> list[LedgerEntry]:
        """
        List entries with optional filters, oldest first.

        Args:
            month: Only entries in this YYYY-MM month
            channel: Only entries that move money in or out of this channel
            reference: Only entries carrying this reference
            date_from: Entries dated on or after this instant
            date_to: Entries dated strictly before this instant
        """
        pass

    @abstractmethod
    async def get_total_by_field(
        self,
        field: str,
        month: Optional[str] = None,
        expense_channel: Optional[Channel] = None,
        primary_channel: Optional[Channel] = None,
    ) -> float:
        """
        Sum one numeric field over the matching entries.

        Raises:
            ValueError: If ``field`` is not a summable ledger field
        """
        pass

    @abstractmethod
    async def list_months(self) -> list[str]:
        """Distinct month keys that have at least one entry, ascending."""
        pass


class InventoryStorageInterface(ABC):
    """Abstract interface for purchases and sales."""

    @abstractmethod
    async def save_purchase(self, purchase: InventoryPurchase) -> InventoryPurchase:
        pass

    @abstractmethod
    async def get_purchase_by_id(self, purchase_id: UUID) -> Optional[InventoryPurchase]:
        pass

    @abstractmethod
    async def update_purchase(self, purchase: InventoryPurchase) -> InventoryPurchase:
        """
        Raises:
            NotFoundError: If purchase doesn't exist
        """
        pass

    @abstractmethod
    async def delete_purchase(self, purchase_id: UUID) -> bool:
        """True if a purchase was removed, False if there was none."""
        pass

    @abstractmethod
    async def list_purchases(
        self,
        month: Optional[str] = None,
        supplier_name: Optional[str] = None,
        approval_status: Optional[ApprovalStatus] = None,
    ) -> list[InventoryPurchase]:
        """Purchases oldest first."""
        pass

    @abstractmethod
    async def save_sale(self, sale: InventorySale) -> InventorySale:
        pass

    @abstractmethod
    async def get_sale_by_id(self, sale_id: UUID) -> Optional[InventorySale]:
        pass

    @abstractmethod
    async def delete_sale(self, sale_id: UUID) -> bool:
        pass

    @abstractmethod
    async def list_sales(self, month: Optional[str] = None) -> list[InventorySale]:
        """Sales oldest first."""
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """Events sharing a correlation ID, in chronological order."""
        pass

    @abstractmethod
    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        """Events for one entity, in chronological order."""
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Most recent events, newest first."""
        pass


# =============================================================================
# SHARED FILTERING
# =============================================================================

def filter_entries(
    entries: Iterable[LedgerEntry],
    month: Optional[str] = None,
    channel: Optional[Channel] = None,
    reference: Optional[str] = None,
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
) -> list[LedgerEntry]:
    """Apply the list_entries filters in Python, oldest first."""
    matched = []
    for entry in entries:
        if month and entry.month != month:
            continue
        if channel and not entry.touches(channel):
            continue
        if reference and entry.reference != reference:
            continue
        if date_from and entry.date < date_from:
            continue
        if date_to and entry.date >= date_to:
            continue
        matched.append(entry)

    matched.sort(key=lambda e: (e.date, e.created_at))
    return matched


def sum_entries_field(
    entries: Iterable[LedgerEntry],
    field: str,
    month: Optional[str] = None,
    expense_channel: Optional[Channel] = None,
    primary_channel: Optional[Channel] = None,
) -> float:
    if field not in SUMMABLE_FIELDS:
        raise ValueError(f"Cannot sum ledger field: {field}")

    total = 0.0
    for entry in entries:
        if month and entry.month != month:
            continue
        if expense_channel and entry.expense_channel != expense_channel:
            continue
        if primary_channel and entry.primary_channel != primary_channel:
            continue
        total += getattr(entry, field) or 0.0
    return total


# =============================================================================
# EXCEPTIONS
# =============================================================================

class StorageError(CashbookError):
    """Base exception for storage operations."""
    kind = ErrorKind.STORAGE


class NotFoundError(StorageError):
    """Entity not found in storage."""
    kind = ErrorKind.NOT_FOUND


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
