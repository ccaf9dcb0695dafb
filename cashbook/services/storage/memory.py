"""
In-Memory Storage Implementation

Used by the test suite and for local development without Google
credentials. Rows are copied on the way in and out so callers can never
mutate stored state by accident.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID

from cashbook.models.audit import AuditEvent
from cashbook.models.inventory import ApprovalStatus, InventoryPurchase, InventorySale
from cashbook.models.ledger import Channel, LedgerEntry
from cashbook.periods import utc_now
from cashbook.services.storage.interface import (
    AuditStorageInterface,
    DuplicateError,
    InventoryStorageInterface,
    LedgerStorageInterface,
    NotFoundError,
    filter_entries,
    sum_entries_field,
)


class InMemoryLedgerStorage(LedgerStorageInterface):
    """Ledger entries held in a dict keyed by entry id."""

    def __init__(self):
        self._entries: dict[UUID, LedgerEntry] = {}

    async def save_entry(self, entry: LedgerEntry) -> LedgerEntry:
        if entry.id in self._entries:
            raise DuplicateError(f"Entry already exists: {entry.id}")
        stored = entry.model_copy(deep=True)
        self._entries[stored.id] = stored
        return stored.model_copy(deep=True)

    async def get_entry_by_id(self, entry_id: UUID) -> Optional[LedgerEntry]:
        entry = self._entries.get(entry_id)
        return entry.model_copy(deep=True) if entry else None

    async def update_entry(self, entry: LedgerEntry) -> LedgerEntry:
        if entry.id not in self._entries:
            raise NotFoundError(f"Entry not found: {entry.id}")
        stored = entry.model_copy(deep=True, update={"updated_at": utc_now()})
        self._entries[stored.id] = stored
        return stored.model_copy(deep=True)

    async def delete_entry(self, entry_id: UUID) -> bool:
        return self._entries.pop(entry_id, None) is not None

    async def list_entries(
        self,
        month: Optional[str] = None,
        channel: Optional[Channel] = None,
        reference: Optional[str] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
    ) -> list[LedgerEntry]:
        matched = filter_entries(
            self._entries.values(),
            month=month,
            channel=channel,
            reference=reference,
            date_from=date_from,
            date_to=date_to,
        )
        return [e.model_copy(deep=True) for e in matched]

    async def get_total_by_field(
        self,
        field: str,
        month: Optional[str] = None,
        expense_channel: Optional[Channel] = None,
        primary_channel: Optional[Channel] = None,
    ) -> float:
        return sum_entries_field(
            self._entries.values(),
            field,
            month=month,
            expense_channel=expense_channel,
            primary_channel=primary_channel,
        )

    async def list_months(self) -> list[str]:
        return sorted({e.month for e in self._entries.values()})


class InMemoryInventoryStorage(InventoryStorageInterface):
    """Purchases and sales held in dicts keyed by id."""

    def __init__(self):
        self._purchases: dict[UUID, InventoryPurchase] = {}
        self._sales: dict[UUID, InventorySale] = {}

    async def save_purchase(self, purchase: InventoryPurchase) -> InventoryPurchase:
        if purchase.id in self._purchases:
            raise DuplicateError(f"Purchase already exists: {purchase.id}")
        self._purchases[purchase.id] = purchase.model_copy(deep=True)
        return purchase.model_copy(deep=True)

    async def get_purchase_by_id(self, purchase_id: UUID) -> Optional[InventoryPurchase]:
        purchase = self._purchases.get(purchase_id)
        return purchase.model_copy(deep=True) if purchase else None

    async def update_purchase(self, purchase: InventoryPurchase) -> InventoryPurchase:
        if purchase.id not in self._purchases:
            raise NotFoundError(f"Purchase not found: {purchase.id}")
        stored = purchase.model_copy(deep=True, update={"updated_at": utc_now()})
        self._purchases[stored.id] = stored
        return stored.model_copy(deep=True)

    async def delete_purchase(self, purchase_id: UUID) -> bool:
        return self._purchases.pop(purchase_id, None) is not None

    async def list_purchases(
        self,
        month: Optional[str] = None,
        supplier_name: Optional[str] = None,
        approval_status: Optional[ApprovalStatus] = None,
    ) -> list[InventoryPurchase]:
        purchases = [
            p for p in self._purchases.values()
            if (not month or p.month == month)
            and (not supplier_name or p.supplier_name == supplier_name)
            and (not approval_status or p.approval_status == approval_status)
        ]
        purchases.sort(key=lambda p: p.date_of_purchase)
        return [p.model_copy(deep=True) for p in purchases]

    async def save_sale(self, sale: InventorySale) -> InventorySale:
        if sale.id in self._sales:
            raise DuplicateError(f"Sale already exists: {sale.id}")
        self._sales[sale.id] = sale.model_copy(deep=True)
        return sale.model_copy(deep=True)

    async def get_sale_by_id(self, sale_id: UUID) -> Optional[InventorySale]:
        sale = self._sales.get(sale_id)
        return sale.model_copy(deep=True) if sale else None

    async def delete_sale(self, sale_id: UUID) -> bool:
        return self._sales.pop(sale_id, None) is not None

    async def list_sales(self, month: Optional[str] = None) -> list[InventorySale]:
        sales = [s for s in self._sales.values() if not month or s.month == month]
        sales.sort(key=lambda s: s.date_of_sale)
        return [s.model_copy(deep=True) for s in sales]


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only list of audit events."""

    def __init__(self):
        self._events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event)
        return True

    async def get_events_by_correlation_id(self, correlation_id: UUID) -> list[AuditEvent]:
        events = [e for e in self._events if e.correlation_id == correlation_id]
        return sorted(events, key=lambda e: e.timestamp)

    async def get_events_by_entity(self, entity_type: str, entity_id: str) -> list[AuditEvent]:
        events = [
            e for e in self._events
            if e.entity_type == entity_type and e.entity_id == entity_id
        ]
        return sorted(events, key=lambda e: e.timestamp)

    async def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        return sorted(self._events, key=lambda e: e.timestamp, reverse=True)[:limit]
