"""
Inventory Rollups

Tonnage and money by item type, by month and by supplier.

Only APPROVED purchases count: a pending purchase has not moved any
money yet and a rejected one never will. Sales have no approval step.
"""

from collections import defaultdict
from typing import Callable, Iterable, Optional, TypeVar

from cashbook.models.inventory import (
    ApprovalStatus,
    InventoryPurchase,
    InventorySale,
    ItemType,
)
from cashbook.models.reports import (
    InventoryMonthlyTotals,
    InventoryReport,
    InventorySummary,
    ItemRollup,
    MonthRollup,
    RollupTotals,
    SupplierRollup,
)
from cashbook.queries.reports import require_month
from cashbook.services.storage import InventoryStorageInterface

Record = TypeVar("Record", InventoryPurchase, InventorySale)


def _purchase_value(p: InventoryPurchase) -> float:
    return p.purchase_price_total or 0.0


def _sale_value(s: InventorySale) -> float:
    return s.total_amount


def _totals(records: list[Record], value: Callable[[Record], float]) -> RollupTotals:
    kg = sum(r.qty_kg for r in records)
    return RollupTotals(
        total_kg=kg,
        total_tons=kg / 1000,
        total_value=sum(value(r) for r in records),
        count=len(records),
    )


def rollup_by_item(
    records: Iterable[Record],
    value: Callable[[Record], float],
) -> list[ItemRollup]:
    """One row per item type that appears, in ItemType order."""
    grouped: dict[ItemType, list] = defaultdict(list)
    for record in records:
        grouped[record.item_type].append(record)

    rows = []
    for item_type in ItemType:
        if item_type not in grouped:
            continue
        t = _totals(grouped[item_type], value)
        rows.append(ItemRollup(
            item_type=item_type,
            total_kg=t.total_kg,
            total_tons=t.total_tons,
            total_value=t.total_value,
        ))
    return rows


def rollup_by_month(
    records: Iterable[Record],
    value: Callable[[Record], float],
) -> InventoryMonthlyTotals:
    """Per-month totals, most recent month first, plus the overall figure."""
    records = list(records)
    grouped: dict[str, list] = defaultdict(list)
    for record in records:
        grouped[record.month].append(record)

    monthly = [
        MonthRollup(month=month, **_totals(grouped[month], value).model_dump())
        for month in sorted(grouped, reverse=True)
    ]
    return InventoryMonthlyTotals(monthly_totals=monthly, overall=_totals(records, value))


class InventoryQueries:
    """Read-only inventory rollups."""

    def __init__(
        self,
        storage: InventoryStorageInterface,
        approval_workflow_enabled: bool = True,
    ):
        self._storage = storage
        self._approval_workflow_enabled = approval_workflow_enabled

    async def _counted_purchases(self, month: Optional[str] = None) -> list[InventoryPurchase]:
        status = ApprovalStatus.APPROVED if self._approval_workflow_enabled else None
        return await self._storage.list_purchases(month=month, approval_status=status)

    async def purchase_summary(self, month: Optional[str] = None) -> InventorySummary:
        if month:
            require_month(month)
        purchases = await self._counted_purchases(month)
        return InventorySummary(
            month=month,
            by_item=rollup_by_item(purchases, _purchase_value),
            overall=_totals(purchases, _purchase_value),
        )

    async def purchase_monthly_totals(self) -> InventoryMonthlyTotals:
        return rollup_by_month(await self._counted_purchases(), _purchase_value)

    async def sales_summary(self, month: Optional[str] = None) -> InventorySummary:
        if month:
            require_month(month)
        sales = await self._storage.list_sales(month=month)
        return InventorySummary(
            month=month,
            by_item=rollup_by_item(sales, _sale_value),
            overall=_totals(sales, _sale_value),
        )

    async def sales_monthly_totals(self) -> InventoryMonthlyTotals:
        return rollup_by_month(await self._storage.list_sales(), _sale_value)

    async def supplier_summary(self, month: Optional[str] = None) -> list[SupplierRollup]:
        """Counted purchases grouped by supplier, alphabetical."""
        grouped: dict[str, list[InventoryPurchase]] = defaultdict(list)
        for purchase in await self._counted_purchases(month):
            grouped[purchase.supplier_name].append(purchase)

        rows = []
        for supplier in sorted(grouped, key=str.lower):
            t = _totals(grouped[supplier], _purchase_value)
            rows.append(SupplierRollup(
                supplier_name=supplier,
                total_kg=t.total_kg,
                total_tons=t.total_tons,
                total_value=t.total_value,
            ))
        return rows

    async def inventory_report(self, month: Optional[str]) -> InventoryReport:
        """Rows for the monthly inventory document."""
        month = require_month(month)
        return InventoryReport(
            month=month,
            purchases=await self._counted_purchases(month),
            sales=await self._storage.list_sales(month=month),
            suppliers=await self.supplier_summary(month),
            purchase_summary=await self.purchase_summary(month),
            sales_summary=await self.sales_summary(month),
        )
