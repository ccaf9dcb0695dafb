"""
Read-Side Result Models

Everything the calculator and reporting queries hand back to callers
(HTTP layer, PDF renderer). Plain data, already computed, no formatting.
"""

from datetime import date
from typing import Optional

from pydantic import BaseModel, Field

from cashbook.models.inventory import InventoryPurchase, InventorySale, ItemType
from cashbook.models.ledger import Channel, LedgerEntry


# =============================================================================
# CHANNEL BALANCES
# =============================================================================

class ChannelAvailability(BaseModel):
    """Result of one availability check."""

    available_after: float = 0.0
    carry_from_previous: float = 0.0


class ChannelBalance(BaseModel):
    carry_over: float = 0.0
    current_income: float = 0.0
    current_expenses: float = 0.0
    available_balance: float = 0.0


class ChannelBalances(BaseModel):
    month: str
    balances: dict[Channel, ChannelBalance]


class DailyChannelTotals(BaseModel):
    income: float = 0.0
    expenses: float = 0.0
    net: float = 0.0


class DailyTotals(BaseModel):
    date: date
    totals_by_channel: dict[Channel, DailyChannelTotals]
    overall_total: float = 0.0


# =============================================================================
# MONTHLY CASHBOOK
# =============================================================================

class MonthlyTotals(BaseModel):
    total_amount: float = 0.0
    total_expenses: float = 0.0
    total_transaction_charges: float = 0.0
    total_salary_amount: float = 0.0
    total_allowance: float = 0.0


class ChannelMonthSummary(BaseModel):
    """One row per primary channel seen in the month."""

    channel: Channel
    total_amount: float = 0.0
    total_expenses: float = 0.0
    carry_from_previous: float = 0.0
    carry_to_next: float = 0.0


class MonthlySummary(BaseModel):
    month: str
    totals: MonthlyTotals
    by_channel: list[ChannelMonthSummary] = Field(default_factory=list)


class CashbookReport(BaseModel):
    """Rows for the monthly cashbook document."""

    month: str
    entries: list[LedgerEntry]
    summary: MonthlySummary


# =============================================================================
# INVENTORY ROLLUPS
# =============================================================================

class ItemRollup(BaseModel):
    item_type: ItemType
    total_kg: float = 0.0
    total_tons: float = 0.0
    total_value: float = Field(
        default=0.0,
        description="Money paid (purchases) or received (sales)"
    )


class SupplierRollup(BaseModel):
    supplier_name: str
    total_kg: float = 0.0
    total_tons: float = 0.0
    total_value: float = 0.0


class RollupTotals(BaseModel):
    total_kg: float = 0.0
    total_tons: float = 0.0
    total_value: float = 0.0
    count: int = 0


class MonthRollup(RollupTotals):
    month: str


class InventorySummary(BaseModel):
    """Tonnage and money by item type, optionally for one month."""

    month: Optional[str] = None
    by_item: list[ItemRollup] = Field(default_factory=list)
    overall: RollupTotals = Field(default_factory=RollupTotals)


class InventoryMonthlyTotals(BaseModel):
    """Per-month totals, most recent month first."""

    monthly_totals: list[MonthRollup] = Field(default_factory=list)
    overall: RollupTotals = Field(default_factory=RollupTotals)


class InventoryReport(BaseModel):
    """Rows for the monthly inventory document."""

    month: str
    purchases: list[InventoryPurchase]
    sales: list[InventorySale]
    suppliers: list[SupplierRollup]
    purchase_summary: InventorySummary
    sales_summary: InventorySummary
