"""
Data Models Package

This package contains all Pydantic models used by the cashbook.
All data flowing through the system must conform to these schemas.
"""

from cashbook.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)
from cashbook.models.identity import Caller, Role
from cashbook.models.inventory import (
    ApprovalStatus,
    InventoryPurchase,
    InventorySale,
    ItemType,
)
from cashbook.models.ledger import (
    KNOWN_CHANNELS,
    PAYMENT_CHANNELS,
    Channel,
    EntrySubmission,
    LedgerEntry,
    PaymentTier,
    Sector,
    TransferRequest,
    TransferResult,
    WagesCategory,
)
from cashbook.models.reports import (
    CashbookReport,
    ChannelAvailability,
    ChannelBalance,
    ChannelBalances,
    ChannelMonthSummary,
    DailyChannelTotals,
    DailyTotals,
    InventoryMonthlyTotals,
    InventoryReport,
    InventorySummary,
    ItemRollup,
    MonthlySummary,
    MonthlyTotals,
    MonthRollup,
    RollupTotals,
    SupplierRollup,
)

__all__ = [
    # Ledger models
    "KNOWN_CHANNELS",
    "PAYMENT_CHANNELS",
    "Channel",
    "EntrySubmission",
    "LedgerEntry",
    "PaymentTier",
    "Sector",
    "TransferRequest",
    "TransferResult",
    "WagesCategory",
    # Identity
    "Caller",
    "Role",
    # Inventory models
    "ApprovalStatus",
    "InventoryPurchase",
    "InventorySale",
    "ItemType",
    # Report models
    "CashbookReport",
    "ChannelAvailability",
    "ChannelBalance",
    "ChannelBalances",
    "ChannelMonthSummary",
    "DailyChannelTotals",
    "DailyTotals",
    "InventoryMonthlyTotals",
    "InventoryReport",
    "InventorySummary",
    "ItemRollup",
    "MonthlySummary",
    "MonthlyTotals",
    "MonthRollup",
    "RollupTotals",
    "SupplierRollup",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
