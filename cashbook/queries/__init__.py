"""Read-only reporting queries."""

from cashbook.queries.inventory import InventoryQueries, rollup_by_item, rollup_by_month
from cashbook.queries.reports import ReportQueries, daily_income_share, require_month

__all__ = [
    "InventoryQueries",
    "ReportQueries",
    "daily_income_share",
    "require_month",
    "rollup_by_item",
    "rollup_by_month",
]
