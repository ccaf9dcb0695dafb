"""
Cashbook Reporting Queries

Read-only rollups over the ledger: channel balances, daily totals, the
monthly summary and the rows behind the monthly cashbook document.

DESIGN DECISION: Every figure is recomputed from ledger rows on each call.
There is no cache to invalidate, so an admin edit shows up in the very
next report.
"""

from datetime import date, datetime
from typing import Optional, Union

import structlog

from cashbook.balances import ChannelAvailabilityCalculator
from cashbook.errors import ValidationFailedError
from cashbook.models.ledger import KNOWN_CHANNELS, Channel, LedgerEntry
from cashbook.models.reports import (
    CashbookReport,
    ChannelBalances,
    ChannelMonthSummary,
    DailyChannelTotals,
    DailyTotals,
    MonthlySummary,
    MonthlyTotals,
)
from cashbook.periods import current_month, day_bounds, is_month, to_utc
from cashbook.services.storage import LedgerStorageInterface

logger = structlog.get_logger(__name__)


def daily_income_share(entry: LedgerEntry, channel: Channel) -> float:
    """
    Income an entry contributes to ``channel`` in the daily view.

    The per-channel map wins. Without one, a single-channel entry counts
    in full and a multi-channel entry is split evenly by channel count.
    """
    if entry.amounts_by_channel:
        return entry.amounts_by_channel.get(channel, 0.0)
    channels = entry.channels or ([entry.primary_channel] if entry.primary_channel else [])
    if channel not in channels:
        return 0.0
    return entry.total_amount / len(channels)


def require_month(month: Optional[str]) -> str:
    if not month:
        raise ValidationFailedError("month is required", field="month")
    if not is_month(month):
        raise ValidationFailedError(f"month must look like YYYY-MM, got {month!r}", field="month")
    return month


class ReportQueries:
    """
    Cashbook rollups.

    All methods are pure reads.
    """

    def __init__(
        self,
        storage: LedgerStorageInterface,
        calculator: ChannelAvailabilityCalculator,
    ):
        self._storage = storage
        self._calculator = calculator

    async def list_entries(self, month: Optional[str] = None) -> list[LedgerEntry]:
        """Entries for a month (or all of them), sorted by date."""
        if month:
            require_month(month)
        return await self._storage.list_entries(month=month)

    async def list_months(self) -> list[str]:
        return await self._storage.list_months()

    async def balances(self, month: Optional[str] = None) -> ChannelBalances:
        """Carry-over, income, expenses and availability for every channel."""
        month = require_month(month) if month else current_month()
        balances = {
            channel: await self._calculator.balance(month, channel)
            for channel in KNOWN_CHANNELS
        }
        return ChannelBalances(month=month, balances=balances)

    async def daily_totals(self, day: Union[date, datetime, str, None]) -> DailyTotals:
        """
        Income, expenses and net per channel for one UTC calendar day.

        Raises:
            ValidationFailedError: If no day is given or it cannot be parsed
        """
        if day is None or day == "":
            raise ValidationFailedError("date is required", field="date")
        if isinstance(day, str):
            try:
                day = date.fromisoformat(day.strip()[:10])
            except ValueError:
                raise ValidationFailedError(f"Invalid date: {day!r}", field="date")
        if isinstance(day, datetime):
            day = to_utc(day).date()

        start, end = day_bounds(day)
        entries = await self._storage.list_entries(date_from=start, date_to=end)

        totals = {channel: DailyChannelTotals() for channel in KNOWN_CHANNELS}
        for entry in entries:
            for channel, row in totals.items():
                row.income += daily_income_share(entry, channel)
                row.expenses += entry.expense_for(channel)

        for row in totals.values():
            row.net = row.income - row.expenses

        return DailyTotals(
            date=day,
            totals_by_channel=totals,
            overall_total=sum(row.net for row in totals.values()),
        )

    async def monthly_summary(self, month: Optional[str]) -> MonthlySummary:
        """
        Month totals plus one row per primary channel with carry in and out.

        Entries without a single primary channel (multi-channel income,
        transfer debits) count in the totals but not in any channel row.
        """
        month = require_month(month)

        async def total(field: str, **filters) -> float:
            return await self._storage.get_total_by_field(field, month=month, **filters)

        totals = MonthlyTotals(
            total_amount=await total("total_amount"),
            total_expenses=await total("expense_amount"),
            total_transaction_charges=await total("transaction_charges"),
            total_salary_amount=await total("salary_amount"),
            total_allowance=await total("allowance"),
        )

        entries = await self._storage.list_entries(month=month)
        seen = {e.primary_channel for e in entries if e.primary_channel is not None}

        by_channel = []
        for channel in KNOWN_CHANNELS:
            if channel not in seen:
                continue
            amount = await total("total_amount", primary_channel=channel)
            expenses = await total("expense_amount", primary_channel=channel)
            carry_in = await self._calculator.carry_from_previous(month, channel)
            by_channel.append(ChannelMonthSummary(
                channel=channel,
                total_amount=amount,
                total_expenses=expenses,
                carry_from_previous=carry_in,
                carry_to_next=self._calculator.floor_carry(carry_in + amount - expenses),
            ))

        logger.debug("monthly_summary_computed", month=month, channels=len(by_channel))
        return MonthlySummary(month=month, totals=totals, by_channel=by_channel)

    async def cashbook_report(self, month: Optional[str]) -> CashbookReport:
        """Entries sorted by date plus the summary, for the monthly document."""
        month = require_month(month)
        entries = await self._storage.list_entries(month=month)
        summary = await self.monthly_summary(month)
        return CashbookReport(month=month, entries=entries, summary=summary)
