"""
Tests for the cashbook reporting queries.
"""

from datetime import date

import pytest

from cashbook.errors import ValidationFailedError
from cashbook.models.ledger import KNOWN_CHANNELS, Channel, LedgerEntry
from cashbook.periods import current_month
from factories import expense_entry, income_entry, utc


class TestBalances:
    """Tests for per-channel balances."""

    @pytest.mark.asyncio
    async def test_every_channel_reported(self, reports):
        result = await reports.balances("2026-03")

        assert result.month == "2026-03"
        assert set(result.balances) == set(KNOWN_CHANNELS)

    @pytest.mark.asyncio
    async def test_defaults_to_current_month(self, reports):
        result = await reports.balances()

        assert result.month == current_month()

    @pytest.mark.asyncio
    async def test_figures(self, reports, ledger_storage):
        await ledger_storage.save_entry(income_entry(Channel.CASH, 1000, utc(2026, 2, 1)))
        await ledger_storage.save_entry(income_entry(Channel.CASH, 300, utc(2026, 3, 2)))
        await ledger_storage.save_entry(expense_entry(Channel.CASH, 200, utc(2026, 3, 3)))

        cash = (await reports.balances("2026-03")).balances[Channel.CASH]

        assert cash.carry_over == 1000
        assert cash.current_income == 300
        assert cash.current_expenses == 200
        assert cash.available_balance == 1100

    @pytest.mark.asyncio
    async def test_rejects_malformed_month(self, reports):
        with pytest.raises(ValidationFailedError):
            await reports.balances("03/2026")


class TestDailyTotals:
    """Tests for one day's totals."""

    @pytest.mark.asyncio
    async def test_day_is_required(self, reports):
        with pytest.raises(ValidationFailedError) as exc:
            await reports.daily_totals(None)
        assert exc.value.field == "date"

    @pytest.mark.asyncio
    async def test_only_that_day(self, reports, ledger_storage):
        """Test that the window is one UTC calendar day."""
        await ledger_storage.save_entry(income_entry(Channel.BANK, 100, utc(2026, 3, 2, 0)))
        await ledger_storage.save_entry(income_entry(Channel.BANK, 200, utc(2026, 3, 2, 23)))
        await ledger_storage.save_entry(income_entry(Channel.BANK, 999, utc(2026, 3, 3, 0)))

        result = await reports.daily_totals("2026-03-02")

        assert result.date == date(2026, 3, 2)
        assert result.totals_by_channel[Channel.BANK].income == 300

    @pytest.mark.asyncio
    async def test_net_and_overall(self, reports, ledger_storage):
        await ledger_storage.save_entry(income_entry(Channel.CASH, 500, utc(2026, 3, 2)))
        await ledger_storage.save_entry(income_entry(Channel.BANK, 250, utc(2026, 3, 2)))
        await ledger_storage.save_entry(expense_entry(Channel.CASH, 100, utc(2026, 3, 2)))

        result = await reports.daily_totals(date(2026, 3, 2))

        assert result.totals_by_channel[Channel.CASH].net == 400
        assert result.totals_by_channel[Channel.BANK].net == 250
        assert result.overall_total == 650

    @pytest.mark.asyncio
    async def test_multi_channel_without_map_splits_by_count(self, reports, ledger_storage):
        """Test the even split for rows stored without a per-channel map."""
        await ledger_storage.save_entry(LedgerEntry(
            month="2026-03",
            date=utc(2026, 3, 2),
            channels=[Channel.CASH, Channel.MM_AIRTEL],
            total_amount=900,
        ))

        result = await reports.daily_totals("2026-03-02")

        assert result.totals_by_channel[Channel.CASH].income == 450
        assert result.totals_by_channel[Channel.MM_AIRTEL].income == 450

    @pytest.mark.asyncio
    async def test_invalid_day(self, reports):
        with pytest.raises(ValidationFailedError):
            await reports.daily_totals("yesterday")


class TestMonthlySummary:
    """Tests for the monthly cashbook summary."""

    @pytest.mark.asyncio
    async def test_month_is_required(self, reports):
        with pytest.raises(ValidationFailedError):
            await reports.monthly_summary(None)

    @pytest.mark.asyncio
    async def test_totals(self, reports, ledger_storage):
        await ledger_storage.save_entry(income_entry(
            Channel.CASH, 1000, utc(2026, 3, 1),
            transaction_charges=20, allowance=50,
        ))
        await ledger_storage.save_entry(LedgerEntry(
            month="2026-03",
            date=utc(2026, 3, 4),
            expense_amount=300,
            expense_channel=Channel.CASH,
            salary_amount=300,
        ))

        summary = await reports.monthly_summary("2026-03")

        assert summary.totals.total_amount == 1000
        assert summary.totals.total_expenses == 300
        assert summary.totals.total_transaction_charges == 20
        assert summary.totals.total_salary_amount == 300
        assert summary.totals.total_allowance == 50

    @pytest.mark.asyncio
    async def test_carry_in_and_out(self, reports, ledger_storage):
        """Test carry_to_next = carry_from_previous + month net."""
        await ledger_storage.save_entry(income_entry(Channel.BANK, 400, utc(2026, 2, 1)))
        await ledger_storage.save_entry(income_entry(
            Channel.BANK, 600, utc(2026, 3, 1),
            expense_amount=100, expense_channel=Channel.BANK,
        ))

        summary = await reports.monthly_summary("2026-03")

        [bank] = summary.by_channel
        assert bank.channel == Channel.BANK
        assert bank.carry_from_previous == 400
        assert bank.total_amount == 600
        assert bank.total_expenses == 100
        assert bank.carry_to_next == 900

    @pytest.mark.asyncio
    async def test_carry_to_next_floored(self, reports, ledger_storage):
        await ledger_storage.save_entry(income_entry(
            Channel.CASH, 100, utc(2026, 3, 1),
            expense_amount=5000, expense_channel=Channel.CASH,
        ))

        [cash] = (await reports.monthly_summary("2026-03")).by_channel

        assert cash.carry_to_next == 0

    @pytest.mark.asyncio
    async def test_rows_without_primary_channel_skipped(self, reports, ledger_storage):
        """Test that transfer debits and split rows have no channel row."""
        await ledger_storage.save_entry(expense_entry(Channel.CASH, 50, utc(2026, 3, 1)))

        summary = await reports.monthly_summary("2026-03")

        assert summary.by_channel == []
        assert summary.totals.total_expenses == 50


class TestCashbookReport:
    """Tests for the document data."""

    @pytest.mark.asyncio
    async def test_entries_sorted_by_date(self, reports, ledger_storage):
        await ledger_storage.save_entry(income_entry(Channel.CASH, 1, utc(2026, 3, 9)))
        await ledger_storage.save_entry(income_entry(Channel.CASH, 2, utc(2026, 3, 1)))
        await ledger_storage.save_entry(income_entry(Channel.CASH, 3, utc(2026, 4, 1)))

        report = await reports.cashbook_report("2026-03")

        assert [e.total_amount for e in report.entries] == [2, 1]
        assert report.summary.totals.total_amount == 3

    @pytest.mark.asyncio
    async def test_list_months(self, reports, ledger_storage):
        await ledger_storage.save_entry(income_entry(Channel.CASH, 1, utc(2026, 3, 9)))
        await ledger_storage.save_entry(income_entry(Channel.CASH, 1, utc(2025, 12, 9)))

        assert await reports.list_months() == ["2025-12", "2026-03"]


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
