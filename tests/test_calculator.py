"""
Tests for the channel availability calculator.
"""

import pytest

from cashbook.balances import ChannelAvailabilityCalculator
from cashbook.models.ledger import Channel, LedgerEntry
from factories import expense_entry, income_entry, utc


class TestCarryOver:
    """Tests for the carry from the previous month."""

    @pytest.mark.asyncio
    async def test_positive_net_carries_forward(self, ledger_storage, calculator):
        """Test that last month's surplus opens this month."""
        await ledger_storage.save_entry(income_entry(Channel.CASH, 1000, utc(2026, 2, 3)))
        await ledger_storage.save_entry(expense_entry(Channel.CASH, 400, utc(2026, 2, 10)))

        result = await calculator.availability("2026-03", Channel.CASH)

        assert result.carry_from_previous == 600
        assert result.available_after == 600

    @pytest.mark.asyncio
    async def test_negative_net_carries_zero(self, ledger_storage, calculator):
        """Test carry-over non-negativity."""
        await ledger_storage.save_entry(income_entry(Channel.BANK, 100, utc(2026, 2, 3)))
        await ledger_storage.save_entry(expense_entry(Channel.BANK, 90000, utc(2026, 2, 4)))

        result = await calculator.availability("2026-03", Channel.BANK)

        assert result.carry_from_previous == 0
        assert result.available_after == 0

    @pytest.mark.asyncio
    async def test_carry_below_one_unit_is_zero(self, ledger_storage, calculator):
        """Test that fractional leftovers don't carry."""
        await ledger_storage.save_entry(income_entry(Channel.CASH, 100.5, utc(2026, 2, 3)))
        await ledger_storage.save_entry(expense_entry(Channel.CASH, 100, utc(2026, 2, 4)))

        result = await calculator.availability("2026-03", Channel.CASH)

        assert result.carry_from_previous == 0

    @pytest.mark.asyncio
    async def test_threshold_is_configurable(self, ledger_storage):
        """Test a deployment with a higher carry threshold."""
        calculator = ChannelAvailabilityCalculator(ledger_storage, carry_threshold=500)
        await ledger_storage.save_entry(income_entry(Channel.CASH, 400, utc(2026, 2, 3)))

        result = await calculator.availability("2026-03", Channel.CASH)

        assert result.carry_from_previous == 0

    @pytest.mark.asyncio
    async def test_january_reads_december(self, ledger_storage, calculator):
        """Test month rollover across the year boundary."""
        await ledger_storage.save_entry(income_entry(Channel.MM_MTN, 750, utc(2025, 12, 20)))

        result = await calculator.availability("2026-01", Channel.MM_MTN)

        assert result.carry_from_previous == 750

    @pytest.mark.asyncio
    async def test_only_one_month_back(self, ledger_storage, calculator):
        """Test that two months ago does not feed this month directly."""
        await ledger_storage.save_entry(income_entry(Channel.CASH, 5000, utc(2026, 1, 5)))

        result = await calculator.availability("2026-03", Channel.CASH)

        assert result.carry_from_previous == 0


class TestAvailability:
    """Tests for current-month availability."""

    @pytest.mark.asyncio
    async def test_pending_deduction(self, ledger_storage, calculator):
        """Test available_after = carry + income - expenses - pending."""
        await ledger_storage.save_entry(income_entry(Channel.CASH, 300, utc(2026, 2, 1)))
        await ledger_storage.save_entry(income_entry(Channel.CASH, 1000, utc(2026, 3, 1)))
        await ledger_storage.save_entry(expense_entry(Channel.CASH, 200, utc(2026, 3, 2)))

        result = await calculator.availability("2026-03", Channel.CASH, pending_deduction=500)

        assert result.available_after == 300 + 1000 - 200 - 500

    @pytest.mark.asyncio
    async def test_split_entry_counts_per_channel(self, ledger_storage, calculator):
        """Test that a multi-channel entry feeds each channel its share."""
        await ledger_storage.save_entry(LedgerEntry(
            month="2026-03",
            date=utc(2026, 3, 1),
            channels=[Channel.CASH, Channel.BANK],
            amounts_by_channel={Channel.CASH: 250, Channel.BANK: 750},
            total_amount=1000,
        ))

        cash = await calculator.availability("2026-03", Channel.CASH)
        bank = await calculator.availability("2026-03", Channel.BANK)

        assert cash.available_after == 250
        assert bank.available_after == 750

    @pytest.mark.asyncio
    async def test_other_channels_ignored(self, ledger_storage, calculator):
        await ledger_storage.save_entry(income_entry(Channel.BANK, 1000, utc(2026, 3, 1)))

        result = await calculator.availability("2026-03", Channel.CASH)

        assert result.available_after == 0

    @pytest.mark.asyncio
    async def test_accepts_channel_string(self, ledger_storage, calculator):
        await ledger_storage.save_entry(income_entry(Channel.MM_AIRTEL, 90, utc(2026, 3, 1)))

        result = await calculator.availability("2026-03", "MM-AIRTEL")

        assert result.available_after == 90

    @pytest.mark.asyncio
    @pytest.mark.parametrize("month,channel", [
        (None, Channel.CASH),
        ("", Channel.CASH),
        ("March", Channel.CASH),
        ("2026-03", None),
        ("2026-03", "PAYPAL"),
    ])
    async def test_missing_inputs_give_zeros(self, calculator, month, channel):
        """Test that bad input yields zeros instead of an error."""
        result = await calculator.availability(month, channel, pending_deduction=100)

        assert result.available_after == 0
        assert result.carry_from_previous == 0

    @pytest.mark.asyncio
    async def test_is_a_pure_read(self, ledger_storage, calculator):
        """Test that asking never writes."""
        await ledger_storage.save_entry(income_entry(Channel.CASH, 10, utc(2026, 3, 1)))

        await calculator.availability("2026-03", Channel.CASH, pending_deduction=1000)

        assert len(await ledger_storage.list_entries()) == 1


class TestChannelBalance:
    """Tests for the four-figure balance."""

    @pytest.mark.asyncio
    async def test_balance_figures(self, ledger_storage, calculator):
        await ledger_storage.save_entry(income_entry(Channel.BANK, 500, utc(2026, 2, 1)))
        await ledger_storage.save_entry(income_entry(Channel.BANK, 2000, utc(2026, 3, 1)))
        await ledger_storage.save_entry(expense_entry(Channel.BANK, 700, utc(2026, 3, 9)))

        balance = await calculator.balance("2026-03", Channel.BANK)

        assert balance.carry_over == 500
        assert balance.current_income == 2000
        assert balance.current_expenses == 700
        assert balance.available_balance == 1800


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
