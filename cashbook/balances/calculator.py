"""
Channel Availability Calculator

Answers "how much money is in this channel right now, and what would be
left after spending X?" for a given month.

DESIGN DECISION: Balances are never stored. Every answer is recomputed
from the ledger rows:

    carry     = previous month income - previous month expenses  (0 if < 1)
    available = carry + this month income - this month expenses - pending

Only one month is looked back. A channel that went negative last month
starts this month at zero rather than dragging the debt forward.

The calculator is a pure read. It never writes and keeps no cache, so it
is safe to call from any number of concurrent flows.
"""

from typing import Optional, Union

import structlog

from cashbook.models.ledger import Channel
from cashbook.models.reports import ChannelAvailability, ChannelBalance
from cashbook.periods import is_month, previous_month
from cashbook.services.storage import LedgerStorageInterface

logger = structlog.get_logger(__name__)

DEFAULT_CARRY_THRESHOLD = 1.0


def _as_channel(value: Union[Channel, str, None]) -> Optional[Channel]:
    if value is None or isinstance(value, Channel):
        return value
    try:
        return Channel(value)
    except ValueError:
        return None


class ChannelAvailabilityCalculator:
    """
    Computes per-channel carry-over and availability for a month.

    Usage:
        calculator = ChannelAvailabilityCalculator(ledger_storage)
        result = await calculator.availability("2026-03", Channel.CASH, 500)
        if result.available_after < 0:
            ...
    """

    def __init__(
        self,
        storage: LedgerStorageInterface,
        carry_threshold: float = DEFAULT_CARRY_THRESHOLD,
    ):
        self._storage = storage
        self._carry_threshold = carry_threshold

    def floor_carry(self, amount: float) -> float:
        """Carry-over below the threshold (and any negative net) becomes 0."""
        return amount if amount >= self._carry_threshold else 0.0

    async def income(self, month: str, channel: Channel) -> float:
        """Money that came into ``channel`` during ``month``."""
        entries = await self._storage.list_entries(month=month, channel=channel)
        return sum(entry.income_for(channel) for entry in entries)

    async def expenses(self, month: str, channel: Channel) -> float:
        """Money that left ``channel`` during ``month``."""
        return await self._storage.get_total_by_field(
            "expense_amount",
            month=month,
            expense_channel=channel,
        )

    async def carry_from_previous(self, month: str, channel: Channel) -> float:
        prev = previous_month(month)
        net = await self.income(prev, channel) - await self.expenses(prev, channel)
        return self.floor_carry(net)

    async def availability(
        self,
        month: Optional[str],
        channel: Union[Channel, str, None],
        pending_deduction: float = 0.0,
    ) -> ChannelAvailability:
        """
        Availability of ``channel`` in ``month`` after a pending deduction.

        A missing or malformed month, or a missing or unknown channel,
        yields zeros rather than an error.
        """
        resolved = _as_channel(channel)
        if resolved is None or not is_month(month):
            logger.debug(
                "availability_skipped",
                month=month,
                channel=str(channel) if channel else None,
            )
            return ChannelAvailability()

        carry = await self.carry_from_previous(month, resolved)
        income = await self.income(month, resolved)
        expenses = await self.expenses(month, resolved)
        available_after = carry + income - expenses - (pending_deduction or 0.0)

        logger.debug(
            "availability_computed",
            month=month,
            channel=resolved.value,
            carry=carry,
            income=income,
            expenses=expenses,
            pending_deduction=pending_deduction,
            available_after=available_after,
        )
        return ChannelAvailability(
            available_after=available_after,
            carry_from_previous=carry,
        )

    async def balance(self, month: str, channel: Channel) -> ChannelBalance:
        """The four balance figures for one channel in one month."""
        carry = await self.carry_from_previous(month, channel)
        income = await self.income(month, channel)
        expenses = await self.expenses(month, channel)
        return ChannelBalance(
            carry_over=carry,
            current_income=income,
            current_expenses=expenses,
            available_balance=carry + income - expenses,
        )
