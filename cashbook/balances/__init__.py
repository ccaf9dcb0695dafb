"""Channel balance computation."""

from cashbook.balances.calculator import (
    DEFAULT_CARRY_THRESHOLD,
    ChannelAvailabilityCalculator,
)

__all__ = ["DEFAULT_CARRY_THRESHOLD", "ChannelAvailabilityCalculator"]
