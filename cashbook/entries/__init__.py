"""Entry normalization."""

from cashbook.entries.normalizer import (
    EntryNormalizer,
    resolve_amounts,
    resolve_channels,
    resolve_salary_balance,
)

__all__ = [
    "EntryNormalizer",
    "resolve_amounts",
    "resolve_channels",
    "resolve_salary_balance",
]
