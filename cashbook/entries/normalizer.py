"""
Entry Normalizer

Turns a raw create-entry submission into a canonical LedgerEntry and
stores it.

DESIGN DECISION: Normalization happens in a fixed order:

1. SCHEMA - the submission must parse (pydantic) and carry a date
2. RESOLVE - month, channel list, per-channel amounts, salary balance
3. FLAG - if the entry spends from a channel, ask the calculator whether
   the spend drives that channel below zero
4. STORE - one write

Steps 1 and 2 never touch storage, so a rejected submission leaves no
trace. Steps 3 and 4 run under the expense channel's lock so the flag is
computed against the same balance the write lands on.

The anomaly flag is computed once, here. Later admin edits do not
recompute it.
"""

from typing import Any, Optional, Union
from uuid import UUID

import structlog
from pydantic import ValidationError

from cashbook.audit import AuditLogger
from cashbook.balances import ChannelAvailabilityCalculator
from cashbook.errors import CashbookError, ValidationFailedError, from_validation_error
from cashbook.models.ledger import (
    AMOUNT_TOLERANCE,
    Channel,
    EntrySubmission,
    LedgerEntry,
)
from cashbook.periods import month_from_date
from cashbook.services.storage import LedgerStorageInterface, StorageError
from cashbook.transfers.locks import ChannelLockRegistry

logger = structlog.get_logger(__name__)

# Fields resolved by the normalizer rather than copied from the submission
_RESOLVED_FIELDS = {
    "date",
    "month",
    "channels",
    "channel",
    "amounts_by_channel",
    "total_amount",
    "salary_amount",
    "advance",
}


def resolve_channels(submission: EntrySubmission) -> list[Channel]:
    """Channel list from the list field, the legacy field or the amounts map."""
    if submission.channels:
        channels = list(submission.channels)
    elif submission.channel is not None:
        channels = [submission.channel]
    elif submission.amounts_by_channel:
        channels = list(submission.amounts_by_channel)
    else:
        channels = []
    return list(dict.fromkeys(channels))


def resolve_amounts(
    submission: EntrySubmission,
    channels: list[Channel],
) -> tuple[dict[Channel, float], float]:
    """
    Per-channel amounts and the entry total.

    An explicit map is taken as given (blank amounts read as 0). Without
    one, the total is split evenly across the selected channels.

    Raises:
        ValidationFailedError: If the map names channels not selected,
            or disagrees with an explicitly given total
    """
    total = submission.total_amount
    explicit = submission.amounts_by_channel

    if explicit:
        unknown = set(explicit) - set(channels)
        if unknown:
            names = ", ".join(sorted(c.value for c in unknown))
            raise ValidationFailedError(
                f"Amounts given for channels that were not selected: {names}",
                field="amounts_by_channel",
            )
        amounts = {ch: float(explicit.get(ch) or 0.0) for ch in channels}
        split_total = sum(amounts.values())
        # An absent or zero total means "whatever the map adds up to"
        if "total_amount" not in submission.model_fields_set or not total:
            return amounts, split_total
        if abs(split_total - total) > AMOUNT_TOLERANCE:
            raise ValidationFailedError(
                f"Per-channel amounts ({split_total}) do not add up to the total ({total})",
                field="amounts_by_channel",
            )
        return amounts, total

    if channels and total > 0:
        share = total / len(channels)
        return {ch: share for ch in channels}, total

    return {}, total


def resolve_salary_balance(submission: EntrySubmission) -> float:
    if submission.salary_amount is None and submission.advance is None:
        return 0.0
    return (submission.salary_amount or 0.0) - (submission.advance or 0.0)


class EntryNormalizer:
    """
    Validates, enriches and stores new cashbook entries.

    Usage:
        normalizer = EntryNormalizer(storage, calculator, locks)
        entry = await normalizer.normalize({"date": "2026-03-02", ...})
    """

    def __init__(
        self,
        storage: LedgerStorageInterface,
        calculator: ChannelAvailabilityCalculator,
        locks: Optional[ChannelLockRegistry] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._storage = storage
        self._calculator = calculator
        self._locks = locks or ChannelLockRegistry()
        self._audit = audit_logger or AuditLogger()

    def build_entry(self, submission: EntrySubmission) -> LedgerEntry:
        """
        Resolve every derived field without touching storage.

        Raises:
            ValidationFailedError: If the submission cannot become a valid entry
        """
        if submission.date is None:
            raise ValidationFailedError("date is required", field="date")

        if submission.expense_amount > 0 and submission.expense_channel is None:
            raise ValidationFailedError(
                "expense_channel is required when expense_amount is set",
                field="expense_channel",
            )

        month = submission.month or month_from_date(submission.date)
        channels = resolve_channels(submission)
        amounts, total = resolve_amounts(submission, channels)

        passthrough = submission.model_dump(
            exclude=_RESOLVED_FIELDS,
            exclude_none=True,
        )

        try:
            return LedgerEntry(
                **passthrough,
                date=submission.date,
                month=month,
                channels=channels,
                primary_channel=channels[0] if len(channels) == 1 else None,
                amounts_by_channel=amounts,
                total_amount=total,
                salary_amount=submission.salary_amount or 0.0,
                advance=submission.advance or 0.0,
                salary_balance=resolve_salary_balance(submission),
            )
        except ValidationError as e:
            raise from_validation_error(e)

    async def normalize(
        self,
        submission: Union[EntrySubmission, dict[str, Any]],
        actor_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> LedgerEntry:
        """
        Normalize and persist one entry.

        Returns:
            The stored entry, with its anomaly flag set

        Raises:
            ValidationFailedError: Bad input; nothing was written
            StorageError: The write failed
        """
        if not isinstance(submission, EntrySubmission):
            try:
                submission = EntrySubmission.model_validate(submission)
            except ValidationError as e:
                raise from_validation_error(e)

        entry = self.build_entry(submission)

        if entry.expense_amount > 0 and entry.expense_channel is not None:
            async with self._locks.acquire(entry.month, entry.expense_channel):
                result = await self._calculator.availability(
                    entry.month,
                    entry.expense_channel,
                    pending_deduction=entry.expense_amount,
                )
                entry.anomaly_flag = result.available_after < 0
                stored = await self._save(entry)
        else:
            stored = await self._save(entry)

        logger.info(
            "entry_normalized",
            entry_id=str(stored.id),
            month=stored.month,
            channels=[c.value for c in stored.channels],
            anomaly=stored.anomaly_flag,
        )

        await self._audit.log_entry_created(
            entry_id=stored.id,
            month=stored.month,
            total_amount=stored.total_amount,
            expense_amount=stored.expense_amount,
            actor_id=actor_id,
            correlation_id=correlation_id,
        )
        if stored.anomaly_flag:
            await self._audit.log_anomaly_flagged(
                entry_id=stored.id,
                channel=stored.expense_channel.value,
                expense_amount=stored.expense_amount,
                actor_id=actor_id,
                correlation_id=correlation_id,
            )

        return stored

    async def _save(self, entry: LedgerEntry) -> LedgerEntry:
        try:
            return await self._storage.save_entry(entry)
        except CashbookError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to save entry: {e}")
