"""
Transfer Orchestrator

Moves money between two channels of the business as a pair of linked
ledger rows sharing one reference:

    debit leg   expense_amount=X from the source   transfer_tag "FROM <src>"
    credit leg  total_amount=X into the destination transfer_tag "TO <dst>"

CRITICAL: Both legs land or neither does. The store has no transactions,
so if the credit leg fails we undo the debit leg ourselves:

1. Delete the debit leg
2. If the delete fails, void it in place (amounts zeroed, tag "VOID FROM <src>",
   reference "VOID-<reference>")
3. If that fails too, raise TransferIntegrityError and log at critical level

The same undo runs when the task is cancelled between the two legs.

The source channel's lock is held from the availability check until both
legs are written, so two transfers out of the same channel cannot both
spend the same balance.
"""

import asyncio
import time
from typing import Any, Optional, Union
from uuid import UUID, uuid4

import structlog
from pydantic import ValidationError

from cashbook.audit import AuditLogger, create_correlation_id
from cashbook.balances import ChannelAvailabilityCalculator
from cashbook.errors import (
    CashbookError,
    InsufficientBalanceError,
    ValidationFailedError,
    format_amount,
    from_validation_error,
)
from cashbook.models.ledger import Channel, LedgerEntry, TransferRequest, TransferResult
from cashbook.periods import month_from_date, utc_now
from cashbook.services.storage import LedgerStorageInterface, StorageError
from cashbook.transfers.locks import ChannelLockRegistry

logger = structlog.get_logger(__name__)

TRANSFER_REFERENCE_PREFIX = "TRANSFER-"


class TransferRolledBackError(StorageError):
    """The credit leg failed and the debit leg was undone. Nothing moved."""
    pass


class TransferIntegrityError(StorageError):
    """The credit leg failed and the debit leg could NOT be undone."""
    pass


def generate_transfer_reference() -> str:
    """TRANSFER-<epoch ms>-<random>, unique even within one millisecond."""
    return f"{TRANSFER_REFERENCE_PREFIX}{int(time.time() * 1000)}-{uuid4().hex[:8]}"


class TransferOrchestrator:
    """
    Executes internal transfers between channels.

    Usage:
        orchestrator = TransferOrchestrator(storage, calculator, locks)
        result = await orchestrator.transfer({
            "source_channel": "CASH",
            "dest_channel": "BANK",
            "amount": 50000,
        })
    """

    def __init__(
        self,
        storage: LedgerStorageInterface,
        calculator: ChannelAvailabilityCalculator,
        locks: Optional[ChannelLockRegistry] = None,
        audit_logger: Optional[AuditLogger] = None,
        currency: str = "UGX",
    ):
        self._storage = storage
        self._calculator = calculator
        self._locks = locks or ChannelLockRegistry()
        self._audit = audit_logger or AuditLogger()
        self._currency = currency

    @staticmethod
    def validate(request: TransferRequest) -> tuple[Channel, Channel, float]:
        """
        Check the request shape before anything is read or written.

        Raises:
            ValidationFailedError: Missing or identical channels, or a
                non-positive amount
        """
        if request.source_channel is None:
            raise ValidationFailedError("source_channel is required", field="source_channel")
        if request.dest_channel is None:
            raise ValidationFailedError("dest_channel is required", field="dest_channel")
        if request.source_channel == request.dest_channel:
            raise ValidationFailedError(
                "Cannot transfer to the same channel",
                field="dest_channel",
            )
        if not request.amount > 0:
            raise ValidationFailedError("amount must be greater than zero", field="amount")
        return request.source_channel, request.dest_channel, request.amount

    async def transfer(
        self,
        request: Union[TransferRequest, dict[str, Any]],
        actor_id: Optional[str] = None,
    ) -> TransferResult:
        """
        Move ``amount`` from the source channel to the destination channel.

        Raises:
            ValidationFailedError: Bad request; nothing was written
            InsufficientBalanceError: Source cannot cover the amount; nothing was written
            TransferRolledBackError: Credit leg failed, debit leg undone
            TransferIntegrityError: Credit leg failed, debit leg left behind
        """
        correlation_id = create_correlation_id()

        try:
            if not isinstance(request, TransferRequest):
                try:
                    request = TransferRequest.model_validate(request)
                except ValidationError as e:
                    raise from_validation_error(e)
            source, dest, amount = self.validate(request)
        except ValidationFailedError as e:
            src = getattr(request, "source_channel", None)
            dst = getattr(request, "dest_channel", None)
            await self._audit.log_transfer_rejected(
                source=src.value if src else None,
                dest=dst.value if dst else None,
                amount=getattr(request, "amount", 0.0) or 0.0,
                reason=e.message,
                actor_id=actor_id,
                correlation_id=correlation_id,
            )
            raise

        date = request.date or utc_now()
        month = request.month or month_from_date(date)
        reference = request.reference or generate_transfer_reference()
        description = f"Internal transfer: From {source.value} to {dest.value}"

        async with self._locks.acquire(month, source):
            check = await self._calculator.availability(month, source, pending_deduction=amount)
            if check.available_after < 0:
                error = InsufficientBalanceError(
                    source.value,
                    check.available_after + amount,
                    currency=self._currency,
                )
                await self._audit.log_transfer_rejected(
                    source=source.value,
                    dest=dest.value,
                    amount=amount,
                    reason=error.message,
                    actor_id=actor_id,
                    correlation_id=correlation_id,
                )
                raise error

            debit = LedgerEntry(
                month=month,
                date=date,
                expense_amount=amount,
                expense_channel=source,
                reference=reference,
                operational_costs=description,
                transfer_tag=f"FROM {source.value}",
            )
            credit = LedgerEntry(
                month=month,
                date=date,
                channels=[dest],
                primary_channel=dest,
                amounts_by_channel={dest: amount},
                total_amount=amount,
                reference=reference,
                operational_costs=description,
                transfer_tag=f"TO {dest.value}",
            )

            try:
                debit = await self._storage.save_entry(debit)
            except CashbookError:
                raise
            except Exception as e:
                raise StorageError(f"Failed to record transfer debit: {e}")

            try:
                credit = await self._storage.save_entry(credit)
            except BaseException as e:
                # Shielded so a cancelled caller still gets its debit undone
                await asyncio.shield(
                    self._undo_debit(debit, source, reference, e, correlation_id)
                )
                if not isinstance(e, Exception):
                    raise
                raise TransferRolledBackError(
                    f"Transfer {reference} failed; no money was moved",
                    {"reference": reference},
                ) from e

        message = (
            f"Transfer completed: {format_amount(amount)} {self._currency} "
            f"from {source.value} to {dest.value}"
        )
        logger.info(
            "transfer_completed",
            reference=reference,
            source=source.value,
            dest=dest.value,
            amount=amount,
            month=month,
        )
        await self._audit.log_transfer_completed(
            reference=reference,
            source=source.value,
            dest=dest.value,
            amount=amount,
            actor_id=actor_id,
            correlation_id=correlation_id,
        )

        return TransferResult(
            reference=reference,
            debit_entry=debit,
            credit_entry=credit,
            message=message,
        )

    async def _undo_debit(
        self,
        debit: LedgerEntry,
        source: Channel,
        reference: str,
        cause: BaseException,
        correlation_id: UUID,
    ) -> bool:
        """
        Compensate for a failed credit leg.

        Returns whether the debit had to be voided rather than deleted. A
        voided debit also gives up the shared reference, so no transfer is
        ever left with exactly one leg under its reference.

        Raises:
            TransferIntegrityError: The debit could be neither deleted nor voided
        """
        reason = str(cause) or type(cause).__name__
        voided = False
        try:
            await self._storage.delete_entry(debit.id)
        except Exception as delete_error:
            logger.warning(
                "transfer_debit_delete_failed",
                reference=reference,
                entry_id=str(debit.id),
                error=str(delete_error),
            )
            try:
                await self._storage.update_entry(
                    debit.model_copy(update={
                        "expense_amount": 0.0,
                        "transfer_tag": f"VOID FROM {source.value}",
                        "reference": f"VOID-{reference}",
                    })
                )
                voided = True
            except Exception as void_error:
                logger.critical(
                    "transfer_integrity_violation",
                    reference=reference,
                    entry_id=str(debit.id),
                    credit_error=reason,
                    delete_error=str(delete_error),
                    void_error=str(void_error),
                )
                await self._audit.log_error(
                    error_type="transfer_integrity_violation",
                    error_message=str(void_error),
                    details={
                        "reference": reference,
                        "debit_entry_id": str(debit.id),
                    },
                    correlation_id=correlation_id,
                    critical=True,
                )
                raise TransferIntegrityError(
                    f"Transfer {reference} failed and its debit leg could not be undone",
                    {"reference": reference, "debit_entry_id": str(debit.id)},
                ) from void_error

        logger.error(
            "transfer_rolled_back",
            reference=reference,
            voided=voided,
            error=reason,
        )
        await self._audit.log_transfer_rolled_back(
            reference=reference,
            error_message=reason,
            voided=voided,
            correlation_id=correlation_id,
        )
        return voided
