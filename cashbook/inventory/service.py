"""
Inventory Service

Records purchases of recyclables from suppliers and sales to companies,
and keeps the cashbook in step with them:

- An APPROVED purchase paid through a real channel becomes an expense
  entry on that channel, referenced INV-PURCHASE-<id>
- A sale paid through a real channel becomes an income entry on that
  channel, referenced INV-SALE-<id>

DESIGN DECISION: Linked entries go through the EntryNormalizer like any
other entry, so an inventory purchase that overdraws a channel gets the
same anomaly flag a hand-typed expense would.

Approval workflow: with the workflow on, only an ADMIN's purchase is
approved on creation; everyone else's waits as PENDING for an admin
decision. With it off, every purchase is approved immediately.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Awaitable, Callable, Optional, Union
from uuid import UUID

import structlog
from pydantic import ValidationError

from cashbook.audit import AuditLogger
from cashbook.entries import EntryNormalizer
from cashbook.errors import PermissionDeniedError, ValidationFailedError, from_validation_error
from cashbook.models.identity import Caller
from cashbook.models.inventory import (
    ApprovalStatus,
    InventoryPurchase,
    InventorySale,
)
from cashbook.models.ledger import PAYMENT_CHANNELS, EntrySubmission, LedgerEntry
from cashbook.services.storage import (
    InventoryStorageInterface,
    LedgerStorageInterface,
    NotFoundError,
)

logger = structlog.get_logger(__name__)

# Set by the service, never by the submitter
_SERVER_FIELDS = ("id", "created_at", "updated_at", "approval_status", "approved_by")


def _strip_server_fields(data: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in data.items() if k not in _SERVER_FIELDS}


class InventoryService:
    """
    Purchases, sales and their cashbook linkage.

    Usage:
        service = InventoryService(inventory_storage, ledger_storage, normalizer)
        purchase = await service.create_purchase({...}, caller)
    """

    def __init__(
        self,
        inventory_storage: InventoryStorageInterface,
        ledger_storage: LedgerStorageInterface,
        normalizer: EntryNormalizer,
        audit_logger: Optional[AuditLogger] = None,
        approval_workflow_enabled: bool = True,
    ):
        self._inventory = inventory_storage
        self._ledger = ledger_storage
        self._normalizer = normalizer
        self._audit = audit_logger or AuditLogger()
        self._approval_workflow_enabled = approval_workflow_enabled
        # One lock per purchase so two approvals can't both create the entry.
        # Dropped once nobody holds or waits for it.
        self._link_locks: dict[UUID, asyncio.Lock] = {}
        self._link_lock_users: dict[UUID, int] = {}

    @asynccontextmanager
    async def _link_lock(self, purchase_id: UUID) -> AsyncIterator[None]:
        lock = self._link_locks.setdefault(purchase_id, asyncio.Lock())
        self._link_lock_users[purchase_id] = self._link_lock_users.get(purchase_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._link_lock_users[purchase_id] -= 1
            if not self._link_lock_users[purchase_id]:
                del self._link_lock_users[purchase_id]
                del self._link_locks[purchase_id]

    # =========================================================================
    # PURCHASES
    # =========================================================================

    async def create_purchase(
        self,
        data: Union[dict[str, Any], InventoryPurchase],
        caller: Caller,
    ) -> InventoryPurchase:
        """
        Record a purchase and, if it is approved, its cashbook expense.

        Raises:
            ValidationFailedError: Bad input; nothing was written
            StorageError: A write failed; a purchase whose expense could not
                be written is removed again
        """
        if isinstance(data, InventoryPurchase):
            data = data.model_dump(exclude_unset=True)

        auto_approve = caller.is_admin or not self._approval_workflow_enabled
        try:
            purchase = InventoryPurchase(
                **_strip_server_fields(data),
                approval_status=(
                    ApprovalStatus.APPROVED if auto_approve else ApprovalStatus.PENDING
                ),
                approved_by=caller.user_id if caller.is_admin else None,
            )
        except ValidationError as e:
            raise from_validation_error(e)

        purchase = await self._inventory.save_purchase(purchase)
        if purchase.is_approved:
            try:
                await self.link_purchase(purchase, actor_id=caller.user_id)
            except Exception:
                # No purchase without its expense
                await self._discard("purchase", purchase.id, self._inventory.delete_purchase)
                raise

        logger.info(
            "purchase_created",
            purchase_id=str(purchase.id),
            supplier=purchase.supplier_name,
            status=purchase.approval_status.value,
        )
        await self._audit.log_purchase_created(
            purchase_id=purchase.id,
            supplier=purchase.supplier_name,
            total=purchase.purchase_price_total or 0.0,
            status=purchase.approval_status.value,
            actor_id=caller.user_id,
        )
        return purchase

    async def decide_purchase(
        self,
        purchase_id: UUID,
        status: Union[ApprovalStatus, str],
        caller: Caller,
    ) -> InventoryPurchase:
        """
        Approve or reject a purchase. ADMIN only.

        Approving creates the linked expense entry unless one already
        exists, so approving twice is harmless. Rejecting an already
        approved purchase leaves its expense entry in place.

        Raises:
            PermissionDeniedError: Caller is not an admin
            ValidationFailedError: Status is not APPROVED or REJECTED
            NotFoundError: No purchase with that id
        """
        if not caller.is_admin:
            raise PermissionDeniedError("decide inventory purchases", caller.role.value)

        try:
            decision = ApprovalStatus(status)
        except ValueError:
            decision = None
        if decision not in (ApprovalStatus.APPROVED, ApprovalStatus.REJECTED):
            raise ValidationFailedError(
                "Status must be APPROVED or REJECTED",
                field="status",
            )

        purchase = await self._inventory.get_purchase_by_id(purchase_id)
        if purchase is None:
            raise NotFoundError(f"Purchase not found: {purchase_id}")

        previous = purchase
        purchase = await self._inventory.update_purchase(
            purchase.model_copy(update={
                "approval_status": decision,
                "approved_by": caller.user_id,
            })
        )
        if purchase.is_approved:
            try:
                await self.link_purchase(purchase, actor_id=caller.user_id)
            except Exception:
                # Back to the undecided state so the approval can be retried
                await self._inventory.update_purchase(previous)
                raise

        await self._audit.log_purchase_decided(
            purchase_id=purchase.id,
            approved=purchase.is_approved,
            actor_id=caller.user_id,
        )
        return purchase

    async def link_purchase(
        self,
        purchase: InventoryPurchase,
        actor_id: Optional[str] = None,
    ) -> Optional[LedgerEntry]:
        """
        The expense entry for an approved purchase, created if missing.

        Returns None when the purchase moves no money through a channel.
        """
        total = purchase.purchase_price_total or 0.0
        if purchase.method_of_payment not in PAYMENT_CHANNELS or total <= 0:
            return None

        async with self._link_lock(purchase.id):
            existing = await self._ledger.list_entries(reference=purchase.ledger_reference)
            if existing:
                return existing[0]

            return await self._normalizer.normalize(
                EntrySubmission(
                    date=purchase.date_of_purchase,
                    month=purchase.month,
                    expense_amount=total,
                    expense_channel=purchase.method_of_payment,
                    reference=purchase.ledger_reference,
                    operational_costs=(
                        f"Inventory purchase: {purchase.item_type.value} "
                        f"from {purchase.supplier_name}"
                    ),
                ),
                actor_id=actor_id,
            )

    async def list_purchases(
        self,
        month: Optional[str] = None,
        supplier_name: Optional[str] = None,
        approval_status: Optional[ApprovalStatus] = None,
    ) -> list[InventoryPurchase]:
        return await self._inventory.list_purchases(
            month=month,
            supplier_name=supplier_name,
            approval_status=approval_status,
        )

    # =========================================================================
    # SALES
    # =========================================================================

    async def create_sale(
        self,
        data: Union[dict[str, Any], InventorySale],
        caller: Caller,
    ) -> InventorySale:
        """
        Record a sale and its cashbook income entry.

        The sale total is always unit cost x kilograms.
        """
        if isinstance(data, InventorySale):
            data = data.model_dump(exclude_unset=True)

        try:
            sale = InventorySale(**_strip_server_fields(data))
        except ValidationError as e:
            raise from_validation_error(e)

        sale = await self._inventory.save_sale(sale)

        channel = sale.method_of_payment
        if channel in PAYMENT_CHANNELS and sale.total_amount > 0:
            try:
                await self._normalizer.normalize(
                    EntrySubmission(
                        date=sale.date_of_sale,
                        month=sale.month,
                        channels=[channel],
                        amounts_by_channel={channel: sale.total_amount},
                        total_amount=sale.total_amount,
                        reference=sale.ledger_reference,
                        operational_costs=(
                            f"Inventory sale: {sale.item_type.value} to {sale.company_name}"
                        ),
                    ),
                    actor_id=caller.user_id,
                )
            except Exception:
                await self._discard("sale", sale.id, self._inventory.delete_sale)
                raise

        logger.info("sale_created", sale_id=str(sale.id), company=sale.company_name)
        await self._audit.log_sale_created(
            sale_id=sale.id,
            company=sale.company_name,
            total=sale.total_amount,
            actor_id=caller.user_id,
        )
        return sale

    async def list_sales(self, month: Optional[str] = None) -> list[InventorySale]:
        return await self._inventory.list_sales(month=month)

    async def _discard(
        self,
        kind: str,
        record_id: UUID,
        delete: Callable[[UUID], Awaitable[bool]],
    ) -> None:
        """Remove a record whose ledger entry could not be written."""
        try:
            await delete(record_id)
        except Exception as e:
            logger.critical(
                "inventory_compensation_failed",
                kind=kind,
                record_id=str(record_id),
                error=str(e),
            )
            await self._audit.log_error(
                error_type="inventory_compensation_failed",
                error_message=str(e),
                details={"kind": kind, "record_id": str(record_id)},
                critical=True,
            )
        else:
            logger.warning("inventory_record_discarded", kind=kind, record_id=str(record_id))
