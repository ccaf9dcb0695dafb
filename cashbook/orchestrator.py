"""
Main Orchestrator for the Cashbook

This module ties together all the components and defines the
inbound operations a transport layer (HTTP, CLI, jobs) calls:
1. Cashbook (create/list/edit/delete entries, transfers)
2. Inventory (purchases with approval, sales, rollups)
3. Reports (balances, daily totals, monthly summary, documents)

DESIGN DECISION: The orchestrator enforces the boundaries:
- Callers arrive already authenticated; we only check roles
- Only an ADMIN may edit or delete entries or decide purchases
- Every rejection and every write is audited

This is the "glue" that ensures the system works correctly
even when individual components might behave unexpectedly.
"""

from datetime import date, datetime
from typing import Any, Optional, Union
from uuid import UUID

import structlog
from pydantic import ValidationError

from cashbook.audit import AuditLogger, configure_logging
from cashbook.balances import ChannelAvailabilityCalculator
from cashbook.config import get_settings
from cashbook.entries import EntryNormalizer
from cashbook.errors import (
    PermissionDeniedError,
    ValidationFailedError,
    from_validation_error,
)
from cashbook.inventory import InventoryService
from cashbook.models.identity import Caller
from cashbook.models.inventory import ApprovalStatus, InventoryPurchase, InventorySale
from cashbook.models.ledger import LedgerEntry, TransferRequest, TransferResult
from cashbook.models.reports import (
    CashbookReport,
    ChannelBalances,
    DailyTotals,
    InventoryMonthlyTotals,
    InventoryReport,
    InventorySummary,
    MonthlySummary,
    SupplierRollup,
)
from cashbook.queries import InventoryQueries, ReportQueries
from cashbook.services.storage import (
    AuditStorageInterface,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsInventoryStorage,
    GoogleSheetsLedgerStorage,
    InMemoryAuditStorage,
    InMemoryInventoryStorage,
    InMemoryLedgerStorage,
    InventoryStorageInterface,
    LedgerStorageInterface,
    NotFoundError,
)
from cashbook.transfers import ChannelLockRegistry, TransferOrchestrator

logger = structlog.get_logger(__name__)

# Never changed by an edit
_IMMUTABLE_FIELDS = ("id", "created_at", "updated_at")


class CashbookFlow:
    """
    Entry and transfer operations.

    Edits and deletes are ADMIN-only and deliberately skip every derived
    computation: the anomaly flag of the edited entry, and of any later
    entry it affected, stays as it was recorded.
    """

    def __init__(
        self,
        storage: LedgerStorageInterface,
        normalizer: EntryNormalizer,
        transfers: TransferOrchestrator,
        reports: ReportQueries,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._storage = storage
        self._normalizer = normalizer
        self._transfers = transfers
        self._reports = reports
        self._audit_logger = audit_logger or AuditLogger()

    async def _require_admin(self, caller: Caller, action: str) -> None:
        if caller.is_admin:
            return
        await self._audit_logger.log_permission_denied(
            action=action,
            role=caller.role.value,
            actor_id=caller.user_id,
        )
        raise PermissionDeniedError(action, caller.role.value)

    async def create_entry(self, data: dict[str, Any], caller: Caller) -> LedgerEntry:
        try:
            return await self._normalizer.normalize(data, actor_id=caller.user_id)
        except ValidationFailedError as e:
            await self._audit_logger.log_validation_failed(
                operation="create_entry",
                message=e.message,
                actor_id=caller.user_id,
            )
            raise

    async def list_entries(
        self,
        caller: Caller,
        month: Optional[str] = None,
    ) -> list[LedgerEntry]:
        """Entries sorted by date, optionally for one month."""
        return await self._reports.list_entries(month)

    async def update_entry(
        self,
        entry_id: UUID,
        changes: dict[str, Any],
        caller: Caller,
    ) -> LedgerEntry:
        """
        Apply an admin edit as-is.

        The result must still be a valid entry; nothing is recomputed.

        Raises:
            PermissionDeniedError: Caller is not an admin
            NotFoundError: No entry with that id
            ValidationFailedError: The edit would break an entry invariant
        """
        await self._require_admin(caller, "edit cashbook entries")

        existing = await self._storage.get_entry_by_id(entry_id)
        if existing is None:
            raise NotFoundError(f"Entry not found: {entry_id}")

        changes = {k: v for k, v in changes.items() if k not in _IMMUTABLE_FIELDS}
        try:
            updated = LedgerEntry.model_validate({**existing.model_dump(), **changes})
        except ValidationError as e:
            error = from_validation_error(e)
            await self._audit_logger.log_validation_failed(
                operation="update_entry",
                message=error.message,
                actor_id=caller.user_id,
            )
            raise error

        stored = await self._storage.update_entry(updated)
        await self._audit_logger.log_entry_updated(
            entry_id=stored.id,
            changed_fields=sorted(changes),
            actor_id=caller.user_id,
        )
        return stored

    async def delete_entry(self, entry_id: UUID, caller: Caller) -> bool:
        """
        Raises:
            PermissionDeniedError: Caller is not an admin
            NotFoundError: No entry with that id
        """
        await self._require_admin(caller, "delete cashbook entries")

        if not await self._storage.delete_entry(entry_id):
            raise NotFoundError(f"Entry not found: {entry_id}")

        await self._audit_logger.log_entry_deleted(entry_id=entry_id, actor_id=caller.user_id)
        return True

    async def transfer(
        self,
        request: Union[TransferRequest, dict[str, Any]],
        caller: Caller,
    ) -> TransferResult:
        return await self._transfers.transfer(request, actor_id=caller.user_id)


class InventoryFlow:
    """Purchases, sales and inventory rollups."""

    def __init__(
        self,
        service: InventoryService,
        queries: InventoryQueries,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._service = service
        self._queries = queries
        self._audit_logger = audit_logger or AuditLogger()

    async def create_purchase(self, data: dict[str, Any], caller: Caller) -> InventoryPurchase:
        try:
            return await self._service.create_purchase(data, caller)
        except ValidationFailedError as e:
            await self._audit_logger.log_validation_failed(
                operation="create_purchase",
                message=e.message,
                actor_id=caller.user_id,
            )
            raise

    async def list_purchases(
        self,
        caller: Caller,
        month: Optional[str] = None,
        supplier_name: Optional[str] = None,
        approval_status: Optional[ApprovalStatus] = None,
    ) -> list[InventoryPurchase]:
        return await self._service.list_purchases(
            month=month,
            supplier_name=supplier_name,
            approval_status=approval_status,
        )

    async def decide_purchase(
        self,
        purchase_id: UUID,
        status: Union[ApprovalStatus, str],
        caller: Caller,
    ) -> InventoryPurchase:
        try:
            return await self._service.decide_purchase(purchase_id, status, caller)
        except PermissionDeniedError as e:
            await self._audit_logger.log_permission_denied(
                action=e.action,
                role=e.role,
                actor_id=caller.user_id,
            )
            raise

    async def create_sale(self, data: dict[str, Any], caller: Caller) -> InventorySale:
        try:
            return await self._service.create_sale(data, caller)
        except ValidationFailedError as e:
            await self._audit_logger.log_validation_failed(
                operation="create_sale",
                message=e.message,
                actor_id=caller.user_id,
            )
            raise

    async def list_sales(self, caller: Caller, month: Optional[str] = None) -> list[InventorySale]:
        return await self._service.list_sales(month=month)

    async def purchase_summary(self, month: Optional[str] = None) -> InventorySummary:
        return await self._queries.purchase_summary(month)

    async def purchase_monthly_totals(self) -> InventoryMonthlyTotals:
        return await self._queries.purchase_monthly_totals()

    async def sales_summary(self, month: Optional[str] = None) -> InventorySummary:
        return await self._queries.sales_summary(month)

    async def sales_monthly_totals(self) -> InventoryMonthlyTotals:
        return await self._queries.sales_monthly_totals()

    async def supplier_summary(self, month: Optional[str] = None) -> list[SupplierRollup]:
        return await self._queries.supplier_summary(month)


class ReportFlow:
    """Balances, totals and the data behind the monthly documents."""

    def __init__(self, reports: ReportQueries, inventory: InventoryQueries):
        self._reports = reports
        self._inventory = inventory

    async def balances(self, month: Optional[str] = None) -> ChannelBalances:
        return await self._reports.balances(month)

    async def daily_totals(self, day: Union[date, datetime, str, None]) -> DailyTotals:
        return await self._reports.daily_totals(day)

    async def monthly_summary(self, month: Optional[str]) -> MonthlySummary:
        return await self._reports.monthly_summary(month)

    async def list_months(self) -> list[str]:
        return await self._reports.list_months()

    async def cashbook_report(self, month: Optional[str]) -> CashbookReport:
        return await self._reports.cashbook_report(month)

    async def inventory_report(self, month: Optional[str]) -> InventoryReport:
        return await self._inventory.inventory_report(month)


def _build_storage(
    backend: str,
) -> tuple[LedgerStorageInterface, InventoryStorageInterface, AuditStorageInterface]:
    if backend == "google_sheets":
        client = GoogleSheetsClient()
        return (
            GoogleSheetsLedgerStorage(client),
            GoogleSheetsInventoryStorage(client),
            GoogleSheetsAuditStorage(client),
        )
    return InMemoryLedgerStorage(), InMemoryInventoryStorage(), InMemoryAuditStorage()


def create_app_components(
    backend: Optional[str] = None,
) -> tuple[CashbookFlow, InventoryFlow, ReportFlow]:
    """
    Factory function to create all application components.

    Args:
        backend: "memory" or "google_sheets". Defaults to the
                LEDGER_STORAGE_BACKEND setting.

    Returns:
        (cashbook_flow, inventory_flow, report_flow)
    """
    settings = get_settings()
    app = settings.app
    ledger = settings.ledger
    configure_logging(app.log_level, app.log_format)

    backend = backend or ledger.storage_backend
    try:
        ledger_storage, inventory_storage, audit_storage = _build_storage(backend)
    except Exception as e:
        if app.app_environment == "production":
            raise
        # Storage not configured - continue in memory
        logger.warning("storage_not_configured", backend=backend, error=str(e))
        ledger_storage, inventory_storage, audit_storage = _build_storage("memory")

    audit_logger = AuditLogger(audit_storage)
    # One registry shared by every writer that checks a balance
    locks = ChannelLockRegistry()
    calculator = ChannelAvailabilityCalculator(ledger_storage, ledger.carry_threshold)

    normalizer = EntryNormalizer(ledger_storage, calculator, locks, audit_logger)
    transfers = TransferOrchestrator(
        ledger_storage,
        calculator,
        locks,
        audit_logger,
        currency=ledger.currency,
    )
    reports = ReportQueries(ledger_storage, calculator)
    inventory_queries = InventoryQueries(
        inventory_storage,
        approval_workflow_enabled=ledger.approval_workflow_enabled,
    )
    inventory_service = InventoryService(
        inventory_storage,
        ledger_storage,
        normalizer,
        audit_logger,
        approval_workflow_enabled=ledger.approval_workflow_enabled,
    )

    cashbook_flow = CashbookFlow(ledger_storage, normalizer, transfers, reports, audit_logger)
    inventory_flow = InventoryFlow(inventory_service, inventory_queries, audit_logger)
    report_flow = ReportFlow(reports, inventory_queries)

    logger.info("components_created", backend=backend)
    return cashbook_flow, inventory_flow, report_flow
