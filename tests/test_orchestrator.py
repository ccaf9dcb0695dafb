"""
Tests for the inbound flows: role checks, edits and wiring.
"""

from uuid import uuid4

import pytest

from cashbook.errors import PermissionDeniedError, ValidationFailedError
from cashbook.models.audit import AuditEventType
from cashbook.models.ledger import Channel
from cashbook.orchestrator import (
    CashbookFlow,
    InventoryFlow,
    ReportFlow,
    create_app_components,
)
from cashbook.services.storage import NotFoundError
from factories import income_entry, utc


async def _event_types(audit_storage):
    return [e.event_type for e in await audit_storage.get_recent_events()]


class TestCreateEntry:
    """Tests for entry creation through the flow."""

    @pytest.mark.asyncio
    async def test_any_role_can_create(self, cashbook_flow, storekeeper):
        entry = await cashbook_flow.create_entry(
            {"date": "2026-03-02", "channel": "CASH", "total_amount": 100},
            storekeeper,
        )

        assert entry.total_amount == 100

    @pytest.mark.asyncio
    async def test_validation_failure_is_audited(self, cashbook_flow, manager, audit_storage):
        with pytest.raises(ValidationFailedError):
            await cashbook_flow.create_entry({"channel": "CASH"}, manager)

        assert AuditEventType.VALIDATION_FAILED in await _event_types(audit_storage)

    @pytest.mark.asyncio
    async def test_list_entries_by_month(self, cashbook_flow, manager, ledger_storage):
        await ledger_storage.save_entry(income_entry(Channel.CASH, 1, utc(2026, 3, 1)))
        await ledger_storage.save_entry(income_entry(Channel.CASH, 1, utc(2026, 4, 1)))

        assert len(await cashbook_flow.list_entries(manager, "2026-03")) == 1
        assert len(await cashbook_flow.list_entries(manager)) == 2


class TestUpdateEntry:
    """Tests for admin edits."""

    @pytest.mark.asyncio
    async def test_manager_cannot_edit(self, cashbook_flow, manager, ledger_storage, audit_storage):
        entry = await ledger_storage.save_entry(income_entry(Channel.CASH, 100, utc(2026, 3, 1)))

        with pytest.raises(PermissionDeniedError):
            await cashbook_flow.update_entry(entry.id, {"name": "x"}, manager)

        assert AuditEventType.PERMISSION_DENIED in await _event_types(audit_storage)
        assert (await ledger_storage.get_entry_by_id(entry.id)).name is None

    @pytest.mark.asyncio
    async def test_admin_edit_applied_as_is(self, cashbook_flow, admin, ledger_storage):
        """Test that an edit never recomputes the anomaly flag."""
        entry = await ledger_storage.save_entry(income_entry(
            Channel.CASH, 100, utc(2026, 3, 1),
            expense_amount=5000, expense_channel=Channel.CASH, anomaly_flag=True,
        ))

        updated = await cashbook_flow.update_entry(
            entry.id,
            {"expense_amount": 10, "operational_costs": "Corrected"},
            admin,
        )

        assert updated.expense_amount == 10
        assert updated.operational_costs == "Corrected"
        assert updated.anomaly_flag is True

    @pytest.mark.asyncio
    async def test_id_cannot_change(self, cashbook_flow, admin, ledger_storage):
        entry = await ledger_storage.save_entry(income_entry(Channel.CASH, 100, utc(2026, 3, 1)))

        updated = await cashbook_flow.update_entry(entry.id, {"id": uuid4(), "name": "y"}, admin)

        assert updated.id == entry.id

    @pytest.mark.asyncio
    async def test_edit_must_stay_valid(self, cashbook_flow, admin, ledger_storage):
        entry = await ledger_storage.save_entry(income_entry(Channel.CASH, 100, utc(2026, 3, 1)))

        with pytest.raises(ValidationFailedError):
            await cashbook_flow.update_entry(entry.id, {"total_amount": 999}, admin)

    @pytest.mark.asyncio
    async def test_unknown_entry(self, cashbook_flow, admin):
        with pytest.raises(NotFoundError):
            await cashbook_flow.update_entry(uuid4(), {"name": "z"}, admin)

    @pytest.mark.asyncio
    async def test_edit_is_audited(self, cashbook_flow, admin, ledger_storage, audit_storage):
        entry = await ledger_storage.save_entry(income_entry(Channel.CASH, 100, utc(2026, 3, 1)))

        await cashbook_flow.update_entry(entry.id, {"name": "Okello"}, admin)

        assert AuditEventType.ENTRY_UPDATED in await _event_types(audit_storage)


class TestDeleteEntry:
    """Tests for admin deletes."""

    @pytest.mark.asyncio
    async def test_admin_delete(self, cashbook_flow, admin, ledger_storage):
        entry = await ledger_storage.save_entry(income_entry(Channel.CASH, 100, utc(2026, 3, 1)))

        assert await cashbook_flow.delete_entry(entry.id, admin) is True
        assert await ledger_storage.get_entry_by_id(entry.id) is None

    @pytest.mark.asyncio
    async def test_storekeeper_cannot_delete(self, cashbook_flow, storekeeper, ledger_storage):
        entry = await ledger_storage.save_entry(income_entry(Channel.CASH, 100, utc(2026, 3, 1)))

        with pytest.raises(PermissionDeniedError):
            await cashbook_flow.delete_entry(entry.id, storekeeper)
        assert await ledger_storage.get_entry_by_id(entry.id) is not None

    @pytest.mark.asyncio
    async def test_unknown_entry(self, cashbook_flow, admin):
        with pytest.raises(NotFoundError):
            await cashbook_flow.delete_entry(uuid4(), admin)


class TestInventoryFlow:
    """Tests for inventory access rules."""

    @pytest.mark.asyncio
    async def test_denied_decision_is_audited(self, inventory_flow, storekeeper, audit_storage):
        purchase = await inventory_flow.create_purchase({
            "date_of_purchase": "2026-03-04",
            "supplier_name": "Kato Scrap",
            "item_type": "SACKS",
            "qty_kg": 10,
            "unit_cost": 100,
            "method_of_payment": "CASH",
        }, storekeeper)

        with pytest.raises(PermissionDeniedError):
            await inventory_flow.decide_purchase(purchase.id, "APPROVED", storekeeper)

        assert AuditEventType.PERMISSION_DENIED in await _event_types(audit_storage)

    @pytest.mark.asyncio
    async def test_bad_sale_is_audited(self, inventory_flow, manager, audit_storage):
        with pytest.raises(ValidationFailedError):
            await inventory_flow.create_sale({"company_name": "X", "item_type": "HD"}, manager)

        assert AuditEventType.VALIDATION_FAILED in await _event_types(audit_storage)


class TestReportFlow:
    """Tests for the report surface."""

    @pytest.mark.asyncio
    async def test_transfer_then_balances(self, cashbook_flow, report_flow, manager, ledger_storage):
        await ledger_storage.save_entry(income_entry(Channel.CASH, 1000, utc(2026, 3, 1)))

        await cashbook_flow.transfer(
            {"source_channel": "CASH", "dest_channel": "BANK", "amount": 250, "date": "2026-03-02"},
            manager,
        )
        balances = (await report_flow.balances("2026-03")).balances

        assert balances[Channel.CASH].available_balance == 750
        assert balances[Channel.BANK].available_balance == 250


class TestCreateAppComponents:
    """Tests for the factory."""

    def test_memory_backend(self):
        cashbook_flow, inventory_flow, report_flow = create_app_components("memory")

        assert isinstance(cashbook_flow, CashbookFlow)
        assert isinstance(inventory_flow, InventoryFlow)
        assert isinstance(report_flow, ReportFlow)

    @pytest.mark.asyncio
    async def test_components_share_storage(self, admin):
        cashbook_flow, _, report_flow = create_app_components("memory")

        await cashbook_flow.create_entry(
            {"date": "2026-03-02", "channel": "BANK", "total_amount": 70},
            admin,
        )

        assert await report_flow.list_months() == ["2026-03"]


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
