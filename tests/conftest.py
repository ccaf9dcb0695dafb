"""
Shared fixtures for the cashbook test suite.

Everything runs against the in-memory storage backend. No network, no
Google credentials.
"""

import pytest

from cashbook.audit import AuditLogger
from cashbook.balances import ChannelAvailabilityCalculator
from cashbook.entries import EntryNormalizer
from cashbook.inventory import InventoryService
from cashbook.models.identity import Caller, Role
from cashbook.orchestrator import CashbookFlow, InventoryFlow, ReportFlow
from cashbook.queries import InventoryQueries, ReportQueries
from cashbook.services.storage import (
    InMemoryAuditStorage,
    InMemoryInventoryStorage,
    InMemoryLedgerStorage,
)
from cashbook.transfers import ChannelLockRegistry, TransferOrchestrator


@pytest.fixture
def ledger_storage():
    return InMemoryLedgerStorage()


@pytest.fixture
def inventory_storage():
    return InMemoryInventoryStorage()


@pytest.fixture
def audit_storage():
    return InMemoryAuditStorage()


@pytest.fixture
def audit_logger(audit_storage):
    return AuditLogger(audit_storage)


@pytest.fixture
def locks():
    return ChannelLockRegistry()


@pytest.fixture
def calculator(ledger_storage):
    return ChannelAvailabilityCalculator(ledger_storage)


@pytest.fixture
def normalizer(ledger_storage, calculator, locks, audit_logger):
    return EntryNormalizer(ledger_storage, calculator, locks, audit_logger)


@pytest.fixture
def transfers(ledger_storage, calculator, locks, audit_logger):
    return TransferOrchestrator(ledger_storage, calculator, locks, audit_logger)


@pytest.fixture
def reports(ledger_storage, calculator):
    return ReportQueries(ledger_storage, calculator)


@pytest.fixture
def inventory_queries(inventory_storage):
    return InventoryQueries(inventory_storage)


@pytest.fixture
def inventory_service(inventory_storage, ledger_storage, normalizer, audit_logger):
    return InventoryService(inventory_storage, ledger_storage, normalizer, audit_logger)


@pytest.fixture
def cashbook_flow(ledger_storage, normalizer, transfers, reports, audit_logger):
    return CashbookFlow(ledger_storage, normalizer, transfers, reports, audit_logger)


@pytest.fixture
def inventory_flow(inventory_service, inventory_queries, audit_logger):
    return InventoryFlow(inventory_service, inventory_queries, audit_logger)


@pytest.fixture
def report_flow(reports, inventory_queries):
    return ReportFlow(reports, inventory_queries)


@pytest.fixture
def admin():
    return Caller(user_id="u-admin", username="owner", role=Role.ADMIN)


@pytest.fixture
def manager():
    return Caller(user_id="u-manager", username="manager", role=Role.MANAGER)


@pytest.fixture
def storekeeper():
    return Caller(user_id="u-store", username="store", role=Role.INVENTORY)
