"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is used as the shared storage backend because:
1. The owner can view the cashbook directly in Sheets
2. No database setup required
3. Built-in backup (Google's infrastructure)
4. Easy to export/migrate later

TRADEOFFS:
- Not suitable for high-volume data (a small business ledger is fine)
- No transactions (transfers compensate in the orchestrator instead)
- Limited query capabilities (we filter in Python)

The implementation follows the abstract interface, so we can swap
to PostgreSQL/SQLite later without changing the balance engine.
"""

import json
from datetime import datetime
from typing import Any, Optional
from uuid import UUID

import gspread
from google.oauth2.service_account import Credentials
from tenacity import retry, stop_after_attempt, wait_exponential

from cashbook.config import get_settings
from cashbook.models.audit import AuditEvent, AuditEventType, AuditSeverity
from cashbook.models.inventory import ApprovalStatus, InventoryPurchase, InventorySale
from cashbook.models.ledger import Channel, LedgerEntry
from cashbook.periods import utc_now
from cashbook.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    InventoryStorageInterface,
    LedgerStorageInterface,
    NotFoundError,
    StorageError,
    filter_entries,
    sum_entries_field,
)


# Column mappings for the Cashbook sheet
ENTRY_COLUMNS = [
    "id",
    "created_at",
    "updated_at",
    "month",
    "date",
    "channels_json",
    "primary_channel",
    "amounts_by_channel_json",
    "total_amount",
    "expense_amount",
    "expense_channel",
    "transfer_tag",
    "reference",
    "anomaly_flag",
    "salary_amount",
    "advance",
    "salary_balance",
    "allowance",
    "transaction_charges",
    "operational_costs",
    "recyclables",
    "op",
    "sector",
    "method_of_payment",
    "wages_category",
    "name",
    "payment_tier",
    "role_locked",
]

PURCHASE_COLUMNS = [
    "id",
    "created_at",
    "updated_at",
    "month",
    "date_of_purchase",
    "supplier_name",
    "supplier_phone",
    "supplier_location",
    "item_type",
    "qty_kg",
    "unit_cost",
    "purchase_price_total",
    "method_of_payment",
    "approval_status",
    "approved_by",
]

SALE_COLUMNS = [
    "id",
    "created_at",
    "updated_at",
    "month",
    "date_of_sale",
    "company_name",
    "item_type",
    "qty_kg",
    "unit_cost",
    "total_amount",
    "method_of_payment",
]

# Column mappings for Audit sheet
AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "entity_type",
    "entity_id",
    "actor_id",
    "correlation_id",
    "description",
    "details_json",
    "error_message",
]

_RETRY = dict(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=2, max=10),
    reraise=True,
)


def _row_to_dict(columns: list[str], row: list) -> dict[str, str]:
    """Pair a sheet row with its header, tolerating short rows."""
    return {col: (row[i] if i < len(row) else "") for i, col in enumerate(columns)}


def _cell(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, datetime):
        return value.isoformat()
    if hasattr(value, "value"):
        return str(value.value)
    return str(value)


def _blank_to_none(data: dict[str, str]) -> dict[str, Any]:
    return {k: (v if v != "" else None) for k, v in data.items()}


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for API calls.
    """

    def __init__(self):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = get_settings().google_sheets

    @retry(**_RETRY)
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise ConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise ConnectionError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound:
                raise ConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def _get_or_create(self, title: str, columns: list[str], rows: int) -> gspread.Worksheet:
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            # Create the sheet with headers
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=rows,
                cols=len(columns),
            )
            sheet.append_row(columns)
        return sheet

    def get_entries_sheet(self) -> gspread.Worksheet:
        return self._get_or_create(self._settings.entries_sheet_name, ENTRY_COLUMNS, 5000)

    def get_purchases_sheet(self) -> gspread.Worksheet:
        return self._get_or_create(self._settings.purchases_sheet_name, PURCHASE_COLUMNS, 2000)

    def get_sales_sheet(self) -> gspread.Worksheet:
        return self._get_or_create(self._settings.sales_sheet_name, SALE_COLUMNS, 2000)

    def get_audit_sheet(self) -> gspread.Worksheet:
        # More rows for audit log
        return self._get_or_create(self._settings.audit_sheet_name, AUDIT_COLUMNS, 10000)


def _find_row_index(all_rows: list[list], row_id: str) -> Optional[int]:
    """1-based sheet row of the record with this id (row 1 is the header)."""
    for idx, row in enumerate(all_rows[1:], start=2):
        if row and row[0] == row_id:
            return idx
    return None


class GoogleSheetsLedgerStorage(LedgerStorageInterface):
    """
    Google Sheets implementation of ledger storage.

    Entries are stored one per row. The channel list and the
    per-channel amounts are JSON-serialized into single cells.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _entry_to_row(self, entry: LedgerEntry) -> list:
        """Convert a LedgerEntry to a spreadsheet row."""
        data = entry.model_dump()
        data["channels_json"] = json.dumps([c.value for c in entry.channels])
        data["amounts_by_channel_json"] = json.dumps(
            {c.value: amount for c, amount in entry.amounts_by_channel.items()}
        )
        data["id"] = str(entry.id)
        return [_cell(data.get(col)) for col in ENTRY_COLUMNS]

    def _row_to_entry(self, row: list) -> LedgerEntry:
        """Convert a spreadsheet row to a LedgerEntry."""
        data = _blank_to_none(_row_to_dict(ENTRY_COLUMNS, row))
        data["channels"] = json.loads(data.pop("channels_json") or "[]")
        data["amounts_by_channel"] = json.loads(data.pop("amounts_by_channel_json") or "{}")
        for flag in ("anomaly_flag", "role_locked"):
            data[flag] = (data.get(flag) or "").lower() == "true"
        # Let model defaults fill the remaining blanks
        return LedgerEntry.model_validate({k: v for k, v in data.items() if v is not None})

    def _load_all(self) -> list[LedgerEntry]:
        sheet = self._client.get_entries_sheet()
        entries = []
        for row in sheet.get_all_values()[1:]:
            if not row or not row[0]:  # Skip empty rows
                continue
            entries.append(self._row_to_entry(row))
        return entries

    @retry(**_RETRY)
    async def save_entry(self, entry: LedgerEntry) -> LedgerEntry:
        """Append an entry to the Cashbook sheet."""
        try:
            sheet = self._client.get_entries_sheet()
            sheet.append_row(self._entry_to_row(entry), value_input_option="RAW")
            return entry
        except Exception as e:
            raise StorageError(f"Failed to save entry: {e}")

    async def get_entry_by_id(self, entry_id: UUID) -> Optional[LedgerEntry]:
        try:
            sheet = self._client.get_entries_sheet()
            for row in sheet.get_all_values()[1:]:
                if row and row[0] == str(entry_id):
                    return self._row_to_entry(row)
            return None
        except Exception as e:
            raise StorageError(f"Failed to get entry: {e}")

    async def update_entry(self, entry: LedgerEntry) -> LedgerEntry:
        try:
            sheet = self._client.get_entries_sheet()
            idx = _find_row_index(sheet.get_all_values(), str(entry.id))
            if idx is None:
                raise NotFoundError(f"Entry not found: {entry.id}")

            updated = entry.model_copy(update={"updated_at": utc_now()})
            sheet.update(range_name=f"A{idx}", values=[self._entry_to_row(updated)])
            return updated
        except NotFoundError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to update entry: {e}")

    async def delete_entry(self, entry_id: UUID) -> bool:
        try:
            sheet = self._client.get_entries_sheet()
            idx = _find_row_index(sheet.get_all_values(), str(entry_id))
            if idx is None:
                return False
            sheet.delete_rows(idx)
            return True
        except Exception as e:
            raise StorageError(f"Failed to delete entry: {e}")

    async def list_entries(
        self,
        month: Optional[str] = None,
        channel: Optional[Channel] = None,
        reference: Optional[str] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
    ) -> list[LedgerEntry]:
        try:
            entries = self._load_all()
        except Exception as e:
            raise StorageError(f"Failed to list entries: {e}")
        return filter_entries(
            entries,
            month=month,
            channel=channel,
            reference=reference,
            date_from=date_from,
            date_to=date_to,
        )

    async def get_total_by_field(
        self,
        field: str,
        month: Optional[str] = None,
        expense_channel: Optional[Channel] = None,
        primary_channel: Optional[Channel] = None,
    ) -> float:
        entries = await self.list_entries(month=month)
        return sum_entries_field(
            entries,
            field,
            expense_channel=expense_channel,
            primary_channel=primary_channel,
        )

    async def list_months(self) -> list[str]:
        try:
            sheet = self._client.get_entries_sheet()
            month_col = ENTRY_COLUMNS.index("month")
            months = {
                row[month_col]
                for row in sheet.get_all_values()[1:]
                if len(row) > month_col and row[month_col]
            }
            return sorted(months)
        except Exception as e:
            raise StorageError(f"Failed to list months: {e}")


class GoogleSheetsInventoryStorage(InventoryStorageInterface):
    """Purchases and sales, one worksheet each."""

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    @staticmethod
    def _to_row(record: Any, columns: list[str]) -> list:
        data = record.model_dump()
        return [_cell(data.get(col)) for col in columns]

    def _row_to_purchase(self, row: list) -> InventoryPurchase:
        data = _blank_to_none(_row_to_dict(PURCHASE_COLUMNS, row))
        return InventoryPurchase.model_validate({k: v for k, v in data.items() if v is not None})

    def _row_to_sale(self, row: list) -> InventorySale:
        data = _blank_to_none(_row_to_dict(SALE_COLUMNS, row))
        return InventorySale.model_validate({k: v for k, v in data.items() if v is not None})

    @retry(**_RETRY)
    async def save_purchase(self, purchase: InventoryPurchase) -> InventoryPurchase:
        try:
            sheet = self._client.get_purchases_sheet()
            sheet.append_row(self._to_row(purchase, PURCHASE_COLUMNS), value_input_option="RAW")
            return purchase
        except Exception as e:
            raise StorageError(f"Failed to save purchase: {e}")

    async def get_purchase_by_id(self, purchase_id: UUID) -> Optional[InventoryPurchase]:
        try:
            sheet = self._client.get_purchases_sheet()
            for row in sheet.get_all_values()[1:]:
                if row and row[0] == str(purchase_id):
                    return self._row_to_purchase(row)
            return None
        except Exception as e:
            raise StorageError(f"Failed to get purchase: {e}")

    async def update_purchase(self, purchase: InventoryPurchase) -> InventoryPurchase:
        try:
            sheet = self._client.get_purchases_sheet()
            idx = _find_row_index(sheet.get_all_values(), str(purchase.id))
            if idx is None:
                raise NotFoundError(f"Purchase not found: {purchase.id}")

            updated = purchase.model_copy(update={"updated_at": utc_now()})
            sheet.update(range_name=f"A{idx}", values=[self._to_row(updated, PURCHASE_COLUMNS)])
            return updated
        except NotFoundError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to update purchase: {e}")

    async def delete_purchase(self, purchase_id: UUID) -> bool:
        try:
            sheet = self._client.get_purchases_sheet()
            idx = _find_row_index(sheet.get_all_values(), str(purchase_id))
            if idx is None:
                return False
            sheet.delete_rows(idx)
            return True
        except Exception as e:
            raise StorageError(f"Failed to delete purchase: {e}")

    async def list_purchases(
        self,
        month: Optional[str] = None,
        supplier_name: Optional[str] = None,
        approval_status: Optional[ApprovalStatus] = None,
    ) -> list[InventoryPurchase]:
        try:
            sheet = self._client.get_purchases_sheet()
            purchases = [
                self._row_to_purchase(row)
                for row in sheet.get_all_values()[1:]
                if row and row[0]
            ]
        except Exception as e:
            raise StorageError(f"Failed to list purchases: {e}")

        purchases = [
            p for p in purchases
            if (not month or p.month == month)
            and (not supplier_name or p.supplier_name == supplier_name)
            and (not approval_status or p.approval_status == approval_status)
        ]
        purchases.sort(key=lambda p: p.date_of_purchase)
        return purchases

    @retry(**_RETRY)
    async def save_sale(self, sale: InventorySale) -> InventorySale:
        try:
            sheet = self._client.get_sales_sheet()
            sheet.append_row(self._to_row(sale, SALE_COLUMNS), value_input_option="RAW")
            return sale
        except Exception as e:
            raise StorageError(f"Failed to save sale: {e}")

    async def get_sale_by_id(self, sale_id: UUID) -> Optional[InventorySale]:
        try:
            sheet = self._client.get_sales_sheet()
            for row in sheet.get_all_values()[1:]:
                if row and row[0] == str(sale_id):
                    return self._row_to_sale(row)
            return None
        except Exception as e:
            raise StorageError(f"Failed to get sale: {e}")

    async def delete_sale(self, sale_id: UUID) -> bool:
        try:
            sheet = self._client.get_sales_sheet()
            idx = _find_row_index(sheet.get_all_values(), str(sale_id))
            if idx is None:
                return False
            sheet.delete_rows(idx)
            return True
        except Exception as e:
            raise StorageError(f"Failed to delete sale: {e}")

    async def list_sales(self, month: Optional[str] = None) -> list[InventorySale]:
        try:
            sheet = self._client.get_sales_sheet()
            sales = [
                self._row_to_sale(row)
                for row in sheet.get_all_values()[1:]
                if row and row[0]
            ]
        except Exception as e:
            raise StorageError(f"Failed to list sales: {e}")

        sales = [s for s in sales if not month or s.month == month]
        sales.sort(key=lambda s: s.date_of_sale)
        return sales


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _row_to_event(self, row: list) -> AuditEvent:
        """Convert a spreadsheet row to an AuditEvent."""
        data = _row_to_dict(AUDIT_COLUMNS, row)
        return AuditEvent(
            event_id=UUID(data["event_id"]),
            timestamp=datetime.fromisoformat(data["timestamp"]),
            event_type=AuditEventType(data["event_type"]),
            severity=AuditSeverity(data["severity"]),
            entity_type=data["entity_type"] or None,
            entity_id=data["entity_id"] or None,
            actor_id=data["actor_id"] or None,
            correlation_id=UUID(data["correlation_id"]) if data["correlation_id"] else None,
            description=data["description"],
            details=json.loads(data["details_json"]) if data["details_json"] else {},
            error_message=data["error_message"] or None,
        )

    def _load_events(self) -> list[AuditEvent]:
        sheet = self._client.get_audit_sheet()
        return [
            self._row_to_event(row)
            for row in sheet.get_all_values()[1:]
            if row and row[0]
        ]

    @retry(**_RETRY)
    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event."""
        try:
            sheet = self._client.get_audit_sheet()
            sheet.append_row(event.to_sheets_row(), value_input_option="RAW")
            return True
        except Exception as e:
            raise StorageError(f"Failed to write audit event: {e}")

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        try:
            events = [e for e in self._load_events() if e.correlation_id == correlation_id]
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")
        return sorted(events, key=lambda e: e.timestamp)

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        try:
            events = [
                e for e in self._load_events()
                if e.entity_type == entity_type and e.entity_id == entity_id
            ]
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")
        return sorted(events, key=lambda e: e.timestamp)

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        try:
            events = self._load_events()
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")
        # Sort newest first
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
