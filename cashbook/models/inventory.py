"""
Inventory Models

Recyclables bought from suppliers and sold to companies, by weight.
Totals are always unit cost x kilograms unless a total is supplied
explicitly (purchases negotiated as a lump sum).
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from cashbook.models.ledger import Channel
from cashbook.periods import MONTH_PATTERN, coerce_datetime, month_from_date, utc_now

PURCHASE_REFERENCE_PREFIX = "INV-PURCHASE-"
SALE_REFERENCE_PREFIX = "INV-SALE-"


class ItemType(str, Enum):
    SOFT = "SOFT"
    BOTTLES = "BOTTLES"
    HD = "HD"
    STEEL = "STEEL"
    SACKS = "SACKS"
    JCNS = "JCNS"
    PLASTICS = "PLASTICS"
    BOX = "BOX"
    CUPS = "CUPS"


class ApprovalStatus(str, Enum):
    """
    Purchase approval state.

    Only APPROVED purchases move money and count in rollups.
    """
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


def _payment_channel(v: Any) -> Any:
    if isinstance(v, str) and v.strip().upper() in ("", "NONE"):
        return None
    return v


class _InventoryRecord(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
    month: Optional[str] = Field(default=None, pattern=MONTH_PATTERN)
    item_type: ItemType
    qty_kg: float = Field(..., ge=0, description="Weight in kilograms")
    unit_cost: float = Field(default=0.0, ge=0, description="Price per kilogram")
    method_of_payment: Optional[Channel] = None

    @field_validator('method_of_payment', mode='before')
    @classmethod
    def blank_channel(cls, v: Any) -> Any:
        return _payment_channel(v)

    @field_validator('created_at', 'updated_at', mode='before')
    @classmethod
    def coerce_timestamps(cls, v: Any) -> Any:
        return coerce_datetime(v)

    @property
    def qty_tons(self) -> float:
        return self.qty_kg / 1000


class InventoryPurchase(_InventoryRecord):
    """Recyclables bought from a supplier."""

    date_of_purchase: datetime
    supplier_name: str = Field(..., min_length=1, max_length=200)
    supplier_phone: Optional[str] = Field(default=None, max_length=50)
    supplier_location: Optional[str] = Field(default=None, max_length=200)
    purchase_price_total: Optional[float] = Field(default=None, ge=0)
    approval_status: ApprovalStatus = ApprovalStatus.PENDING
    approved_by: Optional[str] = None

    @field_validator('date_of_purchase', mode='before')
    @classmethod
    def coerce_date(cls, v: Any) -> Any:
        return coerce_datetime(v)

    @model_validator(mode='after')
    def fill_derived(self) -> 'InventoryPurchase':
        if self.month is None:
            self.month = month_from_date(self.date_of_purchase)
        if self.purchase_price_total is None:
            self.purchase_price_total = self.unit_cost * self.qty_kg
        return self

    @property
    def ledger_reference(self) -> str:
        return f"{PURCHASE_REFERENCE_PREFIX}{self.id}"

    @property
    def is_approved(self) -> bool:
        return self.approval_status == ApprovalStatus.APPROVED


class InventorySale(_InventoryRecord):
    """Recyclables sold to a company. The total is always computed."""

    date_of_sale: datetime
    company_name: str = Field(..., min_length=1, max_length=200)
    total_amount: float = Field(default=0.0, ge=0)

    @field_validator('date_of_sale', mode='before')
    @classmethod
    def coerce_date(cls, v: Any) -> Any:
        return coerce_datetime(v)

    @model_validator(mode='after')
    def fill_derived(self) -> 'InventorySale':
        if self.month is None:
            self.month = month_from_date(self.date_of_sale)
        self.total_amount = self.unit_cost * self.qty_kg
        return self

    @property
    def ledger_reference(self) -> str:
        return f"{SALE_REFERENCE_PREFIX}{self.id}"
