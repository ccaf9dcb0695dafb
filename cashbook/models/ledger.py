"""
Core Ledger Models for the Cashbook

These models define the strict schemas for every cashbook row.
They are designed to:
1. Enforce the ledger invariants at construction time
2. Provide clear validation error messages
3. Be serializable for storage and logging
4. Support the audit trail

DESIGN DECISION: Per-channel amounts are a mapping from the closed
Channel enumeration to a float. Absent keys read as zero; unknown
channel names are rejected rather than stored.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)

from cashbook.periods import MONTH_PATTERN, coerce_datetime, to_utc, utc_now

# Floating tolerance for "amounts sum to the total"
AMOUNT_TOLERANCE = 0.005


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class Channel(str, Enum):
    """
    Payment channels ("income types"), each with its own running balance.
    """
    MM_AIRTEL = "MM-AIRTEL"
    MM_MTN = "MM-MTN"
    CASH = "CASH"
    BANK = "BANK"
    BUSINESS_PROFIT = "BUSINESSPROFIT"


# Reporting iterates channels in this order
KNOWN_CHANNELS: tuple[Channel, ...] = tuple(Channel)

# Channels a supplier or company can actually be paid through
PAYMENT_CHANNELS: tuple[Channel, ...] = (
    Channel.CASH,
    Channel.MM_AIRTEL,
    Channel.MM_MTN,
    Channel.BANK,
)


class Sector(str, Enum):
    BUYING = "BUYING"
    CLEANING = "CLEANING"
    TRANSPORT = "TRANSPORT"


class WagesCategory(str, Enum):
    CASUAL = "CASUAL"
    STAFF = "STAFF"
    NONE = "NONE"


class PaymentTier(str, Enum):
    DAILY = "DAILY"
    WEEKLY = "WEEKLY"
    MONTHLY = "MONTHLY"
    NONE = "NONE"


def _none_channel(v: Any) -> Any:
    """'NONE' and blank mean 'no channel'."""
    if v is None:
        return None
    if isinstance(v, str) and v.strip().upper() in ("", "NONE"):
        return None
    return v


# =============================================================================
# PASS-THROUGH METADATA
# =============================================================================

class EntryMetadata(BaseModel):
    """
    Descriptive fields carried on an entry.

    None of these feed into balance computation; they are stored and
    reported as given.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    operational_costs: Optional[str] = Field(
        default=None,
        max_length=500,
        description="What the money was spent on"
    )
    recyclables: Optional[str] = Field(default=None, max_length=200)
    op: Optional[str] = Field(default=None, max_length=200)
    sector: Optional[Sector] = None
    method_of_payment: Optional[Channel] = None
    wages_category: WagesCategory = WagesCategory.NONE
    name: Optional[str] = Field(
        default=None,
        max_length=200,
        description="Payee or worker name"
    )
    payment_tier: PaymentTier = PaymentTier.NONE
    transaction_charges: float = Field(default=0.0, ge=0)
    allowance: float = Field(default=0.0, ge=0)
    role_locked: bool = Field(
        default=False,
        description="Row may only be changed by an admin"
    )


# =============================================================================
# CORE LEDGER ENTRY
# =============================================================================

class LedgerEntry(EntryMetadata):
    """
    One row in the cashbook, in its canonical stored form.

    CRITICAL: Only the normalizer, the transfer orchestrator and the
    inventory linkage create these. Aggregation never writes.
    """

    # Identity
    id: UUID = Field(
        default_factory=uuid4,
        description="Unique entry ID"
    )

    # Timestamps
    created_at: datetime = Field(
        default_factory=utc_now,
        description="When the entry was stored"
    )
    updated_at: datetime = Field(
        default_factory=utc_now,
        description="Last update timestamp"
    )

    # Partitioning
    month: str = Field(
        ...,
        pattern=MONTH_PATTERN,
        description="Month key (YYYY-MM) used by every aggregation"
    )
    date: datetime

    # Incoming money
    channels: list[Channel] = Field(default_factory=list)
    primary_channel: Optional[Channel] = Field(
        default=None,
        description="Single channel for one-channel entries"
    )
    amounts_by_channel: dict[Channel, float] = Field(default_factory=dict)
    total_amount: float = Field(default=0.0, ge=0)

    # Outgoing money
    expense_amount: float = Field(default=0.0, ge=0)
    expense_channel: Optional[Channel] = None

    # Linking
    transfer_tag: Optional[str] = Field(
        default=None,
        max_length=50,
        description="'FROM <channel>' or 'TO <channel>' on transfer legs"
    )
    reference: Optional[str] = Field(default=None, max_length=100)

    # Derived at creation time
    anomaly_flag: bool = Field(
        default=False,
        description="Expense drove the channel below zero when recorded"
    )
    salary_amount: float = Field(default=0.0, ge=0)
    advance: float = Field(default=0.0, ge=0)
    salary_balance: float = 0.0

    @field_validator('date', 'created_at', 'updated_at', mode='before')
    @classmethod
    def coerce_to_utc(cls, v: Any) -> Any:
        return coerce_datetime(v)

    @field_validator('date', 'created_at', 'updated_at')
    @classmethod
    def ensure_aware(cls, v: datetime) -> datetime:
        return to_utc(v)

    @field_validator('expense_channel', mode='before')
    @classmethod
    def normalize_none_channel(cls, v: Any) -> Any:
        return _none_channel(v)

    @field_validator('amounts_by_channel', mode='before')
    @classmethod
    def coerce_amounts(cls, v: Any) -> Any:
        if v is None:
            return {}
        if isinstance(v, dict):
            return {k: float(a or 0) for k, a in v.items()}
        return v

    @field_validator('channels')
    @classmethod
    def dedupe_channels(cls, v: list[Channel]) -> list[Channel]:
        return list(dict.fromkeys(v))

    @model_validator(mode='after')
    def validate_ledger_invariants(self) -> 'LedgerEntry':
        """Reject rows that would corrupt balance computation."""
        if self.expense_amount > 0 and self.expense_channel is None:
            raise ValueError("An expense must name the channel it is drawn from")

        if self.amounts_by_channel:
            unknown = set(self.amounts_by_channel) - set(self.channels)
            if unknown:
                names = ", ".join(sorted(c.value for c in unknown))
                raise ValueError(f"Amounts given for channels not on the entry: {names}")
            if any(a < 0 for a in self.amounts_by_channel.values()):
                raise ValueError("Per-channel amounts cannot be negative")
            split_total = sum(self.amounts_by_channel.values())
            if abs(split_total - self.total_amount) > AMOUNT_TOLERANCE:
                raise ValueError(
                    f"Per-channel amounts ({split_total}) do not add up "
                    f"to the total ({self.total_amount})"
                )

        if len(self.channels) > 1 and self.primary_channel is not None:
            raise ValueError("primary_channel is only set on single-channel entries")

        return self

    @property
    def is_transfer_leg(self) -> bool:
        return bool(self.transfer_tag)

    def income_for(self, channel: Channel) -> float:
        """
        Income this entry contributes to ``channel``.

        Uses the per-channel map when populated, otherwise the whole
        total when the entry's single primary channel matches.
        """
        if self.amounts_by_channel:
            return self.amounts_by_channel.get(channel, 0.0)
        if self.primary_channel == channel:
            return self.total_amount
        return 0.0

    def expense_for(self, channel: Channel) -> float:
        if self.expense_channel == channel:
            return self.expense_amount
        return 0.0

    def touches(self, channel: Channel) -> bool:
        return (
            channel in self.channels
            or self.primary_channel == channel
            or channel in self.amounts_by_channel
            or self.expense_channel == channel
        )


# =============================================================================
# INBOUND SUBMISSIONS
# =============================================================================

class EntrySubmission(EntryMetadata):
    """
    A raw create-entry request, before normalization.

    All derived fields are optional here; the normalizer resolves them.
    ``channel`` is the legacy single-channel field.
    """
    model_config = ConfigDict(str_strip_whitespace=True, extra="ignore")

    date: Optional[datetime] = None
    month: Optional[str] = Field(default=None, pattern=MONTH_PATTERN)
    channels: Optional[list[Channel]] = None
    channel: Optional[Channel] = None
    amounts_by_channel: Optional[dict[Channel, Optional[float]]] = None
    total_amount: float = Field(default=0.0, ge=0)
    expense_amount: float = Field(default=0.0, ge=0)
    expense_channel: Optional[Channel] = None
    salary_amount: Optional[float] = Field(default=None, ge=0)
    advance: Optional[float] = Field(default=None, ge=0)
    reference: Optional[str] = Field(default=None, max_length=100)
    transfer_tag: Optional[str] = Field(default=None, max_length=50)

    @field_validator('date', mode='before')
    @classmethod
    def coerce_date(cls, v: Any) -> Any:
        return coerce_datetime(v)

    @field_validator('expense_channel', 'channel', mode='before')
    @classmethod
    def normalize_none_channel(cls, v: Any) -> Any:
        return _none_channel(v)


class TransferRequest(BaseModel):
    """Move money between two channels of the same business."""
    model_config = ConfigDict(str_strip_whitespace=True, extra="ignore")

    source_channel: Optional[Channel] = None
    dest_channel: Optional[Channel] = None
    amount: float = 0.0
    date: Optional[datetime] = None
    month: Optional[str] = Field(default=None, pattern=MONTH_PATTERN)
    reference: Optional[str] = Field(default=None, max_length=100)

    @field_validator('date', mode='before')
    @classmethod
    def coerce_date(cls, v: Any) -> Any:
        return coerce_datetime(v)

    @field_validator('source_channel', 'dest_channel', mode='before')
    @classmethod
    def normalize_none_channel(cls, v: Any) -> Any:
        return _none_channel(v)


class TransferResult(BaseModel):
    """Both legs of a completed transfer."""

    reference: str
    debit_entry: LedgerEntry
    credit_entry: LedgerEntry
    message: str
