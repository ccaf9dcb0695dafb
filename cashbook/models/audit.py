"""
Audit Models for the Cashbook

Every significant action in the system is logged for audit purposes.
This provides:
1. Complete traceability of every money movement
2. Debugging information when things go wrong
3. Accountability for admin edits and approvals
4. Ability to reconstruct history

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from cashbook.periods import utc_now


class AuditEventType(str, Enum):
    """
    Types of events we audit.
    """
    # Ledger entries
    ENTRY_CREATED = "entry_created"
    ENTRY_UPDATED = "entry_updated"
    ENTRY_DELETED = "entry_deleted"
    ANOMALY_FLAGGED = "anomaly_flagged"

    # Transfers
    TRANSFER_COMPLETED = "transfer_completed"
    TRANSFER_REJECTED = "transfer_rejected"
    TRANSFER_ROLLED_BACK = "transfer_rolled_back"

    # Inventory
    PURCHASE_CREATED = "purchase_created"
    PURCHASE_APPROVED = "purchase_approved"
    PURCHASE_REJECTED = "purchase_rejected"
    SALE_CREATED = "sale_created"

    # Access and input
    PERMISSION_DENIED = "permission_denied"
    VALIDATION_FAILED = "validation_failed"

    # System events
    SYSTEM_ERROR = "system_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    Every significant action creates one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=utc_now,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'entry', 'transfer', 'purchase')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="ID or reference of the entity this event relates to"
    )

    # Who did it
    actor_id: Optional[str] = Field(
        default=None,
        description="User ID of the caller, when known"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., both legs of a transfer)"
    )

    # Event details
    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )

    # Additional data (event-specific)
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    # Error information (if applicable)
    error_code: Optional[str] = None
    error_message: Optional[str] = None

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "actor_id": self.actor_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_code": self.error_code,
            "error_message": self.error_message,
        }

    def to_sheets_row(self) -> list:
        """
        Convert to a row suitable for Google Sheets storage.

        Returns columns in order:
        [event_id, timestamp, event_type, severity, entity_type, entity_id,
         actor_id, correlation_id, description, details_json, error_message]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.entity_type or "",
            self.entity_id or "",
            self.actor_id or "",
            str(self.correlation_id) if self.correlation_id else "",
            self.description,
            json.dumps(self.details, default=str) if self.details else "",
            self.error_message or "",
        ]


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.entry_created(entry, actor_id)
        event = AuditEventBuilder.transfer_completed(reference, ...)
    """

    @staticmethod
    def entry_created(
        entry_id: UUID,
        month: str,
        total_amount: float,
        expense_amount: float,
        actor_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ENTRY_CREATED,
            entity_type="entry",
            entity_id=str(entry_id),
            actor_id=actor_id,
            correlation_id=correlation_id,
            description=f"Cashbook entry recorded for {month}",
            details={
                "month": month,
                "total_amount": total_amount,
                "expense_amount": expense_amount,
            },
        )

    @staticmethod
    def anomaly_flagged(
        entry_id: UUID,
        channel: str,
        expense_amount: float,
        actor_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ANOMALY_FLAGGED,
            severity=AuditSeverity.WARNING,
            entity_type="entry",
            entity_id=str(entry_id),
            actor_id=actor_id,
            correlation_id=correlation_id,
            description=f"Wild expenditure: {channel} went below zero",
            details={
                "channel": channel,
                "expense_amount": expense_amount,
            },
        )

    @staticmethod
    def entry_updated(
        entry_id: UUID,
        changed_fields: list[str],
        actor_id: Optional[str] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ENTRY_UPDATED,
            entity_type="entry",
            entity_id=str(entry_id),
            actor_id=actor_id,
            description="Cashbook entry edited by admin",
            details={"changed_fields": changed_fields},
        )

    @staticmethod
    def entry_deleted(
        entry_id: UUID,
        actor_id: Optional[str] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ENTRY_DELETED,
            severity=AuditSeverity.WARNING,
            entity_type="entry",
            entity_id=str(entry_id),
            actor_id=actor_id,
            description="Cashbook entry deleted by admin",
        )

    @staticmethod
    def transfer_completed(
        reference: str,
        source: str,
        dest: str,
        amount: float,
        actor_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSFER_COMPLETED,
            entity_type="transfer",
            entity_id=reference,
            actor_id=actor_id,
            correlation_id=correlation_id,
            description=f"Transfer of {amount} from {source} to {dest}",
            details={
                "source": source,
                "dest": dest,
                "amount": amount,
            },
        )

    @staticmethod
    def transfer_rejected(
        source: Optional[str],
        dest: Optional[str],
        amount: float,
        reason: str,
        actor_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSFER_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_type="transfer",
            actor_id=actor_id,
            correlation_id=correlation_id,
            description="Transfer rejected",
            details={
                "source": source,
                "dest": dest,
                "amount": amount,
            },
            error_message=reason,
        )

    @staticmethod
    def transfer_rolled_back(
        reference: str,
        error_message: str,
        voided: bool,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSFER_ROLLED_BACK,
            severity=AuditSeverity.ERROR,
            entity_type="transfer",
            entity_id=reference,
            correlation_id=correlation_id,
            description="Transfer credit leg failed; debit leg undone",
            details={"debit_leg": "voided" if voided else "deleted"},
            error_message=error_message,
        )

    @staticmethod
    def purchase_created(
        purchase_id: UUID,
        supplier: str,
        total: float,
        status: str,
        actor_id: Optional[str] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PURCHASE_CREATED,
            entity_type="purchase",
            entity_id=str(purchase_id),
            actor_id=actor_id,
            description=f"Purchase from {supplier} recorded as {status}",
            details={
                "supplier": supplier,
                "total": total,
                "approval_status": status,
            },
        )

    @staticmethod
    def purchase_decided(
        purchase_id: UUID,
        approved: bool,
        actor_id: Optional[str] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=(
                AuditEventType.PURCHASE_APPROVED
                if approved
                else AuditEventType.PURCHASE_REJECTED
            ),
            entity_type="purchase",
            entity_id=str(purchase_id),
            actor_id=actor_id,
            description="Purchase approved" if approved else "Purchase rejected",
        )

    @staticmethod
    def sale_created(
        sale_id: UUID,
        company: str,
        total: float,
        actor_id: Optional[str] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SALE_CREATED,
            entity_type="sale",
            entity_id=str(sale_id),
            actor_id=actor_id,
            description=f"Sale to {company} recorded",
            details={
                "company": company,
                "total": total,
            },
        )

    @staticmethod
    def permission_denied(
        action: str,
        role: str,
        actor_id: Optional[str] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PERMISSION_DENIED,
            severity=AuditSeverity.WARNING,
            actor_id=actor_id,
            description=f"{role} attempted {action}",
            details={"action": action, "role": role},
        )

    @staticmethod
    def validation_failed(
        operation: str,
        message: str,
        actor_id: Optional[str] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.VALIDATION_FAILED,
            severity=AuditSeverity.WARNING,
            actor_id=actor_id,
            description=f"{operation} rejected: invalid input",
            error_message=message,
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )
