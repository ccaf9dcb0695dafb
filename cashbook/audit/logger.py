"""
Audit Logger

DESIGN DECISION: Every significant action in the cashbook is logged.
This provides:
1. Complete traceability of every money movement
2. Debugging capability when a balance looks wrong
3. Accountability for admin edits and purchase decisions

The audit logger:
- Is async so it fits the rest of the flow
- Gracefully handles failures (a broken audit sheet never blocks a write)
- Supports correlation IDs to trace related events (both transfer legs)
"""

import logging
import sys
from typing import Optional
from uuid import UUID, uuid4

import structlog

from cashbook.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity
from cashbook.services.storage import AuditStorageInterface


def configure_logging(level: str = "INFO", fmt: str = "json") -> None:
    """
    Configure structlog for operational logging.

    Args:
        level: Minimum stdlib level name (DEBUG, INFO, ...)
        fmt: "json" for log shipping, "console" for local development
    """
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, level.upper(), logging.INFO),
    )

    renderer = (
        structlog.dev.ConsoleRenderer()
        if fmt == "console"
        else structlog.processors.JSONRenderer()
    )

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. The audit store (for persistence and owner visibility)
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger("cashbook.audit")

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity == AuditSeverity.CRITICAL:
            self._logger.critical("audit_event", **log_dict)
        elif event.severity == AuditSeverity.ERROR:
            self._logger.error("audit_event", **log_dict)
        elif event.severity == AuditSeverity.WARNING:
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_entry_created(
        self,
        entry_id: UUID,
        month: str,
        total_amount: float,
        expense_amount: float,
        actor_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.entry_created(
            entry_id=entry_id,
            month=month,
            total_amount=total_amount,
            expense_amount=expense_amount,
            actor_id=actor_id,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_anomaly_flagged(
        self,
        entry_id: UUID,
        channel: str,
        expense_amount: float,
        actor_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an expense that drove its channel negative."""
        event = AuditEventBuilder.anomaly_flagged(
            entry_id=entry_id,
            channel=channel,
            expense_amount=expense_amount,
            actor_id=actor_id,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_entry_updated(
        self,
        entry_id: UUID,
        changed_fields: list[str],
        actor_id: Optional[str] = None,
    ) -> None:
        event = AuditEventBuilder.entry_updated(
            entry_id=entry_id,
            changed_fields=changed_fields,
            actor_id=actor_id,
        )
        await self.log(event)

    async def log_entry_deleted(
        self,
        entry_id: UUID,
        actor_id: Optional[str] = None,
    ) -> None:
        event = AuditEventBuilder.entry_deleted(entry_id=entry_id, actor_id=actor_id)
        await self.log(event)

    async def log_transfer_completed(
        self,
        reference: str,
        source: str,
        dest: str,
        amount: float,
        actor_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log both legs of a transfer landing."""
        event = AuditEventBuilder.transfer_completed(
            reference=reference,
            source=source,
            dest=dest,
            amount=amount,
            actor_id=actor_id,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_transfer_rejected(
        self,
        source: Optional[str],
        dest: Optional[str],
        amount: float,
        reason: str,
        actor_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.transfer_rejected(
            source=source,
            dest=dest,
            amount=amount,
            reason=reason,
            actor_id=actor_id,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_transfer_rolled_back(
        self,
        reference: str,
        error_message: str,
        voided: bool,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.transfer_rolled_back(
            reference=reference,
            error_message=error_message,
            voided=voided,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_purchase_created(
        self,
        purchase_id: UUID,
        supplier: str,
        total: float,
        status: str,
        actor_id: Optional[str] = None,
    ) -> None:
        event = AuditEventBuilder.purchase_created(
            purchase_id=purchase_id,
            supplier=supplier,
            total=total,
            status=status,
            actor_id=actor_id,
        )
        await self.log(event)

    async def log_purchase_decided(
        self,
        purchase_id: UUID,
        approved: bool,
        actor_id: Optional[str] = None,
    ) -> None:
        event = AuditEventBuilder.purchase_decided(
            purchase_id=purchase_id,
            approved=approved,
            actor_id=actor_id,
        )
        await self.log(event)

    async def log_sale_created(
        self,
        sale_id: UUID,
        company: str,
        total: float,
        actor_id: Optional[str] = None,
    ) -> None:
        event = AuditEventBuilder.sale_created(
            sale_id=sale_id,
            company=company,
            total=total,
            actor_id=actor_id,
        )
        await self.log(event)

    async def log_permission_denied(
        self,
        action: str,
        role: str,
        actor_id: Optional[str] = None,
    ) -> None:
        event = AuditEventBuilder.permission_denied(
            action=action,
            role=role,
            actor_id=actor_id,
        )
        await self.log(event)

    async def log_validation_failed(
        self,
        operation: str,
        message: str,
        actor_id: Optional[str] = None,
    ) -> None:
        """Log a rejected submission."""
        event = AuditEventBuilder.validation_failed(
            operation=operation,
            message=message,
            actor_id=actor_id,
        )
        await self.log(event)

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
        critical: bool = False,
    ) -> None:
        """Log an error."""
        event = AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        )
        if critical:
            event.severity = AuditSeverity.CRITICAL
        await self.log(event)


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a new user action (e.g., a transfer).
    Pass it through all subsequent operations.
    """
    return uuid4()
