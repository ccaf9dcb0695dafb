"""
Error Model

Every rejected operation surfaces a CashbookError carrying:
1. A machine-checkable kind (ErrorKind)
2. A human-readable message that can be shown to the user as-is
3. Optional details for callers that want to render more

Storage-side errors live in cashbook.services.storage.interface and
share the same base class so callers only need one except clause.
"""

from enum import Enum
from typing import Any, Optional

from pydantic import ValidationError


class ErrorKind(str, Enum):
    """Broad category of a failure, stable across releases."""
    VALIDATION = "validation"
    BUSINESS_RULE = "business_rule"
    NOT_FOUND = "not_found"
    PERMISSION = "permission"
    STORAGE = "storage"


def format_amount(value: float) -> str:
    """Render an amount without trailing noise (150.0 -> '150')."""
    value = float(value)
    if value.is_integer():
        return f"{value:.0f}"
    return f"{value:.2f}"


class CashbookError(Exception):
    """Base exception for every failure the cashbook reports to callers."""

    kind: ErrorKind = ErrorKind.STORAGE

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """Plain structure for transport layers."""
        return {
            "kind": self.kind.value,
            "message": self.message,
            "details": self.details,
        }


class ValidationFailedError(CashbookError):
    """Missing or invalid input. Raised before anything is written."""

    kind = ErrorKind.VALIDATION

    def __init__(self, message: str, field: Optional[str] = None):
        self.field = field
        super().__init__(message, {"field": field} if field else None)


class InsufficientBalanceError(CashbookError):
    """A channel cannot cover the requested deduction."""

    kind = ErrorKind.BUSINESS_RULE

    def __init__(self, channel: str, available: float, currency: str = "UGX"):
        self.channel = channel
        self.available = available
        super().__init__(
            f"Insufficient balance in {channel}. "
            f"Available: {format_amount(available)} {currency}",
            {"channel": channel, "available": available},
        )


class PermissionDeniedError(CashbookError):
    """The caller's role does not allow the operation."""

    kind = ErrorKind.PERMISSION

    def __init__(self, action: str, role: str):
        self.action = action
        self.role = role
        super().__init__(
            f"Role {role} is not allowed to {action}",
            {"action": action, "role": role},
        )


def from_validation_error(exc: ValidationError) -> ValidationFailedError:
    """Turn a pydantic ValidationError into one readable message."""
    problems = []
    first_field = None
    for err in exc.errors():
        loc = ".".join(str(part) for part in err.get("loc", ()))
        if loc and first_field is None:
            first_field = loc
        problems.append(f"{loc}: {err['msg']}" if loc else err["msg"])
    return ValidationFailedError("; ".join(problems) or str(exc), field=first_field)
