"""Internal transfers between channels."""

from cashbook.transfers.locks import ChannelLockRegistry
from cashbook.transfers.service import (
    TransferIntegrityError,
    TransferOrchestrator,
    TransferRolledBackError,
    generate_transfer_reference,
)

__all__ = [
    "ChannelLockRegistry",
    "TransferIntegrityError",
    "TransferOrchestrator",
    "TransferRolledBackError",
    "generate_transfer_reference",
]
