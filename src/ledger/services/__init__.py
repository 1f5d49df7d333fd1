"""Business services and their wiring."""

from .transfer_service import TransferService

__all__ = ["TransferService"]
