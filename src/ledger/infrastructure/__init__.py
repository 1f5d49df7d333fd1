"""Connection binding and transaction coordination."""

from .connection_binder import ConnectionBinder
from .transactions import TransactionCoordinator

__all__ = ["ConnectionBinder", "TransactionCoordinator"]
