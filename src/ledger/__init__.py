"""Transactional balance transfers over a pooled relational database.

One logical transaction runs on one pooled connection, bound to an explicit
:class:`ExecutionContext` so storage calls can find it without the connection
being threaded through every signature.
"""

from .domain.models import (
    ExecutionContext,
    Record,
    TransactionOutcome,
    TransferErrorKind,
    TransferResult,
)
from .infrastructure.connection_binder import ConnectionBinder
from .infrastructure.transactions import TransactionCoordinator
from .repositories.record_repository import RecordStore
from .services.transfer_service import TransferService

__all__ = [
    "ConnectionBinder",
    "ExecutionContext",
    "Record",
    "RecordStore",
    "TransactionCoordinator",
    "TransactionOutcome",
    "TransferErrorKind",
    "TransferResult",
    "TransferService",
]
