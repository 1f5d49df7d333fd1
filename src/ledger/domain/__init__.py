"""Domain layer exports."""

from .models import (
    ExecutionContext,
    Record,
    TransactionOutcome,
    TransferErrorKind,
    TransferResult,
)

__all__ = [
    "ExecutionContext",
    "Record",
    "TransactionOutcome",
    "TransferErrorKind",
    "TransferResult",
]
