"""Domain models for the ledger.

Lightweight dataclasses and enums shared by the store, the coordinator and the
transfer service. No persistence logic lives here.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from uuid import uuid4


@dataclass(slots=True)
class Record:
    """Account-like row identified by ``record_id`` holding an integer balance."""

    record_id: str
    balance: int


@dataclass(frozen=True, slots=True)
class ExecutionContext:
    """Identity of one logical thread of control carrying a transaction.

    Contexts are passed explicitly through every call so that nested storage
    operations can find the connection bound by the coordinator.
    """

    context_id: str
    label: str | None = field(default=None, compare=False)

    @classmethod
    def new(cls, label: str | None = None) -> "ExecutionContext":
        return cls(context_id=uuid4().hex, label=label)


class TransactionOutcome(str, Enum):
    """Terminal state of a coordinated transaction."""

    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"
    # the rollback itself failed; connection and data state are unknown
    ROLLBACK_FAILED = "rollback_failed"


class TransferErrorKind(str, Enum):
    """Failure classes callers use to decide on retries."""

    NOT_FOUND = "not_found"
    REJECTED = "rejected"
    INFRASTRUCTURE = "infrastructure"


@dataclass(slots=True)
class TransferResult:
    """Outcome of :meth:`TransferService.transfer_funds`.

    ``outcome`` is ``None`` when the transaction never started (invalid
    request or the pool could not hand out a connection). A ``ROLLBACK_FAILED``
    outcome is never retryable because a partial write may have survived.
    """

    outcome: TransactionOutcome | None
    error: Exception | None = None
    kind: TransferErrorKind | None = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.outcome is TransactionOutcome.COMMITTED

    @property
    def retryable(self) -> bool:
        return (
            self.kind is TransferErrorKind.INFRASTRUCTURE
            and self.outcome is not TransactionOutcome.ROLLBACK_FAILED
        )

    @classmethod
    def committed(cls) -> "TransferResult":
        return cls(outcome=TransactionOutcome.COMMITTED)

    @classmethod
    def failed(
        cls,
        error: Exception,
        *,
        kind: TransferErrorKind,
        outcome: TransactionOutcome | None = TransactionOutcome.ROLLED_BACK,
    ) -> "TransferResult":
        return cls(outcome=outcome, error=error, kind=kind)
