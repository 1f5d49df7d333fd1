"""Ledger error taxonomy and helpers for repository layers."""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator

from sqlalchemy import exc as sa_exc

from .domain.models import TransactionOutcome

__all__ = [
    "LedgerError",
    "InfrastructureError",
    "AcquisitionError",
    "CommitError",
    "RollbackError",
    "BindingError",
    "AlreadyBoundError",
    "NotBoundError",
    "RepositoryError",
    "NotFoundError",
    "RecordVanishedError",
    "IntegrityConstraintViolation",
    "DatabaseOperationError",
    "TransferRejectedError",
    "InsufficientFundsError",
    "InvalidAmountError",
    "SameRecordTransferError",
    "ensure_found",
    "handle_sqlalchemy_errors",
]


class LedgerError(Exception):
    """Base class for ledger specific errors.

    ``outcome`` is set by the transaction coordinator once it has tried to roll
    back the transaction the error escaped from.
    """

    outcome: TransactionOutcome | None = None


class InfrastructureError(LedgerError):
    """Backing store or pool failure; the attempt may be retried."""


class AcquisitionError(InfrastructureError):
    """Raised when the pool cannot hand out a connection (exhausted or unreachable)."""


class CommitError(InfrastructureError):
    """Raised when committing a finished transaction fails."""


class RollbackError(InfrastructureError):
    """Raised when a rollback fails and the connection state is unknown."""


class BindingError(LedgerError):
    """Base class for connection binding defects."""


class AlreadyBoundError(BindingError):
    """Raised when a context already owns a connection."""


class NotBoundError(BindingError):
    """Raised when a context has no connection bound."""


class RepositoryError(LedgerError):
    """Base class for persistence layer failures."""


class NotFoundError(RepositoryError):
    """Raised when a record could not be located."""


class RecordVanishedError(NotFoundError):
    """Raised when a record disappeared between fetch and update."""


class IntegrityConstraintViolation(RepositoryError):
    """Raised when a database constraint is violated."""


class DatabaseOperationError(RepositoryError):
    """Raised for unexpected database errors."""


class TransferRejectedError(LedgerError):
    """Raised when a business rule rejects a transfer."""


class InsufficientFundsError(TransferRejectedError):
    """Raised when a debit would leave the source balance negative."""


class InvalidAmountError(TransferRejectedError):
    """Raised when the transfer amount is not a positive integer."""


class SameRecordTransferError(TransferRejectedError):
    """Raised when source and destination name the same record."""


@dataclass(slots=True)
class _EntityContext:
    """Where a database error happened, for error messages."""

    entity: str | None = None
    identifier: str | None = None

    def format(self, message: str, *, detail: str | None = None) -> str:
        where = self.entity or ""
        if self.identifier is not None:
            where = f"{where} '{self.identifier}'".strip()
        text = f"{where}: {message}" if where else message
        if detail:
            text = f"{text} ({detail})"
        return text


def ensure_found(record: object | None, *, entity: str, identifier: str) -> object:
    """Ensure a record exists, otherwise raise :class:`NotFoundError`."""

    if record is None:
        raise NotFoundError(f"{entity} '{identifier}' not found")
    return record


def _driver_message(exc: sa_exc.DBAPIError) -> str:
    return str(exc.orig) if exc.orig is not None else type(exc).__name__


def _translate_sqlalchemy_error(
    exc: sa_exc.DBAPIError, *, context: _EntityContext
) -> RepositoryError:
    detail = _driver_message(exc)
    if isinstance(exc, sa_exc.IntegrityError):
        return IntegrityConstraintViolation(
            context.format("integrity constraint violated", detail=detail)
        )
    return DatabaseOperationError(context.format("database operation failed", detail=detail))


@contextmanager
def handle_sqlalchemy_errors(
    *, entity: str | None = None, identifier: str | None = None
) -> Iterator[None]:
    """Translate driver errors into ledger errors naming the affected record."""

    context = _EntityContext(entity, identifier)
    try:
        yield
    except sa_exc.DBAPIError as exc:
        raise _translate_sqlalchemy_error(exc, context=context) from exc
