"""Balance transfer between two records.

``transfer`` holds only the business steps. Atomicity comes from running it
through :class:`TransactionCoordinator`, which rolls the debit back when any
later step fails.
"""

from __future__ import annotations

from typing import Iterable

import structlog

from ..domain.models import (
    ExecutionContext,
    Record,
    TransferErrorKind,
    TransferResult,
)
from ..exceptions import (
    AcquisitionError,
    BindingError,
    InsufficientFundsError,
    InvalidAmountError,
    LedgerError,
    NotFoundError,
    RecordVanishedError,
    SameRecordTransferError,
    TransferRejectedError,
)
from ..infrastructure.transactions import TransactionCoordinator
from ..repositories.record_repository import RecordStore

logger = structlog.get_logger(__name__)

DEFAULT_REJECTED_DESTINATIONS = frozenset({"ex"})


class TransferService:
    """Move funds between records inside one coordinated transaction."""

    def __init__(
        self,
        coordinator: TransactionCoordinator,
        store: RecordStore,
        *,
        rejected_destinations: Iterable[str] = DEFAULT_REJECTED_DESTINATIONS,
    ) -> None:
        self._coordinator = coordinator
        self._store = store
        self._rejected_destinations = frozenset(rejected_destinations)

    def transfer_funds(self, from_key: str, to_key: str, amount: int) -> TransferResult:
        """Run a transfer in a fresh execution context and report the result.

        Ledger errors are returned, classified so callers can tell a missing
        record from a rejected transfer from an infrastructure failure. Other
        exceptions, binding defects included, are programming errors and
        propagate.
        """

        context = ExecutionContext.new(label="transfer")
        log = logger.bind(context_id=context.context_id, from_key=from_key, to_key=to_key, amount=amount)
        try:
            self._check_request(from_key, to_key, amount)
        except (InvalidAmountError, SameRecordTransferError) as exc:
            log.info("transfer.rejected", reason=str(exc))
            return TransferResult.failed(exc, kind=TransferErrorKind.REJECTED, outcome=None)

        try:
            self._coordinator.run_in_transaction(
                context, lambda ctx: self.transfer(ctx, from_key, to_key, amount)
            )
        except NotFoundError as exc:
            log.info("transfer.not_found", reason=str(exc))
            return TransferResult.failed(
                exc, kind=TransferErrorKind.NOT_FOUND, outcome=exc.outcome
            )
        except TransferRejectedError as exc:
            log.info("transfer.rejected", reason=str(exc))
            return TransferResult.failed(
                exc, kind=TransferErrorKind.REJECTED, outcome=exc.outcome
            )
        except AcquisitionError as exc:
            log.warning("transfer.not_started", reason=str(exc))
            return TransferResult.failed(exc, kind=TransferErrorKind.INFRASTRUCTURE, outcome=None)
        except BindingError as exc:
            log.critical("transfer.binding_defect", error=type(exc).__name__, reason=str(exc))
            raise
        except LedgerError as exc:
            log.error("transfer.failed", error=type(exc).__name__, reason=str(exc))
            return TransferResult.failed(
                exc, kind=TransferErrorKind.INFRASTRUCTURE, outcome=exc.outcome
            )

        log.info("transfer.completed")
        return TransferResult.committed()

    def transfer(
        self, context: ExecutionContext, from_key: str, to_key: str, amount: int
    ) -> None:
        """Debit ``from_key`` and credit ``to_key`` on the context's connection."""

        from_record = self._store.fetch_by_key(context, from_key)
        to_record = self._store.fetch_by_key(context, to_key)

        # debit goes out before validation; a rejection must be undone by rollback
        debited = from_record.balance - amount
        self._update(context, from_key, debited)

        self._validate(from_record, to_record, debited)

        self._update(context, to_key, to_record.balance + amount)

    def _update(self, context: ExecutionContext, key: str, balance: int) -> None:
        if self._store.update_balance(context, key, balance) == 0:
            raise RecordVanishedError(f"record '{key}' vanished before update")

    def _validate(self, from_record: Record, to_record: Record, debited: int) -> None:
        if to_record.record_id in self._rejected_destinations:
            raise TransferRejectedError(
                f"transfers to '{to_record.record_id}' are not allowed"
            )
        if debited < 0:
            raise InsufficientFundsError(
                f"record '{from_record.record_id}' balance {from_record.balance} is too low"
            )

    @staticmethod
    def _check_request(from_key: str, to_key: str, amount: int) -> None:
        if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
            raise InvalidAmountError(f"amount must be a positive integer, got {amount!r}")
        if from_key == to_key:
            raise SameRecordTransferError(f"cannot transfer from record '{from_key}' to itself")
