from __future__ import annotations

import pytest

from src.ledger.domain.models import (
    ExecutionContext,
    Record,
    TransactionOutcome,
    TransferErrorKind,
)
from src.ledger.exceptions import (
    AcquisitionError,
    CommitError,
    InsufficientFundsError,
    InvalidAmountError,
    NotBoundError,
    NotFoundError,
    RecordVanishedError,
    SameRecordTransferError,
    TransferRejectedError,
)
from src.ledger.infrastructure.connection_binder import ConnectionBinder
from src.ledger.infrastructure.transactions import TransactionCoordinator
from src.ledger.services.container import LedgerServices
from src.ledger.services.transfer_service import TransferService
from tests.mocks.pool import FakePool


def _balances(services: LedgerServices, *keys: str) -> list[int]:
    context = ExecutionContext.new()
    return [services.store.fetch_by_key(context, key).balance for key in keys]


def test_transfer_moves_amount(services: LedgerServices, seed) -> None:
    seed(a=10000, b=0)

    result = services.transfers.transfer_funds("a", "b", 2000)

    assert result.ok
    assert result.outcome is TransactionOutcome.COMMITTED
    assert _balances(services, "a", "b") == [8000, 2000]


def test_rejected_destination_rolls_back_debit(services: LedgerServices, seed) -> None:
    seed(memberA=10000, ex=10000)

    result = services.transfers.transfer_funds("memberA", "ex", 2000)

    assert not result.ok
    assert result.kind is TransferErrorKind.REJECTED
    assert result.outcome is TransactionOutcome.ROLLED_BACK
    assert isinstance(result.error, TransferRejectedError)
    assert not result.retryable
    assert _balances(services, "memberA", "ex") == [10000, 10000]


def test_missing_record_reports_not_found(services: LedgerServices, seed) -> None:
    seed(a=100)

    result = services.transfers.transfer_funds("a", "missing-id", 10)

    assert result.kind is TransferErrorKind.NOT_FOUND
    assert isinstance(result.error, NotFoundError)
    assert not result.retryable
    assert _balances(services, "a") == [100]


def test_insufficient_funds_is_rejected_and_rolled_back(services: LedgerServices, seed) -> None:
    seed(a=500, b=0)

    result = services.transfers.transfer_funds("a", "b", 501)

    assert result.kind is TransferErrorKind.REJECTED
    assert isinstance(result.error, InsufficientFundsError)
    assert _balances(services, "a", "b") == [500, 0]


@pytest.mark.parametrize("amount", [0, -5, True, 1.5])
def test_invalid_amount_never_acquires_connection(amount: object) -> None:
    binder = ConnectionBinder()
    pool = FakePool(binder=binder)
    service = TransferService(TransactionCoordinator(pool, binder), store=None)  # type: ignore[arg-type]

    result = service.transfer_funds("a", "b", amount)  # type: ignore[arg-type]

    assert result.kind is TransferErrorKind.REJECTED
    assert result.outcome is None
    assert isinstance(result.error, InvalidAmountError)
    assert pool.acquired == []


def test_transfer_to_same_record_is_rejected_before_acquiring() -> None:
    binder = ConnectionBinder()
    pool = FakePool(binder=binder)
    service = TransferService(TransactionCoordinator(pool, binder), store=None)  # type: ignore[arg-type]

    result = service.transfer_funds("a", "a", 2000)

    assert result.kind is TransferErrorKind.REJECTED
    assert result.outcome is None
    assert isinstance(result.error, SameRecordTransferError)
    assert not result.retryable
    assert pool.acquired == []


def test_transfer_to_same_record_keeps_balance(services: LedgerServices, seed) -> None:
    seed(a=10000)

    result = services.transfers.transfer_funds("a", "a", 2000)

    assert isinstance(result.error, SameRecordTransferError)
    assert _balances(services, "a") == [10000]


def test_pool_exhaustion_is_retryable_infrastructure_failure() -> None:
    binder = ConnectionBinder()
    pool = FakePool(binder=binder, max_size=0)
    service = TransferService(TransactionCoordinator(pool, binder), store=None)  # type: ignore[arg-type]

    result = service.transfer_funds("a", "b", 1)

    assert result.kind is TransferErrorKind.INFRASTRUCTURE
    assert result.retryable
    assert result.outcome is None
    assert isinstance(result.error, AcquisitionError)


class _StubStore:
    """Store double with in-memory rows, an optional vanishing key and fetch error."""

    def __init__(
        self,
        rows: dict[str, int],
        *,
        vanish: str | None = None,
        error: Exception | None = None,
    ) -> None:
        self.rows = dict(rows)
        self.vanish = vanish
        self.error = error
        self.calls: list[tuple[str, str]] = []

    def fetch_by_key(self, context: ExecutionContext, key: str) -> Record:
        self.calls.append(("fetch", key))
        if self.error is not None:
            raise self.error
        if key not in self.rows:
            raise NotFoundError(f"record '{key}' not found")
        return Record(record_id=key, balance=self.rows[key])

    def update_balance(self, context: ExecutionContext, key: str, new_balance: int) -> int:
        self.calls.append(("update", key))
        if key == self.vanish:
            return 0
        self.rows[key] = new_balance
        return 1


def _stub_service(store: _StubStore, pool: FakePool, binder: ConnectionBinder) -> TransferService:
    return TransferService(TransactionCoordinator(pool, binder), store)  # type: ignore[arg-type]


def test_transfer_steps_run_in_fixed_order() -> None:
    binder = ConnectionBinder()
    store = _StubStore({"a": 10, "b": 0})
    service = _stub_service(store, FakePool(binder=binder), binder)

    assert service.transfer_funds("a", "b", 4).ok
    assert store.calls == [("fetch", "a"), ("fetch", "b"), ("update", "a"), ("update", "b")]


def test_validation_runs_after_debit() -> None:
    binder = ConnectionBinder()
    pool = FakePool(binder=binder)
    store = _StubStore({"a": 10, "ex": 0})
    service = _stub_service(store, pool, binder)

    result = service.transfer_funds("a", "ex", 4)

    assert result.kind is TransferErrorKind.REJECTED
    assert store.calls[-1] == ("update", "a")
    assert "rollback" in pool.acquired[0].events


def test_vanished_record_escalates_and_rolls_back() -> None:
    binder = ConnectionBinder()
    pool = FakePool(binder=binder)
    service = _stub_service(_StubStore({"a": 10, "b": 0}, vanish="b"), pool, binder)

    result = service.transfer_funds("a", "b", 4)

    assert result.kind is TransferErrorKind.NOT_FOUND
    assert isinstance(result.error, RecordVanishedError)
    assert "rollback" in pool.acquired[0].events


def test_commit_failure_is_retryable() -> None:
    binder = ConnectionBinder()
    pool = FakePool(binder=binder, fail_commit=True)
    service = _stub_service(_StubStore({"a": 10, "b": 0}), pool, binder)

    result = service.transfer_funds("a", "b", 4)

    assert isinstance(result.error, CommitError)
    assert result.retryable
    assert result.outcome is TransactionOutcome.ROLLED_BACK
    assert pool.released[0].autocommit is True


def test_custom_rejected_destinations() -> None:
    binder = ConnectionBinder()
    store = _StubStore({"a": 10, "ex": 0, "frozen": 0})
    service = TransferService(
        TransactionCoordinator(FakePool(binder=binder), binder),
        store,  # type: ignore[arg-type]
        rejected_destinations=["frozen"],
    )

    assert service.transfer_funds("a", "ex", 1).ok
    assert service.transfer_funds("a", "frozen", 1).kind is TransferErrorKind.REJECTED


def test_commit_and_rollback_failure_reports_rollback_failed() -> None:
    binder = ConnectionBinder()
    pool = FakePool(binder=binder, fail_commit=True, fail_rollback=True)
    service = _stub_service(_StubStore({"a": 10, "b": 0}), pool, binder)

    result = service.transfer_funds("a", "b", 4)

    assert isinstance(result.error, CommitError)
    assert result.kind is TransferErrorKind.INFRASTRUCTURE
    assert result.outcome is TransactionOutcome.ROLLBACK_FAILED
    assert not result.retryable
    assert pool.released[0].autocommit is True


def test_rejection_with_failed_rollback_reports_rollback_failed() -> None:
    binder = ConnectionBinder()
    pool = FakePool(binder=binder, fail_rollback=True)
    service = _stub_service(_StubStore({"a": 10, "ex": 0}), pool, binder)

    result = service.transfer_funds("a", "ex", 4)

    assert result.kind is TransferErrorKind.REJECTED
    assert result.outcome is TransactionOutcome.ROLLBACK_FAILED


def test_binding_defect_propagates_instead_of_being_retried() -> None:
    binder = ConnectionBinder()
    pool = FakePool(binder=binder)
    store = _StubStore({"a": 10, "b": 0}, error=NotBoundError("no connection bound"))
    service = _stub_service(store, pool, binder)

    with pytest.raises(NotBoundError):
        service.transfer_funds("a", "b", 4)

    assert "rollback" in pool.acquired[0].events
    assert pool.checked_out == 0
    assert len(binder) == 0
