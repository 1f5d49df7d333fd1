"""Transaction coordination over a single pooled connection.

The coordinator owns the whole connection lifecycle of one transaction:

    acquire -> manual commit -> bind -> run -> commit | rollback
            -> automatic commit -> unbind -> release

Storage operations executed inside the transaction resolve the connection
through :class:`ConnectionBinder` using the same :class:`ExecutionContext`, so
the operation itself never touches acquisition or release.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Callable, Iterator

import structlog

from ..db.pool import ConnectionHandle, ConnectionPool
from ..domain.models import ExecutionContext, TransactionOutcome
from ..exceptions import CommitError, LedgerError, RollbackError
from .connection_binder import ConnectionBinder

logger = structlog.get_logger(__name__)

Operation = Callable[[ExecutionContext], Any]


class TransactionCoordinator:
    """Run operations atomically on one connection bound to their context."""

    def __init__(self, pool: ConnectionPool, binder: ConnectionBinder) -> None:
        self._pool = pool
        self._binder = binder

    @property
    def binder(self) -> ConnectionBinder:
        return self._binder

    def run_in_transaction(
        self, context: ExecutionContext, operation: Operation
    ) -> TransactionOutcome:
        """Run ``operation(context)`` and commit, or roll back and re-raise.

        Errors raised by ``operation`` reach the caller unchanged. A failing
        commit surfaces as :class:`CommitError` after the rollback. Ledger errors
        leave with ``outcome`` set to ``ROLLED_BACK`` or ``ROLLBACK_FAILED``.
        """

        with self.transaction(context):
            operation(context)
        return TransactionOutcome.COMMITTED

    @contextmanager
    def transaction(self, context: ExecutionContext) -> Iterator[ConnectionHandle]:
        """Context-manager form of :meth:`run_in_transaction` yielding the handle."""

        # nothing is bound or borrowed if this raises
        handle = self._pool.acquire()
        log = logger.bind(context_id=context.context_id, handle=handle.handle_id)
        bound = False
        failed = False
        try:
            handle.set_autocommit(False)
            self._binder.bind(context, handle)
            bound = True
            log.debug("transaction.begin")
            try:
                yield handle
                self._commit(handle, log)
            except BaseException as exc:
                self._rollback(handle, log, exc)
                raise
            log.info("transaction.finished", outcome=TransactionOutcome.COMMITTED.value)
        except BaseException:
            failed = True
            raise
        finally:
            self._restore(context, handle, log, bound=bound, propagating=failed)

    @staticmethod
    def _commit(handle: ConnectionHandle, log: Any) -> None:
        try:
            handle.commit()
        except Exception as exc:
            log.error("transaction.commit_failed", error=str(exc))
            raise CommitError(f"commit failed on {handle!r}") from exc

    @staticmethod
    def _rollback(handle: ConnectionHandle, log: Any, cause: BaseException) -> None:
        try:
            handle.rollback()
        except Exception as exc:
            failure = RollbackError(f"rollback failed on {handle!r}: {exc}")
            # connection state is unknown from here on; the original error still wins
            log.critical(
                "transaction.rollback_failed",
                cause=type(cause).__name__,
                error=str(failure),
                exc_info=exc,
            )
            cause.add_note(str(failure))
            _record_outcome(cause, TransactionOutcome.ROLLBACK_FAILED)
            return
        _record_outcome(cause, TransactionOutcome.ROLLED_BACK)
        log.info(
            "transaction.finished",
            outcome=TransactionOutcome.ROLLED_BACK.value,
            cause=type(cause).__name__,
        )

    def _restore(
        self,
        context: ExecutionContext,
        handle: ConnectionHandle,
        log: Any,
        *,
        bound: bool,
        propagating: bool,
    ) -> None:
        problems: list[Exception] = []
        try:
            handle.set_autocommit(True)
        except Exception as exc:
            log.error("connection.reset_failed", exc_info=exc)
            problems.append(exc)
        if bound:
            self._binder.unbind(context)
        try:
            self._pool.release(handle)
        except Exception as exc:
            log.error("connection.release_failed", exc_info=exc)
            problems.append(exc)
        if problems and not propagating:
            raise problems[0]


def _record_outcome(error: BaseException, outcome: TransactionOutcome) -> None:
    if isinstance(error, LedgerError):
        error.outcome = outcome
