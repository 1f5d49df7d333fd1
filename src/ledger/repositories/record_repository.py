"""Persistence layer for ledger records."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

import sqlalchemy as sa
import structlog

from ..db.db_models import RecordModel
from ..db.pool import ConnectionHandle, ConnectionPool
from ..domain.models import ExecutionContext, Record
from ..exceptions import NotBoundError, ensure_found, handle_sqlalchemy_errors
from ..infrastructure.connection_binder import ConnectionBinder

logger = structlog.get_logger(__name__)

_records = RecordModel.__table__


class RecordStore:
    """Stateless data access for :class:`Record` rows.

    Every operation runs on one connection resolved in this order: an explicit
    ``handle`` argument, the handle bound to ``context`` by the transaction
    coordinator, or a single-use automatic-commit handle borrowed from the pool
    and released right after the statement.
    """

    def __init__(self, pool: ConnectionPool, binder: ConnectionBinder) -> None:
        self._pool = pool
        self._binder = binder

    def save(
        self,
        context: ExecutionContext,
        record: Record,
        *,
        handle: ConnectionHandle | None = None,
    ) -> Record:
        stmt = sa.insert(_records).values(record_id=record.record_id, balance=record.balance)
        with self._connection(context, handle) as conn, handle_sqlalchemy_errors(
            entity="record", identifier=record.record_id
        ):
            conn.execute(stmt)
        logger.info("record.saved", context_id=context.context_id, record_id=record.record_id)
        return record

    def fetch_by_key(
        self,
        context: ExecutionContext,
        key: str,
        *,
        handle: ConnectionHandle | None = None,
    ) -> Record:
        stmt = sa.select(_records.c.record_id, _records.c.balance).where(
            _records.c.record_id == key
        )
        with self._connection(context, handle) as conn, handle_sqlalchemy_errors(
            entity="record", identifier=key
        ):
            row = conn.fetch_one(stmt)
        ensure_found(row, entity="record", identifier=key)
        return Record(record_id=row.record_id, balance=row.balance)

    def update_balance(
        self,
        context: ExecutionContext,
        key: str,
        new_balance: int,
        *,
        handle: ConnectionHandle | None = None,
    ) -> int:
        """Set the balance of ``key`` and return the affected row count.

        Zero affected rows means the record vanished after it was read. It is
        logged and returned as is; callers decide whether to escalate.
        """

        stmt = (
            sa.update(_records)
            .where(_records.c.record_id == key)
            .values(balance=new_balance)
        )
        with self._connection(context, handle) as conn, handle_sqlalchemy_errors(
            entity="record", identifier=key
        ):
            affected = conn.execute(stmt)
        if affected == 0:
            logger.warning("record.update.no_rows", context_id=context.context_id, record_id=key)
        else:
            logger.debug(
                "record.updated",
                context_id=context.context_id,
                record_id=key,
                affected=affected,
            )
        return affected

    def delete(
        self,
        context: ExecutionContext,
        key: str,
        *,
        handle: ConnectionHandle | None = None,
    ) -> int:
        stmt = sa.delete(_records).where(_records.c.record_id == key)
        with self._connection(context, handle) as conn, handle_sqlalchemy_errors(
            entity="record", identifier=key
        ):
            affected = conn.execute(stmt)
        logger.info(
            "record.deleted",
            context_id=context.context_id,
            record_id=key,
            affected=affected,
        )
        return affected

    @contextmanager
    def _connection(
        self, context: ExecutionContext, handle: ConnectionHandle | None
    ) -> Iterator[ConnectionHandle]:
        if handle is not None:
            yield handle
            return
        try:
            bound = self._binder.lookup(context)
        except NotBoundError:
            pass
        else:
            yield bound
            return

        own = self._pool.acquire()
        logger.debug("record.connection.ad_hoc", context_id=context.context_id, handle=own.handle_id)
        try:
            yield own
        finally:
            self._pool.release(own)
