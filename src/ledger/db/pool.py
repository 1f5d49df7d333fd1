"""Pool boundary: connection handles borrowed from a SQLAlchemy engine.

``ConnectionHandle`` gives a pooled SQLAlchemy ``Connection`` the commit-mode
switch the coordinator relies on. In automatic-commit mode each statement is
committed as soon as it runs; in manual-commit mode statements accumulate in
the connection's open transaction until :meth:`commit` or :meth:`rollback`.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Iterator, Mapping, Protocol
from uuid import uuid4

import structlog
from sqlalchemy import exc as sa_exc
from sqlalchemy.engine import Connection, Engine, Row
from sqlalchemy.sql import Executable

from ..exceptions import AcquisitionError

logger = structlog.get_logger(__name__)


class ConnectionHandle:
    """Exclusive, single-owner wrapper around one pooled connection."""

    def __init__(self, connection: Connection) -> None:
        self._connection = connection
        self._autocommit = True
        self.handle_id = uuid4().hex[:12]

    def __repr__(self) -> str:
        mode = "auto" if self._autocommit else "manual"
        return f"<ConnectionHandle {self.handle_id} commit={mode} closed={self.closed}>"

    @property
    def autocommit(self) -> bool:
        return self._autocommit

    @property
    def closed(self) -> bool:
        return self._connection.closed

    def set_autocommit(self, flag: bool) -> None:
        """Switch commit mode; pending work is neither committed nor discarded."""

        self._autocommit = flag

    def in_transaction(self) -> bool:
        return self._connection.in_transaction()

    def fetch_one(
        self, statement: Executable, parameters: Mapping[str, Any] | None = None
    ) -> Row[Any] | None:
        with self._statement():
            row = self._connection.execute(statement, parameters).first()
        return row

    def execute(
        self, statement: Executable, parameters: Mapping[str, Any] | None = None
    ) -> int:
        """Run a write statement and return the affected row count."""

        with self._statement():
            rowcount = self._connection.execute(statement, parameters).rowcount
        return rowcount

    def commit(self) -> None:
        self._connection.commit()

    def rollback(self) -> None:
        self._connection.rollback()

    def close(self) -> None:
        self._connection.close()

    @contextmanager
    def _statement(self) -> Iterator[None]:
        """Finish the autobegun transaction of one statement in automatic-commit mode.

        A failing statement is rolled back so the connection goes back to the
        pool idle. In manual-commit mode the caller owns the outcome.
        """

        try:
            yield
            if self._autocommit:
                self._connection.commit()
        except BaseException:
            if self._autocommit and self._connection.in_transaction():
                self._connection.rollback()
            raise


class ConnectionPool(Protocol):
    """Anything that lends out and takes back :class:`ConnectionHandle` objects."""

    def acquire(self) -> ConnectionHandle:
        """Borrow a handle or raise :class:`AcquisitionError`."""

    def release(self, handle: ConnectionHandle) -> None:
        """Return a handle to the pool."""


class EnginePool:
    """:class:`ConnectionPool` backed by the engine's ``QueuePool``."""

    def __init__(self, engine: Engine) -> None:
        self._engine = engine

    @property
    def engine(self) -> Engine:
        return self._engine

    def acquire(self) -> ConnectionHandle:
        try:
            connection = self._engine.connect()
        except sa_exc.TimeoutError as exc:
            logger.warning("pool.acquire.timeout", status=self.status())
            raise AcquisitionError("connection pool exhausted") from exc
        except sa_exc.DBAPIError as exc:
            logger.error("pool.acquire.failed", error=str(exc))
            raise AcquisitionError("database unreachable") from exc
        handle = ConnectionHandle(connection)
        logger.debug("pool.acquire", handle=handle.handle_id)
        return handle

    def release(self, handle: ConnectionHandle) -> None:
        handle.close()
        logger.debug("pool.release", handle=handle.handle_id)

    def checked_out(self) -> int:
        """Number of connections currently lent out."""

        return self._engine.pool.checkedout()  # type: ignore[attr-defined]

    def status(self) -> str:
        return self._engine.pool.status()
