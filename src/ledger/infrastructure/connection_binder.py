"""Registry associating execution contexts with their transaction connection."""

from __future__ import annotations

import threading

import structlog

from ..db.pool import ConnectionHandle
from ..domain.models import ExecutionContext
from ..exceptions import AlreadyBoundError, NotBoundError

logger = structlog.get_logger(__name__)


class ConnectionBinder:
    """At most one bound :class:`ConnectionHandle` per execution context.

    Entries for different contexts never alias, so the lock only guards the
    mapping itself, not the handles it points to.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._bindings: dict[ExecutionContext, ConnectionHandle] = {}

    def __len__(self) -> int:
        with self._lock:
            return len(self._bindings)

    def bind(self, context: ExecutionContext, handle: ConnectionHandle) -> None:
        with self._lock:
            current = self._bindings.get(context)
            if current is not None:
                raise AlreadyBoundError(
                    f"context '{context.context_id}' already bound to {current!r}"
                )
            self._bindings[context] = handle
        logger.debug("binder.bind", context_id=context.context_id, handle=handle.handle_id)

    def lookup(self, context: ExecutionContext) -> ConnectionHandle:
        with self._lock:
            handle = self._bindings.get(context)
        if handle is None:
            raise NotBoundError(f"no connection bound to context '{context.context_id}'")
        return handle

    def is_bound(self, context: ExecutionContext) -> bool:
        with self._lock:
            return context in self._bindings

    def unbind(self, context: ExecutionContext) -> ConnectionHandle | None:
        with self._lock:
            handle = self._bindings.pop(context, None)
        if handle is not None:
            logger.debug("binder.unbind", context_id=context.context_id, handle=handle.handle_id)
        return handle
