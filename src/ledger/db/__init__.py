"""Database models, schema bootstrap and the pool boundary."""

from .db_init import init_db
from .db_models import Base, RecordModel
from .pool import ConnectionHandle, ConnectionPool, EnginePool

__all__ = [
    "Base",
    "RecordModel",
    "init_db",
    "ConnectionHandle",
    "ConnectionPool",
    "EnginePool",
]
