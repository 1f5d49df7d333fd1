"""Application configuration builder.

Settings come from ``LEDGER_*`` environment variables (or a local ``.env``
file). ``load_config`` turns them into a pooled SQLAlchemy engine with the
schema in place.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Connection, Engine, make_url
from sqlalchemy.pool import QueuePool

from .db.db_init import init_db


class LedgerSettings(BaseSettings):
    """Pydantic settings container for the ledger."""

    model_config = SettingsConfigDict(env_prefix="LEDGER_", env_file=".env", extra="ignore")

    database_url: str = Field(
        default="sqlite:///ledger.db",
        description="SQLAlchemy URL of the backing database.",
    )
    pool_size: int = Field(
        default=5,
        ge=1,
        description="Number of connections kept in the pool.",
    )
    max_overflow: int = Field(
        default=0,
        ge=0,
        description="Extra connections allowed above pool_size under load.",
    )
    pool_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="How long acquire waits for a free connection before failing.",
    )
    sqlite_busy_timeout_seconds: float = Field(
        default=30.0,
        ge=0,
        description="SQLite lock wait applied to every new connection.",
    )
    echo_sql: bool = Field(default=False, description="Log emitted SQL statements.")
    rejected_destination_keys: list[str] = Field(
        default_factory=lambda: ["ex"],
        description="Destination record keys that transfers must refuse.",
    )
    log_level: str = Field(default="INFO", description="Root log level.")
    log_json: bool = Field(default=True, description="Render logs as JSON lines.")


@dataclass(slots=True)
class AppConfig:
    settings: LedgerSettings
    engine: Engine


def build_engine(settings: LedgerSettings) -> Engine:
    """Create an engine whose ``QueuePool`` is sized from ``settings``.

    On SQLite every transaction starts with ``BEGIN IMMEDIATE``, so concurrent
    transactions are serialized rather than reading stale balances.
    """

    connect_args: dict[str, Any] = {}
    sqlite = make_url(settings.database_url).get_backend_name() == "sqlite"
    if sqlite:
        # pooled connections move between threads
        connect_args = {
            "check_same_thread": False,
            "timeout": settings.sqlite_busy_timeout_seconds,
        }
    engine = create_engine(
        settings.database_url,
        poolclass=QueuePool,
        pool_size=settings.pool_size,
        max_overflow=settings.max_overflow,
        pool_timeout=settings.pool_timeout_seconds,
        pool_pre_ping=True,
        echo=settings.echo_sql,
        connect_args=connect_args,
    )
    if sqlite:
        event.listen(engine, "connect", _sqlite_driver_autocommit)
        event.listen(engine, "begin", _sqlite_begin_immediate)
    return engine


def _sqlite_driver_autocommit(dbapi_connection: Any, connection_record: Any) -> None:
    # pysqlite defers BEGIN until the first write; take over transaction control
    dbapi_connection.isolation_level = None


def _sqlite_begin_immediate(conn: Connection) -> None:
    # reserve the write lock up front so reads inside a transaction stay consistent
    conn.exec_driver_sql("BEGIN IMMEDIATE")


def load_config(settings: LedgerSettings | None = None) -> AppConfig:
    """Load settings from the environment, build the engine and create tables."""
    settings = settings or LedgerSettings()
    engine = build_engine(settings)
    init_db(engine)
    return AppConfig(settings=settings, engine=engine)
