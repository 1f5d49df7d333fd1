"""Service composition helpers."""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy.engine import Engine

from ..config import AppConfig, LedgerSettings, load_config
from ..db.pool import EnginePool
from ..infrastructure.connection_binder import ConnectionBinder
from ..infrastructure.transactions import TransactionCoordinator
from ..repositories.record_repository import RecordStore
from .transfer_service import TransferService


@dataclass(slots=True)
class LedgerServices:
    """Wired components sharing one pool and one binder."""

    engine: Engine
    pool: EnginePool
    binder: ConnectionBinder
    coordinator: TransactionCoordinator
    store: RecordStore
    transfers: TransferService

    def dispose(self) -> None:
        self.engine.dispose()


def build_services(config: AppConfig) -> LedgerServices:
    pool = EnginePool(config.engine)
    binder = ConnectionBinder()
    coordinator = TransactionCoordinator(pool, binder)
    store = RecordStore(pool, binder)
    transfers = TransferService(
        coordinator,
        store,
        rejected_destinations=config.settings.rejected_destination_keys,
    )
    return LedgerServices(
        engine=config.engine,
        pool=pool,
        binder=binder,
        coordinator=coordinator,
        store=store,
        transfers=transfers,
    )


def build_transfer_service(settings: LedgerSettings | None = None) -> LedgerServices:
    """Load configuration and return ready-to-use services."""

    return build_services(load_config(settings))
