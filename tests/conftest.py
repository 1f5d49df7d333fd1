from __future__ import annotations

from pathlib import Path
from typing import Iterator

import pytest

from src.ledger.config import LedgerSettings
from src.ledger.domain.models import ExecutionContext, Record
from src.ledger.services.container import LedgerServices, build_transfer_service
from tests.helpers.settings import sqlite_settings


@pytest.fixture
def settings(tmp_path: Path) -> LedgerSettings:
    return sqlite_settings(tmp_path / "ledger.db")


@pytest.fixture
def services(settings: LedgerSettings) -> Iterator[LedgerServices]:
    wired = build_transfer_service(settings)
    yield wired
    wired.dispose()


@pytest.fixture
def seed(services: LedgerServices):
    """Insert records outside any transaction, one statement per call."""

    def _seed(**balances: int) -> None:
        context = ExecutionContext.new(label="seed")
        for record_id, balance in balances.items():
            services.store.save(context, Record(record_id=record_id, balance=balance))

    return _seed
