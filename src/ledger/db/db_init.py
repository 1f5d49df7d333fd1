"""Database initialization helpers."""

from __future__ import annotations

from typing import Mapping

import sqlalchemy as sa
from sqlalchemy.engine import Engine

from .db_models import Base, RecordModel


def init_db(engine: Engine, *, seed: Mapping[str, int] | None = None) -> None:
    """Create tables and insert ``seed`` balances for records that are missing."""
    Base.metadata.create_all(engine)
    if not seed:
        return

    table = RecordModel.__table__
    with engine.begin() as conn:
        existing = set(conn.execute(sa.select(table.c.record_id)).scalars())
        rows = [
            {"record_id": record_id, "balance": balance}
            for record_id, balance in seed.items()
            if record_id not in existing
        ]
        if rows:
            conn.execute(sa.insert(table), rows)
