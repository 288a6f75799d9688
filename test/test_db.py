"""
Postgres store write ordering, checked against a mocked asyncpg pool (no database).
"""
from contextlib import asynccontextmanager
from unittest.mock import AsyncMock, MagicMock

import pytest

from shiptrack import db, lifecycle
from shiptrack.db import PostgresShipmentStore


def mock_pool():
    conn = MagicMock()
    conn.execute = AsyncMock()

    @asynccontextmanager
    async def transaction():
        yield

    @asynccontextmanager
    async def acquire():
        yield conn

    conn.transaction = transaction
    pool = MagicMock()
    pool.acquire = acquire
    return pool, conn


@pytest.fixture
def calls(monkeypatch):
    order = []

    async def load_shipment(conn, shipment_id, for_update=False):
        order.append(("lock" if for_update else "load", shipment_id))

    def recording(name, build):
        def wrapper(*args, **kwargs):
            order.append((name, args[0]))
            return build(*args, **kwargs)
        return wrapper

    monkeypatch.setattr(db, "_load_shipment", load_shipment)
    monkeypatch.setattr(lifecycle, "build_checkpoint", recording("build", lifecycle.build_checkpoint))
    monkeypatch.setattr(lifecycle, "build_note", recording("build", lifecycle.build_note))
    return order


@pytest.mark.asyncio
async def test_checkpoint_timestamp_taken_under_row_lock(calls):
    pool, conn = mock_pool()
    checkpoint = await PostgresShipmentStore(pool).add_checkpoint("s1", "Ikeja", "Arrived at hub")

    assert calls == [("lock", "s1"), ("build", "s1")]
    updated_at = conn.execute.await_args_list[-1].args[1]
    assert updated_at == checkpoint.timestamp


@pytest.mark.asyncio
async def test_note_timestamp_taken_under_row_lock(calls):
    pool, conn = mock_pool()
    note = await PostgresShipmentStore(pool).add_note("s1", "Call before delivery")

    assert calls == [("lock", "s1"), ("build", "s1")]
    updated_at = conn.execute.await_args_list[-1].args[1]
    assert updated_at == note.timestamp
