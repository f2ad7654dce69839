"""
Tests for db-sync record queries, using a recording stand-in for the pool.
"""
from contextlib import asynccontextmanager
from datetime import datetime, timezone

import asyncpg
import pytest

from curator.errors import LedgerUnavailableError
from curator.repositories.ledger_repository import (
    LedgerRepository,
    address_filter,
    build_record_query,
    since_block_filter,
    tx_hash_filter,
)


class FakeConnection:

    def __init__(self, rows=None, value=None, error=None):
        self.rows = rows or []
        self.value = value
        self.error = error
        self.queries = []

    async def fetch(self, query, *args):
        self.queries.append((query, args))
        if self.error:
            raise self.error
        return self.rows

    async def fetchval(self, query, *args):
        self.queries.append((query, args))
        if self.error:
            raise self.error
        return self.value


class FakePool:

    def __init__(self, connection: FakeConnection):
        self.connection = connection

    @asynccontextmanager
    async def acquire(self):
        yield self.connection


def record_row(**overrides):
    row = {
        "name": "bar.news",
        "location": "ipfs://QmBar",
        "address": "addr_test1",
        "tx_id": 7,
        "tx_hash": bytes.fromhex("b0" * 32),
        "date_published": datetime(2022, 3, 1, 12, 0),
        "block_number": 103,
    }
    row.update(overrides)
    return row


# =============================================================================
# QUERY BUILDING
# =============================================================================

class TestBuildRecordQuery:

    def test_base_query_is_ordered(self):
        query, args = build_record_query()

        assert "tx_metadata.key = 451" in query
        assert "tx_out.index = 0" in query
        assert query.rstrip().endswith("ORDER BY block.block_no ASC, tx.id ASC")
        assert args == []

    def test_placeholders_are_numbered_in_order(self):
        query, args = build_record_query(address_filter("addr_test1"), since_block_filter(100))

        assert "tx_out.address = $1" in query
        assert "block.block_no > $2" in query
        assert args == ["addr_test1", 100]

    def test_tx_hash_is_bound_as_bytes(self):
        query, args = build_record_query(tx_hash_filter("B0" * 32))

        assert "tx.hash = $1" in query
        assert args == [bytes.fromhex("b0" * 32)]

    def test_tx_hash_must_be_hex(self):
        with pytest.raises(ValueError):
            tx_hash_filter("not-a-hash")


# =============================================================================
# REPOSITORY
# =============================================================================

class TestLedgerRepository:

    async def test_records_since(self):
        connection = FakeConnection(rows=[record_row()])
        repository = LedgerRepository(FakePool(connection))

        records = await repository.records_since("addr_test1", 100)

        assert len(records) == 1
        record = records[0]
        assert record.tx_hash == "b0" * 32
        assert record.block_number == 103
        assert record.date_published == datetime(2022, 3, 1, 12, 0, tzinfo=timezone.utc)
        assert connection.queries[0][1] == ("addr_test1", 100)

    async def test_record_by_tx_hash_not_found(self):
        repository = LedgerRepository(FakePool(FakeConnection(rows=[])))
        assert await repository.record_by_tx_hash("ff" * 32) is None

    async def test_chain_tip(self):
        repository = LedgerRepository(FakePool(FakeConnection(value=4242)))
        assert await repository.chain_tip() == 4242

    async def test_chain_tip_empty_database(self):
        repository = LedgerRepository(FakePool(FakeConnection(value=None)))
        assert await repository.chain_tip() == 0

    async def test_meta_missing(self):
        repository = LedgerRepository(FakePool(FakeConnection(rows=[])))
        assert await repository.meta() is None

    async def test_sync_status_empty_chain(self):
        connection = FakeConnection(rows=[{"sync_percent": None, "last_block_time": None}])
        status = await LedgerRepository(FakePool(connection)).sync_status()
        assert status.percent is None

    @pytest.mark.parametrize("error", [
        ConnectionRefusedError("connection refused"),
        asyncpg.PostgresError("relation \"tx_metadata\" does not exist"),
    ])
    async def test_failures_are_ledger_unavailable(self, error):
        repository = LedgerRepository(FakePool(FakeConnection(error=error)))

        with pytest.raises(LedgerUnavailableError):
            await repository.records_since("addr_test1", 0)
        assert not await repository.ping()
