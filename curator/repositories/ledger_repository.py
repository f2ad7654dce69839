"""
Ledger Repository - article publication records from cardano db-sync

A publication record is a transaction whose metadata label 451 carries
both `name` and `loc`. The output address is taken from the first
transaction output (index 0), which is the publishing wallet's address.

Queries are composed from RecordFilter functions so the sync loop, the
one-off tx-hash lookup and the status endpoints share one base query.
"""
import logging
from typing import Optional, List, Callable, Tuple, Any

import asyncpg

from curator.errors import LedgerUnavailableError
from curator.models.ledger import LedgerRecord, DBMeta, DBSyncStatus
from curator.utils.datetime_utils import ensure_utc, utc_now

logger = logging.getLogger(__name__)

BASE_RECORD_QUERY = """
    SELECT tx_metadata.json->>'name' AS name,
           tx_metadata.json->>'loc' AS location,
           tx_out.address AS address,
           tx.id AS tx_id,
           tx.hash AS tx_hash,
           block.time AS date_published,
           block.block_no AS block_number
    FROM ((tx_metadata
        INNER JOIN tx ON tx_metadata.tx_id = tx.id)
        INNER JOIN block ON tx.block_id = block.id)
        INNER JOIN tx_out ON tx.id = tx_out.tx_id
    WHERE tx_metadata.key = 451
      AND tx_metadata.json->>'name' IS NOT NULL
      AND tx_metadata.json->>'loc' IS NOT NULL
      AND tx_out.index = 0
"""

# (query, args) -> (query, args); placeholders are numbered from len(args) + 1
RecordFilter = Callable[[str, List[Any]], Tuple[str, List[Any]]]


def address_filter(address: str) -> RecordFilter:
    def apply(query: str, args: List[Any]):
        return f"{query} AND tx_out.address = ${len(args) + 1}", args + [address]
    return apply


def tx_hash_filter(tx_hash: str) -> RecordFilter:
    """
    Raises:
        ValueError: tx_hash is not hex
    """
    raw = bytes.fromhex(tx_hash)

    def apply(query: str, args: List[Any]):
        return f"{query} AND tx.hash = ${len(args) + 1}", args + [raw]
    return apply


def since_block_filter(block_number: int) -> RecordFilter:
    """Only records in blocks strictly after `block_number`."""
    def apply(query: str, args: List[Any]):
        return f"{query} AND block.block_no > ${len(args) + 1}", args + [block_number]
    return apply


def build_record_query(*filters: RecordFilter) -> Tuple[str, List[Any]]:
    query, args = BASE_RECORD_QUERY.rstrip(), []
    for record_filter in filters:
        query, args = record_filter(query, args)
    return f"{query}\n    ORDER BY block.block_no ASC, tx.id ASC", args


def _row_to_record(row) -> LedgerRecord:
    tx_hash = row['tx_hash']
    return LedgerRecord(
        name=row['name'],
        location=row['location'],
        address=row['address'],
        tx_id=row['tx_id'],
        tx_hash=bytes(tx_hash).hex() if tx_hash is not None else "",
        block_number=row['block_number'],
        date_published=ensure_utc(row['date_published']),
    )


class LedgerRepository:
    """Read-only access to cardano db-sync."""

    def __init__(self, db_pool: asyncpg.Pool):
        self.db_pool = db_pool

    # =========================================================================
    # PUBLICATION RECORDS
    # =========================================================================

    async def list_records(self, *filters: RecordFilter) -> List[LedgerRecord]:
        """
        Publication records matching all filters, ascending by block number.

        Raises:
            LedgerUnavailableError: connection or query failure
        """
        query, args = build_record_query(*filters)
        rows = await self._fetch(query, *args)
        return [_row_to_record(row) for row in rows]

    async def records_since(self, address: str, block_number: int) -> List[LedgerRecord]:
        return await self.list_records(address_filter(address), since_block_filter(block_number))

    async def record_by_tx_hash(self, tx_hash: str) -> Optional[LedgerRecord]:
        records = await self.list_records(tx_hash_filter(tx_hash))
        return records[0] if records else None

    # =========================================================================
    # STATUS
    # =========================================================================

    async def ping(self) -> bool:
        try:
            await self._fetchval("SELECT 1")
            return True
        except LedgerUnavailableError:
            return False

    async def meta(self) -> Optional[DBMeta]:
        rows = await self._fetch("SELECT id, start_time, network_name, version FROM meta LIMIT 1")
        if not rows:
            return None
        row = rows[0]
        return DBMeta(
            id=row['id'],
            start_time=ensure_utc(row['start_time']),
            network_name=row['network_name'],
            version=row['version'],
        )

    async def sync_status(self) -> DBSyncStatus:
        rows = await self._fetch("""
            SELECT
                100 * (extract(epoch from max(time)) - extract(epoch from min(time)))
                    / NULLIF(extract(epoch from (now() at time zone 'UTC')) - extract(epoch from min(time)), 0)
                    AS sync_percent,
                max(time) AS last_block_time
            FROM block
        """)
        row = rows[0] if rows else None
        if row is None or row['last_block_time'] is None:
            return DBSyncStatus(percent=None, last_block_time=None, seconds_behind=None)

        last_block_time = ensure_utc(row['last_block_time'])
        percent = row['sync_percent']
        return DBSyncStatus(
            percent=float(percent) if percent is not None else None,
            last_block_time=last_block_time,
            seconds_behind=(utc_now() - last_block_time).total_seconds(),
        )

    async def chain_tip(self) -> int:
        """Highest block number known to db-sync."""
        value = await self._fetchval("SELECT max(block_no) FROM block")
        return int(value or 0)

    # =========================================================================
    # HELPERS
    # =========================================================================

    async def _fetch(self, query: str, *args):
        try:
            async with self.db_pool.acquire() as conn:
                return await conn.fetch(query, *args)
        except (OSError, asyncpg.PostgresError, asyncpg.InterfaceError) as e:
            raise LedgerUnavailableError(f"ledger query failed: {e}") from e

    async def _fetchval(self, query: str, *args):
        try:
            async with self.db_pool.acquire() as conn:
                return await conn.fetchval(query, *args)
        except (OSError, asyncpg.PostgresError, asyncpg.InterfaceError) as e:
            raise LedgerUnavailableError(f"ledger query failed: {e}") from e
