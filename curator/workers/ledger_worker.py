"""
Ledger Sync Worker - curate articles published through Cardano transactions

Each cycle, for every tracked address:
1. load the address's cursor (last fully processed block, 0 on first run)
2. fetch publication records with block_no > cursor, ascending
3. apply each record to the published collection
4. advance the cursor once every record of a block has been handled

The cursor is written after the store mutation, never before, so a crash
re-processes at most one block and never skips one. Re-processing is
harmless because ContentStore.add_or_replace deduplicates by hash.

One index rebuild runs at the end of a cycle when the store is ahead of the
index, including a store change whose rebuild failed in an earlier cycle.
"""
import logging
from pathlib import Path
from typing import Iterable, List, Union

from curator.errors import (
    ArticleNotFoundError,
    ContentUnavailableError,
    InvalidArticleNameError,
    InvalidLocationError,
    IpfsError,
    LedgerUnavailableError,
)
from curator.models.article import ArticleCollection, is_valid_article_name
from curator.models.ledger import LedgerRecord, DBBlockStatus
from curator.repositories.ledger_repository import LedgerRepository
from curator.services.checkpoint import SyncCursor
from curator.services.content_store import AddOutcome
from curator.services.curation_writer import CurationWriter
from curator.workers.worker_base import BaseWorker

logger = logging.getLogger(__name__)


class LedgerSyncWorker(BaseWorker):
    """
    Polls db-sync for new publication records of the tracked addresses.

    Args:
        ledger: db-sync repository
        writer: single writer for store/index mutations
        addresses: tracked wallet addresses
        state_dir: directory holding the per-address cursors
        poll_interval: seconds between cycles
    """

    def __init__(
        self,
        ledger: LedgerRepository,
        writer: CurationWriter,
        addresses: Iterable[str],
        state_dir: Union[str, Path],
        poll_interval: float = 20.0,
    ):
        super().__init__(worker_name="ledger")
        self.ledger = ledger
        self.writer = writer
        self.cursors = {address: SyncCursor(state_dir, address) for address in addresses}
        self.poll_interval = poll_interval
        self.records_rejected = 0
        self.cycles = 0

    # =========================================================================
    # POLL LOOP
    # =========================================================================

    async def run_loop(self):
        logger.info(f"[{self.worker_name}] Tracking {len(self.cursors)} address(es)")

        while self.running:
            try:
                await self.sync_once()
            except Exception as e:
                logger.error(f"[{self.worker_name}] Poll error: {e}", exc_info=True)

            if await self.sleep(self.poll_interval):
                break

    async def sync_once(self) -> int:
        """
        Run one cycle over all addresses.

        Returns:
            Number of records that changed the store
        """
        self.cycles += 1
        changed = 0

        for address, cursor in self.cursors.items():
            try:
                changed += await self._sync_address(address, cursor)
            except LedgerUnavailableError as e:
                logger.error(f"[{self.worker_name}] Could not list records for {address}: {e}")

        try:
            await self.writer.rebuild_if_pending()
        except IpfsError as e:
            logger.error(f"[{self.worker_name}] Could not refresh article index, retrying next cycle: {e}")

        return changed

    async def _sync_address(self, address: str, cursor: SyncCursor) -> int:
        since = cursor.load()
        records = await self.ledger.records_since(address, since)
        if not records:
            return 0

        logger.info(f"[{self.worker_name}] Found {len(records)} new record(s) for {address} since block {since}")
        changed = 0

        for position, record in enumerate(records):
            try:
                outcome = await self.apply_record(record)
                if outcome.changed:
                    changed += 1
                self.jobs_processed += 1
            except (InvalidLocationError, InvalidArticleNameError) as e:
                # Seen but not an article we can curate; its block still counts
                self.records_rejected += 1
                logger.warning(f"[{self.worker_name}] Rejected record {record.tx_hash}: {e}")
            except ContentUnavailableError as e:
                self.jobs_failed += 1
                logger.error(f"[{self.worker_name}] Dropping record {record.tx_hash}: {e}")
            except IpfsError as e:
                # Transient: leave the cursor before this block and retry next cycle
                self.jobs_failed += 1
                logger.error(f"[{self.worker_name}] Could not add record {record.tx_hash}, retrying next cycle: {e}")
                break

            if not self._more_in_block(records, position):
                cursor.advance(record.block_number)

        return changed

    @staticmethod
    def _more_in_block(records: List[LedgerRecord], position: int) -> bool:
        following = position + 1
        return following < len(records) and records[following].block_number == records[position].block_number

    # =========================================================================
    # RECORD APPLICATION
    # =========================================================================

    async def apply_record(self, record: LedgerRecord) -> AddOutcome:
        """
        Apply one publication record to the published collection.

        Raises:
            InvalidLocationError: location is not an ipfs:// content address
            InvalidArticleNameError: record name is not a usable article name
            ContentUnavailableError: content cannot be resolved
            IpfsUnavailableError: IPFS node unreachable
        """
        logger.info(f"[{self.worker_name}] Adding record from hash: {record.tx_hash} (block {record.block_number})")

        cid = record.content_id()
        if not is_valid_article_name(record.name):
            raise InvalidArticleNameError(f"invalid article name: {record.name!r}")

        return await self.writer.add_or_replace(
            record.name,
            cid,
            ArticleCollection.PUBLISHED,
            date_published=record.date_published,
            tx_hash=record.tx_hash,
        )

    async def add_by_tx_hash(self, tx_hash: str) -> AddOutcome:
        """
        One-off application of the record for a transaction hash.

        Cursors are not touched; the index is rebuilt if the store changed.

        Raises:
            ArticleNotFoundError: no publication record for the hash
            ValueError: tx_hash is not hex
        """
        record = await self.ledger.record_by_tx_hash(tx_hash)
        if record is None:
            raise ArticleNotFoundError(f"no record found for hash: {tx_hash}")

        outcome = await self.apply_record(record)
        await self.writer.rebuild_if_pending()
        return outcome


async def block_status(ledger: LedgerRepository, cursors: Iterable[SyncCursor]) -> DBBlockStatus:
    """Chain tip versus the least advanced tracked cursor."""
    cursor_values = [cursor.load() for cursor in cursors]
    last_daemon_block = min(cursor_values) if cursor_values else 0
    return DBBlockStatus(
        last_chain_block_number=await ledger.chain_tip(),
        last_daemon_block_number=last_daemon_block,
    )
