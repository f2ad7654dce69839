"""
Curator daemon - wires the services together and runs both curation loops

    IpfsClient ─> ContentStore ─> IndexBuilder
                        │
                 CurationWriter  <── GossipWorker (wire channel)
                                 <── LedgerSyncWorker (db-sync, optional)

Startup fails fast (SetupError / ConfigurationError) when IPFS never comes
up, the collection directories cannot be created, the peer allow-list is
invalid, or tracked addresses are configured but db-sync is unreachable.
"""
import asyncio
import logging
import signal
from contextlib import asynccontextmanager
from pathlib import Path
from typing import List, Optional, Union

import asyncpg

from curator.config.database import PostgresConfig, create_postgres_pool
from curator.config.settings import Settings
from curator.errors import IpfsError, SetupError
from curator.repositories.ledger_repository import LedgerRepository
from curator.services.admission import PeerAllowList, load_peer_allow_list, validate_for_startup
from curator.services.content_store import ContentStore
from curator.services.curation_writer import CurationWriter
from curator.services.index_builder import IndexBuilder
from curator.services.ipfs_client import IpfsClient
from curator.workers.gossip_worker import GossipWorker
from curator.workers.ledger_worker import LedgerSyncWorker
from curator.workers.worker_base import BaseWorker

logger = logging.getLogger(__name__)


def load_tracked_addresses(path: Union[str, Path]) -> List[str]:
    """
    Read wallet addresses to follow on the ledger, one per line.

    Blank lines and `#` comments are ignored. A missing file disables ledger
    sync rather than failing startup.
    """
    path = Path(path).expanduser()
    if not path.exists():
        logger.warning(f"Address file not found: {path}, ledger sync disabled")
        return []

    addresses = []
    for line in path.read_text().splitlines():
        line = line.split("#", 1)[0].strip()
        if line and line not in addresses:
            addresses.append(line)

    logger.info(f"Loaded {len(addresses)} tracked address(es) from {path}")
    return addresses


class CuratorDaemon:
    """
    Owns the process-wide services.

    Args:
        settings: loaded Settings
        ipfs: RPC client override (tests)
    """

    def __init__(self, settings: Settings, ipfs: Optional[IpfsClient] = None):
        self.settings = settings
        self.ipfs = ipfs or IpfsClient(settings.ipfs_api_url, timeout=settings.ipfs_timeout)
        self.store = ContentStore(
            self.ipfs,
            curated_dir=settings.curated_dir,
            published_dir=settings.published_dir,
            extensions=settings.article_extensions,
        )
        self.index_builder = IndexBuilder(self.store, settings.index_path)
        self.writer = CurationWriter(self.store, self.index_builder)

        self.allow_list: Optional[PeerAllowList] = None
        self.db_pool: Optional[asyncpg.Pool] = None
        self.ledger: Optional[LedgerRepository] = None
        self.gossip_worker: Optional[GossipWorker] = None
        self.ledger_worker: Optional[LedgerSyncWorker] = None

    @property
    def workers(self) -> List[BaseWorker]:
        return [w for w in (self.gossip_worker, self.ledger_worker) if w is not None]

    # =========================================================================
    # SETUP
    # =========================================================================

    async def setup(self):
        """
        Prepare everything the loops need.

        Raises:
            SetupError: IPFS or db-sync unreachable, directories not creatable
            ConfigurationError: invalid allow-list or checkpoint
        """
        await self.wait_for_ipfs()
        await self.prepare_store()

        self.allow_list = load_peer_allow_list(self.settings.peer_allow_file)
        validate_for_startup(self.allow_list, self.settings.allow_empty_peer_list)
        self.gossip_worker = GossipWorker(
            self.ipfs.pubsub_subscribe,
            self.settings.wire_channel,
            self.allow_list,
            self.writer,
        )

        await self.connect_ledger()

    async def wait_for_ipfs(self):
        attempts = self.settings.startup_attempts
        for attempt in range(1, attempts + 1):
            if await self.ipfs.is_up():
                logger.info(f"✅ IPFS node is up at {self.settings.ipfs_api_url}")
                return
            logger.info(f"Waiting for IPFS at {self.settings.ipfs_api_url} ({attempt}/{attempts})")
            if attempt < attempts:
                await asyncio.sleep(self.settings.startup_retry_delay)

        raise SetupError(f"IPFS not reachable at {self.settings.ipfs_api_url} after {attempts} attempts")

    async def prepare_store(self):
        try:
            await self.store.ensure_directories()
        except IpfsError as e:
            raise SetupError(f"could not create collection directories: {e}") from e

    async def connect_ledger(self) -> Optional[LedgerSyncWorker]:
        """Connect to db-sync when addresses are tracked; ledger sync stays off otherwise."""
        addresses = load_tracked_addresses(self.settings.cardano_address_file)
        if not addresses:
            return None

        self.db_pool = await create_postgres_pool(
            PostgresConfig.from_settings(self.settings),
            attempts=self.settings.startup_attempts,
            retry_delay=self.settings.startup_retry_delay,
        )
        self.ledger = LedgerRepository(self.db_pool)
        self.ledger_worker = LedgerSyncWorker(
            self.ledger,
            self.writer,
            addresses,
            state_dir=self.settings.state_path,
            poll_interval=self.settings.poll_interval,
        )
        # Fail on unreadable checkpoints before any loop starts
        for cursor in self.ledger_worker.cursors.values():
            cursor.load()
        return self.ledger_worker

    # =========================================================================
    # RUN
    # =========================================================================

    @asynccontextmanager
    async def writer_running(self):
        """Run the single writer for the duration of the block."""
        task = asyncio.create_task(self.writer.run(), name="writer")
        try:
            yield self.writer
        finally:
            self.writer.stop()
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)

    async def run(self):
        """Run all loops until a signal or stop() arrives, then clean up."""
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, self.stop)

        try:
            async with self.writer_running():
                await self.refresh_index()
                tasks = [
                    asyncio.create_task(worker.start(), name=worker.worker_name)
                    for worker in self.workers
                ]
                logger.info(f"🚀 Curator running with {len(tasks)} loop(s)")
                try:
                    await asyncio.gather(*tasks)
                finally:
                    self.stop()
                    for task in tasks:
                        task.cancel()
                    await asyncio.gather(*tasks, return_exceptions=True)
        finally:
            for sig in (signal.SIGINT, signal.SIGTERM):
                loop.remove_signal_handler(sig)
            await self.close()

    async def refresh_index(self):
        """Bring the index in line with the store before new work arrives."""
        try:
            await self.writer.rebuild()
        except IpfsError as e:
            logger.error(f"Could not refresh article index at startup: {e}")

    def stop(self):
        logger.info("🛑 Shutdown requested")
        for worker in self.workers:
            worker.stop()

    async def close(self):
        await self.ipfs.close()
        if self.db_pool is not None:
            await self.db_pool.close()
            self.db_pool = None
        logger.info("Connections closed")
