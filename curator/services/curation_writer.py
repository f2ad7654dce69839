"""
CurationWriter - single writer for all store and index mutations.

The gossip pipeline and the ledger sync run independently. Left
uncoordinated, two index rebuilds can interleave with each other's store
writes and the last writer wins, dropping an article until the next
rebuild. Instead both loops enqueue work items here and one task applies
them strictly in order:

    gossip worker ─┐
                   ├─> queue ─> CurationWriter.run() ─> ContentStore / IndexBuilder
    ledger worker ─┘

Producers await the result of their own item, so they still observe
success/failure per item (the ledger cursor depends on that).

rebuild_pending is set by every store mutation and cleared only by a
successful rebuild. A failed rebuild is repaired by the next
rebuild_if_pending() from either loop, even when that loop's own item
changed nothing.
"""
import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Any, Callable, Awaitable

from curator.models.article import ArticleCollection, ArticleIndex
from curator.models.identifiers import ContentId
from curator.services.content_store import ContentStore, AddOutcome
from curator.services.index_builder import IndexBuilder

logger = logging.getLogger(__name__)


@dataclass
class WorkItem:
    """One queued mutation and the future its producer is waiting on."""
    label: str
    action: Callable[[], Awaitable[Any]]
    future: asyncio.Future = field(repr=False, default=None)


class CurationWriter:
    """Serializes ContentStore/IndexBuilder mutations through one queue."""

    def __init__(self, store: ContentStore, index_builder: IndexBuilder, max_pending: int = 0):
        self.store = store
        self.index_builder = index_builder
        self.queue: asyncio.Queue = asyncio.Queue(maxsize=max_pending)
        self.running = False
        self.rebuild_pending = False
        self.items_applied = 0
        self.items_failed = 0

    # =========================================================================
    # PRODUCER API
    # =========================================================================

    async def add_or_replace(
        self,
        name: str,
        cid: ContentId,
        collection: ArticleCollection = ArticleCollection.CURATED,
        date_published: Optional[datetime] = None,
        tx_hash: Optional[str] = None,
    ) -> AddOutcome:
        return await self._submit(
            f"add {collection.value}/{name}",
            lambda: self._add_or_replace(name, cid, collection, date_published, tx_hash),
        )

    async def remove(self, name: str, collection: ArticleCollection = ArticleCollection.CURATED):
        return await self._submit(
            f"remove {collection.value}/{name}",
            lambda: self._remove(name, collection),
        )

    async def rebuild(self) -> ArticleIndex:
        return await self._submit("rebuild index", self._rebuild)

    async def rebuild_if_pending(self) -> Optional[ArticleIndex]:
        """Rebuild only if a store change has not reached the index yet."""
        return await self._submit("rebuild index if pending", self._rebuild_if_pending)

    async def _submit(self, label: str, action: Callable[[], Awaitable[Any]]):
        item = WorkItem(label=label, action=action, future=asyncio.get_running_loop().create_future())
        await self.queue.put(item)
        return await item.future

    # =========================================================================
    # ACTIONS (run inside the writer loop only)
    # =========================================================================

    async def _add_or_replace(self, name, cid, collection, date_published, tx_hash) -> AddOutcome:
        was_pending = self.rebuild_pending
        # A failed replace may already have unlinked the previous version
        self.rebuild_pending = True
        outcome = await self.store.add_or_replace(
            name, cid, collection, date_published=date_published, tx_hash=tx_hash
        )
        if not outcome.changed:
            self.rebuild_pending = was_pending
        return outcome

    async def _remove(self, name: str, collection: ArticleCollection):
        self.rebuild_pending = True
        await self.store.remove(name, collection)

    async def _rebuild(self) -> ArticleIndex:
        index = await self.index_builder.rebuild()
        self.rebuild_pending = False
        return index

    async def _rebuild_if_pending(self) -> Optional[ArticleIndex]:
        if not self.rebuild_pending:
            return None
        logger.info("[writer] Index behind the store, rebuilding")
        return await self._rebuild()

    # =========================================================================
    # WRITER LOOP
    # =========================================================================

    async def run(self):
        """Apply queued items one at a time until cancelled or stopped."""
        self.running = True
        logger.info("[writer] Started")

        try:
            while self.running:
                item = await self.queue.get()
                try:
                    if item is not None:
                        await self._apply(item)
                finally:
                    self.queue.task_done()
        except asyncio.CancelledError:
            logger.info("[writer] Received cancellation signal")
            raise
        finally:
            self.running = False
            self._fail_pending()
            logger.info(
                f"[writer] Shutting down. Applied: {self.items_applied}, Failed: {self.items_failed}"
            )

    async def _apply(self, item: WorkItem):
        if item.future.cancelled():
            # Producer gave up while the item was queued
            return

        logger.debug(f"[writer] Applying: {item.label}")
        try:
            result = await item.action()
        except asyncio.CancelledError:
            item.future.cancel()
            raise
        except Exception as e:
            self.items_failed += 1
            logger.debug(f"[writer] {item.label} failed: {e}")
            if not item.future.cancelled():
                item.future.set_exception(e)
            return

        self.items_applied += 1
        if not item.future.cancelled():
            item.future.set_result(result)

    def _fail_pending(self):
        while not self.queue.empty():
            item = self.queue.get_nowait()
            if item is not None and not item.future.done():
                item.future.cancel()
            self.queue.task_done()

    def stop(self):
        """Stop after the item in progress; items still queued are cancelled."""
        self.running = False
        try:
            # Wake run() if it is waiting on an empty queue
            self.queue.put_nowait(None)
        except asyncio.QueueFull:
            # A full queue means run() is busy and will see the flag
            pass
