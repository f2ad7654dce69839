"""
IndexBuilder - regenerate the article index from the store.

The store is the source of truth. The index is rebuilt in full from the
record sidecars and written over the previous document; it is never
patched incrementally, so it cannot drift from the store.
"""
import logging
from datetime import datetime, timezone
from typing import List

from curator.models.article import ArticleCollection, ArticleIndex, ArticleRecord, replace_record
from curator.services.content_store import ContentStore

logger = logging.getLogger(__name__)

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def _sort_key(record: ArticleRecord):
    if record.collection == ArticleCollection.PUBLISHED:
        when = record.date_published or record.date_added
    else:
        when = record.date_added
    return (when or _EPOCH, record.name)


class IndexBuilder:
    """Builds and persists the two-list article index."""

    def __init__(self, store: ContentStore, index_path: str = "/dBranch/index.json"):
        self.store = store
        self.index_path = index_path

    async def rebuild(self) -> ArticleIndex:
        """
        Assemble both lists from the store and overwrite the index document.

        Entries whose record is missing (not fully written yet) are skipped.

        Raises:
            IpfsUnavailableError: node unreachable; the previous index stays in place
        """
        index = ArticleIndex(
            curated=await self._collect(ArticleCollection.CURATED),
            published=await self._collect(ArticleCollection.PUBLISHED),
        )
        await self.store.write_json(self.index_path, index.to_dict())
        logger.info(
            f"Refreshed article index: {len(index.curated)} curated, {len(index.published)} published"
        )
        return index

    async def load(self) -> ArticleIndex:
        """Read the persisted index; an index that was never written is empty."""
        data = await self.store.read_json(self.index_path)
        return ArticleIndex.from_dict(data)

    async def load_document(self) -> dict:
        """Persisted index document as stored (served verbatim by the API)."""
        data = await self.store.read_json(self.index_path)
        return data if data is not None else ArticleIndex().to_dict()

    async def _collect(self, collection: ArticleCollection) -> List[ArticleRecord]:
        records: List[ArticleRecord] = []
        for name in await self.store.list_names(collection):
            record = await self.store.load_record(name, collection)
            if record is None:
                logger.debug(f"Skipping {collection.value}/{name}: record not written yet")
                continue
            records = replace_record(records, record)

        return sorted(records, key=_sort_key, reverse=True)
