"""
ContentStore - idempotent article operations over the IPFS mutable file system.

Layout:
    <curated_dir>/<name>          article (linked from /ipfs/<cid>)
    <curated_dir>/<name>.json     ArticleRecord sidecar
    <published_dir>/...           same, for ledger-confirmed articles

add_or_replace is safe to call repeatedly with the same input: gossip
redelivery and the gossip + ledger paths can both announce one article.
"""
import json
import logging
import posixpath
from enum import Enum
from datetime import datetime
from typing import Optional, List, Iterable

from curator.errors import (
    IpfsError,
    IpfsNotFoundError,
    IpfsUnavailableError,
    IpfsTimeoutError,
    ContentUnavailableError,
    ArticleNotFoundError,
    CuratorError,
    InvalidArticleNameError,
)
from curator.models.article import (
    ArticleCollection,
    ArticleMetadata,
    ArticleRecord,
    Article,
    RECORD_SUFFIX,
    is_valid_article_name,
)
from curator.models.identifiers import ContentId
from curator.services.ipfs_client import IpfsClient, FileStat
from curator.utils.datetime_utils import utc_now, ensure_utc

logger = logging.getLogger(__name__)


class AddOutcome(str, Enum):
    ADDED = "added"
    UNCHANGED = "unchanged"
    REPLACED = "replaced"
    UPDATED = "updated"  # same content, record rewritten for a new transaction

    @property
    def changed(self) -> bool:
        return self is not AddOutcome.UNCHANGED


class ContentStore:
    """
    Article storage on the local IPFS node.

    Args:
        ipfs: RPC client (or a fake with the same methods)
        curated_dir: MFS directory for gossip-curated articles
        published_dir: MFS directory for ledger-published articles
        extensions: file extensions recognized as articles
    """

    def __init__(
        self,
        ipfs: IpfsClient,
        curated_dir: str = "/dBranch/curated",
        published_dir: str = "/dBranch/published",
        extensions: Iterable[str] = (".news",),
    ):
        self.ipfs = ipfs
        self.dirs = {
            ArticleCollection.CURATED: curated_dir.rstrip("/"),
            ArticleCollection.PUBLISHED: published_dir.rstrip("/"),
        }
        self.extensions = tuple(extensions)

    # =========================================================================
    # PATHS
    # =========================================================================

    def article_path(self, name: str, collection: ArticleCollection) -> str:
        return posixpath.join(self.dirs[collection], name)

    def record_path(self, name: str, collection: ArticleCollection) -> str:
        return self.article_path(name, collection) + RECORD_SUFFIX

    def is_article_name(self, name: str) -> bool:
        return name.endswith(self.extensions)

    async def ensure_directories(self):
        """Create both collection directories (files/cp does not create parents on old nodes)."""
        for directory in self.dirs.values():
            await self.ipfs.files_mkdir(directory)
            logger.info(f"Directory ready: {directory}")

    # =========================================================================
    # WRITE OPERATIONS
    # =========================================================================

    async def add_or_replace(
        self,
        name: str,
        cid: ContentId,
        collection: ArticleCollection = ArticleCollection.CURATED,
        date_published: Optional[datetime] = None,
        tx_hash: Optional[str] = None,
    ) -> AddOutcome:
        """
        Add an article by content id, replacing a different version of the same name.

        1. stat the existing entry (not found = add fresh)
        2. same hash and a matching record -> UNCHANGED, nothing touched,
           unless a different ledger transaction now confirms it -> UPDATED
        3. different hash -> remove the stale entry (old content stays pinned)
        4. link /ipfs/<cid> into the collection directory
        5. pin, since the link alone only references the root node
        6. stat for size and write the record sidecar

        Raises:
            InvalidArticleNameError: name is not an article file name
            IpfsUnavailableError: node unreachable (transient)
            ContentUnavailableError: cid cannot be resolved to content
        """
        if not is_valid_article_name(name) or not self.is_article_name(name):
            raise InvalidArticleNameError(f"not an article name: {name!r}")

        article_path = self.article_path(name, collection)
        existing = await self._stat_or_none(article_path)
        outcome = AddOutcome.ADDED
        date_added = utc_now()

        if existing is not None:
            logger.debug(f"stat hash: {existing.hash} article cid: {cid}")
            if existing.hash == str(cid):
                record = await self.load_record(name, collection)
                if record is None or record.cid != cid:
                    # Linked but the record never got written
                    logger.info(f"Completing partially added article: {name}")
                elif tx_hash is None or record.cardano_tx_hash == tx_hash:
                    logger.info(f"Already have article: {name} with hash {cid}")
                    return AddOutcome.UNCHANGED
                else:
                    logger.info(f"Updating ledger transaction of {name}: {tx_hash}")
                    outcome = AddOutcome.UPDATED
                    date_added = record.date_added or date_added
            else:
                logger.info(f"Replacing article: {name} with newer hash {cid}")
                await self._remove_path(article_path)
                outcome = AddOutcome.REPLACED

        if existing is None or existing.hash != str(cid):
            logger.info(f"Copying article from: {cid.ipfs_path} to: {article_path}")
            await self._resolve(self.ipfs.files_cp(cid.ipfs_path, article_path), cid)

        logger.info(f"Pinning {cid} to local node")
        await self._resolve(self.ipfs.pin_add(str(cid)), cid)

        stat = await self.ipfs.files_stat(article_path)
        record = ArticleRecord(
            name=name,
            cid=cid,
            collection=collection,
            size=stat.size,
            date_added=date_added,
            date_published=ensure_utc(date_published),
            cardano_tx_hash=tx_hash,
            metadata=await self._read_metadata(article_path),
        )
        await self.write_json(self.record_path(name, collection), record.to_dict())

        logger.info(f"Article {outcome.value}: {name} ({collection.value})")
        return outcome

    async def remove(self, name: str, collection: ArticleCollection = ArticleCollection.CURATED):
        """Remove article and record; removing something absent succeeds."""
        logger.info(f"Removing article: {name} ({collection.value})")
        await self._remove_path(self.record_path(name, collection))
        await self._remove_path(self.article_path(name, collection))

    async def write_json(self, path: str, document: dict):
        await self.ipfs.files_write(path, json.dumps(document).encode())

    # =========================================================================
    # READ OPERATIONS
    # =========================================================================

    async def read_json(self, path: str) -> Optional[dict]:
        """
        Returns:
            Decoded document, or None if the path does not exist

        Raises:
            ValueError: content is not JSON
        """
        try:
            raw = await self.ipfs.files_read(path)
        except IpfsNotFoundError:
            return None
        return json.loads(raw)

    async def list_names(self, collection: ArticleCollection) -> List[str]:
        """Article names in a collection (record sidecars and foreign files excluded)."""
        try:
            entries = await self.ipfs.files_ls(self.dirs[collection])
        except IpfsNotFoundError:
            return []
        return [e.name for e in entries if e.type == 0 and self.is_article_name(e.name)]

    async def load_record(self, name: str, collection: ArticleCollection) -> Optional[ArticleRecord]:
        """
        Returns:
            The record, or None when it is missing or not fully written
        """
        path = self.record_path(name, collection)
        try:
            data = await self.read_json(path)
        except ValueError as e:
            logger.warning(f"Could not load article record: {path}: {e}")
            return None
        if data is None:
            return None

        try:
            record = ArticleRecord.from_dict(data)
        except (KeyError, ValueError, TypeError) as e:
            logger.warning(f"Could not load article record: {path}: {e}")
            return None

        # Collection is implied by location, not by what the document says
        record.collection = collection
        return record

    async def load_article(self, name: str, collection: ArticleCollection) -> Article:
        """
        Raises:
            ArticleNotFoundError: no such article in the collection
            CuratorError: article body is not a JSON document
        """
        path = self.article_path(name, collection)
        try:
            body = await self.read_json(path)
        except ValueError as e:
            raise CuratorError(f"could not decode article: {path}: {e}") from e
        if body is None:
            raise ArticleNotFoundError(f"article not found: {name}")
        if not isinstance(body, dict):
            raise CuratorError(f"article is not a JSON object: {path}")

        return Article.from_body(body, record=await self.load_record(name, collection))

    # =========================================================================
    # HELPERS
    # =========================================================================

    async def _stat_or_none(self, path: str) -> Optional[FileStat]:
        try:
            return await self.ipfs.files_stat(path)
        except IpfsNotFoundError:
            return None

    async def _remove_path(self, path: str):
        try:
            await self.ipfs.files_rm(path)
        except IpfsNotFoundError:
            logger.debug(f"Nothing to remove at {path}")

    @staticmethod
    async def _resolve(call, cid: ContentId):
        """Await a cp/pin call, classifying failures to locate the content."""
        try:
            return await call
        except IpfsTimeoutError as e:
            raise ContentUnavailableError(f"timed out resolving {cid}: {e}") from e
        except IpfsUnavailableError:
            raise
        except IpfsError as e:
            raise ContentUnavailableError(f"cannot resolve {cid}: {e}") from e

    async def _read_metadata(self, article_path: str) -> ArticleMetadata:
        try:
            body = await self.read_json(article_path)
        except ValueError as e:
            logger.warning(f"Article body is not JSON, caching empty metadata: {article_path}: {e}")
            return ArticleMetadata()
        if not isinstance(body, dict):
            return ArticleMetadata()
        return ArticleMetadata.from_dict(body.get("metadata"))
