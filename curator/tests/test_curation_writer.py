"""
Tests for the single writer: items apply strictly in submission order and
each producer sees its own result or error.
"""
import asyncio

import pytest

from curator.errors import ContentUnavailableError, IpfsUnavailableError
from curator.models.article import ArticleCollection
from curator.models.identifiers import ContentId
from curator.services.content_store import AddOutcome
from curator.services.curation_writer import CurationWriter
from curator.tests.fakes import article_body, eventually

INDEX_PATH = "/dBranch/index.json"


class TestCurationWriter:

    async def test_add_then_rebuild(self, ipfs, writer):
        cid = ContentId(ipfs.add_block(article_body("Foo")))

        outcome = await writer.add_or_replace("foo.news", cid, ArticleCollection.CURATED)
        index = await writer.rebuild()

        assert outcome == AddOutcome.ADDED
        assert [r.name for r in index.curated] == ["foo.news"]
        assert writer.items_applied == 2

    async def test_errors_reach_the_producer(self, writer):
        with pytest.raises(ContentUnavailableError):
            await writer.add_or_replace("ghost.news", ContentId("bafkmissing"), ArticleCollection.CURATED)

        assert writer.items_failed == 1

    async def test_writer_survives_failed_item(self, ipfs, writer):
        with pytest.raises(ContentUnavailableError):
            await writer.add_or_replace("ghost.news", ContentId("bafkmissing"))

        cid = ContentId(ipfs.add_block(article_body("Foo")))
        assert await writer.add_or_replace("foo.news", cid) == AddOutcome.ADDED

    async def test_concurrent_producers_are_serialized(self, ipfs, writer):
        cids = [ContentId(ipfs.add_block(article_body(f"A{i}"))) for i in range(5)]

        # Interleave adds and rebuilds from independent tasks
        results = await asyncio.gather(*(
            [writer.add_or_replace(f"a{i}.news", cid) for i, cid in enumerate(cids)]
            + [writer.rebuild() for _ in range(3)]
        ))
        final = await writer.rebuild()

        assert all(r == AddOutcome.ADDED for r in results[:5])
        assert sorted(r.name for r in final.curated) == [f"a{i}.news" for i in range(5)]

    async def test_remove(self, ipfs, writer):
        cid = ContentId(ipfs.add_block(article_body("Foo")))
        await writer.add_or_replace("foo.news", cid)

        await writer.remove("foo.news")
        index = await writer.rebuild()

        assert index.curated == []



# =============================================================================
# INDEX CATCH-UP
# =============================================================================

class TestRebuildPending:

    async def test_store_change_marks_index_behind(self, ipfs, writer):
        cid = ContentId(ipfs.add_block(article_body("Foo")))

        await writer.add_or_replace("foo.news", cid)
        assert writer.rebuild_pending

        await writer.rebuild()
        assert not writer.rebuild_pending

    async def test_unchanged_add_leaves_flag_clear(self, ipfs, writer):
        cid = ContentId(ipfs.add_block(article_body("Foo")))
        await writer.add_or_replace("foo.news", cid)
        await writer.rebuild()

        assert await writer.add_or_replace("foo.news", cid) == AddOutcome.UNCHANGED
        assert not writer.rebuild_pending
        assert await writer.rebuild_if_pending() is None

    async def test_failed_rebuild_stays_pending(self, ipfs, writer):
        cid = ContentId(ipfs.add_block(article_body("Foo")))
        await writer.add_or_replace("foo.news", cid)
        ipfs.fail("files_write", IpfsUnavailableError("connection reset"), path=INDEX_PATH)

        with pytest.raises(IpfsUnavailableError):
            await writer.rebuild()
        assert writer.rebuild_pending

        index = await writer.rebuild_if_pending()

        assert [r.name for r in index.curated] == ["foo.news"]
        assert not writer.rebuild_pending

    async def test_remove_marks_index_behind(self, ipfs, writer):
        await writer.remove("never-added.news")
        assert writer.rebuild_pending


# =============================================================================
# SHUTDOWN
# =============================================================================

class TestStop:

    async def test_stop_wakes_idle_writer(self, store, index_builder):
        writer = CurationWriter(store, index_builder)
        task = asyncio.create_task(writer.run())
        await eventually(lambda: writer.running)

        writer.stop()

        await asyncio.wait_for(task, timeout=1.0)
        assert not writer.running
