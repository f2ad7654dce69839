"""
Tests for IndexBuilder: the index is always a full rebuild of the store.
"""
import json
from datetime import datetime, timezone

import pytest

from curator.errors import IpfsUnavailableError
from curator.models.article import ArticleCollection, ArticleIndex
from curator.models.identifiers import ContentId
from curator.tests.fakes import article_body

CURATED = ArticleCollection.CURATED
PUBLISHED = ArticleCollection.PUBLISHED
INDEX_PATH = "/dBranch/index.json"


class TestRebuild:

    async def test_empty_store_gives_empty_lists(self, ipfs, index_builder):
        index = await index_builder.rebuild()

        assert index == ArticleIndex()
        assert json.loads(ipfs.files[INDEX_PATH][1]) == {"curated": [], "published": []}

    async def test_lists_both_collections(self, ipfs, store, index_builder):
        foo = ContentId(ipfs.add_block(article_body("Foo")))
        bar = ContentId(ipfs.add_block(article_body("Bar")))
        await store.add_or_replace("foo.news", foo, CURATED)
        await store.add_or_replace("bar.news", bar, PUBLISHED, tx_hash="ab" * 32)

        index = await index_builder.rebuild()

        assert [r.name for r in index.curated] == ["foo.news"]
        assert [r.name for r in index.published] == ["bar.news"]
        document = json.loads(ipfs.files[INDEX_PATH][1])
        assert document["published"][0]["cardano_tx_hash"] == "ab" * 32
        assert document["curated"][0]["metadata"]["title"] == "Foo"

    async def test_skips_articles_without_record(self, ipfs, store, index_builder):
        foo = ContentId(ipfs.add_block(article_body("Foo")))
        await store.add_or_replace("foo.news", foo, CURATED)
        # Linked but never recorded
        orphan = ipfs.add_block(article_body("Orphan"))
        await ipfs.files_cp(f"/ipfs/{orphan}", "/dBranch/curated/orphan.news")

        index = await index_builder.rebuild()

        assert [r.name for r in index.curated] == ["foo.news"]

    async def test_removed_article_disappears(self, ipfs, store, index_builder):
        foo = ContentId(ipfs.add_block(article_body("Foo")))
        await store.add_or_replace("foo.news", foo, CURATED)
        await index_builder.rebuild()

        await store.remove("foo.news", CURATED)
        index = await index_builder.rebuild()

        assert index.curated == []

    async def test_published_newest_first(self, ipfs, store, index_builder):
        for day, name in [(1, "older.news"), (3, "newest.news"), (2, "middle.news")]:
            cid = ContentId(ipfs.add_block(article_body(name)))
            await store.add_or_replace(
                name, cid, PUBLISHED,
                date_published=datetime(2022, 3, day, tzinfo=timezone.utc),
            )

        index = await index_builder.rebuild()

        assert [r.name for r in index.published] == ["newest.news", "middle.news", "older.news"]

    async def test_failed_write_keeps_previous_index(self, ipfs, store, index_builder):
        await index_builder.rebuild()
        previous = ipfs.files[INDEX_PATH]
        foo = ContentId(ipfs.add_block(article_body("Foo")))
        await store.add_or_replace("foo.news", foo, CURATED)
        ipfs.fail("files_write", IpfsUnavailableError("connection refused"))

        with pytest.raises(IpfsUnavailableError):
            await index_builder.rebuild()

        assert ipfs.files[INDEX_PATH] == previous


class TestLoad:

    async def test_never_written(self, index_builder):
        assert await index_builder.load() == ArticleIndex()
        assert await index_builder.load_document() == {"curated": [], "published": []}

    async def test_load_after_rebuild(self, ipfs, store, index_builder):
        foo = ContentId(ipfs.add_block(article_body("Foo")))
        await store.add_or_replace("foo.news", foo, CURATED)
        await index_builder.rebuild()

        index = await index_builder.load()

        assert index.find("foo.news", CURATED).cid == foo
