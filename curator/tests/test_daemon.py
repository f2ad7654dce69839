"""
Tests for daemon startup checks and the end-to-end gossip path.
"""
import asyncio
import json

import pytest

from curator.config.settings import Settings
from curator.daemon import CuratorDaemon
from curator.errors import ConfigurationError, IpfsUnavailableError, SetupError
from curator.tests.fakes import FakeIpfs, FakeSubscription, article_body, eventually, wire_message

INDEX_PATH = "/dBranch/index.json"


@pytest.fixture
def settings(tmp_path):
    allow_file = tmp_path / "peer-allow-list.json"
    allow_file.write_text(json.dumps({"allowed_peers": ["peerA"]}))
    return Settings(
        _env_file=None,
        peer_allow_file=str(allow_file),
        cardano_address_file=str(tmp_path / "no-addresses.txt"),
        state_dir=str(tmp_path / "state"),
        startup_attempts=2,
        startup_retry_delay=0.0,
    )


# =============================================================================
# SETUP
# =============================================================================

class TestSetup:

    async def test_gossip_only_without_addresses(self, settings, ipfs):
        daemon = CuratorDaemon(settings, ipfs=ipfs)

        await daemon.setup()

        assert daemon.gossip_worker is not None
        assert daemon.ledger_worker is None
        assert "/dBranch/curated" in ipfs.dirs
        assert "/dBranch/published" in ipfs.dirs

    async def test_ipfs_never_up(self, settings, ipfs):
        ipfs.up = False
        daemon = CuratorDaemon(settings, ipfs=ipfs)

        with pytest.raises(SetupError):
            await daemon.setup()
        assert ipfs.calls.count("is_up") == 2

    async def test_directories_not_creatable(self, settings, ipfs):
        ipfs.fail("files_mkdir", IpfsUnavailableError("connection refused"))

        with pytest.raises(SetupError):
            await CuratorDaemon(settings, ipfs=ipfs).setup()

    async def test_empty_peer_list_refused(self, settings, ipfs, tmp_path):
        settings.peer_allow_file = str(tmp_path / "absent.json")

        with pytest.raises(ConfigurationError):
            await CuratorDaemon(settings, ipfs=ipfs).setup()

    async def test_empty_peer_list_allowed(self, settings, ipfs, tmp_path):
        settings.peer_allow_file = str(tmp_path / "absent.json")
        settings.allow_empty_peer_list = True

        daemon = CuratorDaemon(settings, ipfs=ipfs)
        await daemon.setup()

        assert daemon.allow_list.is_open

    async def test_ledger_sync_with_addresses(self, settings, ipfs, tmp_path, monkeypatch):
        address_file = tmp_path / "addresses.txt"
        address_file.write_text("addr_test1\naddr_test2\n")
        settings.cardano_address_file = str(address_file)

        class Pool:
            async def close(self):
                pass

        async def fake_pool(config, attempts, retry_delay):
            return Pool()

        monkeypatch.setattr("curator.daemon.create_postgres_pool", fake_pool)

        daemon = CuratorDaemon(settings, ipfs=ipfs)
        await daemon.setup()

        assert set(daemon.ledger_worker.cursors) == {"addr_test1", "addr_test2"}
        assert daemon.ledger_worker.poll_interval == settings.poll_interval
        await daemon.close()
        assert daemon.db_pool is None


# =============================================================================
# RUN
# =============================================================================

class TestRun:

    async def test_curates_from_wire_until_stopped(self, settings):
        ipfs = FakeIpfs()
        cid = ipfs.add_block(article_body("Foo"))
        ipfs.subscriptions.append(FakeSubscription([
            wire_message("peerA", {"name": "foo.news", "cid": cid}),
        ], hold_open=True))
        daemon = CuratorDaemon(settings, ipfs=ipfs)
        await daemon.setup()

        task = asyncio.create_task(daemon.run())
        await eventually(lambda: daemon.gossip_worker.jobs_processed == 1)
        daemon.stop()
        await asyncio.wait_for(task, timeout=2.0)

        index = json.loads(ipfs.files[INDEX_PATH][1])
        assert [r["name"] for r in index["curated"]] == ["foo.news"]
        assert "close" in ipfs.calls
        assert not daemon.writer.running
