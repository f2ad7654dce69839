"""
Tests for the per-address ledger cursor.
"""
import pytest

from curator.errors import ConfigurationError
from curator.services.checkpoint import SyncCursor


class TestSyncCursor:

    def test_starts_at_zero(self, tmp_path):
        assert SyncCursor(tmp_path, "addr_test1").load() == 0

    def test_advance_persists(self, tmp_path):
        SyncCursor(tmp_path, "addr_test1").advance(105)

        # A fresh instance reads what the previous process wrote
        assert SyncCursor(tmp_path, "addr_test1").load() == 105
        assert (tmp_path / "last_block_addr_test1").read_text() == "105"

    def test_never_moves_backwards(self, tmp_path):
        cursor = SyncCursor(tmp_path, "addr_test1")
        cursor.advance(105)

        assert cursor.advance(100) == 105
        assert SyncCursor(tmp_path, "addr_test1").load() == 105

    def test_addresses_are_independent(self, tmp_path):
        SyncCursor(tmp_path, "addr_test1").advance(200)
        assert SyncCursor(tmp_path, "addr_test2").load() == 0

    def test_creates_state_directory(self, tmp_path):
        state_dir = tmp_path / "state" / "nested"
        SyncCursor(state_dir, "addr_test1").advance(7)
        assert (state_dir / "last_block_addr_test1").exists()

    def test_no_temp_files_left_behind(self, tmp_path):
        cursor = SyncCursor(tmp_path, "addr_test1")
        cursor.advance(1)
        cursor.advance(2)
        assert sorted(p.name for p in tmp_path.iterdir()) == ["last_block_addr_test1"]

    @pytest.mark.parametrize("content", ["abc", "-5", "12.5"])
    def test_corrupt_checkpoint(self, tmp_path, content):
        (tmp_path / "last_block_addr_test1").write_text(content)

        with pytest.raises(ConfigurationError):
            SyncCursor(tmp_path, "addr_test1").load()
