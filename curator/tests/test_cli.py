"""
Tests for the command line entry point (argument handling only; no node).
"""
import pytest

from curator.cli import build_parser, main


class TestParser:

    def test_remove_defaults_to_curated(self):
        args = build_parser().parse_args(["remove", "foo.news"])

        assert args.command == "remove"
        assert args.collection == "curated"

    def test_serve_overrides(self):
        args = build_parser().parse_args(["serve", "--port", "8080"])
        assert args.port == 8080
        assert args.host is None

    def test_announce(self):
        args = build_parser().parse_args(["announce", "foo.news", "QmFoo"])
        assert (args.name, args.cid) == ("foo.news", "QmFoo")

    def test_command_required(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])

    def test_unknown_collection(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["remove", "foo.news", "--collection", "drafts"])


class TestMain:

    def test_invalid_article_name_exits_non_zero(self):
        assert main(["remove", "../index.json"]) == 1

    def test_invalid_tx_hash_exits_non_zero(self):
        assert main(["add-tx", "not-a-hash"]) == 1
