#!/usr/bin/env python3
"""
dBranch Curator CLI
===================

Usage:
    dbranch-curator daemon                     # Gossip + ledger curation loops
    dbranch-curator serve                      # Read API (uvicorn)
    dbranch-curator rebuild-index              # Regenerate the index from the store
    dbranch-curator remove NAME [--collection published]
    dbranch-curator add-tx TX_HASH             # Curate one ledger record now
    dbranch-curator block-status               # Chain tip vs. local cursors
    dbranch-curator announce NAME CID          # Publish an announcement on the wire

Configuration comes from the environment and .env (see curator.config.settings).
"""
import argparse
import asyncio
import json
import logging
import sys

from dotenv import load_dotenv

from curator import __version__
from curator.config.settings import Settings, get_settings
from curator.daemon import CuratorDaemon
from curator.errors import ArticleNotFoundError, ConfigurationError, CuratorError, SetupError
from curator.models.article import ArticleCollection, is_valid_article_name
from curator.workers.ledger_worker import block_status

logger = logging.getLogger("curator")

LOG_FORMAT = '%(asctime)s [%(name)s] %(levelname)s: %(message)s'


def configure_logging(settings: Settings):
    level = getattr(logging, settings.log_level.upper(), logging.INFO)
    if settings.log_path and settings.log_path != "-":
        logging.basicConfig(level=level, format=LOG_FORMAT, filename=settings.log_path)
    else:
        logging.basicConfig(level=level, format=LOG_FORMAT)
    # httpx logs every RPC call at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)


# =============================================================================
# COMMANDS
# =============================================================================

async def run_daemon(settings: Settings, args) -> int:
    daemon = CuratorDaemon(settings)
    try:
        await daemon.setup()
    except CuratorError:
        await daemon.close()
        raise
    await daemon.run()
    return 0


def run_server(settings: Settings, args) -> int:
    import uvicorn

    from curator.api import create_app

    uvicorn.run(
        create_app(settings),
        host=args.host or settings.server_host,
        port=args.port or settings.server_port,
        log_config=None,
    )
    return 0


async def rebuild_index(settings: Settings, args) -> int:
    daemon = CuratorDaemon(settings)
    try:
        await daemon.wait_for_ipfs()
        async with daemon.writer_running() as writer:
            index = await writer.rebuild()
        print(f"curated: {len(index.curated)}  published: {len(index.published)}")
    finally:
        await daemon.close()
    return 0


async def remove_article(settings: Settings, args) -> int:
    if not is_valid_article_name(args.name):
        raise ConfigurationError(f"invalid article name: {args.name!r}")

    daemon = CuratorDaemon(settings)
    try:
        await daemon.wait_for_ipfs()
        async with daemon.writer_running() as writer:
            await writer.remove(args.name, ArticleCollection(args.collection))
            await writer.rebuild()
        print(f"removed {args.collection}/{args.name}")
    finally:
        await daemon.close()
    return 0


async def add_transaction(settings: Settings, args) -> int:
    try:
        bytes.fromhex(args.tx_hash)
    except ValueError:
        raise ConfigurationError(f"invalid transaction hash: {args.tx_hash!r}")

    daemon = CuratorDaemon(settings)
    try:
        await daemon.wait_for_ipfs()
        await daemon.prepare_store()
        worker = await daemon.connect_ledger()
        if worker is None:
            raise ConfigurationError(f"no tracked addresses in {settings.cardano_address_file}")

        async with daemon.writer_running():
            try:
                outcome = await worker.add_by_tx_hash(args.tx_hash)
            except ArticleNotFoundError as e:
                logger.error(f"{e}")
                return 1
        print(f"{args.tx_hash}: {outcome.value}")
    finally:
        await daemon.close()
    return 0


async def show_block_status(settings: Settings, args) -> int:
    daemon = CuratorDaemon(settings)
    try:
        worker = await daemon.connect_ledger()
        if worker is None:
            raise ConfigurationError(f"no tracked addresses in {settings.cardano_address_file}")
        status = await block_status(daemon.ledger, worker.cursors.values())
        print(json.dumps(status.to_dict(), indent=2))
    finally:
        await daemon.close()
    return 0


async def announce(settings: Settings, args) -> int:
    daemon = CuratorDaemon(settings)
    try:
        await daemon.wait_for_ipfs()
        payload = json.dumps({"name": args.name, "cid": args.cid}).encode()
        await daemon.ipfs.pubsub_publish(settings.wire_channel, payload)
        print(f"announced {args.name} ({args.cid}) on {settings.wire_channel}")
    finally:
        await daemon.close()
    return 0


# =============================================================================
# ENTRY POINT
# =============================================================================

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="dbranch-curator", description="dBranch article curator")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("daemon", help="Run the gossip and ledger curation loops")

    serve = commands.add_parser("serve", help="Run the read API")
    serve.add_argument("--host", default=None, help="Bind address (default: SERVER_HOST)")
    serve.add_argument("--port", type=int, default=None, help="Port (default: SERVER_PORT)")

    commands.add_parser("rebuild-index", help="Regenerate the article index from the store")

    remove = commands.add_parser("remove", help="Remove an article and its record")
    remove.add_argument("name")
    remove.add_argument(
        "--collection",
        choices=[c.value for c in ArticleCollection],
        default=ArticleCollection.CURATED.value,
    )

    add_tx = commands.add_parser("add-tx", help="Curate the publication record of one transaction")
    add_tx.add_argument("tx_hash")

    commands.add_parser("block-status", help="Compare the chain tip with the local cursors")

    announce_cmd = commands.add_parser("announce", help="Publish an article announcement on the wire")
    announce_cmd.add_argument("name")
    announce_cmd.add_argument("cid")

    return parser


ASYNC_COMMANDS = {
    "daemon": run_daemon,
    "rebuild-index": rebuild_index,
    "remove": remove_article,
    "add-tx": add_transaction,
    "block-status": show_block_status,
    "announce": announce,
}


def main(argv=None) -> int:
    load_dotenv()
    args = build_parser().parse_args(argv)

    try:
        settings = get_settings()
    except ValueError as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        return 1
    configure_logging(settings)

    try:
        if args.command == "serve":
            return run_server(settings, args)
        return asyncio.run(ASYNC_COMMANDS[args.command](settings, args))
    except (ConfigurationError, SetupError) as e:
        logger.error(f"❌ {e}")
        return 1
    except CuratorError as e:
        logger.error(f"❌ {args.command} failed: {e}")
        return 1
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    sys.exit(main())
