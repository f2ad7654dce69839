"""
dBranch Curator - FastAPI read API

Serves the article index and articles straight from the local IPFS node,
plus db-sync status when ledger access is configured.

Services can be passed in (tests); anything missing is created from
Settings in the lifespan and closed on shutdown.
"""
import logging
from contextlib import asynccontextmanager
from typing import Dict, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from curator import __version__
from curator.api import articles, ledger
from curator.config.database import PostgresConfig, create_postgres_pool
from curator.config.settings import Settings, get_settings
from curator.daemon import load_tracked_addresses
from curator.errors import SetupError
from curator.repositories.ledger_repository import LedgerRepository
from curator.services.checkpoint import SyncCursor
from curator.services.content_store import ContentStore
from curator.services.index_builder import IndexBuilder
from curator.services.ipfs_client import IpfsClient

logger = logging.getLogger(__name__)

API_PREFIX = "/api/v0"


async def _open_services(app: FastAPI, settings: Settings):
    """Create whatever create_app() was not given. Returns resources to close."""
    opened = []
    state = app.state

    if state.store is None:
        ipfs = IpfsClient(settings.ipfs_api_url, timeout=settings.ipfs_timeout)
        opened.append(ipfs)
        state.store = ContentStore(
            ipfs,
            curated_dir=settings.curated_dir,
            published_dir=settings.published_dir,
            extensions=settings.article_extensions,
        )
    if state.index_builder is None:
        state.index_builder = IndexBuilder(state.store, settings.index_path)

    if state.ledger is None:
        addresses = load_tracked_addresses(settings.cardano_address_file)
        if addresses:
            try:
                pool = await create_postgres_pool(
                    PostgresConfig.from_settings(settings),
                    attempts=settings.startup_attempts,
                    retry_delay=settings.startup_retry_delay,
                )
            except SetupError as e:
                logger.warning(f"⚠️  db endpoints not available: {e}")
            else:
                opened.append(pool)
                state.ledger = LedgerRepository(pool)
                state.cursors = {a: SyncCursor(settings.state_path, a) for a in addresses}

    return opened


def create_app(
    settings: Optional[Settings] = None,
    store: Optional[ContentStore] = None,
    index_builder: Optional[IndexBuilder] = None,
    ledger_repository: Optional[LedgerRepository] = None,
    cursors: Optional[Dict[str, SyncCursor]] = None,
) -> FastAPI:
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        opened = await _open_services(app, settings)
        try:
            yield
        finally:
            for resource in opened:
                await resource.close()

    app = FastAPI(
        title="dBranch Curator",
        description="Curated and published dBranch articles served from IPFS",
        version=__version__,
        lifespan=lifespan,
    )

    app.state.store = store
    app.state.index_builder = index_builder or (IndexBuilder(store, settings.index_path) if store else None)
    app.state.ledger = ledger_repository
    app.state.cursors = cursors or {}

    # Enable CORS for the dBranch web reader
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET"],
        allow_headers=["Origin", "Content-Type", "Accept"],
    )

    @app.exception_handler(StarletteHTTPException)
    async def error_body(request, exc: StarletteHTTPException):
        return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})

    app.include_router(articles.router, prefix=API_PREFIX, tags=["Articles"])
    app.include_router(ledger.router, prefix=API_PREFIX, tags=["Ledger"])

    @app.get("/health")
    async def health():
        return {"status": "ok", "service": "dbranch-curator"}

    return app
