"""
db-sync status endpoints

- GET /api/v0/db/meta       - db-sync meta row
- GET /api/v0/db/sync       - how far db-sync lags the chain
- GET /api/v0/db/block      - chain tip vs. the curator's cursors
- GET /api/v0/db/overview   - all of the above
"""
import logging
from typing import Dict

from fastapi import APIRouter, Depends, HTTPException

from curator.api.dependencies import get_cursors, get_ledger
from curator.errors import ConfigurationError, LedgerUnavailableError
from curator.repositories.ledger_repository import LedgerRepository
from curator.services.checkpoint import SyncCursor
from curator.workers.ledger_worker import block_status

logger = logging.getLogger(__name__)

router = APIRouter()

INTERNAL_ERROR = "internal server error"


async def _meta_document(ledger: LedgerRepository) -> dict:
    meta = await ledger.meta()
    return meta.to_dict() if meta is not None else {}


@router.get("/db/meta")
async def db_meta(ledger: LedgerRepository = Depends(get_ledger)):
    try:
        return await _meta_document(ledger)
    except LedgerUnavailableError as e:
        logger.error(f"db meta failed: {e}")
        raise HTTPException(status_code=500, detail=INTERNAL_ERROR)


@router.get("/db/sync")
async def db_sync(ledger: LedgerRepository = Depends(get_ledger)):
    try:
        status = await ledger.sync_status()
    except LedgerUnavailableError as e:
        logger.error(f"db sync status failed: {e}")
        raise HTTPException(status_code=500, detail=INTERNAL_ERROR)
    return status.to_dict()


@router.get("/db/block")
async def db_block(
    ledger: LedgerRepository = Depends(get_ledger),
    cursors: Dict[str, SyncCursor] = Depends(get_cursors),
):
    try:
        status = await block_status(ledger, cursors.values())
    except (LedgerUnavailableError, ConfigurationError) as e:
        logger.error(f"db block status failed: {e}")
        raise HTTPException(status_code=500, detail=INTERNAL_ERROR)
    return status.to_dict()


@router.get("/db/overview")
async def db_overview(
    ledger: LedgerRepository = Depends(get_ledger),
    cursors: Dict[str, SyncCursor] = Depends(get_cursors),
):
    try:
        meta = await _meta_document(ledger)
        sync = await ledger.sync_status()
        block = await block_status(ledger, cursors.values())
    except (LedgerUnavailableError, ConfigurationError) as e:
        logger.error(f"db overview failed: {e}")
        raise HTTPException(status_code=500, detail=INTERNAL_ERROR)

    return {
        "meta": meta,
        "sync": sync.to_dict(),
        "block": block.to_dict(),
    }
