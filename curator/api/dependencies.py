"""
FastAPI dependencies - services are attached to app.state by create_app()
"""
from typing import Dict

from fastapi import HTTPException, Request

from curator.repositories.ledger_repository import LedgerRepository
from curator.services.checkpoint import SyncCursor
from curator.services.content_store import ContentStore
from curator.services.index_builder import IndexBuilder


def get_store(request: Request) -> ContentStore:
    return request.app.state.store


def get_index_builder(request: Request) -> IndexBuilder:
    return request.app.state.index_builder


def get_ledger(request: Request) -> LedgerRepository:
    """Ledger repository, or 503 when db-sync access is not configured."""
    ledger = request.app.state.ledger
    if ledger is None:
        raise HTTPException(status_code=503, detail="ledger access not configured")
    return ledger


def get_cursors(request: Request) -> Dict[str, SyncCursor]:
    return request.app.state.cursors
