"""
Repository Pattern - Storage abstraction layer

Repositories hide storage details from business logic. The curator reads
one external database: cardano db-sync (PostgreSQL), for article
publication records and chain status.
"""
from .ledger_repository import (
    LedgerRepository,
    RecordFilter,
    address_filter,
    tx_hash_filter,
    since_block_filter,
)

__all__ = [
    'LedgerRepository',
    'RecordFilter',
    'address_filter',
    'tx_hash_filter',
    'since_block_filter',
]
