"""
Long-running curator loops

- GossipWorker: gossip wire subscription -> curated collection
- LedgerSyncWorker: db-sync polling -> published collection
"""
from .worker_base import BaseWorker
from .gossip_worker import GossipWorker, MessageState
from .ledger_worker import LedgerSyncWorker, block_status

__all__ = ['BaseWorker', 'GossipWorker', 'MessageState', 'LedgerSyncWorker', 'block_status']
