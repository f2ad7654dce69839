"""
dBranch Curator
===============

Curates news articles announced over the IPFS gossip wire and published
through Cardano ledger transactions, keeping them pinned in the local
IPFS node and maintaining the derived article index that readers query.
"""

__version__ = "0.3.0"
