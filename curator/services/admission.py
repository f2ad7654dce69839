"""
AdmissionPolicy - which gossip peers may contribute articles.

Allow-list document:
    {"allowed_peers": ["12D3KooW...", ...]}

An empty list means every peer is allowed (open admission). Running with
open admission is an operator decision: validate_for_startup refuses an
empty list unless allow_empty_peer_list is set.
"""
import json
import logging
from pathlib import Path
from typing import Iterable, FrozenSet, Union

from curator.errors import ConfigurationError
from curator.models.identifiers import PeerId

logger = logging.getLogger(__name__)


class PeerAllowList:
    """Set of peer ids authorized to submit articles over the wire."""

    def __init__(self, allowed_peers: Iterable[str] = ()):
        self.allowed_peers: FrozenSet[str] = frozenset(p for p in allowed_peers if p)

    def __len__(self) -> int:
        return len(self.allowed_peers)

    @property
    def is_open(self) -> bool:
        """Empty list is the allow-all sentinel."""
        return not self.allowed_peers

    def is_allowed(self, peer_id: Union[PeerId, str]) -> bool:
        """Exact, case-sensitive membership; always True for an open list."""
        if self.is_open:
            return True
        return str(peer_id) in self.allowed_peers


def load_peer_allow_list(path: Union[str, Path]) -> PeerAllowList:
    """
    Load the allow-list document.

    A missing file yields an empty (open) list; startup validation decides
    whether that is acceptable.

    Raises:
        ConfigurationError: file exists but is not a valid allow-list document
    """
    path = Path(path)
    if not path.exists():
        logger.warning(f"Peer allow list not found: {path}")
        return PeerAllowList()

    try:
        data = json.loads(path.read_text())
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigurationError(f"cannot read peer allow list {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigurationError(f"peer allow list {path} must be a JSON object")

    peers = data.get("allowed_peers") or []
    if not isinstance(peers, list) or not all(isinstance(p, str) for p in peers):
        raise ConfigurationError(f"allowed_peers in {path} must be a list of peer ids")

    allow_list = PeerAllowList(peers)
    logger.info(f"Loaded {len(allow_list)} allowed peer(s) from: {path}")
    return allow_list


def validate_for_startup(allow_list: PeerAllowList, allow_empty: bool):
    """
    Raises:
        ConfigurationError: list is empty and open admission was not enabled
    """
    logger.info(f"Allow empty peer list: {allow_empty}, num peers: {len(allow_list)}")
    if allow_list.is_open and not allow_empty:
        raise ConfigurationError(
            "empty peer list is not allowed, set ALLOW_EMPTY_PEER_LIST=true or add peers"
        )
    if allow_list.is_open:
        logger.warning("Open admission: articles from every peer will be curated")
