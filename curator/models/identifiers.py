"""
Identifier value types

Peer ids and content ids both arrive as plain strings from the IPFS node.
Wrapping them keeps the two domains apart: a PeerId never equals a
ContentId, even when the underlying text is the same.
"""
from dataclasses import dataclass

from curator.errors import InvalidLocationError

IPFS_SCHEME = "ipfs://"


@dataclass(frozen=True)
class PeerId:
    """libp2p peer identity of a gossip sender."""
    value: str

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class ContentId:
    """Content address (CID) of immutable article bytes."""
    value: str

    def __str__(self) -> str:
        return self.value

    @property
    def ipfs_path(self) -> str:
        return f"/ipfs/{self.value}"

    @classmethod
    def from_location(cls, location: str) -> "ContentId":
        """
        Derive the content id from a ledger location (ipfs://<cid>).

        Raises:
            InvalidLocationError: scheme is not ipfs:// or the cid is empty
        """
        if not location or not location.startswith(IPFS_SCHEME):
            raise InvalidLocationError(f"invalid location: {location}")

        cid = location[len(IPFS_SCHEME):].strip().strip("/")
        if not cid or "/" in cid:
            raise InvalidLocationError(f"invalid location: {location}")

        return cls(cid)
