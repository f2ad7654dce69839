"""
Ledger (Cardano db-sync) record models

A publication record is a transaction carrying metadata label 451 with
`name` and `loc` keys. The curator only consumes these; it never writes to
the ledger.
"""
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from curator.models.identifiers import ContentId
from curator.utils.datetime_utils import to_iso


@dataclass
class LedgerRecord:
    """Article publication record read from db-sync."""
    name: str
    location: str
    address: str
    tx_id: int
    tx_hash: str            # hex encoded
    block_number: int
    date_published: datetime

    def content_id(self) -> ContentId:
        """
        Raises:
            InvalidLocationError: location is not an ipfs:// reference
        """
        return ContentId.from_location(self.location)


@dataclass
class DBMeta:
    """Single row of the db-sync `meta` table."""
    id: int
    start_time: datetime
    network_name: str
    version: str

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "start_time": to_iso(self.start_time),
            "network_name": self.network_name,
            "version": self.version,
        }


@dataclass
class DBSyncStatus:
    """How far db-sync is behind the chain tip, by wall clock."""
    percent: Optional[float]
    last_block_time: Optional[datetime]
    seconds_behind: Optional[float]

    @property
    def time_behind(self) -> Optional[str]:
        if self.seconds_behind is None:
            return None
        return str(timedelta(seconds=int(self.seconds_behind)))

    def to_dict(self) -> dict:
        return {
            "percent": self.percent,
            "last_block_time": to_iso(self.last_block_time),
            "seconds_behind": self.seconds_behind,
            "time_behind": self.time_behind,
        }


@dataclass
class DBBlockStatus:
    """Chain tip versus the curator's own sync cursors."""
    last_chain_block_number: int
    last_daemon_block_number: int

    @property
    def difference(self) -> int:
        return self.last_chain_block_number - self.last_daemon_block_number

    def to_dict(self) -> dict:
        return {
            "last_chain_block_number": self.last_chain_block_number,
            "last_daemon_block_number": self.last_daemon_block_number,
            "difference": self.difference,
        }
