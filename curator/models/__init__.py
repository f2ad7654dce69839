"""
Domain Models - Storage-agnostic data structures

- Article records and the derived index (models.article)
- Gossip wire announcements (models.announcement)
- Ledger publication records and db-sync status (models.ledger)
- Peer / content identifier value types (models.identifiers)
"""

from .identifiers import PeerId, ContentId
from .article import (
    ArticleCollection,
    ArticleMetadata,
    ArticleRecord,
    ArticleIndex,
    Article,
    replace_record,
)
from .announcement import AnnouncementPayload, IncomingAnnouncement, decode_announcement
from .ledger import LedgerRecord, DBMeta, DBSyncStatus, DBBlockStatus

__all__ = [
    'PeerId',
    'ContentId',
    'ArticleCollection',
    'ArticleMetadata',
    'ArticleRecord',
    'ArticleIndex',
    'Article',
    'replace_record',
    'AnnouncementPayload',
    'IncomingAnnouncement',
    'decode_announcement',
    'LedgerRecord',
    'DBMeta',
    'DBSyncStatus',
    'DBBlockStatus',
]
