"""
Article domain models

An article lives in one of two collections of the IPFS mutable file system:
- curated: accepted from the gossip wire
- published: confirmed by a Cardano ledger transaction

Each article file `<name>` has a sidecar record `<name>.json` holding the
ArticleRecord. The index is a materialized view assembled from these records
and is never patched in place.
"""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional, List, Dict, Any

from curator.models.identifiers import ContentId
from curator.utils.datetime_utils import to_iso, parse_datetime

RECORD_SUFFIX = ".json"


def is_valid_article_name(name: str) -> bool:
    """
    Names become MFS path components, so they must not traverse. A name
    ending in RECORD_SUFFIX would land on another article's record.
    """
    if not name or name in (".", ".."):
        return False
    if "/" in name or "\\" in name:
        return False
    return not name.endswith(RECORD_SUFFIX)


class ArticleCollection(str, Enum):
    """The two lifecycle lists an article can belong to."""
    CURATED = "curated"
    PUBLISHED = "published"


@dataclass
class ArticleMetadata:
    """Author-supplied metadata, cached into the record for the index."""
    type: str = ""
    title: str = ""
    sub_title: str = ""
    author: str = ""

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "ArticleMetadata":
        if not isinstance(data, dict):
            return cls()
        # Editors have written both spellings
        sub_title = data.get("sub_title")
        if sub_title is None:
            sub_title = data.get("subTitle", "")
        return cls(
            type=str(data.get("type") or ""),
            title=str(data.get("title") or ""),
            sub_title=str(sub_title or ""),
            author=str(data.get("author") or ""),
        )

    def to_dict(self) -> dict:
        return {
            "type": self.type,
            "title": self.title,
            "sub_title": self.sub_title,
            "author": self.author,
        }


@dataclass
class ArticleRecord:
    """
    One curated or published article instance.

    Exactly one record exists per name per collection; adding a record with
    an existing name supersedes the previous one.
    """
    name: str
    cid: ContentId
    collection: ArticleCollection = ArticleCollection.CURATED
    size: int = 0
    date_added: Optional[datetime] = None       # when admitted locally (UTC)
    date_published: Optional[datetime] = None   # ledger block time (UTC)
    cardano_tx_hash: Optional[str] = None
    metadata: ArticleMetadata = field(default_factory=ArticleMetadata)

    def to_dict(self) -> dict:
        result = {
            "name": self.name,
            "cid": str(self.cid),
            "collection": self.collection.value,
            "size": self.size,
            "date_added": to_iso(self.date_added),
            "date_published": to_iso(self.date_published),
            "metadata": self.metadata.to_dict(),
        }
        if self.cardano_tx_hash:
            result["cardano_tx_hash"] = self.cardano_tx_hash
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ArticleRecord":
        """
        Build a record from a stored document.

        Raises:
            KeyError / ValueError: document is missing name or cid
        """
        name = data["name"]
        cid = data["cid"]
        if not name or not cid:
            raise ValueError("record requires name and cid")

        return cls(
            name=name,
            cid=ContentId(cid),
            collection=ArticleCollection(data.get("collection", ArticleCollection.CURATED.value)),
            size=int(data.get("size") or 0),
            date_added=parse_datetime(data.get("date_added")),
            date_published=parse_datetime(data.get("date_published")),
            cardano_tx_hash=data.get("cardano_tx_hash") or None,
            metadata=ArticleMetadata.from_dict(data.get("metadata")),
        )


def replace_record(records: List[ArticleRecord], record: ArticleRecord) -> List[ArticleRecord]:
    """
    Return a new list with `record` superseding any entry of the same name.

    Works on a snapshot of the input; the caller's list is not mutated.
    """
    snapshot = list(records)
    filtered = [r for r in snapshot if r.name != record.name]
    filtered.append(record)
    return filtered


@dataclass
class ArticleIndex:
    """
    Derived index of both collections.

    Not authoritative: the IPFS store is the source of truth and the index
    is always rebuilt from it as a complete snapshot.
    """
    curated: List[ArticleRecord] = field(default_factory=list)
    published: List[ArticleRecord] = field(default_factory=list)

    def records(self, collection: ArticleCollection) -> List[ArticleRecord]:
        if collection == ArticleCollection.PUBLISHED:
            return self.published
        return self.curated

    def find(self, name: str, collection: ArticleCollection) -> Optional[ArticleRecord]:
        for record in self.records(collection):
            if record.name == name:
                return record
        return None

    def find_by_cid(self, cid: str) -> Optional[ArticleRecord]:
        """Published entries win over curated ones for the same content."""
        for record in self.published + self.curated:
            if str(record.cid) == cid:
                return record
        return None

    def to_dict(self) -> dict:
        return {
            "curated": [r.to_dict() for r in self.curated],
            "published": [r.to_dict() for r in self.published],
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "ArticleIndex":
        if not data:
            return cls()
        return cls(
            curated=[ArticleRecord.from_dict(r) for r in data.get("curated") or []],
            published=[ArticleRecord.from_dict(r) for r in data.get("published") or []],
        )


@dataclass
class Article:
    """Article body plus its record, as served by the read API."""
    metadata: ArticleMetadata
    contents: Any = None
    record: Optional[ArticleRecord] = None

    @classmethod
    def from_body(cls, body: Dict[str, Any], record: Optional[ArticleRecord] = None) -> "Article":
        return cls(
            metadata=ArticleMetadata.from_dict(body.get("metadata")),
            contents=body.get("contents"),
            record=record,
        )

    def to_dict(self) -> dict:
        return {
            "metadata": self.metadata.to_dict(),
            "contents": self.contents,
            "record": self.record.to_dict() if self.record else None,
        }
