"""
Gossip wire announcement

Payload on the wire channel:
    {"name": "<article filename>", "cid": "<content address>"}

The channel also carries non-article traffic (liveness pings, other
clients), so a payload that is not JSON or does not match this shape is
not an error: decode_announcement returns None and the caller moves on.
"""
import logging
from dataclasses import dataclass
from typing import Optional

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from curator.models.article import is_valid_article_name
from curator.models.identifiers import ContentId, PeerId

logger = logging.getLogger(__name__)


class AnnouncementPayload(BaseModel):
    """Schema of a wire message."""
    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)

    name: str
    cid: str

    @field_validator("name")
    @classmethod
    def plain_file_name(cls, v: str) -> str:
        """Name becomes an MFS path component, so it cannot traverse."""
        if not is_valid_article_name(v):
            raise ValueError(f"invalid article name: {v!r}")
        return v

    @field_validator("cid")
    @classmethod
    def non_empty_cid(cls, v: str) -> str:
        if not v or "/" in v:
            raise ValueError(f"invalid cid: {v!r}")
        return v


@dataclass(frozen=True)
class IncomingAnnouncement:
    """Decoded announcement paired with the sender reported by the transport."""
    name: str
    cid: ContentId
    sender: PeerId


def decode_announcement(data: bytes, sender: PeerId) -> Optional[IncomingAnnouncement]:
    """
    Decode a wire message payload.

    Returns:
        IncomingAnnouncement, or None for non-JSON / schema-mismatched data
    """
    try:
        payload = AnnouncementPayload.model_validate_json(data)
    except ValidationError as e:
        logger.info(f"Ignoring non-article message from {sender}: {e.error_count()} validation error(s)")
        logger.debug(f"Raw message: {data!r}")
        return None

    return IncomingAnnouncement(name=payload.name, cid=ContentId(payload.cid), sender=sender)
