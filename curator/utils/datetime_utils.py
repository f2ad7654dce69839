"""
Datetime utility functions for record and index documents

All timestamps written by the curator are UTC and serialized as ISO-8601.
"""
from datetime import datetime, timezone
from typing import Optional, Any
import logging

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """
    Normalize a datetime to aware UTC.

    db-sync returns naive timestamps that are already UTC, so naive values
    are tagged rather than converted.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def to_iso(value: Optional[datetime]) -> Optional[str]:
    """Serialize to ISO-8601 with a Z suffix, or None."""
    value = ensure_utc(value)
    if value is None:
        return None
    return value.isoformat().replace('+00:00', 'Z')


def parse_datetime(value: Any) -> Optional[datetime]:
    """
    Parse a timestamp from a record document

    Handles:
    - None / empty string -> None
    - Python datetime -> normalized to UTC
    - ISO string (with Z or offset) -> aware UTC datetime
    - Other -> None with warning
    """
    if value is None or value == "":
        return None

    if isinstance(value, datetime):
        return ensure_utc(value)

    if isinstance(value, str):
        try:
            return ensure_utc(datetime.fromisoformat(value.replace('Z', '+00:00')))
        except ValueError as e:
            logger.warning(f"Failed to parse datetime string '{value}': {e}")
            return None

    logger.warning(f"Cannot convert {type(value)} to datetime: {value}")
    return None
