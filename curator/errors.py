"""
Curator error taxonomy

- Setup/configuration errors are fatal and surface before the loops start.
- IPFS errors split into not-found (permanent for the item) and unavailable
  (transient, retried at the next natural retry point).
- Everything else is per-item and handled inside the owning worker.
"""


class CuratorError(Exception):
    """Base class for all curator errors."""


class ConfigurationError(CuratorError):
    """Invalid or missing configuration (peer list, checkpoint, addresses)."""


class SetupError(CuratorError):
    """A required backend could not be reached or prepared at startup."""


class IpfsError(CuratorError):
    """Error returned by the IPFS RPC API."""


class IpfsNotFoundError(IpfsError):
    """Path or object does not exist."""


class IpfsUnavailableError(IpfsError):
    """IPFS node unreachable."""


class IpfsTimeoutError(IpfsUnavailableError):
    """IPFS request timed out (node reachable but slow, or content not found on the network)."""


class ContentUnavailableError(CuratorError):
    """Content id could not be resolved to bytes from any peer."""


class InvalidLocationError(CuratorError):
    """Ledger record location does not reference a content address."""


class LedgerUnavailableError(CuratorError):
    """Ledger database unreachable or query failed."""


class ArticleNotFoundError(CuratorError):
    """Article is not present in the requested collection."""


class InvalidArticleNameError(CuratorError):
    """Name cannot be stored as an article in the collection directory."""
