"""
IpfsClient - async client for the kubo (go-ipfs) HTTP RPC API.

Covers the subset the curator needs:
- mutable file system (files/stat, cp, rm, ls, read, write, mkdir)
- pinning (pin/add)
- pubsub (pubsub/sub streaming, pubsub/pub)

Every RPC call is a POST to /api/v0/<command>. Errors come back as HTTP 500
with a JSON body {"Message": ..., "Code": ..., "Type": "error"}; they are
mapped onto the curator error taxonomy so callers can tell "does not exist"
apart from "node unreachable".

Usage:
    client = IpfsClient("http://localhost:5001/api/v0")
    stat = await client.files_stat("/dBranch/curated/intro.news")
    async for msg in client.pubsub_subscribe("dbranch-wire"):
        ...
"""
import base64
import json
import logging
from dataclasses import dataclass
from typing import Optional, List, AsyncIterator, Tuple

import httpx

from curator.errors import IpfsError, IpfsNotFoundError, IpfsUnavailableError, IpfsTimeoutError
from curator.models.identifiers import PeerId

logger = logging.getLogger(__name__)

NOT_FOUND_MESSAGES = (
    "file does not exist",
    "no link named",
    "not found",
)


@dataclass
class FileStat:
    """Result of files/stat."""
    hash: str
    size: int
    cumulative_size: int = 0
    type: str = "file"


@dataclass
class FileEntry:
    """One entry of files/ls (long listing)."""
    name: str
    hash: str
    size: int
    type: int = 0   # 0 = file, 1 = directory


@dataclass
class PubSubMessage:
    """Message received on a pubsub topic."""
    sender: PeerId
    data: bytes
    seqno: str = ""
    topics: Tuple[str, ...] = ()


def multibase_encode(raw: bytes) -> str:
    """Encode as multibase base64url (prefix 'u', no padding)."""
    return "u" + base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


def multibase_decode(value: str) -> bytes:
    """
    Decode a multibase base64url value.

    Nodes older than kubo 0.11 send plain base64 without a prefix.
    """
    if not value:
        return b""
    if value[0] == "u":
        body = value[1:]
        return base64.urlsafe_b64decode(body + "=" * (-len(body) % 4))
    return base64.b64decode(value + "=" * (-len(value) % 4))


class IpfsClient:
    """
    Kubo RPC client.

    One httpx.AsyncClient is shared by all calls; pass `transport` to run
    against a mock in tests.
    """

    def __init__(
        self,
        api_url: str = "http://localhost:5001/api/v0",
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout
        self.http = httpx.AsyncClient(
            base_url=self.api_url,
            timeout=httpx.Timeout(timeout),
            transport=transport,
        )

    async def close(self):
        """Close the HTTP client."""
        await self.http.aclose()

    # =========================================================================
    # TRANSPORT
    # =========================================================================

    async def _post(self, command: str, params=None, files=None) -> httpx.Response:
        try:
            response = await self.http.post(f"/{command}", params=params, files=files)
        except httpx.TimeoutException as e:
            raise IpfsTimeoutError(f"{command}: timed out after {self.timeout}s") from e
        except httpx.TransportError as e:
            raise IpfsUnavailableError(f"{command}: {e}") from e

        if response.status_code >= 400:
            raise self._error_for(command, response)
        return response

    @staticmethod
    def _error_for(command: str, response: httpx.Response) -> IpfsError:
        message = response.text
        try:
            message = response.json().get("Message", message)
        except (json.JSONDecodeError, AttributeError):
            pass

        text = f"{command}: {message}"
        if any(m in message.lower() for m in NOT_FOUND_MESSAGES):
            return IpfsNotFoundError(text)
        if response.status_code in (502, 503, 504):
            return IpfsUnavailableError(text)
        return IpfsError(text)

    async def _post_json(self, command: str, params=None, files=None) -> dict:
        response = await self._post(command, params=params, files=files)
        if not response.content:
            return {}
        return response.json()

    # =========================================================================
    # NODE
    # =========================================================================

    async def is_up(self) -> bool:
        """True when the node answers the id command."""
        try:
            await self._post("id")
            return True
        except IpfsError as e:
            logger.debug(f"IPFS not up: {e}")
            return False

    # =========================================================================
    # MUTABLE FILE SYSTEM
    # =========================================================================

    async def files_stat(self, path: str) -> FileStat:
        data = await self._post_json("files/stat", params={"arg": path})
        return FileStat(
            hash=data.get("Hash", ""),
            size=int(data.get("Size", 0)),
            cumulative_size=int(data.get("CumulativeSize", 0)),
            type=data.get("Type", "file"),
        )

    async def files_cp(self, source: str, dest: str):
        """Link `source` (e.g. /ipfs/<cid>) into the MFS at `dest`."""
        await self._post("files/cp", params=[("arg", source), ("arg", dest), ("parents", "true")])

    async def files_rm(self, path: str, recursive: bool = True):
        await self._post("files/rm", params={"arg": path, "recursive": str(recursive).lower()})

    async def files_ls(self, path: str) -> List[FileEntry]:
        data = await self._post_json("files/ls", params={"arg": path, "long": "true"})
        return [
            FileEntry(
                name=entry.get("Name", ""),
                hash=entry.get("Hash", ""),
                size=int(entry.get("Size", 0)),
                type=int(entry.get("Type", 0)),
            )
            for entry in data.get("Entries") or []
        ]

    async def files_read(self, path: str) -> bytes:
        response = await self._post("files/read", params={"arg": path})
        return response.content

    async def files_write(self, path: str, content: bytes):
        """Write `content` to `path`, creating it and truncating any previous content."""
        await self._post(
            "files/write",
            params={"arg": path, "create": "true", "truncate": "true", "parents": "true"},
            files={"file": ("data", content, "application/octet-stream")},
        )

    async def files_mkdir(self, path: str):
        await self._post("files/mkdir", params={"arg": path, "parents": "true"})

    # =========================================================================
    # PINNING
    # =========================================================================

    async def pin_add(self, cid: str) -> List[str]:
        """Pin the full DAG under `cid` recursively."""
        data = await self._post_json("pin/add", params={"arg": cid, "recursive": "true"})
        return data.get("Pins") or []

    # =========================================================================
    # PUBSUB
    # =========================================================================

    async def pubsub_publish(self, topic: str, data: bytes):
        await self._post(
            "pubsub/pub",
            params={"arg": multibase_encode(topic.encode())},
            files={"file": ("data", data, "application/octet-stream")},
        )

    async def pubsub_subscribe(self, topic: str) -> AsyncIterator[PubSubMessage]:
        """
        Stream messages published on `topic`.

        The iterator ends only when the node closes the stream; transport
        failures raise IpfsUnavailableError so the caller can resubscribe.
        """
        params = {"arg": multibase_encode(topic.encode())}
        # No read timeout: the stream idles until someone publishes
        timeout = httpx.Timeout(self.timeout, read=None)

        try:
            async with self.http.stream("POST", "/pubsub/sub", params=params, timeout=timeout) as response:
                if response.status_code >= 400:
                    await response.aread()
                    raise self._error_for("pubsub/sub", response)

                async for line in response.aiter_lines():
                    if not line.strip():
                        continue
                    message = self._parse_pubsub_line(line)
                    if message is not None:
                        yield message
        except httpx.TransportError as e:
            raise IpfsUnavailableError(f"pubsub/sub: {e}") from e

    @staticmethod
    def _parse_pubsub_line(line: str) -> Optional[PubSubMessage]:
        try:
            raw = json.loads(line)
            return PubSubMessage(
                sender=PeerId(raw.get("from", "")),
                data=multibase_decode(raw.get("data", "")),
                seqno=raw.get("seqno", ""),
                topics=tuple(raw.get("topicIDs") or ()),
            )
        except (json.JSONDecodeError, ValueError, AttributeError) as e:
            logger.warning(f"Dropping unparseable pubsub frame: {e}")
            return None
