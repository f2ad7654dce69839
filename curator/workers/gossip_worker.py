"""
Gossip Worker - curate articles announced on the IPFS pubsub wire

Per message:
    Received -> Decoded | Malformed -> Admitted | Denied -> Applied | Failed

None of the per-message outcomes stop the loop. The loop only leaves the
subscription when it breaks (node restart, network error, stream closed),
and then resubscribes with exponential backoff instead of exiting.
"""
import asyncio
import logging
from enum import Enum
from typing import Callable, AsyncIterator, Optional

from curator.errors import ContentUnavailableError, InvalidArticleNameError, IpfsError, IpfsUnavailableError
from curator.models.announcement import decode_announcement
from curator.models.article import ArticleCollection
from curator.services.admission import PeerAllowList
from curator.services.curation_writer import CurationWriter
from curator.services.ipfs_client import PubSubMessage
from curator.workers.worker_base import BaseWorker

logger = logging.getLogger(__name__)

Subscribe = Callable[[str], AsyncIterator[PubSubMessage]]


class MessageState(str, Enum):
    """Terminal state of one wire message."""
    MALFORMED = "malformed"
    DENIED = "denied"
    APPLIED = "applied"
    FAILED = "failed"


class GossipWorker(BaseWorker):
    """
    Consumes the wire channel and applies admitted announcements.

    Args:
        subscribe: topic -> async iterator of messages (IpfsClient.pubsub_subscribe)
        topic: wire channel name
        admission: peer allow list
        writer: single writer for store/index mutations
    """

    def __init__(
        self,
        subscribe: Subscribe,
        topic: str,
        admission: PeerAllowList,
        writer: CurationWriter,
        backoff_initial: float = 1.0,
        backoff_max: float = 60.0,
    ):
        super().__init__(worker_name="gossip")
        self.subscribe = subscribe
        self.topic = topic
        self.admission = admission
        self.writer = writer
        self.backoff_initial = backoff_initial
        self.backoff_max = backoff_max
        self.messages_denied = 0
        self.messages_malformed = 0
        self.subscriptions_opened = 0

    # =========================================================================
    # SUBSCRIPTION LOOP
    # =========================================================================

    async def run_loop(self):
        delay = self.backoff_initial

        while self.running:
            messages = self.subscribe(self.topic)
            self.subscriptions_opened += 1
            logger.info(f"[{self.worker_name}] Subscribed to wire channel: {self.topic}")

            try:
                while self.running:
                    message = await self._receive(messages)
                    if message is None:
                        break
                    await self.handle_message(message)
                    delay = self.backoff_initial

                if self.running:
                    logger.warning(f"[{self.worker_name}] Subscription to {self.topic} closed by node")
            except IpfsError as e:
                logger.error(f"[{self.worker_name}] Subscription error: {e}")
            except Exception as e:
                logger.error(f"[{self.worker_name}] Subscription loop error: {e}", exc_info=True)
            finally:
                await self._close(messages)

            if not self.running:
                break

            logger.info(f"[{self.worker_name}] Resubscribing in {delay:.1f}s")
            if await self.sleep(delay):
                break
            delay = min(delay * 2, self.backoff_max)

    async def _receive(self, messages: AsyncIterator[PubSubMessage]) -> Optional[PubSubMessage]:
        """
        Next message, or None when the stream ends or the worker is stopped.
        """
        next_message = asyncio.ensure_future(messages.__anext__())
        stopped = asyncio.ensure_future(self.stop_event.wait())
        try:
            done, _ = await asyncio.wait({next_message, stopped}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            next_message.cancel()
            stopped.cancel()
            raise

        if next_message in done:
            stopped.cancel()
            try:
                return next_message.result()
            except StopAsyncIteration:
                return None

        next_message.cancel()
        await asyncio.gather(next_message, return_exceptions=True)
        return None

    @staticmethod
    async def _close(messages: AsyncIterator[PubSubMessage]):
        aclose = getattr(messages, "aclose", None)
        if aclose is None:
            return
        try:
            await aclose()
        except (IpfsError, RuntimeError) as e:
            logger.debug(f"Error closing subscription: {e}")

    # =========================================================================
    # MESSAGE PROCESSING
    # =========================================================================

    async def handle_message(self, message: PubSubMessage) -> MessageState:
        """Decode, admit and apply one wire message. Never raises for bad input."""
        announcement = decode_announcement(message.data, message.sender)
        if announcement is None:
            self.messages_malformed += 1
            return MessageState.MALFORMED

        logger.info(
            f"[{self.worker_name}] Processing new article: {announcement.cid} "
            f"({announcement.name}) from peer: {announcement.sender}"
        )

        if not self.admission.is_allowed(announcement.sender):
            self.messages_denied += 1
            logger.info(f"[{self.worker_name}] Peer: {announcement.sender} is not in allowed peers list")
            return MessageState.DENIED

        try:
            await self.writer.add_or_replace(
                announcement.name, announcement.cid, ArticleCollection.CURATED
            )
            # Also repairs an index left behind by an earlier failed rebuild
            await self.writer.rebuild_if_pending()
        except InvalidArticleNameError as e:
            self.messages_malformed += 1
            logger.info(f"[{self.worker_name}] Ignoring announcement: {e}")
            return MessageState.MALFORMED
        except ContentUnavailableError as e:
            self.jobs_failed += 1
            logger.warning(f"[{self.worker_name}] Dropping {announcement.name}: {e}")
            return MessageState.FAILED
        except IpfsUnavailableError as e:
            self.jobs_failed += 1
            logger.error(f"[{self.worker_name}] IPFS unavailable adding {announcement.name}: {e}")
            return MessageState.FAILED
        except Exception as e:
            self.jobs_failed += 1
            logger.error(f"[{self.worker_name}] Error adding article to curated list: {e}", exc_info=True)
            return MessageState.FAILED

        self.jobs_processed += 1
        return MessageState.APPLIED
