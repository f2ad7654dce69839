"""
Base worker class for the curator loops

Both loops are logically single-threaded consumers:
- start(): run the loop until stop() or task cancellation
- stop(): checked at every suspension point (receive, poll, sleep)
- sleep(): interval wait that wakes up immediately on stop()

Signal handling lives in the daemon, which owns several workers per process.
"""
import asyncio
import logging

logger = logging.getLogger(__name__)


class BaseWorker:
    """
    Base class for curator workers

    Subclasses implement run_loop() and check `self.running` before each
    blocking call.
    """

    def __init__(self, worker_name: str):
        self.worker_name = worker_name
        self.running = False
        self.stop_event = asyncio.Event()
        self.jobs_processed = 0
        self.jobs_failed = 0

    async def start(self):
        """Run the worker loop, logging a summary when it unwinds."""
        self.running = True
        self.stop_event.clear()
        logger.info(f"[{self.worker_name}] Started")

        try:
            await self.run_loop()
        except asyncio.CancelledError:
            logger.info(f"[{self.worker_name}] Received cancellation signal")
            raise
        finally:
            self.running = False
            logger.info(
                f"[{self.worker_name}] Shutting down. "
                f"Processed: {self.jobs_processed}, Failed: {self.jobs_failed}"
            )

    def stop(self):
        """Ask the loop to finish at its next suspension point."""
        self.running = False
        self.stop_event.set()

    async def sleep(self, seconds: float) -> bool:
        """
        Wait `seconds` unless stopped first.

        Returns:
            True if the worker was stopped during the wait
        """
        try:
            await asyncio.wait_for(self.stop_event.wait(), timeout=seconds)
            return True
        except asyncio.TimeoutError:
            return False

    async def run_loop(self):
        """Override in subclass - the worker's main loop"""
        raise NotImplementedError(f"{self.__class__.__name__} must implement run_loop()")
