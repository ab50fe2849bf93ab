"""
In-process background queue for complaint processing.
Keeps webhook responses fast by running classification and the sheet append
after the response has been sent.
"""

import asyncio
import logging
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Deque, Optional

logger = logging.getLogger(__name__)

ProcessFunction = Callable[..., Awaitable[Any]]


@dataclass
class QueuedItem:
    process: ProcessFunction
    args: tuple
    enqueued_at: float = field(default_factory=time.monotonic)


class MessageQueue:
    """FIFO drained by a single asyncio task; the oldest item is dropped when full."""

    def __init__(self, max_size: int = 100):
        self.max_size = max_size
        self._queue: Deque[QueuedItem] = deque()
        self._worker: Optional[asyncio.Task] = None
        self.successfully_processed = 0
        self.processing_errors = 0
        self.dropped = 0

    @property
    def processing(self) -> bool:
        return self._worker is not None and not self._worker.done()

    def enqueue(self, process: ProcessFunction, *args: Any) -> None:
        """
        Queue a coroutine function for background execution.

        Must be called from within the running event loop.

        Args:
            process: Async function to run
            *args: Arguments passed to the function
        """
        if len(self._queue) >= self.max_size:
            logger.warning(f"Message queue full ({self.max_size} items), dropping oldest message")
            self._queue.popleft()
            self.dropped += 1

        self._queue.append(QueuedItem(process=process, args=args))
        logger.info(f"Message queued for background processing (queue size: {len(self._queue)})")

        if not self.processing:
            self._worker = asyncio.get_running_loop().create_task(self._drain())

    async def _drain(self) -> None:
        while self._queue:
            item = self._queue.popleft()
            waited_ms = int((time.monotonic() - item.enqueued_at) * 1000)
            logger.debug(f"Processing queued message (waited {waited_ms}ms in queue)")

            try:
                await item.process(*item.args)
                self.successfully_processed += 1
            except Exception as e:
                # Failed items are not re-queued
                self.processing_errors += 1
                logger.exception(f"Error in background processing: {e}")

        logger.debug("Background processing queue empty")

    async def join(self) -> None:
        """Wait until the queue is drained."""
        while self.processing:
            await asyncio.shield(self._worker)

    async def shutdown(self, timeout: float = 10.0) -> None:
        """Give pending items a bounded amount of time to finish."""
        if not self.processing:
            return
        try:
            await asyncio.wait_for(self.join(), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Queue shutdown timed out with {len(self._queue)} items pending")
            self._worker.cancel()

    def clear(self) -> int:
        cleared = len(self._queue)
        self._queue.clear()
        logger.info(f"Cleared {cleared} messages from queue")
        return cleared

    def stats(self) -> dict:
        return {
            "queue_length": len(self._queue),
            "is_processing": self.processing,
            "successfully_processed": self.successfully_processed,
            "processing_errors": self.processing_errors,
            "dropped": self.dropped,
        }
