"""
Quote Poller - waits for the asynchronously produced quote.

Each conversation owns one poller. It runs at most one asyncio task at a time,
checks the status endpoint at a fixed interval, and reports the quote link
exactly once. Polling is open-ended: there is no backoff and no attempt cap.
"""
import asyncio
from typing import Awaitable, Callable, Optional, Union

from leadbot.core import logger, settings
from leadbot.core.errors import PollingError
from leadbot.services.document_store import DocumentStoreClient


ReadyCallback = Callable[[str], Union[None, Awaitable[None]]]


class QuotePoller:
    """Owned, cancellable polling task bound to a conversation's lifetime."""

    def __init__(self, document_store: DocumentStoreClient, interval: Optional[float] = None):
        self.document_store = document_store
        self.interval = interval if interval is not None else settings.POLL_INTERVAL_SECONDS
        self.attempts = 0
        self.delivered = False
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self, tracking_id: str, on_ready: ReadyCallback) -> bool:
        """
        Begin polling for `tracking_id`.

        Returns:
            False if a poll is already active or the quote was already delivered.
        """
        if self.running or self.delivered:
            return False
        logger.info(f"[{tracking_id}] polling for quote every {self.interval}s")
        self._task = asyncio.create_task(self._run(tracking_id, on_ready))
        return True

    async def stop(self) -> None:
        """Cancel the active poll, if any."""
        task, self._task = self._task, None
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def _run(self, tracking_id: str, on_ready: ReadyCallback) -> None:
        while True:
            await asyncio.sleep(self.interval)
            self.attempts += 1
            try:
                status = await self.document_store.quote_status(tracking_id)
            except PollingError as exc:
                logger.debug(f"[{tracking_id}] polling error (attempt {self.attempts}): {exc}")
                continue

            if not status.is_ready:
                logger.debug(f"[{tracking_id}] quote status '{status.status}' (attempt {self.attempts})")
                continue

            self.delivered = True
            result = on_ready(self.document_store.quote_url(status.path))
            if asyncio.iscoroutine(result):
                await result
            return
