"""
Feedback Notifier
==================

Reports failed recipients to an external observer, off the dispatch path.

Modes (checked in order):
  - ``core_sync``          -- append the entry to ``PushRequest.logs`` inline.
  - ``core_feedback_url``  -- post the entry as JSON on the notifier's own
                              event loop, bounded by ``core_feedback_timeout``.
  - neither                -- nothing beyond the access log record.

Webhook delivery is best-effort: errors and timeouts are logged here and
never reach the dispatch caller or influence retries.
"""

from __future__ import annotations

import asyncio
import atexit
import logging
from concurrent.futures import Future, wait as wait_futures
from threading import Lock, Thread
from typing import Awaitable, Callable

import httpx

from pushrelay.core.exceptions import FeedbackError
from pushrelay.schemas.push import LogPushEntry, PushRequest

logger = logging.getLogger(__name__)

FeedbackSender = Callable[[LogPushEntry, str, float], Awaitable[None]]


async def dispatch_feedback(entry: LogPushEntry, url: str, timeout: float) -> None:
    """POST one outcome record to the feedback endpoint.

    Raises:
        FeedbackError: On a non-2xx response.
        httpx.HTTPError: On connection errors and timeouts.
    """
    async with httpx.AsyncClient(timeout=timeout) as client:
        response = await client.post(url, json=entry.model_dump(mode="json"))

    if not response.is_success:
        raise FeedbackError(
            f"Feedback endpoint returned HTTP {response.status_code}",
            status_code=response.status_code,
        )


class FeedbackNotifier:
    """Routes failure records to the audit log or the feedback webhook.

    Webhook deliveries run on an event loop owned by the notifier, in a
    daemon thread started on first use, so they outlive the loop of the
    caller that triggered them. ``shutdown`` is registered with ``atexit``
    and gives outstanding deliveries ``timeout`` seconds to finish.
    """

    def __init__(
        self,
        sync: bool = False,
        feedback_url: str = "",
        timeout: float = 10,
        sender: FeedbackSender = dispatch_feedback,
    ) -> None:
        self.sync = sync
        self.feedback_url = feedback_url
        self.timeout = timeout
        self._sender = sender
        self._lock = Lock()
        self._loop: asyncio.AbstractEventLoop | None = None
        self._thread: Thread | None = None
        self._futures: set[Future[None]] = set()

    @property
    def pending(self) -> int:
        with self._lock:
            return len(self._futures)

    def notify(self, req: PushRequest, entry: LogPushEntry) -> None:
        """Report one failed recipient."""
        if self.sync:
            req.add_log(entry)
            return

        if not self.feedback_url:
            return

        future = asyncio.run_coroutine_threadsafe(self._deliver(entry), self._ensure_loop())
        with self._lock:
            self._futures.add(future)
        future.add_done_callback(self._discard)

    def _ensure_loop(self) -> asyncio.AbstractEventLoop:
        with self._lock:
            if self._loop is None:
                self._loop = asyncio.new_event_loop()
                self._thread = Thread(
                    target=self._loop.run_forever,
                    name="pushrelay-feedback",
                    daemon=True,
                )
                self._thread.start()
                atexit.register(self.shutdown)
            return self._loop

    def _discard(self, future: Future[None]) -> None:
        with self._lock:
            self._futures.discard(future)

    async def _deliver(self, entry: LogPushEntry) -> None:
        try:
            await asyncio.wait_for(
                self._sender(entry, self.feedback_url, self.timeout),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            logger.error(
                "Feedback delivery to %s timed out after %ss",
                self.feedback_url,
                self.timeout,
            )
        except Exception as exc:
            logger.error("Feedback delivery to %s failed: %s", self.feedback_url, exc)

    def wait(self, timeout: float | None = None) -> bool:
        """Block until outstanding deliveries finish. False if some are still running."""
        with self._lock:
            futures = list(self._futures)
        if not futures:
            return True
        _, not_done = wait_futures(futures, timeout=timeout)
        return not not_done

    async def drain(self) -> None:
        """Wait for all outstanding deliveries from inside a running loop."""
        while self.pending:
            with self._lock:
                futures = [asyncio.wrap_future(f) for f in self._futures]
            await asyncio.gather(*futures, return_exceptions=True)

    def shutdown(self) -> None:
        """Flush outstanding deliveries and stop the background loop."""
        with self._lock:
            loop, thread = self._loop, self._thread
            self._loop = self._thread = None
        if loop is None:
            return

        # Each delivery is already bounded by ``timeout``; allow a little slack.
        if not self.wait(self.timeout + 1):
            logger.warning("Dropping %d unfinished feedback deliveries", self.pending)
        loop.call_soon_threadsafe(loop.stop)
        atexit.unregister(self.shutdown)
        if thread is not None:
            thread.join(timeout=self.timeout)
            if thread.is_alive():
                return
        loop.close()
