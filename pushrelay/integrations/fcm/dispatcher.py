"""
Batch dispatcher -- one provider round trip per batch
======================================================

The blocking Firebase send calls run in a worker thread so the event loop
stays free. Two failure shapes are kept apart:

  - The send call itself raises: the provider rejected the whole batch. The
    outcome carries a ``TransportError`` and no per-recipient results.
  - The call returns: one result per token position, each either a message
    id or a ``RecipientError``. Topic sends produce a single result.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Sequence

from pushrelay.core.exceptions import RecipientError, TransportError
from pushrelay.integrations.fcm.batchBuilder import NotificationBatch
from pushrelay.integrations.fcm.clientCache import FCMClient

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------

@dataclass
class RecipientResult:
    """Result for one token position of a batch."""
    success: bool
    message_id: str | None = None
    error: RecipientError | None = None


@dataclass
class DispatchOutcome:
    """Aggregate result of sending one batch."""
    success_count: int = 0
    failure_count: int = 0
    results: list[RecipientResult] = field(default_factory=list)
    transport_error: TransportError | None = None

    @property
    def rejected(self) -> bool:
        return self.transport_error is not None


def _error_code(exc: BaseException) -> str | None:
    code = getattr(exc, "code", None)
    return str(code) if code is not None else None


def _recipient_error(exc: BaseException | None) -> RecipientError:
    if exc is None:
        return RecipientError("Unknown error")
    return RecipientError(str(exc), code=_error_code(exc), cause=exc)


# ---------------------------------------------------------------------------
# Dispatcher
# ---------------------------------------------------------------------------

class Dispatcher:
    """Sends batches and converts provider responses into outcomes."""

    def __init__(self, concurrency: int = 1) -> None:
        self.concurrency = max(1, concurrency)

    async def send(self, client: FCMClient, batch: NotificationBatch) -> DispatchOutcome:
        targets = len(batch.tokens) or 1

        try:
            if batch.is_topic:
                message_id: str = await asyncio.to_thread(client.send, batch.to_message())
                return DispatchOutcome(
                    success_count=1,
                    results=[RecipientResult(success=True, message_id=message_id)],
                )

            response = await asyncio.to_thread(client.send_multicast, batch.to_multicast())
        except Exception as exc:
            logger.error("FCM send failed for batch of %d targets: %s", targets, exc)
            return DispatchOutcome(
                failure_count=targets,
                transport_error=TransportError(str(exc), code=_error_code(exc), cause=exc),
            )

        outcome = DispatchOutcome(
            success_count=response.success_count,
            failure_count=response.failure_count,
        )
        for send_response in response.responses:
            if send_response.success:
                outcome.results.append(
                    RecipientResult(success=True, message_id=send_response.message_id)
                )
            else:
                outcome.results.append(
                    RecipientResult(success=False, error=_recipient_error(send_response.exception))
                )

        logger.debug(
            "Android success count: %d, failure count: %d",
            outcome.success_count,
            outcome.failure_count,
        )
        return outcome

    async def send_all(
        self,
        client: FCMClient,
        batches: Sequence[NotificationBatch],
    ) -> list[DispatchOutcome]:
        """Send batches concurrently; outcomes come back in batch order."""
        semaphore = asyncio.Semaphore(self.concurrency)

        async def _bounded(batch: NotificationBatch) -> DispatchOutcome:
            async with semaphore:
                return await self.send(client, batch)

        return list(await asyncio.gather(*(_bounded(batch) for batch in batches)))
