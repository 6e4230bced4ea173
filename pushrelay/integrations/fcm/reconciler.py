"""
Outcome reconciler -- attributes batch results to recipients
=============================================================

Result position ``k`` of a batch belongs to ``recipients[batch.offset + k]``
where ``recipients`` is the token list of the current attempt. Positions past
the end of that list (topic sends, single-target sends) fall back to the
request's ``to`` field.

Statistics are updated here and only here, once per recipient per attempt.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Sequence

from pushrelay.core.exceptions import DeliveryError
from pushrelay.integrations.fcm.batchBuilder import NotificationBatch
from pushrelay.integrations.fcm.dispatcher import DispatchOutcome
from pushrelay.schemas.push import LogPushEntry, PushRequest, PushStatus
from pushrelay.services.pushLogService import PushLogger
from pushrelay.services.statsService import StatStorage

logger = logging.getLogger(__name__)


@dataclass
class ReconcileResult:
    """Per-batch reconciliation output."""
    failed_tokens: list[str] = field(default_factory=list)
    succeeded: list[LogPushEntry] = field(default_factory=list)
    failed: list[LogPushEntry] = field(default_factory=list)

    @property
    def has_failures(self) -> bool:
        return bool(self.failed)


def resolve_recipient(
    req: PushRequest,
    batch: NotificationBatch,
    position: int,
    recipients: Sequence[str],
) -> str:
    """Map a batch-relative result position to a recipient identifier."""
    index = batch.offset + position
    if index < len(recipients):
        return recipients[index]
    return req.to or req.condition


class Reconciler:
    """Turns dispatch outcomes into outcome records and retry candidates."""

    def __init__(self, stats: StatStorage, push_logger: PushLogger) -> None:
        self.stats = stats
        self.push_logger = push_logger

    def reconcile(
        self,
        req: PushRequest,
        batch: NotificationBatch,
        outcome: DispatchOutcome,
        recipients: Sequence[str],
    ) -> ReconcileResult:
        result = ReconcileResult()

        if outcome.transport_error is not None:
            targets = batch.tokens or [resolve_recipient(req, batch, 0, recipients)]
            self.stats.add_android_error(len(targets))
            for token in targets:
                self._record_failure(result, req, token, outcome.transport_error)
            return result

        for position, item in enumerate(outcome.results):
            token = resolve_recipient(req, batch, position, recipients)
            if item.success:
                result.succeeded.append(
                    self.push_logger.log(PushStatus.SUCCEEDED, token, req)
                )
            else:
                self._record_failure(result, req, token, item.error)

        self.stats.add_android_success(len(result.succeeded))
        self.stats.add_android_error(len(result.failed))

        if len(outcome.results) != outcome.success_count + outcome.failure_count:
            logger.warning(
                "Provider counts (%d ok / %d failed) disagree with %d results",
                outcome.success_count,
                outcome.failure_count,
                len(outcome.results),
            )
        return result

    def _record_failure(
        self,
        result: ReconcileResult,
        req: PushRequest,
        token: str,
        error: DeliveryError | None,
    ) -> None:
        result.failed_tokens.append(token)
        result.failed.append(self.push_logger.log(PushStatus.FAILED, token, req, error))
