"""
Firebase Cloud Messaging (FCM) Push Service
=============================================

Drives one dispatch call from request to final result:

  1. Validates the request (no network call, no outcome records on failure).
  2. Resolves a Firebase client for the request's project.
  3. Cuts the pending recipients into batches of at most 500 tokens.
  4. Sends every batch and reconciles each outcome in batch order.
  5. Reports each failed recipient to the feedback notifier.
  6. Repeats steps 2-5 for the recipients that failed, until none fail or
     the retry ceiling is reached.

Retry ceiling:
  ``android_max_retry`` from configuration, lowered to ``PushRequest.retry``
  when the request asks for fewer retries. A call makes at most
  ``max_retry + 1`` attempts.

Result:
  ``push`` returns True when failures remain after the final attempt.
  ``ConfigError`` and ``ProviderInitError`` are raised before any batch is
  sent; ``push_to_android`` turns them into a logged True result.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable

from pushrelay.core.config import Settings, settings as default_settings
from pushrelay.core.exceptions import (
    ConfigError,
    MessageValidationError,
    ProviderInitError,
)
from pushrelay.core.logging import configure_logging
from pushrelay.integrations.fcm.batchBuilder import build_batches
from pushrelay.integrations.fcm.clientCache import ClientCache, CredentialMaterial
from pushrelay.integrations.fcm.dispatcher import Dispatcher
from pushrelay.integrations.fcm.reconciler import Reconciler
from pushrelay.schemas.push import PushRequest
from pushrelay.services.feedbackService import FeedbackNotifier
from pushrelay.services.messageValidator import check_message
from pushrelay.services.pushLogService import PushLogger
from pushrelay.services.statsService import MemoryStatStorage, StatStorage

logger = logging.getLogger(__name__)

MessageValidator = Callable[[PushRequest], None]


# ---------------------------------------------------------------------------
# Retry state
# ---------------------------------------------------------------------------

@dataclass
class RetryState:
    """Progress of one dispatch call through its attempts."""
    max_retry: int
    pending: list[str] = field(default_factory=list)
    attempt: int = 0
    retry_count: int = 0

    @classmethod
    def for_request(cls, req: PushRequest, configured_max_retry: int) -> RetryState:
        max_retry = configured_max_retry
        if 0 < req.retry < max_retry:
            max_retry = req.retry
        return cls(max_retry=max_retry, pending=req.targets())

    def should_retry(self, any_failure: bool) -> bool:
        return any_failure and self.retry_count < self.max_retry

    def advance(self, failed_tokens: list[str], narrow: bool = True) -> None:
        """Move to the next attempt, keeping only the failed recipients."""
        self.retry_count += 1
        if narrow:
            self.pending = failed_tokens


# ---------------------------------------------------------------------------
# Controller
# ---------------------------------------------------------------------------

class AndroidPushController:
    """Orchestrates batch building, dispatch, reconciliation and retries."""

    def __init__(
        self,
        config: Settings | None = None,
        *,
        client_cache: ClientCache | None = None,
        stats: StatStorage | None = None,
        push_logger: PushLogger | None = None,
        feedback: FeedbackNotifier | None = None,
        dispatcher: Dispatcher | None = None,
        validator: MessageValidator = check_message,
    ) -> None:
        self.config = config or default_settings
        self.client_cache = client_cache or ClientCache(
            self.config.android_project_id,
            CredentialMaterial(
                credentials_file=self.config.firebase_service_account_path,
                credentials_json=self.config.firebase_credentials_json,
            ),
        )
        self.stats = stats or MemoryStatStorage()
        self.push_logger = push_logger or PushLogger(hide_tokens=self.config.log_hide_token)
        self.feedback = feedback or FeedbackNotifier(
            sync=self.config.core_sync,
            feedback_url=self.config.core_feedback_url,
            timeout=self.config.core_feedback_timeout,
        )
        self.dispatcher = dispatcher or Dispatcher(self.config.android_dispatch_concurrency)
        self.reconciler = Reconciler(self.stats, self.push_logger)
        self._validator = validator

    async def push(self, req: PushRequest) -> bool:
        """Send ``req`` with retries.

        Returns:
            True if any recipient still failed after the final attempt.

        Raises:
            ConfigError: If the project id or credentials are missing.
            ProviderInitError: If the Firebase client cannot be built.
        """
        logger.debug("Start push notification for Android")

        try:
            self._validator(req)
        except MessageValidationError as exc:
            logger.error("request error: %s", exc)
            return True

        if not req.project_id:
            raise ConfigError("FCM project id is empty")

        material = CredentialMaterial(
            credentials_file=req.credentials_file,
            credentials_json=req.credentials_json,
        )
        state = RetryState.for_request(req, self.config.android_max_retry)

        while True:
            state.attempt += 1
            failed_tokens, any_failure = await self._attempt(req, material, state.pending)

            if not state.should_retry(any_failure):
                break

            state.advance(failed_tokens, narrow=not req.is_topic)
            logger.info(
                "Retrying %d failed Android targets (retry %d/%d)",
                len(failed_tokens),
                state.retry_count,
                state.max_retry,
            )

        if any_failure:
            logger.warning(
                "Android push finished with failures after %d attempt(s)", state.attempt
            )
        return any_failure

    async def _attempt(
        self,
        req: PushRequest,
        material: CredentialMaterial,
        recipients: list[str],
    ) -> tuple[list[str], bool]:
        client = self.client_cache.acquire(req.project_id, material)
        try:
            batches = list(build_batches(req, recipients, self.config.android_batch_limit))
            outcomes = await self.dispatcher.send_all(client, batches)
        finally:
            client.close()

        failed_tokens: list[str] = []
        any_failure = False
        for batch, outcome in zip(batches, outcomes):
            result = self.reconciler.reconcile(req, batch, outcome, recipients)
            failed_tokens.extend(result.failed_tokens)
            if result.has_failures:
                any_failure = True
            for entry in result.failed:
                self.feedback.notify(req, entry)

        return failed_tokens, any_failure


# ---------------------------------------------------------------------------
# Module-level entry point (lazy singleton)
# ---------------------------------------------------------------------------

_controller: AndroidPushController | None = None


def get_push_controller() -> AndroidPushController:
    """Return the process-wide controller built from the default settings.

    The first call also configures the ``pushrelay`` loggers from
    ``log_level``.
    """
    global _controller

    if _controller is None:
        configure_logging(default_settings.log_level)
        logger.info(
            "Starting %s %s (project=%s)",
            default_settings.app_name,
            default_settings.app_version,
            default_settings.android_project_id or "<per request>",
        )
        _controller = AndroidPushController()
    return _controller


async def push_to_android(
    req: PushRequest,
    controller: AndroidPushController | None = None,
) -> bool:
    """Send ``req`` and report whether failures remain.

    Configuration and client initialisation errors are logged and reported
    as a failed call instead of being raised.
    """
    controller = controller or get_push_controller()
    try:
        return await controller.push(req)
    except ConfigError as exc:
        logger.error("FCM configuration error: %s", exc)
    except ProviderInitError as exc:
        logger.error("FCM server error: %s", exc)
    return True
