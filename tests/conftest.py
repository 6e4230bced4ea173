"""
Shared pytest fixtures for the push relay unit tests.

Provides fake Firebase clients that return ``messaging.BatchResponse``-shaped
objects, so the full batch -> dispatch -> reconcile -> retry flow is
exercised without contacting Firebase.
"""

from __future__ import annotations

from types import SimpleNamespace
from typing import Any, Callable
from unittest.mock import MagicMock

import pytest

from pushrelay.core.config import Settings
from pushrelay.integrations.fcm.clientCache import ClientCache
from pushrelay.schemas.push import PushRequest
from pushrelay.services.feedbackService import FeedbackNotifier
from pushrelay.services.pushLogService import PushLogger
from pushrelay.services.statsService import MemoryStatStorage

PROJECT_ID = "demo-project"


# ---------------------------------------------------------------------------
# Fake Firebase client
# ---------------------------------------------------------------------------

# Decides the fate of one token: return None for delivered, or an exception.
Responder = Callable[[str], Exception | None]


def _deliver_all(token: str) -> Exception | None:
    return None


class FakeFCMClient:
    """Stands in for ``FCMClient``; records every call it receives."""

    def __init__(
        self,
        project_id: str = PROJECT_ID,
        scoped: bool = False,
        responder: Responder = _deliver_all,
        transport_error: Exception | None = None,
        topic_error: Exception | None = None,
    ) -> None:
        self.project_id = project_id
        self.scoped = scoped
        self.responder = responder
        self.transport_error = transport_error
        self.topic_error = topic_error
        self.multicast_calls: list[list[str]] = []
        self.topic_calls: list[Any] = []
        self.closed = False

    @property
    def call_count(self) -> int:
        return len(self.multicast_calls) + len(self.topic_calls)

    def send_multicast(self, message: Any) -> SimpleNamespace:
        tokens = list(message.tokens)
        self.multicast_calls.append(tokens)
        if self.transport_error is not None:
            raise self.transport_error

        responses = []
        for token in tokens:
            exc = self.responder(token)
            if exc is None:
                responses.append(
                    SimpleNamespace(success=True, message_id=f"msg-{token}", exception=None)
                )
            else:
                responses.append(SimpleNamespace(success=False, message_id=None, exception=exc))

        success = sum(1 for r in responses if r.success)
        return SimpleNamespace(
            responses=responses,
            success_count=success,
            failure_count=len(responses) - success,
        )

    def send(self, message: Any) -> str:
        self.topic_calls.append(message)
        if self.topic_error is not None:
            raise self.topic_error
        return "msg-topic"

    def close(self) -> None:
        self.closed = True


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def test_settings() -> Settings:
    """Settings isolated from the environment and any ``.env`` file."""
    return Settings(
        _env_file=None,
        android_project_id=PROJECT_ID,
        android_max_retry=2,
        android_batch_limit=500,
        android_dispatch_concurrency=4,
        core_sync=False,
        core_feedback_url="",
        core_feedback_timeout=1,
        log_hide_token=False,
    )


@pytest.fixture
def fake_client() -> FakeFCMClient:
    return FakeFCMClient()


@pytest.fixture
def client_cache(fake_client: FakeFCMClient) -> ClientCache:
    """A cache whose default project resolves to ``fake_client``."""
    factory = MagicMock(return_value=fake_client)
    return ClientCache(PROJECT_ID, factory=factory)


@pytest.fixture
def stats() -> MemoryStatStorage:
    return MemoryStatStorage()


@pytest.fixture
def push_logger() -> MagicMock:
    """A ``PushLogger`` spy: real behaviour, countable calls."""
    return MagicMock(wraps=PushLogger(hide_tokens=False))


@pytest.fixture
def feedback() -> FeedbackNotifier:
    return FeedbackNotifier()


@pytest.fixture
def make_request() -> Callable[..., PushRequest]:
    """Factory for push requests targeting the default project."""

    def _make(count: int = 3, **overrides: Any) -> PushRequest:
        fields: dict[str, Any] = {
            "tokens": [f"token-{i}" for i in range(count)],
            "message": "Your provider is on the way",
            "title": "Job update",
            "project_id": PROJECT_ID,
        }
        fields.update(overrides)
        return PushRequest(**fields)

    return _make
