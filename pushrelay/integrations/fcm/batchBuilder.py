"""
Batch builder -- turns one PushRequest into provider-sized batches
===================================================================

Firebase multicast is limited to ``FCM_BATCH_LIMIT`` tokens per call. The
fields every batch shares (data payload, Android config) are built once and
attached to each batch by reference; only the token slice differs.

Notification merge rules:
  - A structured ``notification`` override is the starting point, and its
    presence alone marks the notification as set.
  - Explicit ``title`` / ``message`` / ``image`` / ``sound`` fields on the
    request overwrite the override and also mark the notification as set.
  - ``sound`` is applied only when it is a non-empty string.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Iterator, Sequence

from firebase_admin import messaging

from pushrelay.schemas.push import PushRequest

FCM_BATCH_LIMIT: int = 500  # Firebase allows max 500 tokens per multicast


@dataclass
class NotificationBatch:
    """A slice of recipients plus the shared payload of the request.

    ``offset`` is the index of ``tokens[0]`` in the recipient list the batch
    was cut from. Topic batches have no tokens.
    """
    tokens: list[str]
    offset: int
    data: dict[str, str] | None
    android: messaging.AndroidConfig
    topic: str | None = None
    condition: str | None = None

    @property
    def is_topic(self) -> bool:
        return self.topic is not None or self.condition is not None

    def __len__(self) -> int:
        return len(self.tokens)

    def to_multicast(self) -> messaging.MulticastMessage:
        return messaging.MulticastMessage(
            tokens=self.tokens,
            data=self.data,
            android=self.android,
        )

    def to_message(self) -> messaging.Message:
        return messaging.Message(
            topic=self.topic,
            condition=self.condition,
            data=self.data,
            android=self.android,
        )


# ---------------------------------------------------------------------------
# Shared fields
# ---------------------------------------------------------------------------

def build_data(req: PushRequest) -> dict[str, str] | None:
    """Stringify every payload value (FCM requirement).

    Strings pass through unchanged; anything else is JSON encoded, so
    ``True`` becomes ``"true"`` and nested objects stay parseable.
    """
    if not req.data:
        return None
    return {k: v if isinstance(v, str) else json.dumps(v, default=str)
            for k, v in req.data.items()}


def build_android_notification(req: PushRequest) -> messaging.AndroidNotification | None:
    fields: dict[str, Any] = {}
    is_set = False

    if req.notification is not None:
        is_set = True
        fields.update(req.notification.model_dump(exclude_none=True))

    if req.message:
        is_set = True
        fields["body"] = req.message

    if req.title:
        is_set = True
        fields["title"] = req.title

    if req.image:
        is_set = True
        fields["image"] = req.image

    if isinstance(req.sound, str) and req.sound:
        is_set = True
        fields["sound"] = req.sound

    if not is_set:
        return None
    return messaging.AndroidNotification(**fields)


def build_android_config(req: PushRequest) -> messaging.AndroidConfig:
    """Build the Android sub-config shared by every batch of a request."""
    ttl = None
    if req.time_to_live is not None and req.time_to_live > 0:
        ttl = timedelta(seconds=req.time_to_live)

    return messaging.AndroidConfig(
        priority="high" if req.priority == "high" else None,
        collapse_key=req.collapse_key or None,
        ttl=ttl,
        notification=build_android_notification(req),
    )


# ---------------------------------------------------------------------------
# Partitioning
# ---------------------------------------------------------------------------

def build_batches(
    req: PushRequest,
    recipients: Sequence[str] | None = None,
    limit: int = FCM_BATCH_LIMIT,
) -> Iterator[NotificationBatch]:
    """Yield the batches for one attempt.

    Args:
        req: The push request supplying the shared fields.
        recipients: Tokens to partition. Defaults to ``req.targets()``;
            retries pass the tokens that failed in the previous attempt.
        limit: Maximum tokens per batch, between 1 and ``FCM_BATCH_LIMIT``.

    Raises:
        ValueError: If ``limit`` is out of range.
    """
    if not 1 <= limit <= FCM_BATCH_LIMIT:
        raise ValueError(f"batch limit must be between 1 and {FCM_BATCH_LIMIT}, got {limit}")

    data = build_data(req)
    android = build_android_config(req)

    # A condition takes precedence over a plain topic alias.
    if req.is_topic:
        yield NotificationBatch(
            tokens=[],
            offset=0,
            data=data,
            android=android,
            topic=None if req.condition else req.topic,
            condition=req.condition or None,
        )
        return

    tokens = list(recipients) if recipients is not None else req.targets()
    for start in range(0, len(tokens), limit):
        yield NotificationBatch(
            tokens=tokens[start : start + limit],
            offset=start,
            data=data,
            android=android,
        )
