"""
Pydantic v2 schemas for push requests and push outcome records
================================================================

``PushRequest`` is the single inbound object of a dispatch call.
``LogPushEntry`` is the outcome record emitted once per recipient per
attempt; it is also the payload posted to the feedback endpoint.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

TOPIC_PREFIX = "/topics/"
PLATFORM_ANDROID = "android"


# ---------------------------------------------------------------------------
# Outcome records
# ---------------------------------------------------------------------------

class PushStatus(str, Enum):
    """Outcome of one recipient in one attempt."""
    SUCCEEDED = "succeeded-push"
    FAILED = "failed-push"


class LogPushEntry(BaseModel):
    """A single succeeded/failed record attributable to one recipient."""

    type: PushStatus
    platform: str = PLATFORM_ANDROID
    token: str = ""
    message: str = ""
    error: str = ""


# ---------------------------------------------------------------------------
# Android notification override
# ---------------------------------------------------------------------------

class AndroidNotificationOverride(BaseModel):
    """Structured Android notification fields supplied by the caller.

    Field names follow ``firebase_admin.messaging.AndroidNotification`` so the
    model can be unpacked straight into it.
    """

    model_config = ConfigDict(extra="forbid")

    title: Optional[str] = None
    body: Optional[str] = None
    icon: Optional[str] = None
    color: Optional[str] = Field(default=None, pattern=r"^#[0-9a-fA-F]{6}$")
    sound: Optional[str] = None
    tag: Optional[str] = None
    click_action: Optional[str] = None
    body_loc_key: Optional[str] = None
    body_loc_args: Optional[list[str]] = None
    title_loc_key: Optional[str] = None
    title_loc_args: Optional[list[str]] = None
    channel_id: Optional[str] = None
    image: Optional[str] = None
    ticker: Optional[str] = None
    sticky: Optional[bool] = None
    notification_count: Optional[int] = Field(default=None, ge=0)


# ---------------------------------------------------------------------------
# Push request
# ---------------------------------------------------------------------------

class PushRequest(BaseModel):
    """One logical "send to N recipients" request."""

    tokens: list[str] = Field(
        default_factory=list,
        description="FCM registration tokens, in the order results are reported",
    )
    to: str = Field(
        default="",
        description="Topic alias ('/topics/<name>') or a single registration token",
    )
    condition: str = Field(default="", description="FCM topic condition expression")

    message: str = ""
    title: str = ""
    image: str = ""
    sound: Any = None
    data: dict[str, Any] = Field(default_factory=dict)

    priority: str = ""
    collapse_key: str = ""
    time_to_live: Optional[int] = Field(default=None, ge=0)
    notification: Optional[AndroidNotificationOverride] = None

    project_id: str = ""
    credentials_file: str = ""
    credentials_json: str = ""

    retry: int = Field(default=0, ge=0)

    logs: list[LogPushEntry] = Field(default_factory=list, exclude=True)

    @property
    def is_topic(self) -> bool:
        """True when the request broadcasts to a topic or a topic condition."""
        return self.to.startswith(TOPIC_PREFIX) or bool(self.condition)

    @property
    def topic(self) -> str | None:
        """Topic name without the ``/topics/`` prefix, if any."""
        if self.to.startswith(TOPIC_PREFIX):
            return self.to[len(TOPIC_PREFIX):]
        return None

    def targets(self) -> list[str]:
        """Recipient identifiers of the first attempt.

        A non-topic ``to`` stands in for a one-element token list.
        """
        if self.tokens:
            return list(self.tokens)
        if self.to and not self.is_topic:
            return [self.to]
        return []

    def add_log(self, entry: LogPushEntry) -> None:
        """Append an outcome record to the per-request audit log."""
        self.logs.append(entry)
