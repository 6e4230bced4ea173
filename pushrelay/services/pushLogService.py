"""
Push access log
================

Every recipient of every attempt produces exactly one access log record,
either ``succeeded-push`` or ``failed-push``. The same ``LogPushEntry`` is
what the feedback notifier appends or posts for failures.

Token masking keeps the first and last ``TOKEN_MARK_LENGTH`` characters so
that records can still be correlated without exposing the full token.
"""

from __future__ import annotations

import logging

from pushrelay.core.logging import ACCESS_LOGGER_NAME
from pushrelay.schemas.push import (
    PLATFORM_ANDROID,
    LogPushEntry,
    PushRequest,
    PushStatus,
)

TOKEN_MARK_LENGTH: int = 10

access_logger = logging.getLogger(ACCESS_LOGGER_NAME)


def hide_token(token: str, mark_length: int = TOKEN_MARK_LENGTH) -> str:
    """Mask the middle of a token.

    Tokens too short to keep both ends visible are masked entirely.
    """
    if not token:
        return ""
    if len(token) < mark_length * 2:
        return "*" * len(token)
    return token[:mark_length] + "*" * (len(token) - mark_length * 2) + token[-mark_length:]


def build_log_entry(
    status: PushStatus,
    token: str,
    req: PushRequest,
    error: Exception | None = None,
) -> LogPushEntry:
    """Build the outcome record for one recipient."""
    return LogPushEntry(
        type=status,
        platform=PLATFORM_ANDROID,
        token=token,
        message=req.message,
        error=str(error) if error is not None else "",
    )


class PushLogger:
    """Writes one access log record per recipient per attempt.

    The returned entry always carries the full token; masking only applies
    to what is written to the access log.
    """

    def __init__(self, hide_tokens: bool = True) -> None:
        self.hide_tokens = hide_tokens

    def log(
        self,
        status: PushStatus,
        token: str,
        req: PushRequest,
        error: Exception | None = None,
    ) -> LogPushEntry:
        entry = build_log_entry(status, token, req, error)
        shown = hide_token(entry.token) if self.hide_tokens else entry.token

        if status is PushStatus.FAILED:
            access_logger.error(
                "[%s] %s token=%s message=%r error=%s",
                entry.type.value,
                entry.platform,
                shown,
                entry.message,
                entry.error,
            )
        else:
            access_logger.info(
                "[%s] %s token=%s message=%r",
                entry.type.value,
                entry.platform,
                shown,
                entry.message,
            )
        return entry
