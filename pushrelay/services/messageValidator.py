"""
Push request validation.

``check_message`` is run once per dispatch call, before any client is
resolved. A request that fails here is never sent and produces no outcome
records.
"""

from __future__ import annotations

from pushrelay.core.exceptions import MessageValidationError
from pushrelay.schemas.push import PushRequest

# FCM rejects a time-to-live longer than four weeks.
MAX_TIME_TO_LIVE_SECONDS: int = 2_419_200

VALID_PRIORITIES: frozenset[str] = frozenset({"", "normal", "high"})


def check_message(req: PushRequest) -> None:
    """Validate a push request.

    Raises:
        MessageValidationError: If the request cannot be sent as-is.
    """
    if not req.tokens and not req.to and not req.condition:
        raise MessageValidationError(
            "the message must specify at least one registration token or a topic"
        )

    if any(not token for token in req.tokens):
        raise MessageValidationError("registration tokens must not contain empty values")

    if req.tokens and req.is_topic:
        raise MessageValidationError(
            "a message cannot target both registration tokens and a topic"
        )

    if req.time_to_live is not None and req.time_to_live > MAX_TIME_TO_LIVE_SECONDS:
        raise MessageValidationError(
            f"time_to_live must be at most {MAX_TIME_TO_LIVE_SECONDS} seconds"
        )

    if req.priority not in VALID_PRIORITIES:
        raise MessageValidationError(
            f"priority must be 'high' or 'normal', got {req.priority!r}"
        )
