"""Logging setup for entry points that run the relay outside a host service."""

from __future__ import annotations

import logging

ACCESS_LOGGER_NAME = "pushrelay.access"

_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

_handler: logging.Handler | None = None


def configure_logging(level: str | int = "INFO") -> logging.Handler:
    """Attach a single stream handler to the ``pushrelay`` logger tree.

    Calling this more than once only updates the level.
    """
    global _handler

    root = logging.getLogger("pushrelay")
    root.setLevel(level)

    if _handler is None or _handler not in root.handlers:
        _handler = logging.StreamHandler()
        _handler.setFormatter(logging.Formatter(_FORMAT))
        root.addHandler(_handler)
    return _handler
