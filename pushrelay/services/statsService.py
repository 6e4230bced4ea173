"""
Push statistics.

The relay only ever increments counters; persistence is left to the host
service, which can plug in its own ``StatStorage`` implementation.
"""

from __future__ import annotations

from dataclasses import dataclass
from threading import Lock
from typing import Protocol


class StatStorage(Protocol):
    """Counters the reconciler updates once per recipient per attempt."""

    def add_android_success(self, count: int) -> None:
        ...

    def add_android_error(self, count: int) -> None:
        ...


@dataclass(frozen=True)
class StatSnapshot:
    android_success: int
    android_error: int

    @property
    def total(self) -> int:
        return self.android_success + self.android_error


class MemoryStatStorage:
    """Thread-safe in-process counters."""

    def __init__(self) -> None:
        self._lock = Lock()
        self._android_success = 0
        self._android_error = 0

    def add_android_success(self, count: int) -> None:
        if count <= 0:
            return
        with self._lock:
            self._android_success += count

    def add_android_error(self, count: int) -> None:
        if count <= 0:
            return
        with self._lock:
            self._android_error += count

    def snapshot(self) -> StatSnapshot:
        with self._lock:
            return StatSnapshot(
                android_success=self._android_success,
                android_error=self._android_error,
            )

    def reset(self) -> None:
        """Zero all counters. Useful for testing."""
        with self._lock:
            self._android_success = 0
            self._android_error = 0
