from __future__ import annotations

import threading
import time
from typing import Optional


class CancellationToken:
    """Cooperative cancellation flag checked by the realtime drivers.

    Backed by threading.Event so a window handler (or another thread)
    can cancel a playback that is currently waiting.
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def wait(self, seconds: float) -> bool:
        """Sleep up to `seconds`; returns True if cancelled meanwhile."""
        if seconds > 0:
            return self._event.wait(seconds)
        return self._event.is_set()


class Clock:
    """Time source and suspension point for RealtimeExecutor/IntroSequencer."""

    def now(self) -> float:  # pragma: no cover - interface
        raise NotImplementedError

    def sleep(self, seconds: float, token: Optional[CancellationToken] = None) -> None:  # pragma: no cover - interface
        raise NotImplementedError


class WallClock(Clock):
    def now(self) -> float:
        return time.monotonic()

    def sleep(self, seconds: float, token: Optional[CancellationToken] = None) -> None:
        if seconds <= 0:
            return
        if token is not None:
            token.wait(seconds)
        else:
            time.sleep(seconds)


class ManualClock(Clock):
    """Virtual clock: sleeping advances time instantly. Used by tests and dry runs."""

    def __init__(self, start: float = 0.0) -> None:
        self._now = float(start)
        self.sleeps: list[float] = []

    def now(self) -> float:
        return self._now

    def advance(self, seconds: float) -> None:
        self._now += max(0.0, seconds)

    def sleep(self, seconds: float, token: Optional[CancellationToken] = None) -> None:
        self.sleeps.append(seconds)
        self.advance(seconds)
