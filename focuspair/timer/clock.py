"""Tick sources for the timer engine.

The engine never reads the system clock directly.  It is handed a
:class:`ClockSource` that fires periodic ticks and answers "what time is
it" questions, so the state machine can be driven by a real ``QTimer``
in the app and by :class:`ManualClock` in tests.
"""

from __future__ import annotations

import time
from datetime import datetime, timedelta
from typing import Callable

from PyQt6.QtCore import QObject, QTimer


TickCallback = Callable[[], None]

DEFAULT_INTERVAL = 1.0  # seconds


class ClockSource:
    """Interface for a monotonic, cancelable periodic tick source."""

    interval: float = DEFAULT_INTERVAL

    def start(self, callback: TickCallback) -> None:
        raise NotImplementedError

    def stop(self) -> None:
        raise NotImplementedError

    @property
    def is_active(self) -> bool:
        raise NotImplementedError

    def monotonic(self) -> float:
        """Seconds on a clock that never goes backwards."""
        raise NotImplementedError

    def now(self) -> datetime:
        """Local wall-clock time (naive, device timezone)."""
        raise NotImplementedError


class QtClock(ClockSource):
    """Real clock backed by a ``QTimer`` on the caller's Qt thread."""

    def __init__(
        self, interval: float = DEFAULT_INTERVAL, parent: QObject | None = None
    ) -> None:
        self.interval = interval
        self._parent = parent
        self._timer: QTimer | None = None
        self._callback: TickCallback | None = None

    def _ensure_timer(self) -> QTimer:
        if self._timer is None:
            self._timer = QTimer(self._parent)
            self._timer.setInterval(max(1, round(self.interval * 1000)))
            self._timer.timeout.connect(self._fire)
        return self._timer

    def _fire(self) -> None:
        if self._callback is not None:
            self._callback()

    def start(self, callback: TickCallback) -> None:
        self._callback = callback
        self._ensure_timer().start()

    def stop(self) -> None:
        if self._timer is not None:
            self._timer.stop()
        self._callback = None

    @property
    def is_active(self) -> bool:
        return self._timer is not None and self._timer.isActive()

    def monotonic(self) -> float:
        return time.monotonic()

    def now(self) -> datetime:
        return datetime.now()


class ManualClock(ClockSource):
    """Deterministic clock for tests.

    ``advance(seconds)`` moves time forward one ``interval`` at a time and
    delivers a tick per step while started.  Time keeps moving while the
    clock is stopped, which is how paused wall time is simulated.
    """

    def __init__(
        self,
        interval: float = DEFAULT_INTERVAL,
        start_at: datetime | None = None,
    ) -> None:
        self.interval = interval
        self._origin = start_at or datetime(2024, 1, 1, 9, 0, 0)
        self._elapsed = 0.0
        self._callback: TickCallback | None = None
        self.ticks_delivered = 0

    def start(self, callback: TickCallback) -> None:
        self._callback = callback

    def stop(self) -> None:
        self._callback = None

    @property
    def is_active(self) -> bool:
        return self._callback is not None

    def monotonic(self) -> float:
        return self._elapsed

    def now(self) -> datetime:
        return self._origin + timedelta(seconds=self._elapsed)

    def advance(self, seconds: float) -> None:
        steps = int(round(seconds / self.interval))
        for _ in range(steps):
            self._elapsed += self.interval
            if self._callback is not None:
                self.ticks_delivered += 1
                self._callback()

    def tick(self, count: int = 1) -> None:
        """Advance exactly *count* intervals."""
        self.advance(count * self.interval)
