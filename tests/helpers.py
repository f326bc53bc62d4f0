"""Shared test helpers for FocusPair."""

from datetime import datetime, timedelta


class SignalCollector:
    """Utility to capture pyqtSignal emissions into a list."""

    def __init__(self):
        self.items: list = []

    def slot(self, *args):
        self.items.append(args if len(args) > 1 else args[0] if args else None)

    def __call__(self, *args):
        self.slot(*args)

    def __len__(self):
        return len(self.items)

    def __getitem__(self, idx):
        return self.items[idx]

    @property
    def last(self):
        return self.items[-1] if self.items else None

    def clear(self):
        self.items.clear()


class FakeNow:
    """Settable stand-in for ``datetime.now``."""

    def __init__(self, start: datetime | None = None):
        self.current = start or datetime(2024, 3, 10, 12, 0, 0)

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> None:
        self.current += timedelta(**kwargs)

    def next_day(self, days: int = 1) -> None:
        self.advance(days=days)


def settle(*coordinators, rounds: int = 6) -> None:
    """Drain every coordinator's worker until replies stop bouncing."""
    for _ in range(rounds):
        for c in coordinators:
            assert c.wait_idle(timeout=5.0)
