"""Composition root: one device's engine, store and sync coordinator.

Nothing in FocusPair is reached through a global.  A ``Device`` builds its
components explicitly and wires them together::

    engine.unit_completed ──► store.add_session
    store.session_added   ──► coordinator.push_session   (inside activate)

A phone and a watch are simply two ``Device`` objects with their own
databases and the two ends of one channel.
"""

from __future__ import annotations

from loguru import logger
from PyQt6.QtCore import QObject

from .database.db import Database
from .settings import Settings
from .store.models import UnitType
from .store.session_store import SessionStore
from .sync.channel import Channel
from .sync.coordinator import SyncCoordinator
from .timer.clock import ClockSource, QtClock
from .timer.engine import TimerEngine, UnitCompletion
from .timer.phases import Phase


_REST_UNIT_TYPES = {
    Phase.SHORT_REST: UnitType.SHORT_REST,
    Phase.LONG_REST: UnitType.LONG_REST,
}


class Device(QObject):
    """Everything one device runs, wired together."""

    def __init__(
        self,
        database: Database,
        channel: Channel,
        settings: Settings | None = None,
        *,
        clock: ClockSource | None = None,
        primary: bool = True,
        parent: QObject | None = None,
    ) -> None:
        super().__init__(parent)
        self.settings = settings or Settings()
        self.name = self.settings.device_name
        self.database = database

        self.clock = clock or QtClock(self.settings.tick_interval, parent=self)
        self.store = SessionStore(
            database, namespace=self.settings.variant, now=self.clock.now, parent=self
        )
        self.engine = TimerEngine(self.settings.timer_config(), self.clock, parent=self)
        self.coordinator = SyncCoordinator(
            self.store,
            channel,
            name=self.name,
            auto_pull=not primary,
            now=self.clock.now,
            parent=self,
        )

        self.engine.unit_completed.connect(self._record_unit)
        self.engine.phase_completed.connect(self._record_rest)

    def start(self) -> None:
        """Open storage, load history and begin syncing."""
        self.database.init()
        self.store.load()
        self.coordinator.activate()
        logger.info(
            f"[{self.name.upper()}] ready: {self.store.total_count} units, "
            f"streak {self.store.streak}"
        )

    def shutdown(self) -> None:
        self.engine.stop()
        self.coordinator.deactivate()

    # ── engine → store ────────────────────────────────────────────────

    def _record_unit(self, completion: UnitCompletion) -> None:
        self.store.add_session(
            completion.duration,
            UnitType.ACTIVE,
            completed=True,
            started_at=completion.started_at,
        )

    def _record_rest(self, completion: UnitCompletion) -> None:
        if not self.settings.log_breaks:
            return
        unit_type = _REST_UNIT_TYPES.get(completion.phase)
        if unit_type is None:
            return
        self.store.add_session(
            completion.duration,
            unit_type,
            completed=not completion.skipped,
            started_at=completion.started_at,
        )
