"""Timer engine for FocusPair.

The engine is a thin Qt scheduler around the pure transition functions in
:mod:`focuspair.timer.phases`.  It owns the one and only ``EngineState``,
feeds it ticks from a :class:`ClockSource`, and turns finished phases into
signals that the rest of the app (session store, UI) listens to.

Commands
--------
start()               IDLE | COMPLETED → first phase
pause() / resume()    freeze / unfreeze the countdown
stop()                any running phase → IDLE (nothing is logged)
skip_current_phase()  finish a preparing or rest phase right away

Every command that does not apply to the current state is a logged no-op,
so a misordered sequence of UI clicks can never wedge the engine.

Threading
---------
State is only touched on the thread the engine was created on.  Commands
issued from any other thread are re-posted through a queued signal.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from datetime import datetime

from loguru import logger
from PyQt6.QtCore import QObject, Qt, pyqtSignal

from . import phases
from .clock import ClockSource, QtClock
from .phases import EngineState, Phase, PhaseCompletion, Step, TimerConfig


@dataclass(frozen=True)
class UnitCompletion:
    """A finished phase, with the wall-clock facts needed to log it."""

    phase: Phase
    unit_index: int
    started_at: datetime
    duration: float     # active seconds: elapsed minus paused
    skipped: bool = False


class TimerEngine(QObject):
    """Phase state machine driven by a clock source.

    Signals
    -------
    tick(time_remaining: float)
        Emitted after every consumed tick.
    phase_changed(phase: Phase)
        Emitted whenever a new phase is entered (including IDLE on stop).
    paused_changed(is_paused: bool)
    phase_completed(completion: UnitCompletion)
        Emitted for every phase that ends, countable or not.
    unit_completed(completion: UnitCompletion)
        Emitted only for finished ACTIVE phases.  This is the stream the
        session store persists.
    finished()
        Emitted when a fixed-length run reaches COMPLETED.
    """

    tick = pyqtSignal(float)
    phase_changed = pyqtSignal(object)
    paused_changed = pyqtSignal(bool)
    phase_completed = pyqtSignal(object)
    unit_completed = pyqtSignal(object)
    finished = pyqtSignal()

    _queued = pyqtSignal(object)

    def __init__(
        self,
        config: TimerConfig | None = None,
        clock: ClockSource | None = None,
        parent: QObject | None = None,
    ) -> None:
        super().__init__(parent)

        self._config: TimerConfig = config or TimerConfig()
        self._clock: ClockSource = clock or QtClock(parent=self)
        self._state: EngineState = phases.IDLE_STATE

        # ── active-duration bookkeeping for the current phase ─────────
        self._phase_started_mono: float = 0.0
        self._phase_started_at: datetime | None = None
        self._paused_total: float = 0.0
        self._pause_started_mono: float | None = None

        self._owner_thread = threading.get_ident()
        self._queued.connect(self._run_queued, Qt.ConnectionType.QueuedConnection)

    # ══════════════════════════════════════════════════════════════════
    #  PUBLIC PROPERTIES
    # ══════════════════════════════════════════════════════════════════

    @property
    def state(self) -> EngineState:
        return self._state

    @property
    def config(self) -> TimerConfig:
        return self._config

    @property
    def clock(self) -> ClockSource:
        return self._clock

    @property
    def current_phase(self) -> Phase:
        return self._state.phase

    @property
    def time_remaining(self) -> float:
        return self._state.time_remaining

    @property
    def is_paused(self) -> bool:
        return self._state.is_paused

    @property
    def is_running(self) -> bool:
        """True while a countdown is live and not paused."""
        return self._state.is_running

    @property
    def progress(self) -> float:
        return phases.progress(self._state)

    @property
    def current_unit_duration(self) -> float | None:
        """Active seconds spent in the current phase so far."""
        if not self._state.phase.is_running:
            return None
        return self._active_elapsed()

    # ══════════════════════════════════════════════════════════════════
    #  CONTROLS
    # ══════════════════════════════════════════════════════════════════

    def configure(self, config: TimerConfig) -> None:
        """Swap durations.  Ignored while a run is in progress."""
        if self._marshal(self.configure, config):
            return
        if self._state.phase.is_running:
            logger.debug("[ENGINE] configure() ignored while running")
            return
        self._config = config

    def start(self) -> None:
        if self._marshal(self.start):
            return
        if self._state.phase.is_running:
            logger.debug(f"[ENGINE] start() ignored in phase {self._state.phase.value}")
            return
        self._apply(phases.start(self._state, self._config), entered=True)
        if self._state.phase.is_running:
            self._clock.start(self._on_tick)

    def pause(self) -> None:
        if self._marshal(self.pause):
            return
        step = phases.pause(self._state)
        if step.state is self._state:
            logger.debug(f"[ENGINE] pause() ignored in phase {self._state.phase.value}")
            return
        self._clock.stop()
        self._pause_started_mono = self._clock.monotonic()
        self._state = step.state
        self.paused_changed.emit(True)

    def resume(self) -> None:
        if self._marshal(self.resume):
            return
        step = phases.resume(self._state)
        if step.state is self._state:
            logger.debug("[ENGINE] resume() ignored, not paused")
            return
        if self._pause_started_mono is not None:
            self._paused_total += self._clock.monotonic() - self._pause_started_mono
            self._pause_started_mono = None
        self._state = step.state
        self.paused_changed.emit(False)
        self._clock.start(self._on_tick)

    def stop(self) -> None:
        """Abort the run.  The in-progress unit is discarded, never logged."""
        if self._marshal(self.stop):
            return
        self._clock.stop()
        step = phases.stop(self._state)
        if step.state is self._state:
            logger.debug(f"[ENGINE] stop() ignored in phase {self._state.phase.value}")
            return
        was_paused = self._state.is_paused
        self._reset_phase_clock()
        self._phase_started_at = None
        self._state = step.state
        if was_paused:
            self.paused_changed.emit(False)
        self.phase_changed.emit(self._state.phase)

    def skip_current_phase(self) -> None:
        if self._marshal(self.skip_current_phase):
            return
        step = phases.skip(self._state, self._config)
        if step.state is self._state:
            logger.debug(f"[ENGINE] skip ignored in phase {self._state.phase.value}")
            return
        was_paused = self._state.is_paused
        self._apply(step)
        if was_paused:
            self.paused_changed.emit(False)
        if self._state.phase.is_running and not self._clock.is_active:
            self._clock.start(self._on_tick)

    def handle_interruption(self) -> None:
        """Pause for an external interruption (call, app backgrounded)."""
        if self._state.is_running:
            logger.info("[ENGINE] interrupted, pausing")
            self.pause()

    # ══════════════════════════════════════════════════════════════════
    #  INTERNAL: timer mechanics
    # ══════════════════════════════════════════════════════════════════

    def _on_tick(self) -> None:
        if not self._state.is_running:
            return
        self._apply(phases.tick(self._state, self._config, self._clock.interval))
        if self._state.phase.is_running:
            self.tick.emit(self._state.time_remaining)

    def _apply(self, step: Step, *, entered: bool = False) -> None:
        previous = self._state
        self._state = step.state

        for done in step.completed:
            self._emit_completion(done)

        if entered or step.completed:
            self._reset_phase_clock()
            self.phase_changed.emit(self._state.phase)
            if previous.phase != self._state.phase:
                logger.debug(
                    f"[ENGINE] {previous.phase.value} → {self._state.phase.value}"
                )

        if not self._state.phase.is_running:
            self._clock.stop()
            if self._state.phase == Phase.COMPLETED and step.completed:
                logger.info(
                    f"[ENGINE] run completed after {self._state.units_completed} units"
                )
                self.finished.emit()

    def _emit_completion(self, done: PhaseCompletion) -> None:
        completion = UnitCompletion(
            phase=done.phase,
            unit_index=done.unit_index,
            started_at=self._phase_started_at or self._clock.now(),
            duration=self._active_elapsed(),
            skipped=done.skipped,
        )
        self.phase_completed.emit(completion)
        if done.phase == Phase.ACTIVE:
            self.unit_completed.emit(completion)

    def _active_elapsed(self) -> float:
        now = self._clock.monotonic()
        paused = self._paused_total
        if self._pause_started_mono is not None:
            paused += now - self._pause_started_mono
        return max(0.0, now - self._phase_started_mono - paused)

    def _reset_phase_clock(self) -> None:
        self._phase_started_mono = self._clock.monotonic()
        self._phase_started_at = self._clock.now()
        self._paused_total = 0.0
        self._pause_started_mono = None

    # ══════════════════════════════════════════════════════════════════
    #  INTERNAL: cross-thread marshaling
    # ══════════════════════════════════════════════════════════════════

    def _marshal(self, method, *args) -> bool:
        """Re-post *method* onto the engine thread if called off it."""
        if threading.get_ident() == self._owner_thread:
            return False
        self._queued.emit((method, args))
        return True

    def _run_queued(self, call) -> None:
        method, args = call
        method(*args)
