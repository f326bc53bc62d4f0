"""Pure phase state machine.

Every function here takes an immutable :class:`EngineState` (plus the
:class:`TimerConfig` it runs under) and returns a :class:`Step` holding the
next state and the phases that finished along the way.  Nothing in this
module touches a clock, a signal or the database, so the sequencing rules
can be tested with plain asserts.

Sequencing
----------
IDLE | COMPLETED  → PREPARING (or ACTIVE when there is no preparation)
PREPARING        → ACTIVE
ACTIVE           → COMPLETED     when ``total_units`` is reached
ACTIVE           → LONG_REST     when the in-cycle counter hits ``cycle_length``
ACTIVE           → SHORT_REST    otherwise
SHORT_REST       → ACTIVE
LONG_REST        → ACTIVE        (in-cycle counter already reset)
any              → IDLE          (stop)

Invalid commands return the state unchanged.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum


# ── enums ─────────────────────────────────────────────────────────────────


class Phase(Enum):
    IDLE = "idle"
    PREPARING = "preparing"
    ACTIVE = "active"
    SHORT_REST = "short_rest"
    LONG_REST = "long_rest"
    COMPLETED = "completed"

    @property
    def is_running(self) -> bool:
        """True for phases that own a countdown."""
        return self not in (Phase.IDLE, Phase.COMPLETED)

    @property
    def is_rest(self) -> bool:
        return self in (Phase.SHORT_REST, Phase.LONG_REST)

    @property
    def is_skippable(self) -> bool:
        return self in (Phase.PREPARING, Phase.SHORT_REST, Phase.LONG_REST)


# ── configuration ─────────────────────────────────────────────────────────


@dataclass(frozen=True)
class TimerConfig:
    """Durations (seconds) and cycle shape for one timer variant.

    ``cycle_length == 0`` never schedules a long rest.  ``total_units``
    of ``None`` makes the timer open-ended: cycles repeat until stopped.
    """

    active_duration: float = 25 * 60
    short_rest_duration: float = 5 * 60
    long_rest_duration: float = 15 * 60
    cycle_length: int = 4
    preparation_duration: float = 0.0
    total_units: int | None = None

    def __post_init__(self) -> None:
        for name in (
            "active_duration",
            "short_rest_duration",
            "long_rest_duration",
            "preparation_duration",
        ):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must be non-negative")
        if self.cycle_length < 0:
            raise ValueError("cycle_length must be non-negative")
        if self.total_units is not None and self.total_units < 1:
            raise ValueError("total_units must be at least 1 (or None)")

    def duration_for(self, phase: Phase) -> float:
        return {
            Phase.PREPARING: self.preparation_duration,
            Phase.ACTIVE: self.active_duration,
            Phase.SHORT_REST: self.short_rest_duration,
            Phase.LONG_REST: self.long_rest_duration,
        }.get(phase, 0.0)

    @property
    def is_open_ended(self) -> bool:
        return self.total_units is None


# ── state ─────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class EngineState:
    phase: Phase = Phase.IDLE
    time_remaining: float = 0.0
    phase_duration: float = 0.0
    is_paused: bool = False
    unit_index: int = 0         # 0-based; which unit is current / next
    units_in_cycle: int = 0     # units finished since the last long rest
    units_completed: int = 0    # units finished since start()
    cycle_count: int = 0        # long rests reached since start()

    @property
    def is_running(self) -> bool:
        return self.phase.is_running and not self.is_paused


@dataclass(frozen=True)
class PhaseCompletion:
    """A phase that just ended, either naturally or by skip."""

    phase: Phase
    unit_index: int
    skipped: bool = False


@dataclass(frozen=True)
class Step:
    state: EngineState
    completed: tuple[PhaseCompletion, ...] = field(default_factory=tuple)


IDLE_STATE = EngineState()


# ── helpers ───────────────────────────────────────────────────────────────


def _enter(state: EngineState, phase: Phase, config: TimerConfig) -> EngineState:
    duration = config.duration_for(phase)
    return replace(
        state,
        phase=phase,
        time_remaining=duration,
        phase_duration=duration,
        is_paused=False,
    )


def _complete_phase(
    state: EngineState, config: TimerConfig, *, skipped: bool = False
) -> Step:
    done = PhaseCompletion(state.phase, state.unit_index, skipped=skipped)

    if state.phase == Phase.PREPARING:
        return Step(_enter(state, Phase.ACTIVE, config), (done,))

    if state.phase == Phase.ACTIVE:
        units_completed = state.units_completed + 1
        units_in_cycle = state.units_in_cycle + 1
        state = replace(
            state, units_completed=units_completed, units_in_cycle=units_in_cycle
        )
        if config.total_units is not None and units_completed >= config.total_units:
            finished = replace(
                state,
                phase=Phase.COMPLETED,
                time_remaining=0.0,
                phase_duration=0.0,
                is_paused=False,
            )
            return Step(finished, (done,))
        if config.cycle_length > 0 and units_in_cycle >= config.cycle_length:
            state = replace(
                state, units_in_cycle=0, cycle_count=state.cycle_count + 1
            )
            return Step(_enter(state, Phase.LONG_REST, config), (done,))
        return Step(_enter(state, Phase.SHORT_REST, config), (done,))

    if state.phase.is_rest:
        state = replace(state, unit_index=state.unit_index + 1)
        return Step(_enter(state, Phase.ACTIVE, config), (done,))

    return Step(state)


# ── commands ──────────────────────────────────────────────────────────────


def start(state: EngineState, config: TimerConfig) -> Step:
    """Begin a fresh run.  Only valid from IDLE or COMPLETED."""
    if state.phase.is_running:
        return Step(state)
    first = Phase.PREPARING if config.preparation_duration > 0 else Phase.ACTIVE
    return Step(_enter(IDLE_STATE, first, config))


def pause(state: EngineState) -> Step:
    if not state.phase.is_running or state.is_paused:
        return Step(state)
    return Step(replace(state, is_paused=True))


def resume(state: EngineState) -> Step:
    if not state.is_paused:
        return Step(state)
    return Step(replace(state, is_paused=False))


def stop(state: EngineState) -> Step:
    """Abort to IDLE, discarding the in-progress phase."""
    if not state.phase.is_running:
        return Step(state)
    return Step(IDLE_STATE)


def skip(state: EngineState, config: TimerConfig) -> Step:
    """Finish a skippable phase now, as if its countdown hit zero."""
    if not state.phase.is_skippable:
        return Step(state)
    return _complete_phase(state, config, skipped=True)


def tick(state: EngineState, config: TimerConfig, dt: float) -> Step:
    """Consume one tick of *dt* seconds.

    At most one phase completes per tick; leftover overshoot is dropped
    and the next phase starts at its full configured duration.
    """
    if not state.is_running:
        return Step(state)
    remaining = max(0.0, state.time_remaining - dt)
    state = replace(state, time_remaining=remaining)
    if remaining <= 0:
        return _complete_phase(state, config)
    return Step(state)


def progress(state: EngineState) -> float:
    """``1 - remaining / duration`` clamped to [0, 1]."""
    if not state.phase.is_running or state.phase_duration <= 0:
        return 0.0
    value = 1.0 - state.time_remaining / state.phase_duration
    return max(0.0, min(1.0, value))
