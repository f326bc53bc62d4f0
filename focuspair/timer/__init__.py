"""Timer package."""

from .clock import ClockSource, QtClock, ManualClock
from .engine import TimerEngine, UnitCompletion
from .phases import Phase, EngineState, TimerConfig, PhaseCompletion
from .presets import Preset, FOCUS_PRESETS, WORKOUT_PRESET, preset_for

__all__ = [
    "ClockSource",
    "QtClock",
    "ManualClock",
    "TimerEngine",
    "UnitCompletion",
    "Phase",
    "EngineState",
    "TimerConfig",
    "PhaseCompletion",
    "Preset",
    "FOCUS_PRESETS",
    "WORKOUT_PRESET",
    "preset_for",
]
