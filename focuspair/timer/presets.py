"""Named timer configurations for the two app variants."""

from __future__ import annotations

from dataclasses import dataclass

from .phases import TimerConfig


@dataclass(frozen=True)
class Preset:
    key: str
    display_name: str
    description: str
    config: TimerConfig

    @property
    def is_valid(self) -> bool:
        c = self.config
        if c.preparation_duration > 0 or c.total_units is not None:
            # fixed-length workout shapes are not bound by focus limits
            return c.active_duration > 0
        return (
            60 <= c.active_duration <= 7200
            and 0 <= c.short_rest_duration <= 3600
            and 0 <= c.long_rest_duration <= 7200
            and 1 <= c.cycle_length <= 20
        )


FOCUS_PRESETS: dict[str, Preset] = {
    "classic": Preset(
        "classic",
        "Classic Pomodoro",
        "25 minutes of focus, 5-minute breaks, 15-minute long break.",
        TimerConfig(25 * 60, 5 * 60, 15 * 60, cycle_length=4),
    ),
    "deep_work": Preset(
        "deep_work",
        "Deep Work",
        "45 minutes of focus, 15-minute breaks, 30-minute long break.",
        TimerConfig(45 * 60, 15 * 60, 30 * 60, cycle_length=4),
    ),
    "short_sprints": Preset(
        "short_sprints",
        "Short Sprints",
        "15 minutes of focus, 3-minute breaks, 15-minute long break.",
        TimerConfig(15 * 60, 3 * 60, 15 * 60, cycle_length=4),
    ),
}

WORKOUT_EXERCISES = 12

WORKOUT_PRESET = Preset(
    "seven_minute",
    "7-Minute Workout",
    "12 exercises of 30 seconds with 10-second rests after a short countdown.",
    TimerConfig(
        active_duration=30,
        short_rest_duration=10,
        long_rest_duration=10,
        cycle_length=0,
        preparation_duration=10,
        total_units=WORKOUT_EXERCISES,
    ),
)


def preset_for(variant: str, key: str = "classic") -> Preset:
    """Look up a preset; raises ``ValueError`` for unknown or out-of-range ones."""
    if variant == "workout":
        return WORKOUT_PRESET
    if variant != "focus":
        raise ValueError(f"unknown timer variant: {variant!r}")
    try:
        preset = FOCUS_PRESETS[key]
    except KeyError:
        raise ValueError(f"unknown focus preset: {key!r}") from None
    if not preset.is_valid:
        raise ValueError(f"focus preset {key!r} is out of range")
    return preset
