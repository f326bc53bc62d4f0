"""Application settings with JSON persistence.

Settings are stored at:
    ~/Library/Application Support/FocusPair/settings.json

Usage::

    settings = load_settings()
    settings.active_duration = 50 * 60
    save_settings(settings)
"""

from __future__ import annotations

import json
from dataclasses import dataclass, asdict, fields
from pathlib import Path

from loguru import logger

from .database.db import APP_SUPPORT_DIR, DEFAULT_URL
from .timer.phases import TimerConfig
from .timer.presets import preset_for


SETTINGS_PATH = APP_SUPPORT_DIR / "settings.json"


@dataclass
class Settings:
    """All user-configurable preferences."""

    # ── timer ─────────────────────────────────────────────────────────
    variant: str = "focus"                 # focus | workout
    preset: str = "classic"
    active_duration: float = 25 * 60       # seconds
    short_rest_duration: float = 5 * 60
    long_rest_duration: float = 15 * 60
    preparation_duration: float = 0.0
    cycle_length: int = 4
    total_units: int | None = None         # None = open-ended
    tick_interval: float = 1.0

    # ── history ───────────────────────────────────────────────────────
    log_breaks: bool = False               # record rests as non-countable sessions

    # ── device ────────────────────────────────────────────────────────
    device_name: str = "phone"
    database_url: str = DEFAULT_URL

    # ── logging ───────────────────────────────────────────────────────
    log_level: str = "INFO"
    log_file: str | None = None

    def timer_config(self) -> TimerConfig:
        """Build the engine configuration from the duration fields."""
        return TimerConfig(
            active_duration=self.active_duration,
            short_rest_duration=self.short_rest_duration,
            long_rest_duration=self.long_rest_duration,
            cycle_length=self.cycle_length,
            preparation_duration=self.preparation_duration,
            total_units=self.total_units,
        )

    def apply_preset(self, variant: str, key: str = "classic") -> None:
        """Copy a named preset's durations into these settings."""
        config = preset_for(variant, key).config
        self.variant = variant
        self.preset = key
        self.active_duration = config.active_duration
        self.short_rest_duration = config.short_rest_duration
        self.long_rest_duration = config.long_rest_duration
        self.preparation_duration = config.preparation_duration
        self.cycle_length = config.cycle_length
        self.total_units = config.total_units


def load_settings(path: Path | None = None) -> Settings:
    """Load settings from disk, falling back to defaults."""
    path = path or SETTINGS_PATH
    if not path.exists():
        return Settings()
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        # Only use keys that exist in the dataclass
        valid_keys = {f.name for f in fields(Settings)}
        filtered = {k: v for k, v in data.items() if k in valid_keys}
        return Settings(**filtered)
    except (OSError, ValueError, TypeError, AttributeError) as exc:
        logger.warning(f"[SETTINGS] unreadable {path}, using defaults: {exc}")
        return Settings()


def save_settings(settings: Settings, path: Path | None = None) -> None:
    """Write settings to disk as JSON."""
    path = path or SETTINGS_PATH
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(
        json.dumps(asdict(settings), indent=2) + "\n",
        encoding="utf-8",
    )
