"""Session records and store snapshots."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum


MAX_SESSION_SECONDS = 7200  # two hours


class UnitType(Enum):
    """Which phase produced a session.  Only ACTIVE is countable."""

    ACTIVE = "active"
    SHORT_REST = "short_rest"
    LONG_REST = "long_rest"

    @property
    def is_countable(self) -> bool:
        return self is UnitType.ACTIVE


def new_session_id() -> str:
    return uuid.uuid4().hex


def _naive_local(moment: datetime) -> datetime:
    """Convert an offset-aware timestamp to naive device-local time."""
    if moment.tzinfo is None:
        return moment
    return moment.astimezone().replace(tzinfo=None)


def _clean_note(note: str | None) -> str | None:
    if note is None:
        return None
    note = note.strip()
    return note or None


@dataclass(frozen=True)
class Session:
    """One completed timed unit.  Never mutated after creation."""

    started_at: datetime
    duration: float
    unit_type: UnitType
    completed: bool = True
    note: str | None = None
    id: str = field(default_factory=new_session_id)

    def __post_init__(self) -> None:
        object.__setattr__(self, "started_at", _naive_local(self.started_at))
        object.__setattr__(self, "note", _clean_note(self.note))

    @property
    def day(self) -> date:
        return self.started_at.date()

    @property
    def counts(self) -> bool:
        """True when this session feeds streak and totals."""
        return self.completed and self.unit_type.is_countable

    @property
    def is_valid(self) -> bool:
        return 0 <= self.duration <= MAX_SESSION_SECONDS

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "started_at": self.started_at.isoformat(),
            "duration": self.duration,
            "unit_type": self.unit_type.value,
            "completed": self.completed,
            "note": self.note,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Session":
        """Build from :meth:`to_dict` output.

        Raises ``KeyError``, ``ValueError`` or ``TypeError`` on bad input.
        """
        completed = data.get("completed", True)
        if not isinstance(completed, bool):
            raise TypeError(f"completed must be a boolean, not {completed!r}")
        return cls(
            id=str(data["id"]),
            started_at=datetime.fromisoformat(data["started_at"]),
            duration=float(data["duration"]),
            unit_type=UnitType(data["unit_type"]),
            completed=completed,
            note=data.get("note"),
        )

    def __repr__(self) -> str:
        return (
            f"<Session id={self.id[:8]} type={self.unit_type.value} "
            f"duration={self.duration:.0f}s completed={self.completed}>"
        )


@dataclass(frozen=True)
class StoreSnapshot:
    """Everything one store hands to its peer in a full-state reply."""

    sessions: tuple[Session, ...]
    streak: int
    total_count: int
    total_duration: float
    last_counted_day: date | None

    def to_dict(self) -> dict:
        return {
            "sessions": [s.to_dict() for s in self.sessions],
            "streak": self.streak,
            "total_count": self.total_count,
            "total_duration": self.total_duration,
            "last_counted_day": (
                self.last_counted_day.isoformat() if self.last_counted_day else None
            ),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "StoreSnapshot":
        last = data.get("last_counted_day")
        return cls(
            sessions=tuple(Session.from_dict(s) for s in data["sessions"]),
            streak=int(data["streak"]),
            total_count=int(data["total_count"]),
            total_duration=float(data["total_duration"]),
            last_counted_day=date.fromisoformat(last) if last else None,
        )
