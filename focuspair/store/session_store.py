"""Session store: persisted history plus streak and totals.

The store is the only writer of session history and of the aggregate
counters.  The engine hands it finished units, the sync coordinator hands
it sessions and snapshots from the peer device; everyone else reads.

Persistence
-----------
Two records per namespace in the device ``Database``:

``<ns>.sessions``   JSON list of session dicts, most recent first
``<ns>.counters``   JSON object: version, streak, last_counted_day,
                    total_count, total_duration
``<ns>.sessions.backup``  copy of the session list

All three are written in one transaction before any mutating call
returns.  On load a corrupt session list is restored from the backup
copy; if that is unusable too the list is treated as empty (counters
survive).  Corrupt counter fields fall back to their defaults
individually.

Concurrency
-----------
A single re-entrant lock serialises every writer and load.  Readers copy
the collection under the lock and work on the copy, so a query never
sees a half-applied update.
"""

from __future__ import annotations

import csv
import io
import json
import threading
from datetime import date, datetime, timedelta
from typing import Callable, Iterable

from loguru import logger
from PyQt6.QtCore import QObject, pyqtSignal

from ..database.db import Database
from . import stats
from .models import MAX_SESSION_SECONDS, Session, StoreSnapshot, UnitType


DATA_VERSION = 1
DEFAULT_NAMESPACE = "focus"


class SessionStore(QObject):
    """Persisted session history with derived streak and totals.

    Signals
    -------
    session_added(session: Session)
        A session was recorded locally (not via sync).  The sync
        coordinator pushes these to the peer.
    changed()
        History or counters changed for any reason.
    """

    session_added = pyqtSignal(object)
    changed = pyqtSignal()

    def __init__(
        self,
        database: Database,
        namespace: str = DEFAULT_NAMESPACE,
        *,
        now: Callable[[], datetime] | None = None,
        parent: QObject | None = None,
    ) -> None:
        super().__init__(parent)
        self._db = database
        self._now = now or datetime.now
        self._sessions_key = f"{namespace}.sessions"
        self._counters_key = f"{namespace}.counters"
        self._backup_key = f"{namespace}.sessions.backup"

        self._lock = threading.RLock()
        self._sessions: list[Session] = []
        self._ids: set[str] = set()
        self._streak = 0
        self._last_counted_day: date | None = None
        self._total_count = 0
        self._total_duration = 0.0

        self._deleted_backup: list[Session] = []

    # ══════════════════════════════════════════════════════════════════
    #  READ-ONLY STATE
    # ══════════════════════════════════════════════════════════════════

    @property
    def sessions(self) -> tuple[Session, ...]:
        """Copy of the history, most recent first."""
        with self._lock:
            return tuple(self._sessions)

    @property
    def streak(self) -> int:
        with self._lock:
            return self._streak

    @property
    def last_counted_day(self) -> date | None:
        with self._lock:
            return self._last_counted_day

    @property
    def total_count(self) -> int:
        with self._lock:
            return self._total_count

    @property
    def total_duration(self) -> float:
        with self._lock:
            return self._total_duration

    @property
    def can_undo_delete(self) -> bool:
        with self._lock:
            return bool(self._deleted_backup)

    def today(self) -> date:
        return self._now().date()

    def snapshot(self) -> StoreSnapshot:
        with self._lock:
            return StoreSnapshot(
                sessions=tuple(self._sessions),
                streak=self._streak,
                total_count=self._total_count,
                total_duration=self._total_duration,
                last_counted_day=self._last_counted_day,
            )

    # ── statistics ────────────────────────────────────────────────────

    def sessions_in_range(self, start: datetime, end: datetime) -> list[Session]:
        return stats.sessions_in_range(self.sessions, start, end)

    def sessions_on_day(self, day: date) -> list[Session]:
        return stats.sessions_on_day(self.sessions, day)

    def this_week(self) -> list[Session]:
        return stats.this_week(self.sessions, self._now())

    def this_month(self) -> list[Session]:
        return stats.this_month(self.sessions, self._now())

    def average_duration(self) -> float:
        return stats.average_duration(self.sessions)

    def today_count(self) -> int:
        return stats.count_on_day(self.sessions, self.today())

    def countable_sessions(self) -> list[Session]:
        return [s for s in self.sessions if s.unit_type.is_countable]

    # ══════════════════════════════════════════════════════════════════
    #  WRITERS
    # ══════════════════════════════════════════════════════════════════

    def add_session(
        self,
        duration: float,
        unit_type: UnitType | str,
        completed: bool = True,
        note: str | None = None,
        started_at: datetime | None = None,
    ) -> Session | None:
        """Record a finished unit and persist it before returning.

        Invalid input (negative or over-long duration, unknown unit type)
        is logged and dropped; ``None`` is returned.
        """
        try:
            unit_type = UnitType(unit_type)
            duration = float(duration)
        except (ValueError, TypeError):
            logger.warning(f"[STORE] rejected session: bad unit type {unit_type!r}")
            return None
        if not 0 <= duration <= MAX_SESSION_SECONDS:
            logger.warning(f"[STORE] rejected session: duration {duration} out of range")
            return None

        with self._lock:
            session = Session(
                started_at=started_at or self._now(),
                duration=duration,
                unit_type=unit_type,
                completed=completed,
                note=note,
            )
            sessions = [session] + self._sessions
            streak, last = self._streak, self._last_counted_day
            count, total = self._total_count, self._total_duration
            if session.counts:
                count += 1
                total += session.duration
                streak, last = self._streak_with(session)
            self._commit(sessions, streak, last, count, total)
            logger.info(
                f"[STORE] added {session!r} (streak={streak}, total={count})"
            )

        self.session_added.emit(session)
        self.changed.emit()
        return session

    def merge_session(self, session: Session) -> bool:
        """Insert a session received from the peer if it is new.

        Keeps most-recent-first order by start time.  Returns ``False``
        for a duplicate id or an invalid record.
        """
        if not session.is_valid:
            logger.warning(f"[STORE] ignored invalid merged {session!r}")
            return False
        with self._lock:
            if session.id in self._ids:
                logger.debug(f"[STORE] merge skipped, already have {session.id[:8]}")
                return False
            sessions = list(self._sessions)
            index = len(sessions)
            for i, existing in enumerate(sessions):
                if existing.started_at <= session.started_at:
                    index = i
                    break
            sessions.insert(index, session)
            streak, last = self._streak, self._last_counted_day
            count, total = self._total_count, self._total_duration
            if session.counts:
                count += 1
                total += session.duration
                streak, last = self._streak_with(session)
            self._commit(sessions, streak, last, count, total)
            logger.info(f"[STORE] merged {session!r}")

        self.changed.emit()
        return True

    def delete_sessions(self, ids: Iterable[str]) -> int:
        """Remove sessions by id and recompute every aggregate from scratch."""
        doomed = set(ids)
        with self._lock:
            removed = [s for s in self._sessions if s.id in doomed]
            if not removed:
                return 0
            remaining = [s for s in self._sessions if s.id not in doomed]
            self._deleted_backup = removed
            self._commit_recomputed(remaining)
            logger.info(f"[STORE] deleted {len(removed)} session(s)")

        self.changed.emit()
        return len(removed)

    def undo_delete(self) -> int:
        """Restore whatever the last ``delete_sessions`` call removed."""
        with self._lock:
            if not self._deleted_backup:
                return 0
            restored = [s for s in self._deleted_backup if s.id not in self._ids]
            self._deleted_backup = []
            sessions = sorted(
                self._sessions + restored, key=lambda s: s.started_at, reverse=True
            )
            self._commit_recomputed(sessions)
            logger.info(f"[STORE] restored {len(restored)} session(s)")

        self.changed.emit()
        return len(restored)

    def reset(self) -> None:
        with self._lock:
            self._deleted_backup = []
            self._commit([], 0, None, 0, 0.0)
            logger.info("[STORE] reset")
        self.changed.emit()

    def apply_snapshot(self, snapshot: StoreSnapshot) -> None:
        """Replace history and counters wholesale with a peer's snapshot.

        Totals are recomputed from the received sessions; the streak and
        last counted day are taken as sent and then decayed locally.
        """
        with self._lock:
            sessions = sorted(
                (s for s in snapshot.sessions if s.is_valid),
                key=lambda s: s.started_at, reverse=True,
            )
            totals = stats.compute_totals(sessions)
            if (
                totals.count != snapshot.total_count
                or abs(totals.duration - snapshot.total_duration) > 1e-6
            ):
                logger.warning(
                    "[STORE] snapshot totals disagree with its sessions "
                    f"({snapshot.total_count} vs {totals.count}), using recomputed"
                )
            streak = stats.decay_streak(
                snapshot.streak, snapshot.last_counted_day, self.today()
            )
            self._deleted_backup = []
            self._commit(
                sessions, streak, snapshot.last_counted_day,
                totals.count, totals.duration,
            )
            logger.info(
                f"[STORE] applied snapshot: {len(sessions)} sessions, streak={streak}"
            )

        self.changed.emit()

    # ══════════════════════════════════════════════════════════════════
    #  EXPORT / IMPORT
    # ══════════════════════════════════════════════════════════════════

    def export_json(self) -> str:
        return json.dumps([s.to_dict() for s in self.sessions], indent=2)

    def export_csv(self) -> str:
        buffer = io.StringIO()
        writer = csv.writer(buffer, lineterminator="\n")
        writer.writerow(["Date", "Unit Type", "Duration (seconds)", "Completed", "Notes"])
        for s in self.sessions:
            writer.writerow([
                s.started_at.isoformat(),
                s.unit_type.value,
                int(s.duration),
                s.completed,
                s.note or "",
            ])
        return buffer.getvalue()

    def import_json(self, text: str) -> tuple[int, int]:
        """Add sessions from :meth:`export_json` output.

        Returns ``(imported, failed)``.  Known ids are skipped silently;
        malformed, out-of-range or future-dated entries count as failed.
        """
        try:
            items = json.loads(text)
        except ValueError as exc:
            logger.error(f"[STORE] import failed: {exc}")
            return 0, 0
        if not isinstance(items, list):
            logger.error("[STORE] import failed: expected a JSON list")
            return 0, 0

        latest = self._now() + timedelta(hours=1)
        with self._lock:
            known = set(self._ids)
            incoming: list[Session] = []
            failed = 0
            for item in items:
                try:
                    session = Session.from_dict(item)
                except (KeyError, ValueError, TypeError, AttributeError):
                    failed += 1
                    continue
                if not session.is_valid or session.started_at > latest:
                    failed += 1
                    continue
                if session.id in known:
                    continue
                known.add(session.id)
                incoming.append(session)

            if incoming:
                sessions = sorted(
                    self._sessions + incoming, key=lambda s: s.started_at, reverse=True
                )
                self._commit_recomputed(sessions)
            logger.info(f"[STORE] imported {len(incoming)}, failed {failed}")

        if incoming:
            self.changed.emit()
        return len(incoming), failed

    # ══════════════════════════════════════════════════════════════════
    #  PERSISTENCE
    # ══════════════════════════════════════════════════════════════════

    def load(self) -> None:
        """Load from storage, tolerating missing and corrupt records."""
        with self._lock:
            records = self._db.read_many(
                [self._sessions_key, self._counters_key, self._backup_key]
            )
            sessions, sessions_ok = self._decode_sessions(
                records.get(self._sessions_key)
            )
            recovered = False
            backup = records.get(self._backup_key)
            if not sessions_ok and backup is not None:
                sessions, recovered = self._decode_sessions(backup)
                if recovered:
                    logger.warning(
                        f"[STORE] restored {len(sessions)} sessions from backup"
                    )
                    sessions_ok = True
            counters = self._decode_counters(records.get(self._counters_key))

            self._sessions = sessions
            self._ids = {s.id for s in sessions}
            self._streak = counters["streak"]
            self._last_counted_day = counters["last_counted_day"]
            self._total_count = counters["total_count"]
            self._total_duration = counters["total_duration"]
            self._deleted_backup = []

            dirty = recovered
            if sessions_ok:
                totals = stats.compute_totals(sessions)
                if (
                    totals.count != self._total_count
                    or abs(totals.duration - self._total_duration) > 1e-6
                ):
                    logger.warning(
                        f"[STORE] cached totals drifted ({self._total_count} vs "
                        f"{totals.count}), recomputing"
                    )
                    self._total_count = totals.count
                    self._total_duration = totals.duration
                    dirty = True

            decayed = stats.decay_streak(
                self._streak, self._last_counted_day, self.today()
            )
            if decayed != self._streak:
                logger.info(f"[STORE] streak of {self._streak} lapsed")
                self._streak = decayed
                dirty = True

            if dirty:
                self._persist()
            logger.debug(
                f"[STORE] loaded {len(sessions)} sessions, streak={self._streak}"
            )

        self.changed.emit()

    def _decode_sessions(self, raw: str | None) -> tuple[list[Session], bool]:
        if raw is None:
            return [], True
        try:
            items = json.loads(raw)
        except ValueError as exc:
            logger.error(f"[STORE] session list is corrupt, starting empty: {exc}")
            return [], False
        if not isinstance(items, list):
            logger.error("[STORE] session list is not a list, starting empty")
            return [], False

        sessions: list[Session] = []
        seen: set[str] = set()
        for item in items:
            try:
                session = Session.from_dict(item)
            except (KeyError, ValueError, TypeError, AttributeError):
                continue
            if session.is_valid and session.id not in seen:
                seen.add(session.id)
                sessions.append(session)
        if len(sessions) != len(items):
            logger.warning(
                f"[STORE] filtered {len(items) - len(sessions)} invalid sessions on load"
            )
        return sessions, True

    def _decode_counters(self, raw: str | None) -> dict:
        counters = {
            "streak": 0,
            "last_counted_day": None,
            "total_count": 0,
            "total_duration": 0.0,
        }
        if raw is None:
            return counters
        try:
            data = json.loads(raw)
        except ValueError as exc:
            logger.error(f"[STORE] counters record is corrupt, using defaults: {exc}")
            return counters
        if not isinstance(data, dict):
            logger.error("[STORE] counters record is not an object, using defaults")
            return counters

        version = data.get("version", DATA_VERSION)
        if version != DATA_VERSION:
            logger.warning(f"[STORE] counters written by data version {version}")

        parsers = {
            "streak": lambda v: max(0, int(v)),
            "last_counted_day": lambda v: date.fromisoformat(v) if v else None,
            "total_count": lambda v: max(0, int(v)),
            "total_duration": lambda v: max(0.0, float(v)),
        }
        for name, parse in parsers.items():
            if name not in data:
                continue
            try:
                counters[name] = parse(data[name])
            except (ValueError, TypeError):
                logger.warning(f"[STORE] unreadable counter {name!r}, using default")
        return counters

    def _commit(
        self,
        sessions: list[Session],
        streak: int,
        last_counted_day: date | None,
        total_count: int,
        total_duration: float,
    ) -> None:
        """Persist the new state, then make it current.  Caller holds the lock."""
        self._write(sessions, streak, last_counted_day, total_count, total_duration)
        self._sessions = sessions
        self._ids = {s.id for s in sessions}
        self._streak = streak
        self._last_counted_day = last_counted_day
        self._total_count = total_count
        self._total_duration = total_duration

    def _streak_with(self, session: Session) -> tuple[int, date | None]:
        """Streak after counting ``session`` on the day it started."""
        streak, last = stats.bump_streak(
            self._streak, self._last_counted_day, session.day
        )
        return stats.decay_streak(streak, last, self.today()), last

    def _commit_recomputed(self, sessions: list[Session]) -> None:
        totals = stats.compute_totals(sessions)
        streak, last = stats.compute_streak(sessions, self.today())
        self._commit(sessions, streak, last, totals.count, totals.duration)

    def _persist(self) -> None:
        self._write(
            self._sessions, self._streak, self._last_counted_day,
            self._total_count, self._total_duration,
        )

    def _write(
        self,
        sessions: list[Session],
        streak: int,
        last_counted_day: date | None,
        total_count: int,
        total_duration: float,
    ) -> None:
        counters = {
            "version": DATA_VERSION,
            "streak": streak,
            "last_counted_day": last_counted_day.isoformat() if last_counted_day else None,
            "total_count": total_count,
            "total_duration": total_duration,
        }
        encoded = json.dumps([s.to_dict() for s in sessions])
        self._db.write_many({
            self._sessions_key: encoded,
            self._backup_key: encoded,
            self._counters_key: json.dumps(counters),
        })
