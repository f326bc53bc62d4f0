"""Database connection and key/value record access."""

from __future__ import annotations

from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Iterable, Mapping

from loguru import logger
from sqlalchemy import create_engine, select
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session as OrmSession
from sqlalchemy.pool import StaticPool

from .models import Base, Record

# ── paths ────────────────────────────────────────────────────────────────────

APP_SUPPORT_DIR = Path.home() / "Library" / "Application Support" / "FocusPair"
DB_PATH = APP_SUPPORT_DIR / "focuspair.db"
DEFAULT_URL = f"sqlite:///{DB_PATH}"


class Database:
    """Durable key/value storage for one device.

    Each device (phone, watch) gets its own ``Database``.  Instances are
    passed explicitly to whatever needs them; there is no module-level
    connection.
    """

    def __init__(self, url: str = DEFAULT_URL) -> None:
        self.url = url
        self._engine: Engine | None = None
        self._factory: sessionmaker | None = None

    # ── engine & session factory (created lazily) ─────────────────────

    def _get_engine(self) -> Engine:
        if self._engine is None:
            kwargs: dict = {
                "connect_args": {"check_same_thread": False},
                "echo": False,
            }
            if self.url in ("sqlite://", "sqlite:///:memory:"):
                # one shared connection so every thread sees the same data
                kwargs["poolclass"] = StaticPool
            elif self.url == DEFAULT_URL:
                APP_SUPPORT_DIR.mkdir(parents=True, exist_ok=True)
            self._engine = create_engine(self.url, **kwargs)
        return self._engine

    def _get_session_factory(self) -> sessionmaker:
        if self._factory is None:
            self._factory = sessionmaker(bind=self._get_engine(), expire_on_commit=False)
        return self._factory

    # ── public API ────────────────────────────────────────────────────

    def init(self) -> None:
        """Create all tables.  Safe to call repeatedly."""
        Base.metadata.create_all(self._get_engine())
        logger.debug(f"[DB] initialised {self.url}")

    def dispose(self) -> None:
        if self._engine is not None:
            self._engine.dispose()
        self._engine = None
        self._factory = None

    @contextmanager
    def session(self):
        """Yield a SQLAlchemy session; commit on success, rollback on error."""
        session: OrmSession = self._get_session_factory()()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def read(self, key: str) -> str | None:
        with self.session() as db:
            record = db.get(Record, key)
            return None if record is None else record.value

    def read_many(self, keys: Iterable[str]) -> dict[str, str]:
        keys = list(keys)
        with self.session() as db:
            rows = db.execute(select(Record).where(Record.key.in_(keys))).scalars()
            return {row.key: row.value for row in rows}

    def write_many(self, values: Mapping[str, str]) -> None:
        """Upsert every record in one transaction."""
        now = datetime.now()
        with self.session() as db:
            for key, value in values.items():
                record = db.get(Record, key)
                if record is None:
                    db.add(Record(key=key, value=value, updated_at=now))
                else:
                    record.value = value
                    record.updated_at = now

    def write(self, key: str, value: str) -> None:
        self.write_many({key: value})

    def delete(self, keys: Iterable[str]) -> None:
        with self.session() as db:
            for key in keys:
                record = db.get(Record, key)
                if record is not None:
                    db.delete(record)
